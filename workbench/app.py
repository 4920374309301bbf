import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from workbench.application import WorkflowStore
from workbench.infrastructure import HttpRemoteGateway, InMemoryNotifier, RemoteGateway
from workbench.routes import jobs, workspace
from workbench.workers.poller import AGGRESSIVE_DURATION, AGGRESSIVE_INTERVAL, NORMAL_INTERVAL, JobPoller

logger = logging.getLogger(__name__)


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("ignoring invalid %s=%r", name, raw)
        return default


def create_app(gateway: RemoteGateway | None = None) -> FastAPI:
    logging.basicConfig(level=os.getenv("WORKBENCH_LOG_LEVEL", "INFO").upper())

    if gateway is None:
        api_base = os.getenv("WORKBENCH_API_BASE") or "http://localhost:8000/api"
        gateway = HttpRemoteGateway(
            api_base,
            token=os.getenv("WORKBENCH_API_TOKEN") or None,
            timeout=_float_env("WORKBENCH_API_TIMEOUT", 30.0),
        )

    normal_interval = _float_env("WORKBENCH_POLL_INTERVAL", NORMAL_INTERVAL)
    aggressive_interval = _float_env("WORKBENCH_AGGRESSIVE_INTERVAL", AGGRESSIVE_INTERVAL)
    aggressive_duration = _float_env("WORKBENCH_AGGRESSIVE_DURATION", AGGRESSIVE_DURATION)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        notifier = InMemoryNotifier()
        store = WorkflowStore(gateway, notifier)
        poller = JobPoller(
            gateway,
            notifier,
            normal_interval=normal_interval,
            aggressive_interval=aggressive_interval,
            aggressive_duration=aggressive_duration,
        )
        app.state.notifier = notifier
        app.state.workflow_store = store
        app.state.job_poller = poller

        await store.refresh_datasets()
        await poller.start()
        try:
            yield
        finally:
            await poller.stop()
            store.close()
            aclose = getattr(gateway, "aclose", None)
            if aclose is not None:
                await aclose()

    app = FastAPI(title="Workbench Workspace API", version="0.1.0", lifespan=lifespan)

    origins_env = os.getenv("API_CORS_ORIGINS", "")
    origins = [origin.strip() for origin in origins_env.split(",") if origin.strip()]
    if not origins:
        origins = ["http://localhost:5173", "http://127.0.0.1:5173"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(workspace.router, prefix="/api")
    app.include_router(jobs.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "Workbench Workspace API",
                "docs": "/docs",
                "health": "/api/workspace",
            }
        )

    return app


app = create_app()
