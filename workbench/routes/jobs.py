from __future__ import annotations

from fastapi import APIRouter, Depends

from workbench.infrastructure import InMemoryNotifier
from workbench.routes.dependencies import get_job_poller, get_notifier
from workbench.workers.poller import JobPoller

router = APIRouter(tags=["jobs"])


def _jobs_view(poller: JobPoller) -> dict:
    return {
        "items": [job.model_dump() for job in poller.jobs],
        "mode": poller.mode.value,
        "interval": poller.interval,
    }


@router.get("/jobs")
async def list_jobs(poller: JobPoller = Depends(get_job_poller)) -> dict:
    return _jobs_view(poller)


@router.post("/jobs/refresh")
async def refresh_jobs(poller: JobPoller = Depends(get_job_poller)) -> dict:
    await poller.refresh()
    return _jobs_view(poller)


@router.post("/jobs/aggressive")
async def start_aggressive_polling(poller: JobPoller = Depends(get_job_poller)) -> dict:
    poller.start_aggressive_polling()
    return _jobs_view(poller)


@router.get("/notifications")
async def drain_notifications(notifier: InMemoryNotifier = Depends(get_notifier)) -> dict:
    return {"items": [item.to_dict() for item in notifier.drain()]}
