from __future__ import annotations

from fastapi import HTTPException, Request, UploadFile

from workbench.application import WorkflowStore
from workbench.infrastructure import InMemoryNotifier
from workbench.infrastructure import UploadFile as GatewayUpload
from workbench.workers.poller import JobPoller


def get_workflow_store(request: Request) -> WorkflowStore:
    store = getattr(request.app.state, "workflow_store", None)
    if store is None or store.closed:
        raise HTTPException(status_code=503, detail="workspace is not mounted")
    return store


def get_job_poller(request: Request) -> JobPoller:
    poller = getattr(request.app.state, "job_poller", None)
    if poller is None:
        raise HTTPException(status_code=503, detail="job poller is not running")
    return poller


def get_notifier(request: Request) -> InMemoryNotifier:
    return request.app.state.notifier


async def read_upload(upload: UploadFile) -> GatewayUpload:
    if not upload.filename:
        raise HTTPException(status_code=400, detail="Uploaded file must have a filename")
    try:
        content = await upload.read()
    finally:
        await upload.close()
    return GatewayUpload(filename=upload.filename, content=content, content_type=upload.content_type)
