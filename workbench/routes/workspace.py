from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile

from workbench.application import WorkflowStore
from workbench.core.schema import AnalysisRequest, InsightsRequest, MergeFredConfig, QuickTrainConfig, StageRequest
from workbench.routes.dependencies import get_job_poller, get_workflow_store, read_upload
from workbench.workers.poller import JobPoller

router = APIRouter(prefix="/workspace", tags=["workspace"])


def _result(store: WorkflowStore, ok: bool, **extra: object) -> dict:
    return {"ok": ok, **extra, "workspace": store.overview()}


@router.get("")
async def get_workspace(store: WorkflowStore = Depends(get_workflow_store)) -> dict:
    return store.overview()


@router.post("/stage")
async def set_stage(payload: StageRequest, store: WorkflowStore = Depends(get_workflow_store)) -> dict:
    return _result(store, store.set_stage(payload.stage))


@router.post("/marketplace")
async def toggle_marketplace(store: WorkflowStore = Depends(get_workflow_store)) -> dict:
    store.toggle_marketplace()
    return _result(store, True)


@router.post("/datasets")
async def upload_dataset(
    file: UploadFile = File(...),
    name: str | None = Form(default=None),
    description: str | None = Form(default=None),
    store: WorkflowStore = Depends(get_workflow_store),
) -> dict:
    upload = await read_upload(file)
    dataset_name = name or Path(upload.filename).stem
    if not dataset_name:
        raise HTTPException(status_code=400, detail="name is required")
    dataset = await store.upload_dataset(upload, dataset_name, description)
    return _result(store, dataset is not None, dataset=dataset.model_dump() if dataset else None)


@router.post("/datasets/refresh")
async def refresh_datasets(store: WorkflowStore = Depends(get_workflow_store)) -> dict:
    return _result(store, await store.refresh_datasets())


@router.post("/datasets/{dataset_id}/select")
async def select_dataset(dataset_id: int, store: WorkflowStore = Depends(get_workflow_store)) -> dict:
    return _result(store, await store.select_dataset(dataset_id))


@router.delete("/datasets/{dataset_id}")
async def delete_dataset(dataset_id: int, store: WorkflowStore = Depends(get_workflow_store)) -> dict:
    return _result(store, await store.delete_dataset(dataset_id))


@router.post("/analysis")
async def run_analysis(
    payload: AnalysisRequest,
    store: WorkflowStore = Depends(get_workflow_store),
    poller: JobPoller = Depends(get_job_poller),
) -> dict:
    tool = await store.run_analysis(payload.intent, payload.model)
    if tool is not None:
        poller.start_aggressive_polling()
    return _result(store, tool is not None)


@router.post("/train")
async def quick_train(
    payload: QuickTrainConfig,
    store: WorkflowStore = Depends(get_workflow_store),
    poller: JobPoller = Depends(get_job_poller),
) -> dict:
    ok = await store.quick_train(payload)
    if ok:
        poller.start_aggressive_polling()
    return _result(store, ok)


@router.post("/tool/refresh")
async def refresh_active_tool(store: WorkflowStore = Depends(get_workflow_store)) -> dict:
    return _result(store, await store.refresh_active_tool())


@router.post("/predict")
async def predict(file: UploadFile = File(...), store: WorkflowStore = Depends(get_workflow_store)) -> dict:
    upload = await read_upload(file)
    result = await store.predict(upload)
    return _result(store, result is not None)


@router.post("/fred/merge")
async def merge_fred(payload: MergeFredConfig, store: WorkflowStore = Depends(get_workflow_store)) -> dict:
    return _result(store, await store.merge_fred(payload))


@router.get("/fred/browse")
async def browse_fred(
    search: str = Query(min_length=1),
    limit: int = Query(default=20, ge=1, le=100),
    store: WorkflowStore = Depends(get_workflow_store),
) -> dict:
    return {"items": await store.browse_fred(search, limit)}


@router.post("/compare/{dataset_id}")
async def toggle_compare_dataset(dataset_id: int, store: WorkflowStore = Depends(get_workflow_store)) -> dict:
    selected = await store.toggle_compare_dataset(dataset_id)
    return _result(store, True, selected=selected)


@router.delete("/compare")
async def clear_compare_datasets(store: WorkflowStore = Depends(get_workflow_store)) -> dict:
    store.clear_compare_datasets()
    return _result(store, True)


@router.post("/insights")
async def fetch_data_insights(
    payload: InsightsRequest | None = None,
    store: WorkflowStore = Depends(get_workflow_store),
) -> dict:
    payload = payload or InsightsRequest()
    insights = await store.fetch_data_insights(payload.intent, payload.providers)
    return _result(store, insights is not None)


@router.post("/insights/compare")
async def fetch_multi_dataset_insights(
    payload: InsightsRequest | None = None,
    store: WorkflowStore = Depends(get_workflow_store),
) -> dict:
    payload = payload or InsightsRequest()
    insights = await store.fetch_multi_dataset_insights(payload.intent, payload.providers)
    return _result(store, insights is not None)
