from __future__ import annotations

import asyncio
import sys
from collections import deque
from pathlib import Path
from typing import Any

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from workbench.core.errors import RemoteFailure
from workbench.core.schema import Analysis, AnalysisJob, Dataset
from workbench.infrastructure import InMemoryNotifier, Preview, UploadFile


class FakeGateway:
    """In-memory stand-in for the remote analysis service."""

    def __init__(self) -> None:
        self.datasets_by_id: dict[int, Dataset] = {}
        self.previews: dict[int, Preview] = {}
        self.metadata: dict[int, dict[str, Any]] = {}
        self.jobs_by_id: dict[int, AnalysisJob] = {}
        self.job_snapshots: deque[list[AnalysisJob]] = deque()
        self.insights: dict[str, Any] = {"analyses": {"claude": {"summary": "looks fine"}}}
        self.created_job_status = "configuring"
        self.failures: set[str] = set()
        self.blockers: dict[str, deque[asyncio.Event]] = {}
        self.calls: list[tuple[str, tuple]] = []
        self._next_id = 100

        self.datasets = _Datasets(self)
        self.jobs = _Jobs(self)
        self.workspace = _Workspace(self)

    def add_dataset(self, dataset: Dataset, columns: list[str] | None = None, rows: list[dict] | None = None) -> None:
        self.datasets_by_id[dataset.id] = dataset
        self.previews[dataset.id] = Preview(columns=columns or dataset.column_names, rows=rows or [])

    def block(self, name: str) -> asyncio.Event:
        event = asyncio.Event()
        self.blockers.setdefault(name, deque()).append(event)
        return event

    def called(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    def next_id(self) -> int:
        self._next_id += 1
        return self._next_id

    async def enter(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        queue = self.blockers.get(name)
        if queue:
            await queue.popleft().wait()
        if name in self.failures:
            raise RemoteFailure(f"{name} failed", status_code=500)


class _Datasets:
    def __init__(self, gateway: FakeGateway) -> None:
        self._gw = gateway

    async def list(self) -> list[Dataset]:
        await self._gw.enter("datasets.list")
        return list(self._gw.datasets_by_id.values())

    async def get(self, dataset_id: int) -> Dataset:
        await self._gw.enter("datasets.get", dataset_id)
        try:
            return self._gw.datasets_by_id[dataset_id]
        except KeyError:
            raise RemoteFailure("not found", status_code=404) from None

    async def create(self, file: UploadFile, name: str, description: str | None = None, type: str = "csv") -> Dataset:
        await self._gw.enter("datasets.create", file.filename, name, description, type)
        dataset = Dataset(id=self._gw.next_id(), name=name, description=description, type=type)
        self._gw.add_dataset(dataset)
        return dataset

    async def delete(self, dataset_id: int) -> None:
        await self._gw.enter("datasets.delete", dataset_id)
        self._gw.datasets_by_id.pop(dataset_id, None)


class _Jobs:
    def __init__(self, gateway: FakeGateway) -> None:
        self._gw = gateway

    async def list(self, filter: dict | None = None) -> list[AnalysisJob]:
        await self._gw.enter("jobs.list")
        if self._gw.job_snapshots:
            return self._gw.job_snapshots.popleft()
        return list(self._gw.jobs_by_id.values())

    async def get(self, job_id: int) -> AnalysisJob:
        await self._gw.enter("jobs.get", job_id)
        return self._gw.jobs_by_id[job_id]

    async def create(self, payload: dict) -> AnalysisJob:
        await self._gw.enter("jobs.create", payload)
        job = AnalysisJob(
            id=self._gw.next_id(),
            name=payload["name"],
            status=self._gw.created_job_status,
            data_source_id=payload["dataset_id"],
            intent=payload["intent"],
            ai_model=payload["model"],
            analysis=Analysis(feasible=True, confidence=0.9, reasoning="target is categorical"),
        )
        self._gw.jobs_by_id[job.id] = job
        return job

    async def configure(self, job_id: int, config: dict) -> AnalysisJob:
        await self._gw.enter("jobs.configure", job_id, config)
        job = self._gw.jobs_by_id[job_id].model_copy(update={"status": "configured", "config": config})
        self._gw.jobs_by_id[job_id] = job
        return job

    async def train(self, job_id: int) -> AnalysisJob:
        await self._gw.enter("jobs.train", job_id)
        job = self._gw.jobs_by_id[job_id].model_copy(update={"status": "training"})
        self._gw.jobs_by_id[job_id] = job
        return job

    async def quick_train(self, job_id: int, config: dict) -> AnalysisJob:
        await self._gw.enter("jobs.quick_train", job_id, config)
        job = self._gw.jobs_by_id[job_id].model_copy(
            update={"status": "trained", "config": config, "active_version_data": {"metrics": {"r2_score": 0.91}}}
        )
        self._gw.jobs_by_id[job_id] = job
        return job

    async def predict(self, job_id: int, file: UploadFile) -> dict:
        await self._gw.enter("jobs.predict", job_id, file.filename)
        return {"predictions": [1, 0, 1], "file": file.filename}


class _Workspace:
    def __init__(self, gateway: FakeGateway) -> None:
        self._gw = gateway

    async def get_preview(self, dataset_id: int, max_rows: int = 50) -> Preview:
        await self._gw.enter("workspace.get_preview", dataset_id, max_rows)
        preview = self._gw.previews[dataset_id]
        return Preview(columns=list(preview.columns), rows=preview.rows[:max_rows])

    async def get_metadata(self, dataset_id: int) -> dict:
        await self._gw.enter("workspace.get_metadata", dataset_id)
        return self._gw.metadata.get(dataset_id, {"row_count": self._gw.datasets_by_id[dataset_id].row_count})

    async def merge_fred(self, dataset_id: int, payload: dict) -> None:
        await self._gw.enter("workspace.merge_fred", dataset_id, payload)
        dataset = self._gw.datasets_by_id[dataset_id]
        preview = self._gw.previews[dataset_id]
        merged_columns = [*preview.columns, *payload["series_ids"]]
        self._gw.previews[dataset_id] = Preview(columns=merged_columns, rows=preview.rows)
        self._gw.metadata[dataset_id] = {"row_count": dataset.row_count, "merged": list(payload["series_ids"])}

    async def browse_fred(self, search: str, limit: int = 20) -> list[dict]:
        await self._gw.enter("workspace.browse_fred", search, limit)
        return [{"id": "UNRATE", "title": "Unemployment Rate"}][:limit]

    async def data_insights(self, payload: dict) -> dict:
        await self._gw.enter("workspace.data_insights", payload)
        return {**self._gw.insights, "request": payload}


def make_dataset(dataset_id: int, name: str, **extra: Any) -> Dataset:
    payload: dict[str, Any] = {
        "id": dataset_id,
        "name": name,
        "type": "csv",
        "row_count": 100,
        "columns": [{"name": "a", "type": "numeric"}, {"name": "b", "type": "categorical"}],
    }
    payload.update(extra)
    return Dataset.model_validate(payload)


@pytest.fixture()
def gateway() -> FakeGateway:
    fake = FakeGateway()
    fake.add_dataset(make_dataset(1, "D1"), rows=[{"a": index, "b": "x" if index % 2 else "y"} for index in range(100)])
    fake.add_dataset(make_dataset(2, "D2"), rows=[{"a": 1, "b": "z"}])
    fake.add_dataset(make_dataset(3, "D3", type="pdf", columns=[]), columns=["text"], rows=[{"text": "page 1"}])
    return fake


@pytest.fixture()
def notifier() -> InMemoryNotifier:
    return InMemoryNotifier()
