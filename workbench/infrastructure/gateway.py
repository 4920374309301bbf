"""HTTP client for the remote analysis service."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import urlparse

import httpx

from workbench.core.errors import RemoteFailure
from workbench.core.schema import AnalysisJob, Dataset

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class UploadFile:
    """File content handed to the gateway for multipart uploads."""

    filename: str
    content: bytes
    content_type: str | None = None

    @property
    def extension(self) -> str:
        _, dot, suffix = self.filename.rpartition(".")
        return suffix.lower() if dot and suffix else ""


@dataclass(slots=True)
class Preview:
    columns: list[str]
    rows: list[dict[str, Any]]


class DatasetsApi(Protocol):
    async def list(self) -> list[Dataset]: ...

    async def get(self, dataset_id: int) -> Dataset: ...

    async def create(
        self,
        file: UploadFile,
        name: str,
        description: str | None = None,
        type: str = "csv",
    ) -> Dataset: ...

    async def delete(self, dataset_id: int) -> None: ...


class JobsApi(Protocol):
    async def list(self, filter: dict[str, Any] | None = None) -> list[AnalysisJob]: ...

    async def get(self, job_id: int) -> AnalysisJob: ...

    async def create(self, payload: dict[str, Any]) -> AnalysisJob: ...

    async def configure(self, job_id: int, config: dict[str, Any]) -> AnalysisJob: ...

    async def train(self, job_id: int) -> AnalysisJob: ...

    async def quick_train(self, job_id: int, config: dict[str, Any]) -> AnalysisJob: ...

    async def predict(self, job_id: int, file: UploadFile) -> dict[str, Any]: ...


class WorkspaceApi(Protocol):
    async def get_preview(self, dataset_id: int, max_rows: int = 50) -> Preview: ...

    async def get_metadata(self, dataset_id: int) -> dict[str, Any]: ...

    async def merge_fred(self, dataset_id: int, payload: dict[str, Any]) -> None: ...

    async def browse_fred(self, search: str, limit: int = 20) -> list[dict[str, Any]]: ...

    async def data_insights(self, payload: dict[str, Any]) -> dict[str, Any]: ...


class RemoteGateway(Protocol):
    """Contract for the remote service the workspace delegates work to."""

    datasets: DatasetsApi
    jobs: JobsApi
    workspace: WorkspaceApi


def _unwrap_results(payload: Any) -> list[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        results = payload.get("results")
        if isinstance(results, list):
            return results
    return []


def _expect_mapping(payload: Any, path: str) -> dict[str, Any]:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise RemoteFailure(f"unexpected payload from {path}", detail=payload)
    return payload


class _HttpDatasetsApi:
    def __init__(self, gateway: "HttpRemoteGateway") -> None:
        self._gateway = gateway

    async def list(self) -> list[Dataset]:
        payload = await self._gateway.request("GET", "/data-sources/")
        return [Dataset.model_validate(item) for item in _unwrap_results(payload)]

    async def get(self, dataset_id: int) -> Dataset:
        payload = await self._gateway.request("GET", f"/data-sources/{dataset_id}/")
        return Dataset.model_validate(payload)

    async def create(
        self,
        file: UploadFile,
        name: str,
        description: str | None = None,
        type: str = "csv",
    ) -> Dataset:
        data = {"name": name, "type": type}
        if description:
            data["description"] = description
        files = {"file": (file.filename, file.content, file.content_type or "application/octet-stream")}
        payload = await self._gateway.request("POST", "/data-sources/", data=data, files=files)
        return Dataset.model_validate(payload)

    async def delete(self, dataset_id: int) -> None:
        await self._gateway.request("DELETE", f"/data-sources/{dataset_id}/")


class _HttpJobsApi:
    def __init__(self, gateway: "HttpRemoteGateway") -> None:
        self._gateway = gateway

    async def list(self, filter: dict[str, Any] | None = None) -> list[AnalysisJob]:
        payload = await self._gateway.request("GET", "/ai-tools/", params=filter or None)
        return [AnalysisJob.model_validate(item) for item in _unwrap_results(payload)]

    async def get(self, job_id: int) -> AnalysisJob:
        payload = await self._gateway.request("GET", f"/ai-tools/{job_id}/")
        return AnalysisJob.model_validate(payload)

    async def create(self, payload: dict[str, Any]) -> AnalysisJob:
        body = {
            "name": payload["name"],
            "intent": payload.get("intent") or "",
            "data_source_id": payload["dataset_id"],
            "ai_model": payload.get("model") or "claude",
        }
        response = await self._gateway.request("POST", "/ai-tools/analyze/", json=body)
        return AnalysisJob.model_validate(response)

    async def configure(self, job_id: int, config: dict[str, Any]) -> AnalysisJob:
        response = await self._gateway.request("POST", f"/ai-tools/{job_id}/configure/", json=config)
        return AnalysisJob.model_validate(response)

    async def train(self, job_id: int) -> AnalysisJob:
        response = await self._gateway.request("POST", f"/ai-tools/{job_id}/train/")
        if isinstance(response, dict) and "ai_tool" in response:
            response = response["ai_tool"]
        return AnalysisJob.model_validate(response)

    async def quick_train(self, job_id: int, config: dict[str, Any]) -> AnalysisJob:
        response = await self._gateway.request("POST", f"/ai-tools/{job_id}/quick_train/", json=config)
        if isinstance(response, dict) and "ai_tool" in response:
            response = response["ai_tool"]
        return AnalysisJob.model_validate(response)

    async def predict(self, job_id: int, file: UploadFile) -> dict[str, Any]:
        files = {"file": (file.filename, file.content, file.content_type or "application/octet-stream")}
        response = await self._gateway.request("POST", f"/ai-tools/{job_id}/predict/", files=files)
        return response if isinstance(response, dict) else {"results": response}


class _HttpWorkspaceApi:
    def __init__(self, gateway: "HttpRemoteGateway") -> None:
        self._gateway = gateway

    async def get_preview(self, dataset_id: int, max_rows: int = 50) -> Preview:
        path = f"/data-sources/{dataset_id}/preview/"
        payload = _expect_mapping(await self._gateway.request("GET", path, params={"rows": max_rows}), path)
        rows = payload.get("rows")
        if rows is None:
            rows = payload.get("data") or []
        columns = [str(column) for column in payload.get("columns") or []]
        return Preview(columns=columns, rows=list(rows)[:max_rows])

    async def get_metadata(self, dataset_id: int) -> dict[str, Any]:
        path = f"/data-sources/{dataset_id}/metadata/"
        return _expect_mapping(await self._gateway.request("GET", path), path)

    async def merge_fred(self, dataset_id: int, payload: dict[str, Any]) -> None:
        await self._gateway.request("POST", f"/data-sources/{dataset_id}/merge_fred/", json=payload)

    async def browse_fred(self, search: str, limit: int = 20) -> list[dict[str, Any]]:
        payload = await self._gateway.request(
            "GET", "/data-sources/fred_browse/", params={"search": search, "limit": limit}
        )
        return _unwrap_results(payload)

    async def data_insights(self, payload: dict[str, Any]) -> dict[str, Any]:
        body: dict[str, Any] = {}
        if "dataset_id" in payload:
            body["data_source_id"] = payload["dataset_id"]
        if "dataset_ids" in payload:
            body["data_source_ids"] = list(payload["dataset_ids"])
        if payload.get("intent"):
            body["intent"] = payload["intent"]
        if payload.get("providers"):
            body["providers"] = list(payload["providers"])
        response = await self._gateway.request("POST", "/ai-tools/data_insights/", json=body)
        return _expect_mapping(response, "/ai-tools/data_insights/")


class HttpRemoteGateway:
    """``RemoteGateway`` backed by the analysis service's JSON API."""

    def __init__(
        self,
        api_base: str,
        *,
        token: str | None = None,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        parsed = urlparse(api_base)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("api_base must include scheme and host")

        self._api_base = api_base.rstrip("/")
        self._token = token
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

        self.datasets = _HttpDatasetsApi(self)
        self.jobs = _HttpJobsApi(self)
        self.workspace = _HttpWorkspaceApi(self)

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self._api_base}{path}"
        try:
            response = await self._client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as exc:
            logger.error("%s %s failed: %s", method, path, exc)
            raise RemoteFailure(f"{method} {path} failed: {exc}") from exc

        if response.is_error:
            try:
                detail: object = response.json()
            except ValueError:
                detail = response.text
            logger.error("%s %s returned %s", method, path, response.status_code)
            raise RemoteFailure(
                f"{method} {path} returned {response.status_code}",
                status_code=response.status_code,
                detail=detail,
            )

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteFailure(f"{method} {path} returned a non-JSON body") from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = [
    "DatasetsApi",
    "HttpRemoteGateway",
    "JobsApi",
    "Preview",
    "RemoteGateway",
    "UploadFile",
    "WorkspaceApi",
]
