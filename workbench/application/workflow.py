"""Application service holding the guided workspace state."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from pydantic import ValidationError

from workbench.application.comparison import ComparisonCache
from workbench.core.errors import RemoteFailure, WorkspaceValidationError
from workbench.core.insights import adapt_cached_insights
from workbench.core.schema import AnalysisJob, Dataset, MergeFredConfig, QuickTrainConfig
from workbench.core.stages import can_enter, furthest_reachable, reachable
from workbench.domain import Stage, WorkspaceState
from workbench.infrastructure import Notification, Notifier, RemoteGateway, UploadFile

logger = logging.getLogger(__name__)

PREVIEW_ROWS = 50

# a malformed remote payload is treated like a failed call
REMOTE_ERRORS = (RemoteFailure, ValidationError)

ACTIVE_DATASET_SLOT = "active_dataset"


def _compare_slot(dataset_id: int) -> str:
    return f"compare:{dataset_id}"


class WorkflowStore:
    """Serialises every change of a :class:`WorkspaceState` behind named operations.

    Each operation flags ``is_processing`` while its remote calls are in
    flight and commits its whole patch at once after the last await, so
    readers never observe a half-applied change. Failures are reported
    through the notifier and leave the state as it was.
    """

    def __init__(self, gateway: RemoteGateway, notifier: Notifier, *, preview_rows: int = PREVIEW_ROWS) -> None:
        self._gateway = gateway
        self._notifier = notifier
        self._preview_rows = preview_rows
        self._state = WorkspaceState()
        self._cache = ComparisonCache(self._state)
        self._tokens: dict[str, int] = {}
        self._closed = False

    # ------------------------------------------------------------------
    # read side
    # ------------------------------------------------------------------
    @property
    def state(self) -> WorkspaceState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def reachable_stages(self) -> dict[Stage, bool]:
        return reachable(self._state)

    def overview(self) -> dict[str, Any]:
        state = self._state
        selection = sorted(state.compare_selection)
        return {
            "stage": state.stage,
            "reachable": self.reachable_stages(),
            "furthest_stage": furthest_reachable(state),
            "is_processing": state.is_processing,
            "right_panel": state.right_panel,
            "active_dataset": state.active_dataset.model_dump() if state.active_dataset else None,
            "active_tool": state.active_tool.model_dump() if state.active_tool else None,
            "datasets": [dataset.model_dump() for dataset in state.datasets],
            "preview": {"columns": list(state.preview_columns), "rows": state.preview_rows},
            "metadata": state.metadata,
            "data_insights": state.data_insights,
            "multi_dataset_insights": state.multi_dataset_insights,
            "prediction": state.prediction,
            "compare": {
                "selection": selection,
                "metadata": {str(key): state.compare_metadata.get(key) for key in selection},
                "preview_rows": {str(key): state.compare_preview_rows.get(key, []) for key in selection},
            },
        }

    def close(self) -> None:
        """Tear the store down; results landing afterwards are dropped."""

        self._closed = True

    # ------------------------------------------------------------------
    # internal helpers
    # ------------------------------------------------------------------
    def _commit(self, **changes: Any) -> bool:
        if self._closed:
            return False
        for name, value in changes.items():
            setattr(self._state, name, value)
        return True

    def _set_processing(self, value: bool) -> None:
        if not self._closed:
            self._state.is_processing = value

    def _begin(self, slot: str) -> int:
        token = self._tokens.get(slot, 0) + 1
        self._tokens[slot] = token
        return token

    def _is_latest(self, slot: str, token: int) -> bool:
        if self._tokens.get(slot) != token:
            logger.info("discarding superseded result for %s", slot)
            return False
        return True

    def _invalidate_compare_slots(self) -> None:
        for slot in list(self._tokens):
            if slot.startswith("compare:"):
                self._begin(slot)

    def _notify(self, level: str, message: str) -> None:
        if self._closed:
            return
        self._notifier.notify(Notification(level=level, message=message))  # type: ignore[arg-type]

    def _report_failure(self, message: str, exc: Exception) -> None:
        logger.error("%s: %s", message, exc)
        self._notify("error", message)

    def _reject(self, exc: WorkspaceValidationError) -> None:
        logger.info("rejected operation: %s", exc)
        self._notify("error", str(exc))

    def _require_active_dataset(self) -> Dataset:
        dataset = self._state.active_dataset
        if dataset is None:
            raise WorkspaceValidationError("Select a dataset first")
        return dataset

    def _require_active_tool(self) -> AnalysisJob:
        tool = self._state.active_tool
        if tool is None:
            raise WorkspaceValidationError("Run an analysis first")
        return tool

    async def _fetch_metadata(self, dataset_id: int) -> dict[str, Any] | None:
        """Best-effort metadata fetch; a failure only leaves the field empty."""

        try:
            return await self._gateway.workspace.get_metadata(dataset_id)
        except REMOTE_ERRORS as exc:
            logger.warning("metadata unavailable for dataset %s: %s", dataset_id, exc)
            return None

    async def _reload_catalog(self) -> bool:
        try:
            datasets = await self._gateway.datasets.list()
        except REMOTE_ERRORS as exc:
            logger.error("failed to refresh datasets: %s", exc)
            return False
        return self._commit(datasets=datasets)

    # ------------------------------------------------------------------
    # dataset lifecycle
    # ------------------------------------------------------------------
    async def refresh_datasets(self) -> bool:
        return await self._reload_catalog()

    async def select_dataset(self, dataset_id: int) -> bool:
        token = self._begin(ACTIVE_DATASET_SLOT)
        self._set_processing(True)
        try:
            dataset = await self._gateway.datasets.get(dataset_id)
            preview = await self._gateway.workspace.get_preview(dataset_id, self._preview_rows)
            metadata = await self._fetch_metadata(dataset_id)
        except REMOTE_ERRORS as exc:
            self._report_failure("Failed to load dataset", exc)
            return False
        finally:
            self._set_processing(False)

        if not self._is_latest(ACTIVE_DATASET_SLOT, token):
            return False
        return self._commit(
            active_dataset=dataset,
            preview_rows=preview.rows,
            preview_columns=preview.columns,
            metadata=metadata,
            data_insights=adapt_cached_insights(dataset),
            stage="explore",
        )

    async def upload_dataset(self, file: UploadFile, name: str, description: str | None = None) -> Dataset | None:
        """Upload a new dataset and refresh the catalog.

        The new dataset is returned but not selected; callers chain
        :meth:`select_dataset` when they want it active.
        """

        dataset_type = file.extension or "csv"
        self._set_processing(True)
        try:
            dataset = await self._gateway.datasets.create(file, name, description, dataset_type)
            self._notify("success", "Dataset uploaded successfully")
            if not await self._reload_catalog() and not any(item.id == dataset.id for item in self._state.datasets):
                self._commit(datasets=[*self._state.datasets, dataset])
        except REMOTE_ERRORS as exc:
            self._report_failure("Upload failed", exc)
            return None
        finally:
            self._set_processing(False)
        return dataset

    async def delete_dataset(self, dataset_id: int) -> bool:
        self._set_processing(True)
        try:
            await self._gateway.datasets.delete(dataset_id)
        except REMOTE_ERRORS as exc:
            self._report_failure("Failed to delete dataset", exc)
            self._set_processing(False)
            return False

        if self._closed:
            return False
        active = self._state.active_dataset
        if active is not None and active.id == dataset_id:
            self._begin(ACTIVE_DATASET_SLOT)
            self._commit(
                active_dataset=None,
                preview_rows=None,
                preview_columns=[],
                metadata=None,
                data_insights=None,
                stage="upload",
            )
        self._begin(_compare_slot(dataset_id))
        if self._cache.evict(dataset_id):
            self._commit(multi_dataset_insights=None)
        self._notify("success", "Dataset deleted")

        try:
            await self._reload_catalog()
        finally:
            self._set_processing(False)
        return True

    async def merge_fred(self, config: MergeFredConfig | Mapping[str, Any]) -> bool:
        try:
            dataset = self._require_active_dataset()
            merge = config if isinstance(config, MergeFredConfig) else MergeFredConfig.model_validate(config)
        except ValidationError as exc:
            self._reject(WorkspaceValidationError(f"Invalid merge configuration: {exc.error_count()} error(s)"))
            return False
        except WorkspaceValidationError as exc:
            self._reject(exc)
            return False

        self._set_processing(True)
        try:
            await self._gateway.workspace.merge_fred(dataset.id, merge.model_dump())
            refreshed = await self._gateway.datasets.get(dataset.id)
            preview = await self._gateway.workspace.get_preview(dataset.id, self._preview_rows)
            metadata = await self._fetch_metadata(dataset.id)
        except REMOTE_ERRORS as exc:
            self._report_failure("Merge failed", exc)
            return False
        finally:
            self._set_processing(False)

        if self._closed:
            return False
        # cached copies of the merged dataset are stale whichever dataset is active
        self._cache.refresh(dataset.id, metadata, preview.rows)
        active = self._state.active_dataset
        if active is not None and active.id == dataset.id:
            self._commit(
                active_dataset=refreshed,
                preview_rows=preview.rows,
                preview_columns=preview.columns,
                metadata=metadata,
            )
        else:
            logger.info("dataset %s no longer active, merged view not applied", dataset.id)
        self._notify("success", "FRED data merged successfully")
        return True

    async def browse_fred(self, search: str, limit: int = 20) -> list[dict[str, Any]]:
        try:
            return await self._gateway.workspace.browse_fred(search, limit)
        except REMOTE_ERRORS as exc:
            self._report_failure("FRED search failed", exc)
            return []

    # ------------------------------------------------------------------
    # analysis & training
    # ------------------------------------------------------------------
    async def run_analysis(self, intent: str, model: str = "claude") -> AnalysisJob | None:
        try:
            dataset = self._require_active_dataset()
        except WorkspaceValidationError as exc:
            self._reject(exc)
            return None

        self._set_processing(True)
        try:
            tool = await self._gateway.jobs.create(
                {
                    "dataset_id": dataset.id,
                    "name": f"{dataset.name} Analysis",
                    "intent": intent,
                    "model": model,
                }
            )
        except REMOTE_ERRORS as exc:
            self._report_failure("Analysis failed", exc)
            return None
        finally:
            self._set_processing(False)

        if not self._commit(active_tool=tool, prediction=None, stage="insights"):
            return None
        return tool

    async def quick_train(self, config: QuickTrainConfig | Mapping[str, Any]) -> bool:
        try:
            tool = self._require_active_tool()
            train = config if isinstance(config, QuickTrainConfig) else QuickTrainConfig.model_validate(config)
        except ValidationError as exc:
            self._reject(WorkspaceValidationError(f"Invalid training configuration: {exc.error_count()} error(s)"))
            return False
        except WorkspaceValidationError as exc:
            self._reject(exc)
            return False

        self._set_processing(True)
        try:
            updated = await self._gateway.jobs.quick_train(tool.id, train.model_dump(exclude_none=True))
        except REMOTE_ERRORS as exc:
            self._report_failure("Training failed", exc)
            return False
        finally:
            self._set_processing(False)

        if not self._commit(active_tool=updated, stage="predict"):
            return False
        self._notify("success", "Model trained successfully!")
        return True

    async def refresh_active_tool(self) -> bool:
        try:
            tool = self._require_active_tool()
        except WorkspaceValidationError as exc:
            self._reject(exc)
            return False

        try:
            updated = await self._gateway.jobs.get(tool.id)
        except REMOTE_ERRORS as exc:
            self._report_failure("Failed to refresh analysis", exc)
            return False

        current = self._state.active_tool
        if current is None or current.id != updated.id:
            return False
        return self._commit(active_tool=updated)

    async def predict(self, file: UploadFile) -> dict[str, Any] | None:
        try:
            tool = self._require_active_tool()
            if tool.status != "trained":
                raise WorkspaceValidationError("Train the model before running predictions")
        except WorkspaceValidationError as exc:
            self._reject(exc)
            return None

        self._set_processing(True)
        try:
            result = await self._gateway.jobs.predict(tool.id, file)
        except REMOTE_ERRORS as exc:
            self._report_failure("Prediction failed", exc)
            return None
        finally:
            self._set_processing(False)

        if not self._commit(prediction=result):
            return None
        return result

    # ------------------------------------------------------------------
    # comparison
    # ------------------------------------------------------------------
    async def toggle_compare_dataset(self, dataset_id: int) -> bool:
        """Flip ``dataset_id`` in the comparison selection.

        Returns whether the id is selected once the call completes.
        """

        if dataset_id in self._cache:
            self._begin(_compare_slot(dataset_id))
            self._cache.evict(dataset_id)
            self._commit(multi_dataset_insights=None)
            return False

        slot = _compare_slot(dataset_id)
        token = self._begin(slot)
        self._set_processing(True)
        try:
            preview = await self._gateway.workspace.get_preview(dataset_id, self._preview_rows)
            metadata = await self._fetch_metadata(dataset_id)
        except REMOTE_ERRORS as exc:
            self._report_failure("Failed to load dataset for comparison", exc)
            return dataset_id in self._cache
        finally:
            self._set_processing(False)

        if not self._is_latest(slot, token) or self._closed:
            return dataset_id in self._cache
        self._cache.insert(dataset_id, metadata, preview.rows)
        self._commit(multi_dataset_insights=None)
        return True

    def clear_compare_datasets(self) -> None:
        self._invalidate_compare_slots()
        if self._closed:
            return
        self._cache.clear()
        self._commit(multi_dataset_insights=None)

    # ------------------------------------------------------------------
    # AI insights
    # ------------------------------------------------------------------
    async def fetch_data_insights(
        self, intent: str | None = None, providers: Iterable[str] | None = None
    ) -> dict[str, Any] | None:
        try:
            dataset = self._require_active_dataset()
        except WorkspaceValidationError as exc:
            self._reject(exc)
            return None

        payload: dict[str, Any] = {"dataset_id": dataset.id, "intent": intent}
        if providers:
            payload["providers"] = list(providers)

        self._set_processing(True)
        try:
            insights = await self._gateway.workspace.data_insights(payload)
        except REMOTE_ERRORS as exc:
            self._report_failure("Failed to generate data insights", exc)
            return None
        finally:
            self._set_processing(False)

        active = self._state.active_dataset
        if active is None or active.id != dataset.id:
            logger.info("discarding insights for dataset %s, no longer active", dataset.id)
            return None
        if not self._commit(data_insights=insights):
            return None
        return insights

    async def fetch_multi_dataset_insights(
        self, intent: str | None = None, providers: Iterable[str] | None = None
    ) -> dict[str, Any] | None:
        selection = sorted(self._cache.selection)
        if len(selection) < 2:
            self._reject(WorkspaceValidationError("Select at least two datasets to compare"))
            return None

        payload: dict[str, Any] = {"dataset_ids": selection, "intent": intent}
        if providers:
            payload["providers"] = list(providers)

        self._set_processing(True)
        try:
            insights = await self._gateway.workspace.data_insights(payload)
        except REMOTE_ERRORS as exc:
            self._report_failure("Failed to compare datasets", exc)
            return None
        finally:
            self._set_processing(False)

        if sorted(self._cache.selection) != selection:
            logger.info("discarding comparison insights, selection changed")
            return None
        if not self._commit(multi_dataset_insights=insights):
            return None
        return insights

    # ------------------------------------------------------------------
    # navigation & UI flags
    # ------------------------------------------------------------------
    def set_stage(self, stage: str) -> bool:
        if not can_enter(self._state, stage):
            return False
        return self._commit(stage=stage)

    def toggle_marketplace(self) -> None:
        panel = "hidden" if self._state.right_panel == "marketplace" else "marketplace"
        self._commit(right_panel=panel)
