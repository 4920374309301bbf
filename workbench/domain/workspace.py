"""Domain entities for the guided analysis workspace."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from workbench.core.schema import AnalysisJob, Dataset

Stage = Literal["upload", "explore", "insights", "train", "predict"]

STAGES: tuple[Stage, ...] = ("upload", "explore", "insights", "train", "predict")

RightPanel = Literal["hidden", "marketplace"]


@dataclass(slots=True)
class WorkspaceState:
    """Authoritative state of one mounted workspace.

    Only :class:`workbench.application.WorkflowStore` writes to it.
    """

    stage: Stage = "upload"
    active_dataset: Dataset | None = None
    active_tool: AnalysisJob | None = None
    right_panel: RightPanel = "hidden"
    is_processing: bool = False
    datasets: list[Dataset] = field(default_factory=list)
    preview_rows: list[dict[str, Any]] | None = None
    preview_columns: list[str] = field(default_factory=list)
    metadata: dict[str, Any] | None = None
    data_insights: dict[str, Any] | None = None
    multi_dataset_insights: dict[str, Any] | None = None
    prediction: dict[str, Any] | None = None
    compare_selection: set[int] = field(default_factory=set)
    compare_metadata: dict[int, dict[str, Any] | None] = field(default_factory=dict)
    compare_preview_rows: dict[int, list[dict[str, Any]]] = field(default_factory=dict)
