from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

JobStatus = Literal[
    "initial",
    "analyzing",
    "configuring",
    "configured",
    "code_ready",
    "training",
    "trained",
    "failed",
]


class DatasetColumn(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    type: str = "unknown"
    nullable: bool = True
    unique: bool = False
    sample_values: list[str] = Field(default_factory=list)


class Dataset(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    name: str
    description: str | None = None
    type: str = "csv"
    status: str | None = None
    file: str | None = None
    row_count: int = 0
    file_size: int = 0
    columns: list[DatasetColumn] = Field(default_factory=list)
    config: dict[str, Any] = Field(default_factory=dict)
    cached_insights: dict[str, Any] | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def column_count(self) -> int:
        return len(self.columns)

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]


class Approach(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    algorithm: str | None = None
    model_type: str | None = None
    description: str = ""
    pros: list[str] = Field(default_factory=list)
    cons: list[str] = Field(default_factory=list)
    expected_accuracy: float | None = None
    hyperparameters: dict[str, Any] = Field(default_factory=dict)


class Analysis(BaseModel):
    model_config = ConfigDict(extra="allow")

    feasible: bool = False
    confidence: float | None = None
    reasoning: str = ""
    approaches: list[Approach] = Field(default_factory=list)
    required_config: dict[str, Any] = Field(default_factory=dict)
    recommendations: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class AnalysisJob(BaseModel):
    """A server-tracked analysis-and-training task bound to one dataset."""

    model_config = ConfigDict(extra="allow")

    id: int
    name: str
    status: JobStatus = "initial"
    description: str | None = None
    data_source_id: int | None = None
    data_source_name: str | None = None
    intent: str | None = None
    ai_model: str | None = None
    analysis: Analysis | None = None
    config: dict[str, Any] = Field(default_factory=dict)
    active_version_data: dict[str, Any] | None = None
    versions: list[dict[str, Any]] = Field(default_factory=list)
    updated_at: str | None = None


class QuickTrainConfig(BaseModel):
    approach_index: int = Field(ge=0)
    target_column: str = Field(min_length=1)
    feature_columns: list[str] = Field(min_length=1)
    train_test_split: float = Field(default=0.8, gt=0, lt=1)
    has_temporal_data: bool = False
    temporal_column: str | None = None


class MergeFredConfig(BaseModel):
    series_ids: list[str] = Field(min_length=1)
    date_column: str = Field(min_length=1)
    fill_strategy: Literal["forward", "backward"] = "forward"


class AnalysisRequest(BaseModel):
    intent: str = Field(min_length=1)
    model: str = "claude"


class InsightsRequest(BaseModel):
    intent: str | None = None
    providers: list[str] | None = None


class StageRequest(BaseModel):
    stage: Literal["upload", "explore", "insights", "train", "predict"]
