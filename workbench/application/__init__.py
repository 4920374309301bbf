"""Application services."""

from .comparison import ComparisonCache
from .workflow import PREVIEW_ROWS, WorkflowStore

__all__ = [
    "ComparisonCache",
    "PREVIEW_ROWS",
    "WorkflowStore",
]
