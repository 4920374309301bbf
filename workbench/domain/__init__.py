"""Domain layer definitions."""

from .workspace import STAGES, RightPanel, Stage, WorkspaceState

__all__ = [
    "STAGES",
    "RightPanel",
    "Stage",
    "WorkspaceState",
]
