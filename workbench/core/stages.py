from __future__ import annotations

from workbench.domain import STAGES, Stage, WorkspaceState


def reachable(state: WorkspaceState) -> dict[Stage, bool]:
    """Return which workflow stages can be entered given ``state`` alone."""

    tool = state.active_tool
    return {
        "upload": True,
        "explore": state.active_dataset is not None,
        "insights": tool is not None,
        "train": tool is not None and tool.analysis is not None,
        "predict": tool is not None and tool.status == "trained",
    }


def can_enter(state: WorkspaceState, stage: str) -> bool:
    if stage not in STAGES:
        return False
    return reachable(state)[stage]  # type: ignore[index]


def furthest_reachable(state: WorkspaceState) -> Stage:
    gate = reachable(state)
    furthest: Stage = "upload"
    for stage in STAGES:
        if gate[stage]:
            furthest = stage
    return furthest
