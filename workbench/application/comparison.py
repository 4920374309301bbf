"""Per-dataset cache backing the side-by-side comparison view."""
from __future__ import annotations

from typing import Any

from workbench.domain import WorkspaceState


class ComparisonCache:
    """Keeps comparison metadata and preview rows in lock-step with the selection.

    Every write goes through :meth:`insert`, :meth:`evict`, :meth:`clear` or
    :meth:`refresh`, so the cache keys are always a subset of
    ``state.compare_selection``.
    """

    def __init__(self, state: WorkspaceState) -> None:
        self._state = state

    def __contains__(self, dataset_id: object) -> bool:
        return dataset_id in self._state.compare_selection

    def __len__(self) -> int:
        return len(self._state.compare_selection)

    @property
    def selection(self) -> frozenset[int]:
        return frozenset(self._state.compare_selection)

    def insert(self, dataset_id: int, metadata: dict[str, Any] | None, rows: list[dict[str, Any]]) -> None:
        self._state.compare_selection.add(dataset_id)
        self._state.compare_metadata[dataset_id] = metadata
        self._state.compare_preview_rows[dataset_id] = list(rows)

    def evict(self, dataset_id: int) -> bool:
        present = dataset_id in self._state.compare_selection
        self._state.compare_selection.discard(dataset_id)
        self._state.compare_metadata.pop(dataset_id, None)
        self._state.compare_preview_rows.pop(dataset_id, None)
        return present

    def refresh(self, dataset_id: int, metadata: dict[str, Any] | None, rows: list[dict[str, Any]]) -> bool:
        """Replace the entries of an id that is still selected; ignore others."""

        if dataset_id not in self._state.compare_selection:
            return False
        self._state.compare_metadata[dataset_id] = metadata
        self._state.compare_preview_rows[dataset_id] = list(rows)
        return True

    def clear(self) -> None:
        self._state.compare_selection.clear()
        self._state.compare_metadata.clear()
        self._state.compare_preview_rows.clear()
