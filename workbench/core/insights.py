"""Helpers that normalise AI insight payloads into one response shape."""
from __future__ import annotations

from typing import Any

from workbench.core.schema import Dataset

KNOWN_PROVIDERS = ("claude", "gemini", "gpt4")


def _data_source_summary(dataset: Dataset) -> dict[str, Any]:
    return {
        "id": dataset.id,
        "name": dataset.name,
        "type": dataset.type,
        "row_count": dataset.row_count,
        "column_count": dataset.column_count,
    }


def _empty_comparison() -> dict[str, Any]:
    return {"agreement": [], "disagreement": [], "unique_insights": {}}


def adapt_cached_insights(dataset: Dataset) -> dict[str, Any] | None:
    """Turn a dataset's stored prior analysis into a fresh insight response.

    The remote service keeps either a complete insight response, a mapping of
    provider name to provider result, or a single provider result. All three
    are returned in the shape produced by ``workspace.data_insights``.
    """

    cached = dataset.cached_insights
    if not cached:
        return None

    if "analyses" in cached:
        adapted = dict(cached)
        adapted.setdefault("data_source", _data_source_summary(dataset))
        adapted.setdefault("intent", "")
        adapted.setdefault("comparison", _empty_comparison())
        adapted["cached"] = True
        return adapted

    if any(key in cached for key in KNOWN_PROVIDERS):
        analyses = {key: value for key, value in cached.items() if key in KNOWN_PROVIDERS}
    else:
        provider = str(cached.get("provider") or "claude")
        analyses = {provider: cached}

    return {
        "data_source": _data_source_summary(dataset),
        "intent": str(cached.get("intent") or ""),
        "analyses": analyses,
        "comparison": _empty_comparison(),
        "cached": True,
    }
