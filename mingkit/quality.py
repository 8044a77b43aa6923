#!/usr/bin/env python3
"""
Ranking and quality filtering for generated names.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Iterable, List, Tuple


def _extract_name(obj: Any) -> str:
    if hasattr(obj, "full_name"):
        return str(obj.full_name)
    return str(obj)


def _extract_score(obj: Any) -> int:
    score = getattr(obj, "score", None)
    if hasattr(score, "overall"):
        return int(score.overall)
    if hasattr(obj, "overall"):
        return int(obj.overall)
    raise TypeError(f"Cannot rank {type(obj).__name__}: no overall score")


def rank_names(names: Iterable[Any], limit: int) -> List[Any]:
    """
    Sort by descending overall score, ties by full name, drop repeated full
    names and truncate to ``limit``.
    """
    ranked = sorted(names, key=lambda n: (-_extract_score(n), _extract_name(n)))
    seen = set()
    selected = []
    for obj in ranked:
        name = _extract_name(obj)
        if name in seen:
            continue
        seen.add(name)
        selected.append(obj)
        if len(selected) >= limit:
            break
    return selected


def filter_by_standards(names: Iterable[Any], scorer) -> Tuple[List[Any], List[Tuple[Any, List[str]]]]:
    """Split names into those meeting the scorer's minimum standards and the rejects with their issues."""
    kept, rejected = [], []
    for obj in names:
        ok, issues = scorer.meets_minimum_standards(obj.score)
        if ok:
            kept.append(obj)
        else:
            rejected.append((obj, issues))
    return kept, rejected


def character_usage(names: Iterable[Any]) -> Counter:
    """How often each given-name character appears across a result list."""
    return Counter(c for obj in names for c in getattr(obj, "given_name", ""))


__all__ = ["character_usage", "filter_by_standards", "rank_names"]
