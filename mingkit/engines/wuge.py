#!/usr/bin/env python3
"""
Five Grids Numerology
=====================
Wuge (五格) grid numbers from stroke counts, their 81-number fortunes and
the Three Talents (三才) element relationship.

Grid formulas (s = surname strokes, g = given-name strokes):

    heaven  sum(s), +1 for a single-character surname
    human   s[-1] + g[0]
    earth   sum(g), +1 for a single-character given name
    total   sum(s) + sum(g)
    outer   total - human + 1; a single-character given name uses
            s[0] + 1 (compound surname) or 2 (single surname)

Every grid is folded into 1..81 before looking it up.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Dict, List, Optional, Sequence, Tuple

from mingkit.data import load_numerology
from mingkit.elements import DESTRUCTION, GENERATION, Element, number_to_element
from mingkit.errors import DataError, InvalidInputError
from mingkit.settings import get_setting

logger = logging.getLogger(__name__)

GRID_NAMES = ("heaven", "human", "earth", "outer", "total")
GRID_LABELS = {
    "heaven": "天格",
    "human": "人格",
    "earth": "地格",
    "outer": "外格",
    "total": "总格",
}
TABLE_SIZE = 81


class Fortune(Enum):
    """Fortune class of an 81-table number."""
    GREAT = "大吉"
    GOOD = "吉"
    MIXED = "半吉"
    BAD = "凶"
    TERRIBLE = "大凶"

    @property
    def is_fortunate(self) -> bool:
        return self in (Fortune.GREAT, Fortune.GOOD)

    @classmethod
    def parse(cls, label) -> "Fortune":
        for member in cls:
            if label == member.value or str(label).upper() == member.name:
                return member
        raise InvalidInputError(f"Unknown fortune class: {label!r}")


class RelationKind(Enum):
    """Three Talents relationship."""
    GENERATING = "相生"
    DESTRUCTIVE = "相克"
    IDENTICAL = "同类"


def reduce_number(number: int, size: int = TABLE_SIZE) -> int:
    """Fold a positive grid number into 1..size."""
    if number < 1:
        raise InvalidInputError(f"Grid number must be positive, got {number}")
    return (number - 1) % size + 1


# =============================================================================
# 81-number table
# =============================================================================

@dataclass(frozen=True)
class NumerologyEntry:
    number: int            # grid number before folding
    reduced: int           # 1..81
    fortune: Fortune
    meaning: str

    @property
    def is_fortunate(self) -> bool:
        return self.fortune.is_fortunate


class NumerologyTable:
    """Fixed 81-entry lookup of fortune class and meaning."""

    def __init__(self, entries: Dict[int, Tuple[Fortune, str]]):
        numbers = sorted(entries)
        if numbers != list(range(1, TABLE_SIZE + 1)):
            raise DataError(f"Numerology table must hold exactly the numbers 1..{TABLE_SIZE}")
        self._entries = dict(entries)

    @classmethod
    def from_data(cls, data: Dict) -> "NumerologyTable":
        raw = data.get('numbers') or {}
        entries = {}
        for number, row in raw.items():
            try:
                fortune = Fortune.parse(row['fortune'])
            except (KeyError, TypeError, InvalidInputError) as e:
                raise DataError(f"numerology.yaml entry {number}: {e}") from e
            entries[int(number)] = (fortune, str(row.get('meaning', '')))
        return cls(entries)

    def lookup(self, number: int) -> NumerologyEntry:
        reduced = reduce_number(number)
        fortune, meaning = self._entries[reduced]
        return NumerologyEntry(number, reduced, fortune, meaning)

    def fortunate_numbers(self) -> List[int]:
        return [n for n, (fortune, _) in sorted(self._entries.items()) if fortune.is_fortunate]

    def __len__(self) -> int:
        return len(self._entries)


@lru_cache(maxsize=1)
def default_numerology() -> NumerologyTable:
    return NumerologyTable.from_data(load_numerology())


# =============================================================================
# Grids
# =============================================================================

@dataclass(frozen=True)
class FiveGrids:
    heaven: int
    human: int
    earth: int
    outer: int
    total: int

    def as_dict(self) -> Dict[str, int]:
        return {name: getattr(self, name) for name in GRID_NAMES}


def _check_strokes(strokes: Sequence[int], what: str) -> List[int]:
    values = list(strokes or ())
    if not values:
        raise InvalidInputError(f"{what} stroke counts must not be empty")
    for value in values:
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            raise InvalidInputError(f"{what} stroke counts must be positive integers, got {value!r}")
    return values


def calculate_grids(surname_strokes: Sequence[int], given_strokes: Sequence[int]) -> FiveGrids:
    """Compute the five raw grid numbers (before folding into 1..81)."""
    surname = _check_strokes(surname_strokes, "Surname")
    given = _check_strokes(given_strokes, "Given-name")

    surname_total = sum(surname)
    given_total = sum(given)
    total = surname_total + given_total

    heaven = surname_total if len(surname) > 1 else surname_total + 1
    human = surname[-1] + given[0]
    earth = given_total if len(given) > 1 else given_total + 1

    if len(given) == 1:
        outer = surname[0] + 1 if len(surname) > 1 else 2
    else:
        outer = total - human + 1

    return FiveGrids(heaven=heaven, human=human, earth=earth, outer=outer, total=total)


# =============================================================================
# Three Talents
# =============================================================================

@dataclass(frozen=True)
class ThreeTalents:
    heaven: Element
    human: Element
    earth: Element
    relation: RelationKind
    score: int

    @property
    def configuration(self) -> str:
        return f"{self.heaven.value}-{self.human.value}-{self.earth.value}"

    @property
    def interpretation(self) -> str:
        config = self.configuration
        if self.relation is RelationKind.GENERATING:
            return (f"三才配置【{config}】为吉祥之象，天人地三才相生，运势顺畅，"
                    f"能得长辈提拔，下属拥戴，事业有成，家庭和睦。")
        if self.relation is RelationKind.DESTRUCTIVE:
            return (f"三才配置【{config}】存在相克，需要注意调和。虽有才能，"
                    f"但容易遭遇阻碍，需要加倍努力，注意身体健康和人际关系。")
        return f"三才配置【{config}】为平稳之象，运势平和，按部就班，稳中求进，适合踏实发展。"


def classify_relation(heaven: Element, human: Element, earth: Element) -> RelationKind:
    """Classify the heaven-human-earth triad."""
    if heaven is human is earth:
        return RelationKind.IDENTICAL

    heaven_feeds_human = GENERATION[heaven] is human
    human_feeds_earth = GENERATION[human] is earth
    earth_feeds_heaven = GENERATION[earth] is heaven
    if ((heaven_feeds_human and human_feeds_earth)
            or (human_feeds_earth and earth_feeds_heaven)
            or (earth_feeds_heaven and heaven_feeds_human)):
        return RelationKind.GENERATING

    if DESTRUCTION[heaven] is human or DESTRUCTION[human] is earth:
        return RelationKind.DESTRUCTIVE

    return RelationKind.IDENTICAL


# =============================================================================
# Policy & analyzer
# =============================================================================

@dataclass
class WugePolicy:
    """Weights and scores for the grid analyzer (``wuge`` in app.yaml)."""
    grid_weights: Optional[Dict[str, float]] = None
    fortune_scores: Optional[Dict[str, int]] = None
    sancai_scores: Optional[Dict[str, int]] = None
    grid_share: Optional[float] = None
    sancai_share: Optional[float] = None
    good_threshold: Optional[int] = None

    def __post_init__(self):
        cfg = get_setting("wuge", {}) or {}
        names = ("grid_weights", "fortune_scores", "sancai_scores",
                 "grid_share", "sancai_share", "good_threshold")
        for name in names:
            if getattr(self, name) is None:
                setattr(self, name, cfg.get(name))
        missing = [name for name in names if getattr(self, name) is None]
        if missing:
            raise ValueError(f"wuge settings missing in app.yaml: {', '.join(missing)}")
        absent = [g for g in GRID_NAMES if g not in self.grid_weights]
        if absent:
            raise ValueError(f"wuge.grid_weights missing in app.yaml: {', '.join(absent)}")

    def fortune_score(self, fortune: Fortune) -> int:
        return int(self.fortune_scores[fortune.value])

    def sancai_score(self, relation: RelationKind) -> int:
        return int(self.sancai_scores[relation.name.lower()])


@dataclass(frozen=True)
class WugeAnalysis:
    grids: FiveGrids
    entries: Dict[str, NumerologyEntry]
    three_talents: ThreeTalents
    score: int
    is_good: bool

    def entry(self, grid: str) -> NumerologyEntry:
        return self.entries[grid]

    @property
    def fortunate_count(self) -> int:
        return sum(1 for e in self.entries.values() if e.is_fortunate)

    def to_dict(self) -> dict:
        return {
            'grids': self.grids.as_dict(),
            'fortunes': {g: e.fortune.value for g, e in self.entries.items()},
            'three_talents': {
                'configuration': self.three_talents.configuration,
                'relation': self.three_talents.relation.value,
                'score': self.three_talents.score,
            },
            'score': self.score,
        }


class WugeAnalyzer:
    """Grid numerology for a name's stroke counts."""

    def __init__(self,
                 table: Optional[NumerologyTable] = None,
                 policy: Optional[WugePolicy] = None):
        self.table = table or default_numerology()
        self.policy = policy or WugePolicy()

    def three_talents(self, grids: FiveGrids) -> ThreeTalents:
        heaven = number_to_element(grids.heaven)
        human = number_to_element(grids.human)
        earth = number_to_element(grids.earth)
        relation = classify_relation(heaven, human, earth)
        return ThreeTalents(heaven, human, earth, relation, self.policy.sancai_score(relation))

    def analyze(self, surname_strokes: Sequence[int], given_strokes: Sequence[int]) -> WugeAnalysis:
        grids = calculate_grids(surname_strokes, given_strokes)
        entries = {name: self.table.lookup(getattr(grids, name)) for name in GRID_NAMES}
        talents = self.three_talents(grids)

        policy = self.policy
        grid_part = sum(
            policy.fortune_score(entries[name].fortune) * policy.grid_weights[name]
            for name in GRID_NAMES
        )
        score = round(grid_part * policy.grid_share + talents.score * policy.sancai_share)
        score = max(0, min(100, score))

        return WugeAnalysis(
            grids=grids,
            entries=entries,
            three_talents=talents,
            score=score,
            is_good=score >= policy.good_threshold,
        )


__all__ = [
    "FiveGrids",
    "Fortune",
    "GRID_LABELS",
    "GRID_NAMES",
    "NumerologyEntry",
    "NumerologyTable",
    "RelationKind",
    "ThreeTalents",
    "WugeAnalysis",
    "WugeAnalyzer",
    "WugePolicy",
    "calculate_grids",
    "classify_relation",
    "default_numerology",
    "reduce_number",
]
