#!/usr/bin/env python3
"""
Four-Pillar Chart Analyzer
==========================
Element balance, day-master strength and favorable/unfavorable elements for
a BaZi (八字) chart, and scoring of a name's elements against that chart.

The chart itself comes from a calendar collaborator (see ``mingkit.calendar``);
this module never converts dates.

Usage:
    chart = FourPillarChart.from_labels("庚午", "戊子", "壬戌", "甲辰")
    analysis = ChartAnalyzer().analyze(chart)
    analysis.favorable     # (Element.WOOD, Element.EARTH)
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Protocol, Tuple, Union

from mingkit.elements import (
    ELEMENT_ORDER,
    Branch,
    Element,
    Stem,
    destroyed_by,
    destroys,
    generated_by,
    generates,
    sort_elements,
)
from mingkit.errors import InvalidChartError, InvalidInputError
from mingkit.settings import get_setting

logger = logging.getLogger(__name__)

PILLARS = ("year", "month", "day", "hour")
PILLAR_LABELS = {"year": "年柱", "month": "月柱", "day": "日柱", "hour": "时柱"}


# =============================================================================
# Chart
# =============================================================================

@dataclass(frozen=True)
class StemBranchPair:
    """One pillar: a heavenly stem and an earthly branch."""
    stem: Stem
    branch: Branch

    @classmethod
    def parse(cls, label) -> "StemBranchPair":
        """Parse a two-character label such as ``"甲子"``."""
        if isinstance(label, cls):
            return label
        text = str(label or "").strip()
        if len(text) != 2:
            raise InvalidChartError(f"Pillar must be two characters (stem + branch), got {label!r}")
        try:
            return cls(Stem.parse(text[0]), Branch.parse(text[1]))
        except InvalidInputError as e:
            raise InvalidChartError(f"Invalid pillar {label!r}: {e}") from e

    @property
    def label(self) -> str:
        return self.stem.value + self.branch.value

    @property
    def elements(self) -> Tuple[Element, Element]:
        return self.stem.element, self.branch.element

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class FourPillarChart:
    """Year, month, day and hour pillars of a birth moment."""
    year: StemBranchPair
    month: StemBranchPair
    day: StemBranchPair
    hour: StemBranchPair

    def __post_init__(self):
        for name in PILLARS:
            if not isinstance(getattr(self, name), StemBranchPair):
                raise InvalidChartError(f"Chart is missing the {name} pillar")

    @classmethod
    def from_labels(cls, year, month, day, hour) -> "FourPillarChart":
        pillars = {"year": year, "month": month, "day": day, "hour": hour}
        for name, value in pillars.items():
            if value is None or value == "":
                raise InvalidChartError(f"Chart is missing the {name} pillar")
        return cls(*(StemBranchPair.parse(pillars[name]) for name in PILLARS))

    @property
    def pillars(self) -> Tuple[StemBranchPair, ...]:
        return (self.year, self.month, self.day, self.hour)

    @property
    def day_master(self) -> Stem:
        return self.day.stem

    @property
    def key(self) -> str:
        """Eight-character identity used in cache keys."""
        return "".join(p.label for p in self.pillars)

    def __str__(self) -> str:
        return " ".join(p.label for p in self.pillars)


# =============================================================================
# Policy
# =============================================================================

@dataclass
class BaziPolicy:
    """Scoring constants for the chart analyzer (``bazi`` in app.yaml)."""
    strength_threshold: Optional[int] = None
    base_score: Optional[int] = None
    favorable_bonus: Optional[int] = None
    unfavorable_penalty: Optional[int] = None
    variety_bonus: Optional[int] = None
    variety_min_distinct: Optional[int] = None

    def __post_init__(self):
        cfg = get_setting("bazi", {}) or {}
        names = ("strength_threshold", "base_score", "favorable_bonus",
                 "unfavorable_penalty", "variety_bonus", "variety_min_distinct")
        for name in names:
            if getattr(self, name) is None:
                setattr(self, name, cfg.get(name))
        missing = [name for name in names if getattr(self, name) is None]
        if missing:
            raise ValueError(f"bazi settings missing in app.yaml: {', '.join(missing)}")


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class DayMasterStrength:
    element: Element
    own_count: int
    support_count: int
    threshold: int

    @property
    def total(self) -> int:
        return self.own_count + self.support_count

    @property
    def is_strong(self) -> bool:
        return self.total >= self.threshold

    @property
    def label(self) -> str:
        return "身强" if self.is_strong else "身弱"


@dataclass(frozen=True)
class ChartAnalysis:
    chart: FourPillarChart
    balance: Dict[Element, int]
    strength: DayMasterStrength
    favorable: Tuple[Element, ...]
    unfavorable: Tuple[Element, ...]

    @property
    def day_master(self) -> Stem:
        return self.chart.day_master

    @property
    def day_master_element(self) -> Element:
        return self.chart.day_master.element

    @property
    def percentages(self) -> Dict[Element, int]:
        total = sum(self.balance.values())
        return {e: round(self.balance[e] / total * 100) for e in ELEMENT_ORDER}

    @property
    def missing(self) -> Tuple[Element, ...]:
        return tuple(e for e in ELEMENT_ORDER if self.balance[e] == 0)

    def describe(self) -> str:
        """Chinese summary of the day master and the elements a name should favour."""
        dm = self.chart.day_master
        element = dm.element.value
        favorable = [e.value for e in self.favorable]
        if self.strength.is_strong:
            state, need, aim = "较旺", "来平衡", "以调和五行"
        else:
            state, need, aim = "较弱", "来扶助", "以增强命局平衡"
        return (
            f"日主{dm.value}属{element}，命局中{element}{state}"
            f"（同类与生扶共{self.strength.total}个），需要{'、'.join(favorable)}{need}。"
            f"起名时宜选用五行属{'或'.join(favorable)}的字，{aim}。"
        )

    def format_chart(self) -> str:
        """Multi-line text rendering of pillars and element counts."""
        lines = ["八字命盘", ""]
        for name, pillar in zip(PILLARS, self.chart.pillars):
            lines.append(f"{PILLAR_LABELS[name]}: {pillar.label} "
                         f"({pillar.stem.element.value}{pillar.branch.element.value})")
        lines.append("")
        lines.append(f"日主: {self.chart.day_master.value} "
                     f"({self.day_master_element.value}, {self.strength.label})")
        counts = " ".join(f"{e.value}{self.balance[e]}" for e in ELEMENT_ORDER)
        lines.append(f"五行: {counts}")
        lines.append(f"喜用: {'、'.join(e.value for e in self.favorable)}")
        lines.append(f"忌讳: {'、'.join(e.value for e in self.unfavorable)}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            'chart': {name: p.label for name, p in zip(PILLARS, self.chart.pillars)},
            'day_master': self.chart.day_master.value,
            'balance': {e.value: self.balance[e] for e in ELEMENT_ORDER},
            'percentages': {e.value: v for e, v in self.percentages.items()},
            'strong': self.strength.is_strong,
            'favorable': [e.value for e in self.favorable],
            'unfavorable': [e.value for e in self.unfavorable],
        }


# =============================================================================
# Calendar collaborator
# =============================================================================

class ChartResolver(Protocol):
    """Converts a birth moment to a four-pillar chart."""

    def resolve(self, year: int, month: int, day: int, hour: int) -> FourPillarChart:
        ...


# =============================================================================
# Analyzer
# =============================================================================

class ChartAnalyzer:
    """Element analysis of a four-pillar chart."""

    def __init__(self, policy: Optional[BaziPolicy] = None):
        self.policy = policy or BaziPolicy()

    @staticmethod
    def _check(chart) -> FourPillarChart:
        if not isinstance(chart, FourPillarChart):
            raise InvalidChartError(f"Expected a FourPillarChart, got {type(chart).__name__}")
        return chart

    def element_balance(self, chart: FourPillarChart) -> Dict[Element, int]:
        """Count the element of each of the 8 stems and branches."""
        chart = self._check(chart)
        counts = Counter(e for pillar in chart.pillars for e in pillar.elements)
        return {e: counts.get(e, 0) for e in ELEMENT_ORDER}

    def day_master_strength(self, chart: FourPillarChart) -> DayMasterStrength:
        """Own-element plus supporting-element occurrences against the strength threshold."""
        balance = self.element_balance(chart)
        element = chart.day_master.element
        return DayMasterStrength(
            element=element,
            own_count=balance[element],
            support_count=balance[generated_by(element)],
            threshold=self.policy.strength_threshold,
        )

    def favorable_unfavorable(self, chart: FourPillarChart) -> Tuple[Tuple[Element, ...], Tuple[Element, ...]]:
        """
        Favorable and unfavorable elements.

        A weak day master wants its own element and the one that generates it;
        the controlling element and the one it must spend effort destroying
        drain it. A strong day master is the reverse: it wants its outlet and
        its controller, and more of itself or its support is unfavorable.
        """
        strength = self.day_master_strength(chart)
        element = strength.element
        if strength.is_strong:
            favorable = {generates(element), destroyed_by(element)}
            unfavorable = {element, generated_by(element)}
        else:
            favorable = {element, generated_by(element)}
            unfavorable = {destroyed_by(element), destroys(element)}
        return sort_elements(favorable), sort_elements(unfavorable)

    def analyze(self, chart: FourPillarChart) -> ChartAnalysis:
        chart = self._check(chart)
        favorable, unfavorable = self.favorable_unfavorable(chart)
        return ChartAnalysis(
            chart=chart,
            balance=self.element_balance(chart),
            strength=self.day_master_strength(chart),
            favorable=favorable,
            unfavorable=unfavorable,
        )

    def score_elements(self,
                       chart: Union[FourPillarChart, ChartAnalysis],
                       candidate_elements: Iterable[Union[Element, str]]) -> int:
        """
        Score a name's character elements against the chart.

        Each favorable occurrence adds a bonus, each unfavorable occurrence
        subtracts a penalty, and enough distinct favorable elements earn a
        variety bonus. Clamped to 0-100 around the neutral base score.
        """
        analysis = chart if isinstance(chart, ChartAnalysis) else self.analyze(chart)
        elements = [Element.parse(e) for e in candidate_elements]
        policy = self.policy

        score = policy.base_score
        favorable_seen = set()
        for element in elements:
            if element in analysis.favorable:
                score += policy.favorable_bonus
                favorable_seen.add(element)
            elif element in analysis.unfavorable:
                score -= policy.unfavorable_penalty

        if len(favorable_seen) >= policy.variety_min_distinct:
            score += policy.variety_bonus

        return max(0, min(100, score))


__all__ = [
    "BaziPolicy",
    "ChartAnalysis",
    "ChartAnalyzer",
    "ChartResolver",
    "DayMasterStrength",
    "FourPillarChart",
    "PILLARS",
    "StemBranchPair",
]
