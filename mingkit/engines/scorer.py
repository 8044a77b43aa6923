#!/usr/bin/env python3
"""
Composite Name Scorer
=====================
Blends the chart, grid, phonetic and meaning sub-scores into one 0-100
score with a rating label.

    overall = chart*0.30 + grid*0.25 + phonetic*0.20 + meaning*0.25

Without a chart the chart sub-score is the neutral 50; the weights do not
change. Scoring is deterministic; caching only memoises results.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from mingkit.cache import CacheKind, CacheRegistry, grid_key, phonetic_key, score_key
from mingkit.data import CharacterInfo
from mingkit.engines.bazi import ChartAnalysis, ChartAnalyzer, FourPillarChart
from mingkit.engines.phonetics import PhoneticAnalysis, PhoneticAnalyzer
from mingkit.engines.wuge import GRID_LABELS, GRID_NAMES, WugeAnalysis, WugeAnalyzer
from mingkit.errors import InvalidInputError
from mingkit.settings import get_setting

logger = logging.getLogger(__name__)

NEUTRAL_TONE = 5


# =============================================================================
# Policy
# =============================================================================

@dataclass(frozen=True)
class Rating:
    label: str
    zh: str
    description: str
    min_score: int


@dataclass
class ScorerPolicy:
    """Weights, neutral defaults and rating bands (``scorer`` in app.yaml)."""
    weights: Optional[Dict[str, float]] = None
    neutral_chart_score: Optional[int] = None
    neutral_meaning_score: Optional[int] = None
    rating_bands: Optional[List[dict]] = None
    minimum_standards: Optional[Dict[str, int]] = None

    def __post_init__(self):
        cfg = get_setting("scorer", {}) or {}
        names = ("weights", "neutral_chart_score", "neutral_meaning_score",
                 "rating_bands", "minimum_standards")
        for name in names:
            if getattr(self, name) is None:
                setattr(self, name, cfg.get(name))
        missing = [name for name in names if getattr(self, name) is None]
        if missing:
            raise ValueError(f"scorer settings missing in app.yaml: {', '.join(missing)}")
        absent = [k for k in ("chart", "grid", "phonetic", "meaning") if k not in self.weights]
        if absent:
            raise ValueError(f"scorer.weights missing in app.yaml: {', '.join(absent)}")
        self._ratings = sorted(
            (Rating(b['label'], b.get('zh', b['label']), b.get('description', ''), int(b['min']))
             for b in self.rating_bands),
            key=lambda r: -r.min_score,
        )
        if not self._ratings or self._ratings[-1].min_score > 0:
            raise ValueError("scorer.rating_bands must include a band starting at 0")

    def rate(self, score: int) -> Rating:
        for rating in self._ratings:
            if score >= rating.min_score:
                return rating
        return self._ratings[-1]


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class ScoreBreakdown:
    chart: Optional[ChartAnalysis]
    wuge: WugeAnalysis
    phonetics: PhoneticAnalysis
    missing_chars: Tuple[str, ...] = ()


@dataclass(frozen=True)
class NameScore:
    full_name: str
    surname: str
    given_name: str
    overall: int
    rating: Rating
    chart_score: int
    grid_score: int
    phonetic_score: int
    meaning_score: int
    breakdown: ScoreBreakdown

    @property
    def has_chart(self) -> bool:
        return self.breakdown.chart is not None

    def to_dict(self) -> dict:
        return {
            'full_name': self.full_name,
            'surname': self.surname,
            'given_name': self.given_name,
            'overall': self.overall,
            'rating': self.rating.label,
            'rating_zh': self.rating.zh,
            'chart_score': self.chart_score,
            'grid_score': self.grid_score,
            'phonetic_score': self.phonetic_score,
            'meaning_score': self.meaning_score,
            'wuge': self.breakdown.wuge.to_dict(),
            'phonetics': self.breakdown.phonetics.to_dict(),
            'chart': self.breakdown.chart.to_dict() if self.breakdown.chart else None,
        }


# =============================================================================
# Scorer
# =============================================================================

class NameScorer:
    """
    Composite scorer.

    Parameters
    ----------
    registry : CacheRegistry, optional
        When given, grid and phonetic analyses and final scores are memoised
        in its GRID, PHONETIC and SCORE caches.
    """

    def __init__(self,
                 registry: Optional[CacheRegistry] = None,
                 chart_analyzer: Optional[ChartAnalyzer] = None,
                 wuge_analyzer: Optional[WugeAnalyzer] = None,
                 phonetic_analyzer: Optional[PhoneticAnalyzer] = None,
                 policy: Optional[ScorerPolicy] = None):
        self.registry = registry
        self.chart_analyzer = chart_analyzer or ChartAnalyzer()
        self.wuge_analyzer = wuge_analyzer or WugeAnalyzer()
        self.phonetic_analyzer = phonetic_analyzer or PhoneticAnalyzer()
        self.policy = policy or ScorerPolicy()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _cached(self, kind: CacheKind, key: str, compute):
        if self.registry is None:
            return compute()
        return self.registry.get(kind).get_or_set(key, compute)

    @staticmethod
    def _validate(full_name: str, surname: str, given_name: str):
        if not full_name or not surname or not given_name:
            raise InvalidInputError("Full name, surname and given name must all be non-empty")
        if full_name != surname + given_name:
            raise InvalidInputError(
                f"Full name '{full_name}' must equal surname '{surname}' + given name '{given_name}'"
            )

    def _analysis(self, chart) -> Optional[ChartAnalysis]:
        if chart is None:
            return None
        if isinstance(chart, ChartAnalysis):
            return chart
        return self.chart_analyzer.analyze(chart)

    def meaning_score(self, characters: Sequence[CharacterInfo]) -> int:
        """Mean meaning quality of the known characters (neutral when none are known)."""
        if not characters:
            return self.policy.neutral_meaning_score
        return round(sum(c.meaning_quality for c in characters) / len(characters))

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def score(self,
              full_name: str,
              surname: str,
              given_name: str,
              characters: Iterable[CharacterInfo],
              chart: Union[FourPillarChart, ChartAnalysis, None] = None) -> NameScore:
        """
        Score one name.

        ``characters`` holds the looked-up attributes of the name's characters in
        any order; characters with no entry are treated as 1 stroke and neutral
        tone and left out of the element and meaning sub-scores.
        """
        self._validate(full_name, surname, given_name)
        analysis = self._analysis(chart)
        known = {c.char: c for c in characters if c is not None}
        key = score_key(full_name, surname, analysis.chart.key if analysis else None)
        return self._cached(
            CacheKind.SCORE, key,
            lambda: self._score(full_name, surname, given_name, known, analysis),
        )

    def _score(self, full_name, surname, given_name, known: Dict[str, CharacterInfo],
               analysis: Optional[ChartAnalysis]) -> NameScore:
        missing = tuple(c for c in full_name if c not in known)
        if missing:
            logger.debug(f"No character data for {''.join(missing)} in {full_name}; using defaults")

        def strokes(text):
            return [known[c].classical_strokes if c in known else 1 for c in text]

        surname_strokes, given_strokes = strokes(surname), strokes(given_name)
        wuge = self._cached(
            CacheKind.GRID, grid_key(surname_strokes, given_strokes),
            lambda: self.wuge_analyzer.analyze(surname_strokes, given_strokes),
        )

        readings = [known[c].pinyin if c in known else "" for c in full_name]
        tones = [known[c].tone if c in known else NEUTRAL_TONE for c in full_name]
        phonetics = self._cached(
            CacheKind.PHONETIC, phonetic_key(readings, tones, len(surname)),
            lambda: self.phonetic_analyzer.analyze(full_name, readings, tones),
        )
        phonetics = self.phonetic_analyzer.for_name(phonetics, full_name)

        present = [known[c] for c in full_name if c in known]
        if analysis is None:
            chart_score = self.policy.neutral_chart_score
        else:
            chart_score = self.chart_analyzer.score_elements(analysis, [c.element for c in present])
        meaning = self.meaning_score(present)

        weights = self.policy.weights
        overall = round(
            chart_score * weights['chart']
            + wuge.score * weights['grid']
            + phonetics.score * weights['phonetic']
            + meaning * weights['meaning']
        )
        overall = max(0, min(100, overall))

        return NameScore(
            full_name=full_name,
            surname=surname,
            given_name=given_name,
            overall=overall,
            rating=self.policy.rate(overall),
            chart_score=chart_score,
            grid_score=wuge.score,
            phonetic_score=phonetics.score,
            meaning_score=meaning,
            breakdown=ScoreBreakdown(analysis, wuge, phonetics, missing),
        )

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def meets_minimum_standards(self, score: NameScore) -> Tuple[bool, List[str]]:
        """Check a score against the minimum bars; returns (ok, issues)."""
        bars = self.policy.minimum_standards
        issues = []
        if score.overall < bars['overall']:
            issues.append(f"总分低于{bars['overall']}分")
        if score.grid_score < bars['grid']:
            issues.append("五格数理不佳")
        if score.breakdown.phonetics.has_homophone:
            issues.append("存在不良谐音")
        if score.phonetic_score < bars['phonetic']:
            issues.append("音律不够和谐")
        if score.meaning_score < bars['meaning']:
            issues.append("字义不够理想")
        return not issues, issues


def compare_names(first: NameScore, second: NameScore) -> Tuple[int, int]:
    """Return (winner, difference); ties go to the first name."""
    difference = abs(first.overall - second.overall)
    return (1 if first.overall >= second.overall else 2), difference


def format_score(score: NameScore) -> str:
    """Plain-text report of a name score."""
    wuge = score.breakdown.wuge
    phonetics = score.breakdown.phonetics
    lines = [
        f"姓名: {score.full_name} ({phonetics.display})",
        f"综合评分: {score.overall} ({score.rating.zh})",
        "",
        f"八字: {score.chart_score}",
        f"五格: {score.grid_score}",
        f"音律: {score.phonetic_score}",
        f"字义: {score.meaning_score}",
        "",
        "五格数理:",
    ]
    for name in GRID_NAMES:
        entry = wuge.entry(name)
        lines.append(f"  {GRID_LABELS[name]} {getattr(wuge.grids, name):>3}  "
                     f"{entry.fortune.value}  {entry.meaning}")
    lines.append(f"  三才 {wuge.three_talents.configuration} ({wuge.three_talents.relation.value})")
    if phonetics.warnings:
        lines.append("")
        lines.append("谐音提示:")
        lines.extend(f"  {w}" for w in phonetics.warnings)
    if score.breakdown.chart is not None:
        lines.append("")
        lines.append(score.breakdown.chart.describe())
    return "\n".join(lines)


__all__ = [
    "NameScore",
    "NameScorer",
    "Rating",
    "ScoreBreakdown",
    "ScorerPolicy",
    "compare_names",
    "format_score",
]
