#!/usr/bin/env python3
"""
Candidate Name Generator
========================
Bounded search over the character table for given names that score well
with a surname.

Each run moves through INIT -> ENUMERATE -> SCORE -> RANK -> DONE, or ends
in ABORTED when the evaluation or time budget runs out; an aborted run still
returns its ranked partial results.

The pool-size and pair-count caps bound the work per request. They can miss
a higher-scoring combination outside the sampled pool; that trade-off is
intentional.

Usage:
    request = GenerationRequest.create("李", gender="female", max_results=5)
    names = NameGenerator(table, scorer).generate(request)
"""

from __future__ import annotations

import logging
import random
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from mingkit.data import CharacterInfo, CharacterTable, Inspiration, default_table
from mingkit.elements import Element
from mingkit.engines.bazi import ChartAnalysis
from mingkit.engines.scorer import NameScore, NameScorer
from mingkit.errors import CalendarError, InvalidInputError
from mingkit.profiler import profile_stage
from mingkit.quality import rank_names
from mingkit.settings import get_setting

logger = logging.getLogger(__name__)


# =============================================================================
# Request vocabulary
# =============================================================================

class _LabelEnum(Enum):
    @classmethod
    def parse(cls, label):
        if isinstance(label, cls):
            return label
        text = str(label or "").strip().lower()
        for member in cls:
            if text == member.value:
                return member
        choices = ", ".join(m.value for m in cls)
        raise InvalidInputError(f"Unknown {cls.__name__.lower()} {label!r} (choose from {choices})")


class Gender(_LabelEnum):
    MALE = "male"
    FEMALE = "female"
    NEUTRAL = "neutral"


class Style(_LabelEnum):
    CLASSIC = "classic"
    MODERN = "modern"
    POETIC = "poetic"
    ELEGANT = "elegant"


class Source(_LabelEnum):
    ANY = "any"
    POETRY = "poetry"
    CLASSICS = "classics"
    IDIOMS = "idioms"


_DATE_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")


@dataclass(frozen=True)
class BirthMoment:
    """Gregorian birth date with an optional hour (0-23)."""
    year: int
    month: int
    day: int
    hour: Optional[int] = None

    def __post_init__(self):
        if not 1 <= self.month <= 12 or not 1 <= self.day <= 31:
            raise InvalidInputError(f"Invalid birth date {self.year}-{self.month}-{self.day}")
        if self.hour is not None and not 0 <= self.hour <= 23:
            raise InvalidInputError(f"Birth hour must be 0-23, got {self.hour}")

    @classmethod
    def parse(cls, text: str, hour: Optional[int] = None) -> "BirthMoment":
        """Parse ``YYYY-MM-DD``."""
        match = _DATE_RE.match((text or "").strip())
        if not match:
            raise InvalidInputError(f"Birth date must look like YYYY-MM-DD, got {text!r}")
        year, month, day = (int(g) for g in match.groups())
        return cls(year, month, day, hour)

    def __str__(self) -> str:
        base = f"{self.year:04d}-{self.month:02d}-{self.day:02d}"
        return base if self.hour is None else f"{base} {self.hour:02d}h"


@dataclass(frozen=True)
class GenerationRequest:
    surname: str
    gender: Gender = Gender.NEUTRAL
    birth: Optional[BirthMoment] = None
    preferred_elements: Tuple[Element, ...] = ()
    avoid_elements: Tuple[Element, ...] = ()
    style: Style = Style.CLASSIC
    source: Source = Source.ANY
    character_count: int = 2
    max_results: int = 10
    seed: Optional[int] = None

    def __post_init__(self):
        if not self.surname or not self.surname.strip():
            raise InvalidInputError("Surname must not be empty")
        preferred = Element.parse_many(self.preferred_elements or ())
        avoided = tuple(e for e in Element.parse_many(self.avoid_elements or ()) if e not in preferred)
        object.__setattr__(self, "surname", self.surname.strip())
        object.__setattr__(self, "preferred_elements", preferred)
        object.__setattr__(self, "avoid_elements", avoided)
        if self.character_count not in (1, 2):
            raise InvalidInputError(f"Given names have 1 or 2 characters, got {self.character_count}")
        if self.max_results < 1:
            raise InvalidInputError(f"max_results must be at least 1, got {self.max_results}")

    @classmethod
    def create(cls,
               surname: str,
               gender="neutral",
               birth: Optional[BirthMoment] = None,
               preferred_elements: Iterable = (),
               avoid_elements: Iterable = (),
               style="classic",
               source="any",
               character_count: int = 2,
               max_results: Optional[int] = None,
               seed: Optional[int] = None) -> "GenerationRequest":
        """
        Build a request from labels.

        Element lists are de-duplicated; an element both preferred and
        avoided stays preferred. ``max_results`` defaults to and is capped by
        the ``generator`` settings.
        """
        if max_results is None:
            max_results = get_setting("generator.default_max_results", 10)
        limit = get_setting("generator.max_results_limit")
        if limit is not None and max_results > limit:
            raise InvalidInputError(f"max_results must be at most {limit}, got {max_results}")

        return cls(
            surname=surname or "",
            gender=Gender.parse(gender),
            birth=birth,
            preferred_elements=tuple(preferred_elements or ()),
            avoid_elements=tuple(avoid_elements or ()),
            style=Style.parse(style),
            source=Source.parse(source),
            character_count=int(character_count),
            max_results=int(max_results),
            seed=seed,
        )


def given_slice(characters: Sequence[CharacterInfo], given_name: str) -> Tuple[CharacterInfo, ...]:
    """The trailing characters that spell the given name."""
    tail = tuple(characters)[-len(given_name):] if given_name else ()
    return tail if "".join(c.char for c in tail) == given_name else ()


# =============================================================================
# Run state & results
# =============================================================================

class GenerationStage(Enum):
    INIT = "init"
    ENUMERATE = "enumerate"
    SCORE = "score"
    RANK = "rank"
    DONE = "done"
    ABORTED = "aborted"


@dataclass(frozen=True)
class GeneratedName:
    full_name: str
    surname: str
    given_name: str
    pinyin: str
    characters: Tuple[CharacterInfo, ...]
    score: NameScore
    explanation: str
    inspiration: Optional[Inspiration] = None

    @property
    def overall(self) -> int:
        return self.score.overall

    @property
    def given_characters(self) -> Tuple[CharacterInfo, ...]:
        return given_slice(self.characters, self.given_name)

    def to_dict(self) -> dict:
        data = {
            'full_name': self.full_name,
            'surname': self.surname,
            'given_name': self.given_name,
            'pinyin': self.pinyin,
            'elements': [c.element.value for c in self.given_characters],
            'score': self.score.to_dict(),
            'explanation': self.explanation,
        }
        if self.inspiration is not None:
            data['inspiration'] = {
                'kind': self.inspiration.kind,
                'title': self.inspiration.title,
                'quote': self.inspiration.quote,
                'author': self.inspiration.author,
            }
        return data


@dataclass
class GenerationRun:
    """Outcome of one generation request."""
    request: GenerationRequest
    stage: GenerationStage = GenerationStage.INIT
    names: List[GeneratedName] = field(default_factory=list)
    chart: Optional[ChartAnalysis] = None
    target_elements: Tuple[Element, ...] = ()
    pool_size: int = 0
    evaluated: int = 0
    accepted: int = 0
    elapsed_ms: float = 0.0
    abort_reason: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self.stage is GenerationStage.ABORTED

    def to_dict(self) -> dict:
        return {
            'stage': self.stage.value,
            'pool_size': self.pool_size,
            'evaluated': self.evaluated,
            'accepted': self.accepted,
            'elapsed_ms': round(self.elapsed_ms, 2),
            'abort_reason': self.abort_reason,
            'target_elements': [e.value for e in self.target_elements],
            'chart': self.chart.to_dict() if self.chart else None,
            'names': [n.to_dict() for n in self.names],
        }


# =============================================================================
# Policy
# =============================================================================

@dataclass
class GeneratorPolicy:
    """Pool caps, score floor and budgets (``generator`` in app.yaml)."""
    pool_multiplier: Optional[int] = None
    pair_multiplier: Optional[int] = None
    accept_multiplier: Optional[int] = None
    score_floor: Optional[int] = None
    modern_frequency_max: Optional[int] = None
    elegant_meaning_min: Optional[int] = None
    min_gender_pool: Optional[int] = None
    max_evaluations: Optional[int] = None
    time_budget_ms: Optional[float] = None
    small_pool_warning: Optional[int] = None
    explanation: Optional[Dict[str, int]] = None

    def __post_init__(self):
        cfg = get_setting("generator", {}) or {}
        names = ("pool_multiplier", "pair_multiplier", "accept_multiplier", "score_floor",
                 "modern_frequency_max", "elegant_meaning_min", "min_gender_pool",
                 "max_evaluations", "time_budget_ms", "small_pool_warning", "explanation")
        for name in names:
            if getattr(self, name) is None:
                setattr(self, name, cfg.get(name))
        missing = [name for name in names if getattr(self, name) is None]
        if missing:
            raise ValueError(f"generator settings missing in app.yaml: {', '.join(missing)}")


class _BudgetExceeded(Exception):
    pass


# =============================================================================
# Explanation
# =============================================================================

def build_explanation(given_name: str,
                      characters: Sequence[CharacterInfo],
                      score: NameScore,
                      inspiration: Optional[Inspiration],
                      thresholds: Dict[str, int]) -> str:
    """Chinese explanation: character meanings, literary source and standout sub-scores."""
    meanings = "、".join(f"“{c.char}”({c.meaning})" for c in given_slice(characters, given_name))
    parts = [f"此名由{meanings}组成。" if meanings else f"此名为“{given_name}”。"]

    if inspiration is not None:
        if inspiration.kind == "poetry":
            parts.append(f"灵感出自《{inspiration.title}》：“{inspiration.quote}”。")
        else:
            parts.append(f"取意于成语“{inspiration.title}”。")

    excellent = thresholds['excellent_sub_score']
    if score.has_chart and score.chart_score > excellent:
        parts.append("八字契合度优秀，有助于补足命局。")
    if score.grid_score > excellent:
        parts.append("五格配置吉祥，数理大吉。")
    if score.phonetic_score > excellent:
        parts.append("音韵和谐，读音流畅优美。")

    if score.overall >= thresholds['excellent_overall']:
        parts.append("综合评分极高，是一个非常优秀的名字！")
    elif score.overall >= thresholds['good_overall']:
        parts.append("综合评分良好，是一个不错的选择。")
    return "".join(parts)


# =============================================================================
# Generator
# =============================================================================

class NameGenerator:
    """
    Generates and ranks given names for a surname.

    Parameters
    ----------
    table : CharacterTable, optional
        Character lookup and literary corpora.
    scorer : NameScorer, optional
        Composite scorer; pass one built with a cache registry to memoise scores.
    chart_source : callable, optional
        Maps a ``BirthMoment`` to a ``ChartAnalysis``. Required only for
        requests carrying a birth moment.
    policy : GeneratorPolicy, optional
    clock : callable
        Monotonic clock in seconds, used for the time budget.
    """

    def __init__(self,
                 table: Optional[CharacterTable] = None,
                 scorer: Optional[NameScorer] = None,
                 chart_source: Optional[Callable[[BirthMoment], ChartAnalysis]] = None,
                 policy: Optional[GeneratorPolicy] = None,
                 clock: Callable[[], float] = time.perf_counter):
        self.table = table if table is not None else default_table()
        self.scorer = scorer or NameScorer()
        self.chart_source = chart_source
        self.policy = policy or GeneratorPolicy()
        self.clock = clock

    # ------------------------------------------------------------------
    # Pool
    # ------------------------------------------------------------------

    def candidate_pool(self, request: GenerationRequest,
                       targets: Sequence[Element]) -> List[CharacterInfo]:
        """Filter the given-name characters for a request and cap the pool size."""
        policy = self.policy
        pool = self.table.given_name_pool()

        allowed = self.table.source_chars(request.source.value)
        if allowed is not None:
            pool = [c for c in pool if c.char in allowed]

        if targets:
            pool = [c for c in pool if c.element in targets]

        if request.avoid_elements:
            pool = [c for c in pool if c.element not in request.avoid_elements]

        if request.style is Style.MODERN:
            pool = [c for c in pool if c.frequency < policy.modern_frequency_max]
        elif request.style is Style.POETIC:
            pool = [c for c in pool if self.table.is_poetry_char(c.char)]
        elif request.style is Style.ELEGANT:
            pool = [c for c in pool if c.meaning_quality >= policy.elegant_meaning_min]

        if request.gender is not Gender.NEUTRAL:
            gendered = [c for c in pool if c.suits_gender(request.gender.value)]
            if len(gendered) >= policy.min_gender_pool:
                pool = gendered
            else:
                logger.debug(f"Only {len(gendered)} {request.gender.value} characters match; "
                             f"keeping the ungendered pool of {len(pool)}")

        if 0 < len(pool) < policy.small_pool_warning:
            logger.warning(f"Small candidate pool ({len(pool)} characters) for {request.surname}")

        return pool[:request.max_results * policy.pool_multiplier]

    def _given_names(self, request: GenerationRequest,
                     pool: List[CharacterInfo]) -> Iterable[Tuple[CharacterInfo, ...]]:
        if request.character_count == 1:
            for info in pool:
                yield (info,)
            return

        shuffled = list(pool)
        random.Random(request.seed).shuffle(shuffled)
        pair_cap = request.max_results * self.policy.pair_multiplier
        produced = 0
        for i, first in enumerate(shuffled):
            for second in shuffled[i + 1:]:
                if produced >= pair_cap:
                    return
                produced += 1
                yield (first, second)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def _chart_for(self, request: GenerationRequest) -> Optional[ChartAnalysis]:
        if request.birth is None:
            return None
        if self.chart_source is None:
            raise CalendarError("A birth moment was given but no calendar resolver is configured")
        return self.chart_source(request.birth)

    def run(self, request: GenerationRequest) -> GenerationRun:
        """Generate names for a request, reporting the final stage and counters."""
        policy = self.policy
        started = self.clock()
        deadline = started + policy.time_budget_ms / 1000.0
        run = GenerationRun(request=request)

        run.chart = self._chart_for(request)
        if request.preferred_elements:
            run.target_elements = request.preferred_elements
        elif run.chart is not None:
            run.target_elements = run.chart.favorable

        surname_chars = tuple(c for c in self.table.lookup_many(request.surname) if c is not None)

        run.stage = GenerationStage.ENUMERATE
        with profile_stage("enumerate"):
            pool = self.candidate_pool(request, run.target_elements)
        run.pool_size = len(pool)

        accepted: List[GeneratedName] = []
        seen = set()
        accept_cap = request.max_results * policy.accept_multiplier

        run.stage = GenerationStage.SCORE
        try:
            with profile_stage("score", items=len(pool)):
                for given_chars in self._given_names(request, pool):
                    if len(accepted) >= accept_cap:
                        break
                    given_name = "".join(c.char for c in given_chars)
                    full_name = request.surname + given_name
                    if full_name in seen:
                        continue
                    if run.evaluated >= policy.max_evaluations:
                        raise _BudgetExceeded(f"evaluation budget of {policy.max_evaluations} reached")
                    if self.clock() > deadline:
                        raise _BudgetExceeded(f"time budget of {policy.time_budget_ms}ms exceeded")
                    seen.add(full_name)

                    characters = surname_chars + given_chars
                    score = self.scorer.score(full_name, request.surname, given_name,
                                              characters, run.chart)
                    run.evaluated += 1
                    if score.overall < policy.score_floor:
                        continue

                    inspiration = self.table.find_inspiration(request.source.value, given_name)
                    accepted.append(GeneratedName(
                        full_name=full_name,
                        surname=request.surname,
                        given_name=given_name,
                        pinyin=score.breakdown.phonetics.display,
                        characters=characters,
                        score=score,
                        explanation=build_explanation(given_name, characters, score,
                                                      inspiration, policy.explanation),
                        inspiration=inspiration,
                    ))
        except _BudgetExceeded as e:
            run.abort_reason = str(e)
            logger.warning(f"Generation for {request.surname} aborted: {e}; "
                           f"returning {len(accepted)} partial results")

        run.accepted = len(accepted)
        aborted = run.abort_reason is not None
        run.stage = GenerationStage.RANK
        with profile_stage("rank", items=len(accepted)):
            run.names = rank_names(accepted, request.max_results)

        run.stage = GenerationStage.ABORTED if aborted else GenerationStage.DONE
        run.elapsed_ms = (self.clock() - started) * 1000.0
        logger.info(f"Generated {len(run.names)} names for {request.surname} "
                    f"(pool {run.pool_size}, evaluated {run.evaluated}, "
                    f"{run.elapsed_ms:.1f}ms, {run.stage.value})")
        return run

    def generate(self, request: GenerationRequest) -> List[GeneratedName]:
        return self.run(request).names


__all__ = [
    "BirthMoment",
    "Gender",
    "GeneratedName",
    "GenerationRequest",
    "GenerationRun",
    "GenerationStage",
    "GeneratorPolicy",
    "NameGenerator",
    "Source",
    "Style",
    "build_explanation",
]
