#!/usr/bin/env python3
"""
MingKit - Chinese Name Scoring & Generation
===========================================

Scores Chinese names against a birth chart (BaZi), the Five Grids (Wuge)
and phonetic harmony, and generates ranked name candidates for a surname.

Quick Start
-----------
    from mingkit import MingKit

    kit = MingKit()

    # Score a name
    score = kit.score_name("李明华")
    print(score.overall, score.rating.zh)

    # With a birth moment
    score = kit.score_name("李明华", birth=BirthMoment(1990, 12, 23, 8))

    # Generate names
    names = kit.generate(GenerationRequest.create("李", gender="female", max_results=5))

Modules
-------
    mingkit.engines   - Chart, grid, phonetic analyzers, scorer and generator
    mingkit.cache     - Bounded TTL/LRU caches, one per computation kind
    mingkit.data      - Character table, numerology, homophones, poetry, idioms
    mingkit.calendar  - Birth moment to four-pillar chart (lunar_python)

CLI Usage
---------
    python -m mingkit score 李明华 --birth 1990-12-23 --hour 8
    python -m mingkit generate 李 -g female -n 5
    python -m mingkit chart 1990-12-23 --hour 8
"""

__version__ = "0.4.0"
__author__ = "MingKit"

import logging
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

# Ensure parent directory is in path for imports
_parent = Path(__file__).parent.parent
if str(_parent) not in sys.path:
    sys.path.insert(0, str(_parent))

# =============================================================================
# Imports
# =============================================================================

from .errors import CalendarError, DataError, InvalidChartError, InvalidInputError, MingKitError
from .elements import Branch, Element, Stem
from .cache import (
    CacheKind,
    CacheRegistry,
    CacheStats,
    MemoryCache,
    MemoryHealth,
    chart_key,
    default_registry,
)
from .data import CharacterInfo, CharacterTable
from .settings import get_setting
from .calendar import LunarCalendarResolver
from .engines import (
    BirthMoment,
    ChartAnalysis,
    ChartAnalyzer,
    ChartResolver,
    FourPillarChart,
    GeneratedName,
    GenerationRequest,
    GenerationRun,
    GenerationStage,
    NameGenerator,
    NameScore,
    NameScorer,
)

logger = logging.getLogger(__name__)


# =============================================================================
# MingKit Main Class
# =============================================================================

class MingKit:
    """
    Main interface for name scoring and generation.

    Wires the character table, the calendar resolver, the analyzers and the
    per-kind caches together.

    Parameters
    ----------
    registry : CacheRegistry, optional
        Caches for charts, grids, phonetics, scores and character lookups.
        Defaults to the process-wide registry.
    table : CharacterTable, optional
        Character lookup. Defaults to the bundled YAML table.
    resolver : ChartResolver, optional
        Calendar conversion. Defaults to ``LunarCalendarResolver``.

    Examples
    --------
        >>> kit = MingKit()
        >>> kit.chart(1990, 12, 23, 8).favorable
        (<Element.WOOD: '木'>, <Element.EARTH: '土'>)
    """

    def __init__(self,
                 registry: Optional[CacheRegistry] = None,
                 table: Optional[CharacterTable] = None,
                 resolver: Optional[ChartResolver] = None):
        self.registry = registry if registry is not None else default_registry()
        self.table = table if table is not None else CharacterTable.load(registry=self.registry)
        self.resolver = resolver if resolver is not None else LunarCalendarResolver()
        self.analyzer = ChartAnalyzer()
        self.scorer = NameScorer(registry=self.registry, chart_analyzer=self.analyzer)
        self.generator = NameGenerator(
            table=self.table,
            scorer=self.scorer,
            chart_source=self.chart_for,
        )

    # =========================================================================
    # Charts
    # =========================================================================

    def chart(self, year: int, month: int, day: int, hour: Optional[int] = None) -> ChartAnalysis:
        """
        Analyze the chart of a birth moment.

        The resolver runs at most once per distinct (date, hour) while the
        result stays in the CHART cache.
        """
        if hour is None:
            hour = get_setting("calendar.default_hour", 0)
        key = chart_key(year, month, day, hour)

        def compute():
            logger.debug(f"Resolving chart for {key}")
            return self.analyzer.analyze(self.resolver.resolve(year, month, day, hour))

        return self.registry.get(CacheKind.CHART).get_or_set(key, compute)

    def chart_for(self, birth: BirthMoment) -> ChartAnalysis:
        return self.chart(birth.year, birth.month, birth.day, birth.hour)

    # =========================================================================
    # Scoring
    # =========================================================================

    def score(self,
              full_name: str,
              surname: str,
              given_name: str,
              characters: Iterable[CharacterInfo],
              chart: Union[FourPillarChart, ChartAnalysis, None] = None) -> NameScore:
        """Score a name from already looked-up characters."""
        return self.scorer.score(full_name, surname, given_name, characters, chart)

    def score_name(self,
                   full_name: str,
                   surname: Optional[str] = None,
                   birth: Optional[BirthMoment] = None) -> NameScore:
        """
        Score a name by looking its characters up in the table.

        Parameters
        ----------
        full_name : str
            The full name, surname first.
        surname : str, optional
            Explicit surname; otherwise compound surnames known to the table
            are recognised and a single leading character is assumed.
        birth : BirthMoment, optional
            Birth moment for the chart sub-score.
        """
        full_name = (full_name or "").strip()
        if surname:
            if not full_name.startswith(surname) or len(full_name) <= len(surname):
                raise InvalidInputError(f"'{full_name}' does not start with surname '{surname}'")
            given_name = full_name[len(surname):]
        else:
            surname, given_name = self.table.split_name(full_name)

        characters = [c for c in self.table.lookup_many(full_name) if c is not None]
        chart = self.chart_for(birth) if birth is not None else None
        return self.scorer.score(full_name, surname, given_name, characters, chart)

    # =========================================================================
    # Generation
    # =========================================================================

    def run(self, request: GenerationRequest) -> GenerationRun:
        return self.generator.run(request)

    def generate(self, request: GenerationRequest) -> List[GeneratedName]:
        return self.generator.generate(request)

    # =========================================================================
    # Caches
    # =========================================================================

    def cache_stats(self) -> Dict[str, CacheStats]:
        return self.registry.stats()

    def memory_health(self) -> Dict[str, MemoryHealth]:
        return self.registry.memory_health()


__all__ = [
    "BirthMoment",
    "Branch",
    "CacheKind",
    "CacheRegistry",
    "CalendarError",
    "CharacterInfo",
    "CharacterTable",
    "ChartAnalysis",
    "DataError",
    "Element",
    "FourPillarChart",
    "GeneratedName",
    "GenerationRequest",
    "GenerationRun",
    "GenerationStage",
    "InvalidChartError",
    "InvalidInputError",
    "LunarCalendarResolver",
    "MemoryCache",
    "MingKit",
    "MingKitError",
    "NameScore",
    "Stem",
    "__version__",
]
