"""
Scoring and generation engines.
"""

from mingkit.engines.bazi import (
    BaziPolicy,
    ChartAnalysis,
    ChartAnalyzer,
    ChartResolver,
    FourPillarChart,
    StemBranchPair,
)
from mingkit.engines.generator import (
    BirthMoment,
    Gender,
    GeneratedName,
    GenerationRequest,
    GenerationRun,
    GenerationStage,
    GeneratorPolicy,
    NameGenerator,
    Source,
    Style,
)
from mingkit.engines.phonetics import HomophoneChecker, PhoneticAnalysis, PhoneticAnalyzer, PhoneticPolicy
from mingkit.engines.scorer import NameScore, NameScorer, Rating, ScorerPolicy, compare_names, format_score
from mingkit.engines.wuge import Fortune, FiveGrids, WugeAnalysis, WugeAnalyzer, WugePolicy, calculate_grids

__all__ = [
    "BaziPolicy",
    "BirthMoment",
    "ChartAnalysis",
    "ChartAnalyzer",
    "ChartResolver",
    "FiveGrids",
    "Fortune",
    "FourPillarChart",
    "Gender",
    "GeneratedName",
    "GenerationRequest",
    "GenerationRun",
    "GenerationStage",
    "GeneratorPolicy",
    "HomophoneChecker",
    "NameGenerator",
    "NameScore",
    "NameScorer",
    "PhoneticAnalysis",
    "PhoneticAnalyzer",
    "PhoneticPolicy",
    "Rating",
    "ScorerPolicy",
    "Source",
    "StemBranchPair",
    "Style",
    "WugeAnalysis",
    "WugeAnalyzer",
    "WugePolicy",
    "calculate_grids",
    "compare_names",
    "format_score",
]
