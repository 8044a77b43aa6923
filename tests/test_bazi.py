"""
Tests for Elements and the Chart Analyzer
=========================================
Element cycles, stem/branch parsing, element balance, day-master strength,
favorable/unfavorable elements and element scoring.
"""

import itertools
import random
import sys
from pathlib import Path

import pytest

# Ensure repo root is on path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from mingkit.elements import (
    ELEMENT_ORDER,
    Branch,
    Element,
    Stem,
    destroyed_by,
    generated_by,
    generates,
    number_to_element,
)
from mingkit.engines.bazi import BaziPolicy, ChartAnalyzer, FourPillarChart, StemBranchPair
from mingkit.errors import InvalidChartError, InvalidInputError


@pytest.fixture
def analyzer():
    return ChartAnalyzer()


@pytest.fixture
def strong_water_chart():
    # 1990-12-23 08:00: day master 壬 (water), 3 water/metal supports
    return FourPillarChart.from_labels("庚午", "戊子", "壬戌", "甲辰")


@pytest.fixture
def weak_wood_chart():
    return FourPillarChart.from_labels("庚申", "庚申", "甲申", "庚申")


def random_chart(rng: random.Random) -> FourPillarChart:
    pillars = [StemBranchPair(rng.choice(list(Stem)), rng.choice(list(Branch))) for _ in range(4)]
    return FourPillarChart(*pillars)


class TestElements:
    def test_parse_labels(self):
        assert Element.parse("木") is Element.WOOD
        assert Element.parse("wood") is Element.WOOD
        assert Element.parse(Element.FIRE) is Element.FIRE

    def test_parse_unknown_raises(self):
        with pytest.raises(InvalidInputError):
            Element.parse("风")

    def test_parse_many_dedupes(self):
        assert Element.parse_many(["木", "wood", "火"]) == (Element.WOOD, Element.FIRE)

    def test_cycles_are_consistent(self):
        for element in ELEMENT_ORDER:
            assert generated_by(generates(element)) is element
            assert destroyed_by(element) is not element

    @pytest.mark.parametrize("number, element", [
        (1, Element.WOOD), (2, Element.WOOD), (3, Element.FIRE), (14, Element.FIRE),
        (5, Element.EARTH), (16, Element.EARTH), (7, Element.METAL), (28, Element.METAL),
        (9, Element.WATER), (10, Element.WATER),
    ])
    def test_number_to_element(self, number, element):
        assert number_to_element(number) is element

    def test_stem_and_branch_elements(self):
        assert Stem.parse("壬").element is Element.WATER
        assert Stem.JIA.is_yang and not Stem.YI.is_yang
        assert Branch.parse("午").element is Element.FIRE
        assert Branch.ZI.zodiac == "鼠"


class TestChart:
    def test_from_labels(self, strong_water_chart):
        assert strong_water_chart.day_master is Stem.REN
        assert str(strong_water_chart) == "庚午 戊子 壬戌 甲辰"
        assert strong_water_chart.key == "庚午戊子壬戌甲辰"

    @pytest.mark.parametrize("labels", [
        ("庚午", "戊子", "壬戌", ""),
        ("庚午", "戊子", "壬", "甲辰"),
        ("庚午", "戊子", "壬X", "甲辰"),
    ])
    def test_malformed_chart_raises(self, labels):
        with pytest.raises(InvalidChartError):
            FourPillarChart.from_labels(*labels)

    def test_missing_pillar_object_raises(self):
        pair = StemBranchPair.parse("甲子")
        with pytest.raises(InvalidChartError):
            FourPillarChart(pair, pair, pair, None)


class TestAnalysis:
    def test_balance_counts(self, analyzer, strong_water_chart):
        balance = analyzer.element_balance(strong_water_chart)
        assert balance == {
            Element.METAL: 1, Element.WOOD: 1, Element.WATER: 2,
            Element.FIRE: 1, Element.EARTH: 3,
        }

    def test_strong_day_master(self, analyzer, strong_water_chart):
        analysis = analyzer.analyze(strong_water_chart)
        assert analysis.strength.is_strong
        assert analysis.strength.total == 3
        assert analysis.favorable == (Element.WOOD, Element.EARTH)
        assert analysis.unfavorable == (Element.METAL, Element.WATER)

    def test_weak_day_master(self, analyzer, weak_wood_chart):
        analysis = analyzer.analyze(weak_wood_chart)
        assert not analysis.strength.is_strong
        assert analysis.favorable == (Element.WOOD, Element.WATER)
        assert analysis.unfavorable == (Element.METAL, Element.EARTH)
        assert Element.FIRE in analysis.missing

    def test_properties_hold_for_random_charts(self, analyzer):
        rng = random.Random(7)
        for _ in range(200):
            analysis = analyzer.analyze(random_chart(rng))
            assert sum(analysis.balance.values()) == 8
            assert analysis.favorable and analysis.unfavorable
            assert not set(analysis.favorable) & set(analysis.unfavorable)
            assert set(analysis.favorable) <= set(ELEMENT_ORDER)

    def test_threshold_comes_from_policy(self, weak_wood_chart):
        lenient = ChartAnalyzer(BaziPolicy(strength_threshold=1))
        assert lenient.analyze(weak_wood_chart).strength.is_strong

    def test_describe_and_format(self, analyzer, strong_water_chart):
        analysis = analyzer.analyze(strong_water_chart)
        assert "日主壬属水" in analysis.describe()
        assert "年柱: 庚午" in analysis.format_chart()
        assert analysis.to_dict()["favorable"] == ["木", "土"]

    def test_rejects_non_chart(self, analyzer):
        with pytest.raises(InvalidChartError):
            analyzer.analyze("庚午戊子壬戌甲辰")


class TestScoreElements:
    def test_neutral_without_elements(self, analyzer, strong_water_chart):
        assert analyzer.score_elements(strong_water_chart, []) == 50

    def test_favorable_and_unfavorable(self, analyzer, strong_water_chart):
        assert analyzer.score_elements(strong_water_chart, ["木"]) == 70
        assert analyzer.score_elements(strong_water_chart, ["金"]) == 35
        assert analyzer.score_elements(strong_water_chart, ["火"]) == 50

    def test_variety_bonus_and_clamp(self, analyzer, strong_water_chart):
        assert analyzer.score_elements(strong_water_chart, ["木", "土"]) == 100
        assert analyzer.score_elements(strong_water_chart, ["金", "水", "金", "水"]) == 0

    def test_weak_day_master_prefers_own_element(self, analyzer, weak_wood_chart):
        analysis = analyzer.analyze(weak_wood_chart)
        assert analysis.day_master_element in analysis.favorable
        good = analyzer.score_elements(analysis, ["木", "水"])
        bad = analyzer.score_elements(analysis, ["金", "土"])
        assert good > bad

    def test_unknown_element_raises(self, analyzer, strong_water_chart):
        with pytest.raises(InvalidInputError):
            analyzer.score_elements(strong_water_chart, ["风"])

    def test_monotonic(self, analyzer):
        rng = random.Random(11)
        for _ in range(50):
            analysis = analyzer.analyze(random_chart(rng))
            for size in range(0, 4):
                for base in itertools.combinations_with_replacement(ELEMENT_ORDER, size):
                    score = analyzer.score_elements(analysis, base)
                    for good in analysis.favorable:
                        assert analyzer.score_elements(analysis, base + (good,)) >= score
                    for bad in analysis.unfavorable:
                        assert analyzer.score_elements(analysis, base + (bad,)) <= score
