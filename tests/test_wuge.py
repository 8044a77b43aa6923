"""
Tests for Five Grids Numerology
===============================
Grid formulas, 1-81 folding, the numerology table and Three Talents.
"""

import random
import sys
from pathlib import Path

import pytest

# Ensure repo root is on path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from mingkit.elements import Element
from mingkit.engines.wuge import (
    GRID_NAMES,
    Fortune,
    NumerologyTable,
    RelationKind,
    WugeAnalyzer,
    calculate_grids,
    classify_relation,
    default_numerology,
    reduce_number,
)
from mingkit.errors import DataError, InvalidInputError


@pytest.fixture
def analyzer():
    return WugeAnalyzer()


class TestGrids:
    def test_single_surname_single_given(self):
        grids = calculate_grids([7], [8])
        assert grids.heaven == 8
        assert grids.human == 15
        assert grids.earth == 9
        assert grids.outer == 2
        assert grids.total == 15

    def test_single_surname_double_given(self):
        grids = calculate_grids([7], [8, 14])
        assert (grids.heaven, grids.human, grids.earth, grids.outer, grids.total) == (8, 15, 22, 15, 29)

    def test_compound_surname(self):
        grids = calculate_grids([15, 17], [4])
        assert grids.heaven == 32
        assert grids.human == 21
        assert grids.earth == 5
        assert grids.outer == 16
        assert grids.total == 36

    def test_order_sensitive(self):
        forward = calculate_grids([7], [8, 14])
        swapped = calculate_grids([14], [8, 7])
        assert forward.human != swapped.human
        assert forward.total == swapped.total

    @pytest.mark.parametrize("surname, given", [([], [8]), ([7], []), ([0], [8]), ([7], [-1])])
    def test_invalid_strokes(self, surname, given):
        with pytest.raises(InvalidInputError):
            calculate_grids(surname, given)


class TestNumerology:
    @pytest.mark.parametrize("number, reduced", [(1, 1), (81, 81), (82, 1), (90, 9), (162, 81)])
    def test_reduce(self, number, reduced):
        assert reduce_number(number) == reduced

    def test_reduce_rejects_zero(self):
        with pytest.raises(InvalidInputError):
            reduce_number(0)

    def test_table_is_complete(self):
        table = default_numerology()
        assert len(table) == 81
        assert table.lookup(15).fortune is Fortune.GREAT
        assert table.lookup(28).fortune is Fortune.TERRIBLE
        assert table.lookup(96).reduced == 15

    def test_incomplete_table_rejected(self):
        with pytest.raises(DataError):
            NumerologyTable({1: (Fortune.GREAT, "")})

    def test_lookup_range_for_random_strokes(self, analyzer):
        rng = random.Random(3)
        for _ in range(300):
            surname = [rng.randint(1, 40) for _ in range(rng.choice([1, 2]))]
            given = [rng.randint(1, 40) for _ in range(rng.choice([1, 2]))]
            analysis = analyzer.analyze(surname, given)
            for name in GRID_NAMES:
                assert 1 <= analysis.entry(name).reduced <= 81
            assert 0 <= analysis.score <= 100


class TestThreeTalents:
    def test_generating(self):
        assert classify_relation(Element.WOOD, Element.FIRE, Element.EARTH) is RelationKind.GENERATING

    def test_destructive(self):
        assert classify_relation(Element.WOOD, Element.EARTH, Element.FIRE) is RelationKind.DESTRUCTIVE

    def test_identical(self):
        assert classify_relation(Element.WATER, Element.WATER, Element.WATER) is RelationKind.IDENTICAL

    def test_interpretation_mentions_configuration(self, analyzer):
        talents = analyzer.three_talents(calculate_grids([7], [8]))
        assert talents.configuration == "金-土-水"
        assert talents.relation is RelationKind.DESTRUCTIVE
        assert "金-土-水" in talents.interpretation


class TestScore:
    def test_known_score(self, analyzer):
        analysis = analyzer.analyze([7], [8])
        assert analysis.score == 66
        assert not analysis.is_good
        assert analysis.three_talents.score == 50

    def test_to_dict(self, analyzer):
        data = analyzer.analyze([7], [8, 14]).to_dict()
        assert data["grids"]["total"] == 29
        assert set(data["fortunes"]) == set(GRID_NAMES)
