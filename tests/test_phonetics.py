"""
Tests for the Phonetic Analyzer
===============================
Tone harmony, readability, homophone detection and tone-mark rendering.
"""

import sys
from pathlib import Path

import pytest

# Ensure repo root is on path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from mingkit.engines.phonetics import (
    HomophoneChecker,
    PhoneticAnalyzer,
    display_reading,
    near_form,
    normalize_reading,
)
from mingkit.errors import InvalidInputError


@pytest.fixture
def analyzer():
    return PhoneticAnalyzer()


@pytest.fixture
def checker():
    return HomophoneChecker()


class TestReadings:
    def test_normalize(self):
        assert normalize_reading("Lü3") == "lv"

    def test_near_form(self):
        assert near_form("zhang") == near_form("zan")

    @pytest.mark.parametrize("reading, tone, marked", [
        ("hao", 3, "hǎo"), ("ming", 2, "míng"), ("liu", 2, "liú"),
        ("lv", 4, "lǜ"), ("de", 5, "de"),
    ])
    def test_display_single_syllable(self, reading, tone, marked):
        assert display_reading([reading], [tone]) == marked

    def test_display_full_name(self):
        assert display_reading(["li", "ming", "hua"], [3, 2, 2]) == "lǐ míng huá"


class TestToneHarmony:
    def test_rising_open_ending(self, analyzer):
        # 李明华 li3 ming2 hua2
        assert analyzer.tone_harmony([3, 2, 2]) == 75

    def test_monotone_falling_penalised(self, analyzer):
        assert analyzer.tone_harmony([4, 4]) == 35

    def test_two_syllable_name_handled(self, analyzer):
        score = analyzer.tone_harmony([3, 1])
        assert 0 <= score <= 100

    def test_variety_beats_monotone(self, analyzer):
        assert analyzer.tone_harmony([1, 3, 2]) > analyzer.tone_harmony([1, 1, 1])


class TestReadability:
    def test_simple_name(self, analyzer):
        assert analyzer.readability(["li", "ming", "hua"], [3, 2, 2]) == 97

    def test_retroflex_and_complex_syllables(self, analyzer):
        plain = analyzer.readability(["li", "ming", "hua"], [3, 2, 2])
        harder = analyzer.readability(["zhuang", "shi", "hua"], [3, 2, 2])
        assert harder < plain


class TestHomophones:
    def test_clean(self, checker):
        result = checker.check(["li", "ming", "hua"])
        assert result.is_clean
        assert result.severity == "clear"

    def test_pair_match(self, checker):
        result = checker.check(["wang", "ba"])
        assert not result.is_clean
        assert result.severity == "high"
        assert result.matches[0].scope == "pair"

    def test_near_match(self, checker):
        result = checker.check(["sa", "bi"])
        assert result.matches and result.matches[0].near

    def test_syllable_match(self, checker):
        result = checker.check(["li", "gui"])
        match = next(m for m in result.matches if m.scope == "syllable")
        assert match.position == 1

    def test_whole_name_match(self, checker):
        result = checker.check(["wang", "cai"])
        assert any(m.scope == "name" for m in result.matches)

    def test_bad_severity_rejected(self):
        with pytest.raises(ValueError):
            HomophoneChecker({"syllables": {"xx": {"sounds_like": "?", "severity": "extreme"}}})


class TestAnalyze:
    def test_clean_name_score(self, analyzer):
        analysis = analyzer.analyze("李明华", ["li", "ming", "hua"], [3, 2, 2])
        assert analysis.score == 89
        assert not analysis.has_homophone
        assert analysis.display == "lǐ míng huá"

    def test_homophone_lowers_score_and_warns(self, analyzer):
        clean = analyzer.analyze("王华", ["wang", "hua"], [2, 2])
        dirty = analyzer.analyze("王八", ["wang", "ba"], [2, 1])
        assert dirty.has_homophone
        assert dirty.warnings
        assert dirty.score < clean.score

    def test_for_name_rewords_syllable_warnings(self, analyzer):
        shared = analyzer.analyze("李贵", ["li", "gui"], [3, 4])
        renamed = analyzer.for_name(shared, "李桂")
        assert renamed.score == shared.score
        assert any("桂" in w for w in renamed.warnings)
        assert not any("贵" in w for w in renamed.warnings)

    @pytest.mark.parametrize("readings, tones", [([], []), (["li"], [3, 2]), (["li"], [7])])
    def test_invalid_input(self, analyzer, readings, tones):
        with pytest.raises(InvalidInputError):
            analyzer.analyze("李", readings, tones)
