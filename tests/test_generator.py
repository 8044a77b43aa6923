"""
Tests for the Candidate Generator
=================================
Request validation, pool filtering, bounded output, ordering, budgets and
the ranking helpers.
"""

import sys
from pathlib import Path

import pytest

# Ensure repo root is on path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from mingkit.data import CharacterInfo, CharacterTable, PoetryVerse
from mingkit.elements import Element
from mingkit.engines.generator import (
    BirthMoment,
    Gender,
    GenerationRequest,
    GenerationStage,
    GeneratorPolicy,
    NameGenerator,
    Source,
    Style,
)
from mingkit.engines.scorer import NameScorer
from mingkit.errors import CalendarError, InvalidInputError
from mingkit.profiler import GenerationProfiler, set_profiler
from mingkit.quality import character_usage, filter_by_standards, rank_names


def make_char(char, pinyin, tone, strokes, element, gender="neutral",
              quality=80, frequency=500, given_name=True):
    return CharacterInfo(
        char=char, pinyin=pinyin, tone=tone, strokes=strokes, kangxi_strokes=None,
        element=Element.parse(element), meaning=f"{char}义", meaning_quality=quality,
        frequency=frequency, gender=gender, given_name=given_name,
    )


SMALL_CHARS = [
    make_char("李", "li", 3, 7, "木", given_name=False),
    make_char("林", "lin", 2, 8, "木"),
    make_char("安", "an", 1, 6, "土"),
    make_char("嘉", "jia", 1, 14, "木", frequency=2500),
    make_char("怡", "yi", 2, 8, "土", gender="female"),
    make_char("涵", "han", 2, 11, "水", gender="female", frequency=4000),
    make_char("浩", "hao", 4, 10, "水", gender="male"),
    make_char("金", "jin", 1, 8, "金", quality=40, frequency=600),
]


class FakeClock:
    """Advances one second per call."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        self.now += 1.0
        return self.now


@pytest.fixture
def small_table():
    verse = PoetryVerse(id="v1", source="诗经", title="关雎", verse="窈窕淑女", suitable_chars=("嘉", "安"))
    return CharacterTable(SMALL_CHARS, surnames=["李"], verses=[verse])


@pytest.fixture
def permissive_policy():
    return GeneratorPolicy(score_floor=0, min_gender_pool=1)


@pytest.fixture
def generator(small_table, permissive_policy):
    return NameGenerator(table=small_table, scorer=NameScorer(), policy=permissive_policy)


class TestRequest:
    def test_create_parses_labels(self):
        request = GenerationRequest.create("李", gender="female", style="poetic", source="poetry",
                                           preferred_elements=["木", "wood"], max_results=5)
        assert request.gender is Gender.FEMALE
        assert request.style is Style.POETIC
        assert request.source is Source.POETRY
        assert request.preferred_elements == (Element.WOOD,)

    def test_preferred_wins_over_avoided(self):
        request = GenerationRequest.create("李", preferred_elements=["木"], avoid_elements=["木", "金"])
        assert request.preferred_elements == (Element.WOOD,)
        assert request.avoid_elements == (Element.METAL,)

    def test_direct_construction_is_normalized(self):
        request = GenerationRequest(" 李 ", preferred_elements=(Element.WOOD, Element.WOOD),
                                    avoid_elements=(Element.WOOD, Element.METAL))
        assert request.surname == "李"
        assert request.preferred_elements == (Element.WOOD,)
        assert request.avoid_elements == (Element.METAL,)

    def test_default_max_results(self):
        assert GenerationRequest.create("李").max_results == 10

    @pytest.mark.parametrize("kwargs", [
        {"surname": ""},
        {"surname": "李", "character_count": 3},
        {"surname": "李", "max_results": 0},
        {"surname": "李", "max_results": 101},
        {"surname": "李", "gender": "other"},
        {"surname": "李", "style": "baroque"},
        {"surname": "李", "source": "novels"},
        {"surname": "李", "preferred_elements": ["风"]},
    ])
    def test_invalid_requests(self, kwargs):
        with pytest.raises(InvalidInputError):
            GenerationRequest.create(**kwargs)

    def test_birth_moment_parse(self):
        birth = BirthMoment.parse("1990-12-23", hour=8)
        assert (birth.year, birth.month, birth.day, birth.hour) == (1990, 12, 23, 8)

    @pytest.mark.parametrize("text", ["1990/12/23", "1990-13-01", "not a date"])
    def test_birth_moment_invalid(self, text):
        with pytest.raises(InvalidInputError):
            BirthMoment.parse(text)


class TestPool:
    def test_elements_filter(self, generator):
        request = GenerationRequest.create("李", max_results=5)
        pool = generator.candidate_pool(request, (Element.WATER,))
        assert {c.char for c in pool} == {"涵", "浩"}

    def test_avoided_elements_removed(self, generator):
        request = GenerationRequest.create("李", avoid_elements=["金", "木"], max_results=5)
        pool = generator.candidate_pool(request, ())
        assert all(c.element not in (Element.METAL, Element.WOOD) for c in pool)

    def test_surname_only_chars_excluded(self, generator):
        request = GenerationRequest.create("李", max_results=5)
        assert "李" not in {c.char for c in generator.candidate_pool(request, ())}

    def test_styles(self, generator):
        modern = generator.candidate_pool(GenerationRequest.create("李", style="modern"), ())
        poetic = generator.candidate_pool(GenerationRequest.create("李", style="poetic"), ())
        elegant = generator.candidate_pool(GenerationRequest.create("李", style="elegant"), ())
        assert "涵" not in {c.char for c in modern}
        assert {c.char for c in poetic} == {"嘉", "安"}
        assert "金" not in {c.char for c in elegant}

    def test_gender_filter(self, generator):
        pool = generator.candidate_pool(GenerationRequest.create("李", gender="male"), ())
        chars = {c.char for c in pool}
        assert "浩" in chars
        assert not chars & {"怡", "涵"}

    def test_small_gendered_pool_falls_back(self, small_table):
        generator = NameGenerator(table=small_table, policy=GeneratorPolicy(min_gender_pool=20))
        pool = generator.candidate_pool(GenerationRequest.create("李", gender="male"), ())
        assert "怡" in {c.char for c in pool}

    def test_pool_capped(self, small_table):
        generator = NameGenerator(table=small_table, policy=GeneratorPolicy(pool_multiplier=1))
        pool = generator.candidate_pool(GenerationRequest.create("李", max_results=3), ())
        assert len(pool) == 3


class TestRun:
    def test_results_bounded_unique_and_sorted(self, generator):
        run = generator.run(GenerationRequest.create("李", max_results=4, seed=1))
        names = run.names
        assert run.stage is GenerationStage.DONE
        assert 0 < len(names) <= 4
        assert len({n.full_name for n in names}) == len(names)
        scores = [n.overall for n in names]
        assert scores == sorted(scores, reverse=True)
        for name in names:
            assert name.full_name == "李" + name.given_name
            assert len(name.given_name) == 2
            assert name.explanation

    def test_single_character_names(self, generator):
        names = generator.generate(GenerationRequest.create("李", character_count=1, max_results=3))
        assert names and all(len(n.given_name) == 1 for n in names)

    def test_empty_pool_returns_nothing(self, generator):
        run = generator.run(GenerationRequest.create("李", preferred_elements=["火"]))
        assert run.names == []
        assert run.pool_size == 0
        assert run.stage is GenerationStage.DONE

    def test_strict_source_with_no_matches(self, generator):
        assert generator.generate(GenerationRequest.create("李", source="idioms")) == []

    def test_score_floor_applied(self, small_table):
        generator = NameGenerator(table=small_table, policy=GeneratorPolicy(score_floor=101))
        assert generator.generate(GenerationRequest.create("李", max_results=3)) == []

    def test_seed_is_deterministic(self, generator):
        request = GenerationRequest.create("李", max_results=3, seed=42)
        first = [n.full_name for n in generator.generate(request)]
        second = [n.full_name for n in generator.generate(request)]
        assert first == second

    def test_evaluation_budget_aborts_with_partial_results(self, small_table):
        policy = GeneratorPolicy(score_floor=0, max_evaluations=3)
        generator = NameGenerator(table=small_table, policy=policy)
        run = generator.run(GenerationRequest.create("李", max_results=10, seed=3))
        assert run.aborted
        assert run.evaluated == 3
        assert len(run.names) == 3
        assert "evaluation budget" in run.abort_reason

    def test_time_budget_aborts(self, small_table):
        policy = GeneratorPolicy(score_floor=0, time_budget_ms=1500)
        generator = NameGenerator(table=small_table, policy=policy, clock=FakeClock())
        run = generator.run(GenerationRequest.create("李", max_results=10))
        assert run.stage is GenerationStage.ABORTED
        assert run.evaluated == 1

    def test_birth_without_resolver_raises(self, generator):
        request = GenerationRequest.create("李", birth=BirthMoment(1990, 12, 23, 8))
        with pytest.raises(CalendarError):
            generator.run(request)

    def test_chart_favorable_elements_become_targets(self, small_table, permissive_policy):
        from mingkit.engines.bazi import ChartAnalyzer, FourPillarChart

        analysis = ChartAnalyzer().analyze(FourPillarChart.from_labels("庚午", "戊子", "壬戌", "甲辰"))
        generator = NameGenerator(table=small_table, policy=permissive_policy,
                                  chart_source=lambda birth: analysis)
        run = generator.run(GenerationRequest.create("李", birth=BirthMoment(1990, 12, 23, 8)))
        assert run.target_elements == (Element.WOOD, Element.EARTH)
        assert run.names
        for name in run.names:
            assert name.score.has_chart
            assert all(c.element in run.target_elements for c in name.characters if c.char in name.given_name)

    def test_poetry_inspiration(self, generator):
        names = generator.generate(GenerationRequest.create("李", source="poetry", max_results=2))
        assert [n.full_name for n in names] in (["李嘉安"], ["李安嘉"])
        assert names[0].inspiration.title == "关雎"
        assert "关雎" in names[0].explanation

    def test_profiler_records_stages(self, generator):
        profiler = GenerationProfiler(enabled=True)
        set_profiler(profiler)
        try:
            profiler.start()
            generator.run(GenerationRequest.create("李", max_results=2))
        finally:
            set_profiler(None)
        assert {"enumerate", "score", "rank"} <= set(profiler.stages)
        assert "PROFILING REPORT" in profiler.report()

    def test_overlapping_elements_keep_preferred_pool(self, generator):
        request = GenerationRequest("李", preferred_elements=(Element.WOOD, Element.WOOD),
                                    avoid_elements=(Element.WOOD,), max_results=5)
        run = generator.run(request)
        assert run.pool_size == 2
        assert run.names

    def test_given_name_repeating_surname_character(self, generator):
        request = GenerationRequest.create("林", preferred_elements=["木"], character_count=1, max_results=5)
        names = {n.full_name: n for n in generator.generate(request)}
        doubled = names["林林"]
        assert [c.char for c in doubled.given_characters] == ["林"]
        assert doubled.to_dict()["elements"] == ["木"]
        assert doubled.explanation.count("林义") == 1

    def test_to_dict(self, generator):
        data = generator.run(GenerationRequest.create("李", max_results=2)).to_dict()
        assert data["stage"] == "done"
        assert data["names"][0]["score"]["overall"] >= data["names"][-1]["score"]["overall"]


class TestQuality:
    def test_rank_names_dedupes_and_truncates(self, generator):
        names = generator.generate(GenerationRequest.create("李", max_results=3))
        ranked = rank_names(names + names, limit=2)
        assert len(ranked) == min(2, len(names))
        assert len({n.full_name for n in ranked}) == len(ranked)

    def test_rank_ties_by_name(self):
        class Scored:
            def __init__(self, full_name, overall):
                self.full_name, self.overall = full_name, overall

        ranked = rank_names([Scored("李b", 80), Scored("李a", 80), Scored("李c", 90)], limit=3)
        assert [r.full_name for r in ranked] == ["李c", "李a", "李b"]

    def test_filter_by_standards(self, generator):
        names = generator.generate(GenerationRequest.create("李", max_results=4))
        kept, rejected = filter_by_standards(names, generator.scorer)
        assert len(kept) + len(rejected) == len(names)
        for _, issues in rejected:
            assert issues

    def test_character_usage(self, generator):
        names = generator.generate(GenerationRequest.create("李", max_results=4))
        usage = character_usage(names)
        assert sum(usage.values()) == 2 * len(names)
        assert "李" not in usage
