"""
Tests for CLI Commands
======================
Tests for the mingkit CLI interface in mingkit/cli.py.
"""

import json
import subprocess
import sys
from pathlib import Path

import pytest

# Ensure repo root is on path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from mingkit.cli import main, split_list


def run_cli(*args):
    return subprocess.run(
        [sys.executable, "-m", "mingkit", *args],
        capture_output=True,
        text=True,
        encoding="utf-8",
        cwd=str(ROOT),
    )


class TestCLIBasic:
    """Basic CLI tests."""

    def test_version_flag(self):
        result = run_cli("--version")
        assert result.returncode == 0
        assert "mingkit" in result.stdout.lower()

    def test_help_flag(self):
        result = run_cli("--help")
        assert result.returncode == 0
        for command in ("score", "generate", "chart", "cache"):
            assert command in result.stdout

    def test_no_command_prints_help(self):
        assert main([]) == 0

    def test_split_list(self):
        assert split_list("木，火, 土") == ["木", "火", "土"]
        assert split_list(None) == []


class TestCLIScore:
    def test_score_json(self):
        result = run_cli("--json", "score", "李明华")
        assert result.returncode == 0, result.stderr
        data = json.loads(result.stdout)
        assert data["full_name"] == "李明华"
        assert 0 <= data["overall"] <= 100
        assert data["chart"] is None

    def test_score_with_birth_and_compare(self):
        result = run_cli("--json", "score", "李明华", "--birth", "1990-12-23", "--hour", "8",
                         "--compare", "李文博")
        assert result.returncode == 0, result.stderr
        data = json.loads(result.stdout)
        assert data["chart"]["chart"]["day"] == "壬戌"
        assert data["comparison"]["winner"] in ("李明华", "李文博")

    def test_score_plain(self):
        result = run_cli("--plain", "score", "李明华")
        assert result.returncode == 0, result.stderr
        assert "李明华" in result.stdout

    def test_hour_without_birth_fails(self):
        result = run_cli("score", "李明华", "--hour", "8")
        assert result.returncode == 1
        assert "Error" in result.stderr

    def test_single_character_name_fails(self):
        assert main(["score", "李"]) == 1


class TestCLIGenerate:
    def test_generate_json(self):
        result = run_cli("--json", "generate", "李", "-n", "3", "--seed", "1")
        assert result.returncode == 0, result.stderr
        data = json.loads(result.stdout)
        assert data["stage"] == "done"
        assert len(data["names"]) <= 3
        overalls = [n["score"]["overall"] for n in data["names"]]
        assert overalls == sorted(overalls, reverse=True)

    def test_generate_alias_and_options(self):
        result = run_cli("--json", "g", "王", "-g", "female", "--chars", "1",
                         "--prefer", "水", "-n", "2")
        assert result.returncode == 0, result.stderr
        data = json.loads(result.stdout)
        assert data["target_elements"] == ["水"]
        for name in data["names"]:
            assert len(name["given_name"]) == 1

    def test_generate_plain_with_profiling(self):
        result = run_cli("--plain", "generate", "李", "-n", "2", "--profiling", "--explain")
        assert result.returncode == 0, result.stderr
        assert "PROFILING REPORT" in result.stdout

    def test_invalid_count(self):
        result = run_cli("generate", "李", "-n", "0")
        assert result.returncode == 1

    @pytest.mark.parametrize("style", ["baroque"])
    def test_invalid_choice(self, style):
        result = run_cli("generate", "李", "--style", style)
        assert result.returncode == 2


class TestCLIChartAndCache:
    def test_chart_json(self):
        result = run_cli("--json", "chart", "1990-12-23", "--hour", "8")
        assert result.returncode == 0, result.stderr
        data = json.loads(result.stdout)
        assert data["favorable"] == ["木", "土"]

    def test_bad_date(self):
        result = run_cli("chart", "1990-02-30")
        assert result.returncode == 1

    def test_cache_json(self):
        result = run_cli("--json", "cache", "--rounds", "2")
        assert result.returncode == 0, result.stderr
        data = json.loads(result.stdout)
        assert data["score"]["hits"] >= 5
        assert "health" in data["chart"]
