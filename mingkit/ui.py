#!/usr/bin/env python3
"""
Terminal UI
===========
Rich-based rendering of name scores, generated names, charts and cache
statistics for the CLI.

Usage:
    from mingkit.ui import get_ui

    ui = get_ui()
    ui.show_score(kit.score_name("李明华"))
    ui.show_run(kit.run(request))
"""

import sys
from typing import Dict, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from mingkit.cache import CacheStats, HealthStatus, MemoryHealth
from mingkit.elements import ELEMENT_ORDER
from mingkit.engines.bazi import PILLAR_LABELS, PILLARS, ChartAnalysis
from mingkit.engines.generator import GenerationRun
from mingkit.engines.scorer import NameScore, ScorerPolicy, format_score
from mingkit.engines.wuge import GRID_LABELS, GRID_NAMES
from mingkit.quality import character_usage

ELEMENT_STYLES = {
    "金": "bright_white",
    "木": "green",
    "水": "blue",
    "火": "red",
    "土": "yellow",
}

HEALTH_STYLES = {
    HealthStatus.HEALTHY: "green",
    HealthStatus.WARNING: "yellow",
    HealthStatus.CRITICAL: "red",
}


RATING_STYLES = {
    "excellent": "bold green",
    "good": "green",
    "fair": "yellow",
}


def _score_style(score: int, policy: ScorerPolicy) -> str:
    return RATING_STYLES.get(policy.rate(score).label, "red")


def _element_text(label: str) -> Text:
    return Text(label, style=ELEMENT_STYLES.get(label, ""))


class ResultsUI:
    """Rich renderer for command results."""

    def __init__(self, console: Optional[Console] = None, policy: Optional[ScorerPolicy] = None):
        self.console = console or Console()
        self.policy = policy or ScorerPolicy()

    # ------------------------------------------------------------------
    # Scores
    # ------------------------------------------------------------------

    def show_score(self, score: NameScore):
        phonetics = score.breakdown.phonetics
        wuge = score.breakdown.wuge

        header = Text()
        header.append(f"{score.full_name}  ", style="bold")
        header.append(f"{phonetics.display}\n")
        header.append("综合评分 ")
        header.append(str(score.overall), style=_score_style(score.overall, self.policy))
        header.append(f"  {score.rating.zh} · {score.rating.description}")
        self.console.print(Panel(header, box=box.ROUNDED))

        subs = Table(box=box.SIMPLE, show_header=True)
        subs.add_column("项目")
        subs.add_column("得分", justify="right")
        chart_label = "八字" if score.has_chart else "八字 (未提供)"
        for label, value in ((chart_label, score.chart_score), ("五格", score.grid_score),
                             ("音律", score.phonetic_score), ("字义", score.meaning_score)):
            subs.add_row(label, Text(str(value), style=_score_style(value, self.policy)))
        self.console.print(subs)

        grids = Table(title="五格数理", box=box.SIMPLE)
        grids.add_column("格")
        grids.add_column("数", justify="right")
        grids.add_column("吉凶")
        grids.add_column("释义", overflow="fold")
        for name in GRID_NAMES:
            entry = wuge.entry(name)
            style = "green" if entry.is_fortunate else "red"
            grids.add_row(GRID_LABELS[name], str(getattr(wuge.grids, name)),
                          Text(entry.fortune.value, style=style), entry.meaning)
        self.console.print(grids)
        self.console.print(f"三才 {wuge.three_talents.configuration} "
                           f"({wuge.three_talents.relation.value})")

        for warning in phonetics.warnings:
            self.console.print(f"[yellow]! {warning}[/yellow]")
        if score.breakdown.missing_chars:
            self.console.print(f"[dim]字库未收录: {''.join(score.breakdown.missing_chars)}[/dim]")
        if score.breakdown.chart is not None:
            self.console.print(score.breakdown.chart.describe())

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def show_run(self, run: GenerationRun, verbose: bool = False):
        if run.chart is not None:
            self.show_chart(run.chart)

        table = Table(title=f"{run.request.surname}姓起名", box=box.ROUNDED)
        table.add_column("#", justify="right")
        table.add_column("姓名", style="bold")
        table.add_column("拼音")
        table.add_column("五行")
        table.add_column("总分", justify="right")
        table.add_column("八字", justify="right")
        table.add_column("五格", justify="right")
        table.add_column("音律", justify="right")
        table.add_column("字义", justify="right")
        for i, name in enumerate(run.names, 1):
            elements = Text()
            for info in name.characters:
                if info.char in name.given_name:
                    elements.append_text(_element_text(info.element.value))
            s = name.score
            table.add_row(
                str(i), name.full_name, name.pinyin, elements,
                Text(str(s.overall), style=_score_style(s.overall, self.policy)),
                str(s.chart_score), str(s.grid_score), str(s.phonetic_score), str(s.meaning_score),
            )
        self.console.print(table)

        if verbose:
            for name in run.names:
                self.console.print(f"[bold]{name.full_name}[/bold] {name.explanation}")

        usage = character_usage(run.names).most_common(5)
        summary = (f"候选字 {run.pool_size} · 评估 {run.evaluated} · 入选 {run.accepted} · "
                   f"{run.elapsed_ms:.0f}ms")
        if usage:
            summary += " · 常用字 " + " ".join(f"{c}×{n}" for c, n in usage)
        self.console.print(f"[dim]{summary}[/dim]")
        if run.aborted:
            self.console.print(f"[yellow]Stopped early: {run.abort_reason}[/yellow]")
        if not run.names:
            self.console.print("[yellow]No names met the score floor. "
                               "Try fewer constraints.[/yellow]")

    # ------------------------------------------------------------------
    # Charts
    # ------------------------------------------------------------------

    def show_chart(self, analysis: ChartAnalysis):
        pillars = Table(title="八字命盘", box=box.SIMPLE)
        for name in PILLARS:
            pillars.add_column(PILLAR_LABELS[name], justify="center")
        pillars.add_row(*(p.label for p in analysis.chart.pillars))
        pillars.add_row(*(
            Text.assemble(_element_text(p.stem.element.value), _element_text(p.branch.element.value))
            for p in analysis.chart.pillars
        ))
        self.console.print(pillars)

        balance = Text("五行 ")
        for element in ELEMENT_ORDER:
            balance.append_text(_element_text(element.value))
            balance.append(f"{analysis.balance[element]} ")
        self.console.print(balance)
        self.console.print(f"日主 {analysis.day_master.value} ({analysis.day_master_element.value}, "
                           f"{analysis.strength.label})")
        self.console.print(f"喜用 {'、'.join(e.value for e in analysis.favorable)}  "
                           f"忌讳 {'、'.join(e.value for e in analysis.unfavorable)}")
        self.console.print(analysis.describe())

    # ------------------------------------------------------------------
    # Caches
    # ------------------------------------------------------------------

    def show_cache(self, stats: Dict[str, CacheStats], health: Dict[str, MemoryHealth]):
        table = Table(title="Caches", box=box.ROUNDED)
        for column in ("Kind", "Size", "Max", "Hits", "Misses", "Hit rate",
                       "Evictions", "Expired", "Health"):
            table.add_column(column, justify="left" if column in ("Kind", "Health") else "right")
        for kind, s in stats.items():
            h = health[kind]
            table.add_row(
                kind, str(s.size), str(s.max_size), str(s.hits), str(s.misses),
                f"{s.hit_rate:.1%}", str(s.evictions), str(s.expirations),
                Text(h.status.value, style=HEALTH_STYLES[h.status]),
            )
        self.console.print(table)
        for h in health.values():
            if h.status is not HealthStatus.HEALTHY:
                self.console.print(f"[{HEALTH_STYLES[h.status]}]{h.name}: {h.recommendation}"
                                   f"[/{HEALTH_STYLES[h.status]}]")


class SimpleUI:
    """Plain-text fallback for piped or quiet output."""

    def __init__(self, quiet: bool = False):
        self.quiet = quiet

    def _print(self, text: str = ""):
        if not self.quiet:
            print(text)

    def show_score(self, score: NameScore):
        self._print(format_score(score))

    def show_run(self, run: GenerationRun, verbose: bool = False):
        for i, name in enumerate(run.names, 1):
            self._print(f"{i:>3}. {name.full_name}  {name.pinyin}  {name.score.overall}")
            if verbose:
                self._print(f"     {name.explanation}")
        if run.aborted:
            self._print(f"Stopped early: {run.abort_reason}")

    def show_chart(self, analysis: ChartAnalysis):
        self._print(analysis.format_chart())

    def show_cache(self, stats: Dict[str, CacheStats], health: Dict[str, MemoryHealth]):
        for kind, s in stats.items():
            self._print(f"{kind:<10} {s.size:>6}/{s.max_size:<6} hit rate {s.hit_rate:.1%}  "
                        f"{health[kind].status.value}")


def get_ui(quiet: bool = False, plain: bool = False):
    """Rich UI for terminals, plain text when quiet, piped or asked for."""
    if quiet or plain or not sys.stdout.isatty():
        return SimpleUI(quiet=quiet)
    return ResultsUI()


__all__ = ["ResultsUI", "SimpleUI", "get_ui"]
