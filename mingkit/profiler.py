#!/usr/bin/env python3
"""
Generation Profiler
===================
Lightweight stage timings for the name generator.

Usage:
    mingkit generate 李 -n 10 --profiling
    mingkit generate 李 -n 10 --profiling --profile-output profile.json
"""

import json
import statistics
import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class StageStats:
    """Statistics for a single profiled stage."""
    times: list = field(default_factory=list)
    items: int = 0
    sub_stages: dict = field(default_factory=dict)

    @property
    def total(self) -> float:
        return sum(self.times)

    @property
    def count(self) -> int:
        return len(self.times)

    @property
    def mean(self) -> float:
        return statistics.mean(self.times) if self.times else 0

    @property
    def stdev(self) -> float:
        return statistics.stdev(self.times) if len(self.times) > 1 else 0

    @property
    def per_item(self) -> float:
        return self.total / self.items if self.items else 0

    def to_dict(self) -> dict:
        return {
            'total_seconds': self.total,
            'count': self.count,
            'items': self.items,
            'mean_seconds': self.mean,
            'stdev_seconds': self.stdev,
            'per_item_ms': self.per_item * 1000,
            'sub_stages': {k: v.to_dict() for k, v in self.sub_stages.items()},
        }


class GenerationProfiler:
    """
    Profiler for generation runs.

    Example:
        profiler = GenerationProfiler(enabled=True)
        profiler.start()

        with profiler.stage("enumerate", items=len(pool)):
            candidates = build_candidates(pool)

        print(profiler.report())
    """

    def __init__(self, enabled: bool = False, clock=time.perf_counter):
        self.enabled = enabled
        self.clock = clock
        self.stages: dict[str, StageStats] = defaultdict(StageStats)
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None
        self._stage_stack: list[str] = []

    def start(self):
        if self.enabled:
            self.start_time = self.clock()
            self.end_time = None

    def stop(self):
        if self.enabled and self.start_time is not None and self.end_time is None:
            self.end_time = self.clock()

    @property
    def total_time(self) -> float:
        if self.start_time is None:
            return 0
        end = self.end_time if self.end_time is not None else self.clock()
        return end - self.start_time

    @contextmanager
    def stage(self, name: str, items: int = 1):
        """
        Time a stage. Stages opened inside another stage are recorded as its
        sub-stages.
        """
        if not self.enabled:
            yield
            return

        parent = self._stage_stack[0] if self._stage_stack else None
        self._stage_stack.append(name)
        start = self.clock()
        try:
            yield
        finally:
            elapsed = self.clock() - start
            self._stage_stack.pop()
            if parent is None:
                stats = self.stages[name]
            else:
                sub_name = "/".join(self._stage_stack[1:] + [name])
                stats = self.stages[parent].sub_stages.setdefault(sub_name, StageStats())
            stats.times.append(elapsed)
            stats.items += items

    def record(self, name: str, elapsed: float, items: int = 1):
        """Manually record a timing."""
        if not self.enabled:
            return
        self.stages[name].times.append(elapsed)
        self.stages[name].items += items

    def report(self, detailed: bool = True) -> str:
        if not self.enabled or not self.stages:
            return ""

        self.stop()
        total = self.total_time

        lines = [
            "",
            "=" * 70,
            "PROFILING REPORT",
            "=" * 70,
            f"Total time: {total:.3f}s",
            "",
        ]

        header = f"{'Stage':<22} {'Total':>8} {'%':>6} {'Calls':>6} {'Items':>7} {'Per-item':>10}"
        lines.append(header)
        lines.append("-" * len(header))

        sorted_stages = sorted(self.stages.items(), key=lambda x: -x[1].total)
        for name, stats in sorted_stages:
            pct = (stats.total / total) * 100 if total > 0 else 0
            per_item_str = f"{stats.per_item * 1000:.2f}ms" if stats.items > 0 else "-"
            lines.append(
                f"{name:<22} {stats.total:>7.3f}s {pct:>5.1f}% "
                f"{stats.count:>6} {stats.items:>7} {per_item_str:>10}"
            )
            if detailed and stats.sub_stages:
                for sub_name, sub in sorted(stats.sub_stages.items(), key=lambda x: -x[1].total):
                    sub_pct = (sub.total / stats.total) * 100 if stats.total > 0 else 0
                    sub_per_item = f"{sub.per_item * 1000:.2f}ms" if sub.items > 0 else "-"
                    lines.append(
                        f"  └─{sub_name:<18} {sub.total:>7.3f}s {sub_pct:>5.1f}% "
                        f"{sub.count:>6} {sub.items:>7} {sub_per_item:>10}"
                    )

        if sorted_stages:
            top_stage, top_stats = sorted_stages[0]
            share = (top_stats.total / total) * 100 if total > 0 else 0
            lines.append("")
            lines.append(f"Slowest stage: {top_stage} ({top_stats.total:.3f}s, {share:.1f}%)")
        lines.append("")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        self.stop()
        return {
            'total_seconds': self.total_time,
            'stages': {name: stats.to_dict() for name, stats in self.stages.items()},
        }

    def save_json(self, path: str):
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


# Global profiler instance (can be replaced per-run)
_profiler: Optional[GenerationProfiler] = None


def get_profiler() -> Optional[GenerationProfiler]:
    return _profiler


def set_profiler(profiler: Optional[GenerationProfiler]):
    global _profiler
    _profiler = profiler


@contextmanager
def profile_stage(name: str, items: int = 1):
    """
    Profile a stage with the global profiler, if one is set.

    Example:
        with profile_stage("score", items=len(candidates)):
            scores = [scorer.score(...) for ...]
    """
    profiler = get_profiler()
    if profiler:
        with profiler.stage(name, items):
            yield
    else:
        yield
