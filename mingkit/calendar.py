#!/usr/bin/env python3
"""
Calendar Conversion
===================
Converts a Gregorian birth moment into a four-pillar chart with
``lunar_python``.

The resolver is deterministic and does no caching of its own; the engine
facade puts it behind the CHART cache.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import Optional

from lunar_python import Solar

from mingkit.engines.bazi import FourPillarChart
from mingkit.errors import CalendarError, InvalidChartError
from mingkit.settings import get_setting

logger = logging.getLogger(__name__)


@dataclass
class CalendarPolicy:
    """Supported year range and default hour (``calendar`` in app.yaml)."""
    default_hour: Optional[int] = None
    min_year: Optional[int] = None
    max_year: Optional[int] = None

    def __post_init__(self):
        cfg = get_setting("calendar", {}) or {}
        names = ("default_hour", "min_year", "max_year")
        for name in names:
            if getattr(self, name) is None:
                setattr(self, name, cfg.get(name))
        missing = [name for name in names if getattr(self, name) is None]
        if missing:
            raise ValueError(f"calendar settings missing in app.yaml: {', '.join(missing)}")


class LunarCalendarResolver:
    """Resolves (year, month, day, hour) to year/month/day/hour pillars."""

    def __init__(self, policy: Optional[CalendarPolicy] = None):
        self.policy = policy or CalendarPolicy()

    def resolve(self, year: int, month: int, day: int, hour: Optional[int] = None) -> FourPillarChart:
        policy = self.policy
        if hour is None:
            hour = policy.default_hour
        if not policy.min_year <= year <= policy.max_year:
            raise CalendarError(f"Year {year} is outside the supported range "
                                f"{policy.min_year}-{policy.max_year}")
        if not 0 <= hour <= 23:
            raise CalendarError(f"Hour must be 0-23, got {hour}")
        try:
            datetime.date(year, month, day)
        except ValueError as e:
            raise CalendarError(f"Invalid date {year}-{month}-{day}: {e}") from e

        lunar = Solar.fromYmdHms(year, month, day, hour, 0, 0).getLunar()
        labels = (
            lunar.getYearInGanZhi(),
            lunar.getMonthInGanZhi(),
            lunar.getDayInGanZhi(),
            lunar.getTimeInGanZhi(),
        )
        logger.debug(f"Resolved {year}-{month:02d}-{day:02d} {hour:02d}h to {' '.join(labels)}")
        try:
            return FourPillarChart.from_labels(*labels)
        except InvalidChartError as e:
            raise CalendarError(f"Calendar returned an unreadable chart {labels}: {e}") from e


__all__ = ["CalendarPolicy", "LunarCalendarResolver"]
