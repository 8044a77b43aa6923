#!/usr/bin/env python3
"""
MingKit Errors
==============
Exception types raised across the engine.

Contract violations (unknown labels, empty names, malformed charts) raise
``InvalidInputError`` so callers can keep catching ``ValueError``.
Missing reference data is never an error: those characters are skipped.
"""


class MingKitError(Exception):
    """Base class for all MingKit errors."""


class InvalidInputError(MingKitError, ValueError):
    """Caller supplied an invalid argument (empty name, unknown label, ...)."""


class InvalidChartError(InvalidInputError):
    """A four-pillar chart is missing a pillar or holds an unknown stem/branch."""


class CalendarError(MingKitError):
    """The calendar collaborator could not resolve a birth moment."""


class DataError(MingKitError, ValueError):
    """A bundled reference data file is malformed."""


__all__ = [
    "MingKitError",
    "InvalidInputError",
    "InvalidChartError",
    "CalendarError",
    "DataError",
]
