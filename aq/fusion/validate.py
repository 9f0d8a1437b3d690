"""Validation routines for readings returned by provider adapters.

Validation checks ensure that an adapter honoured the canonical contract:
the AQI is either the sentinel or within the 0-500 scale, and every pollutant
is either the sentinel or non-negative.  The validator returns a list of
human-readable issues; an empty list means the reading passed all checks.
"""
from __future__ import annotations

import math
from typing import List

from .models import POLLUTANT_FIELDS, UNAVAILABLE, Category, Reading

AQI_RANGE = (0, 500)


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and not math.isnan(value)


def validate_reading(reading: Reading) -> List[str]:
    """Validate an adapter reading and return a list of issues."""
    issues: List[str] = []
    lo, hi = AQI_RANGE
    if not _is_number(reading.aqi):
        issues.append(f"aqi '{reading.aqi}' is not a number")
    elif reading.aqi != UNAVAILABLE and not (lo <= reading.aqi <= hi):
        issues.append(f"aqi {reading.aqi} outside canonical range [{lo}, {hi}]")
    if not isinstance(reading.category, Category):
        issues.append(f"category '{reading.category}' is not a canonical category")
    for name in POLLUTANT_FIELDS:
        value = getattr(reading.pollutants, name)
        if not _is_number(value):
            issues.append(f"{name} value '{value}' is not a number")
        elif value < 0 and value != UNAVAILABLE:
            issues.append(f"{name} value {value} is negative but not the -1 sentinel")
    if not reading.source_id:
        issues.append("source_id is empty")
    return issues
