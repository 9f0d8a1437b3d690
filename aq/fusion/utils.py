"""Utility functions for aq.fusion.

Timestamp conversion, integer rounding and structlog setup shared by the
adapters, the reconciler and the CLI.
"""
from __future__ import annotations

import logging
import math
import sys
from datetime import datetime, timezone
from typing import Union

import structlog
from dateutil import parser as date_parser


def utc_now_iso() -> str:
    """Return the current time as an ISO 8601 string in UTC."""
    return datetime.now(tz=timezone.utc).isoformat()


def ensure_datetime(value: Union[str, int, float, datetime]) -> datetime:
    """Ensure that ``value`` is a ``datetime`` with timezone information.

    Strings are parsed with dateutil, numbers are treated as epoch seconds.
    Naive datetimes are assumed to be UTC.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        dt = date_parser.isoparse(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def to_utc(dt: datetime) -> datetime:
    """Convert a datetime to UTC."""
    return dt.astimezone(timezone.utc)


def round_half_away(value: float) -> int:
    """Round to the nearest integer, ties away from zero."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def configure_logging(verbose: bool = False) -> None:
    """Configure structlog for console output.

    Logs go to stderr so that JSON output on stdout stays clean.  Warnings
    and above are shown by default; ``verbose`` lowers the threshold to debug.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
