"""Concurrent fan-out over the enabled provider adapters.

Every adapter call runs as its own task and the fetcher waits for all of them
to settle.  A failure in one source is captured as that source's result and
never cancels or delays the others.  There are no retries and no timeout
cancellation here; a slow provider delays the whole fan-out until its own
HTTP client gives up.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Sequence

import structlog

from .models import Reading
from .validate import validate_reading


logger = structlog.get_logger(__name__)

FetchReading = Callable[[str, float, float], Awaitable[Reading]]


@dataclass(frozen=True)
class SourceResult:
    """Outcome of one adapter call: a reading or an error description."""

    source_id: str
    reading: Optional[Reading] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.reading is not None


def _settle(source_id: str, outcome: object) -> SourceResult:
    if isinstance(outcome, Exception):
        logger.warning("source_failed", source=source_id, error=str(outcome), kind=type(outcome).__name__)
        return SourceResult(source_id, error=str(outcome) or type(outcome).__name__)
    if not isinstance(outcome, Reading):
        logger.warning("source_contract_violation", source=source_id, returned=type(outcome).__name__)
        return SourceResult(source_id, error=f"adapter returned {type(outcome).__name__}, not a Reading")
    issues = validate_reading(outcome)
    if issues:
        logger.warning("source_contract_violation", source=source_id, issues=issues)
        return SourceResult(source_id, error="; ".join(issues))
    logger.debug("source_succeeded", source=source_id, aqi=outcome.aqi)
    return SourceResult(source_id, reading=outcome)


async def fetch_all(
    source_ids: Sequence[str],
    lat: float,
    lon: float,
    fetch_reading: FetchReading,
) -> Dict[str, SourceResult]:
    """Call every adapter concurrently and collect one result per source.

    The returned mapping preserves the order of ``source_ids``.
    """
    if not source_ids:
        return {}
    tasks = [fetch_reading(sid, lat, lon) for sid in source_ids]
    outcomes = await asyncio.gather(*tasks, return_exceptions=True)
    for outcome in outcomes:
        # Cancellation of the enclosing combine is not a source failure.
        if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
            raise outcome
    return {sid: _settle(sid, outcome) for sid, outcome in zip(source_ids, outcomes)}
