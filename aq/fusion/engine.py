"""Public entrypoint: fetch every enabled source and build a combined reading.

:func:`combine` is a self-contained fan-out/fan-in.  Nothing survives between
calls except the read-only :class:`~aq.fusion.config.Settings`.  Missing data
is never raised: when no source yields a usable AQI the result carries
``aqi=-1``, ``level=Unknown``, ``confidence=low`` and an ``error`` message.
"""
from __future__ import annotations

from functools import partial
from typing import Mapping, Optional

import httpx
import structlog

from .config import Settings, load_settings
from .fetch import FetchReading, SourceResult, fetch_all
from .models import UNAVAILABLE, CombinedReading, Confidence
from .normalize import category_for_aqi
from .reconcile import ReconcilePolicy, Reconciliation, classify_confidence, reconcile
from .sources import fetch_reading as fetch_source_reading
from .utils import utc_now_iso


logger = structlog.get_logger(__name__)

NO_DATA_ERROR = "No air quality data available from any source"
COMBINED_SOURCE_ID = "combined"


def build_combined(
    results: Mapping[str, SourceResult],
    reconciliation: Reconciliation,
    policy: ReconcilePolicy,
) -> CombinedReading:
    """Assemble the final reading from per-source results and the merge."""
    raw = {sid: r.reading for sid, r in results.items() if r.reading is not None}
    success_count = len(raw)
    aqi = reconciliation.aqi
    if aqi == UNAVAILABLE:
        confidence = Confidence.LOW
    else:
        confidence = classify_confidence(success_count, reconciliation.discrepancy, policy.majority_threshold)
    return CombinedReading(
        aqi=aqi,
        category=category_for_aqi(aqi),
        pollutants=reconciliation.pollutants,
        timestamp=utc_now_iso(),
        source_id=COMBINED_SOURCE_ID,
        sources={sid: r.ok for sid, r in results.items()},
        confidence=confidence,
        raw_readings=raw,
        discrepancy=reconciliation.discrepancy,
        error=NO_DATA_ERROR if aqi == UNAVAILABLE else None,
    )


async def combine(
    lat: float,
    lon: float,
    *,
    settings: Optional[Settings] = None,
    fetch_reading: Optional[FetchReading] = None,
    policy: Optional[ReconcilePolicy] = None,
) -> CombinedReading:
    """Query all enabled sources for a coordinate and reconcile them.

    Coordinates are assumed valid.  ``fetch_reading`` replaces the built-in
    HTTP adapters (it must follow the adapter contract); ``policy`` replaces
    the policy derived from the settings.
    """
    settings = settings or load_settings()
    source_ids = list(settings.enabled_sources)
    policy = policy or ReconcilePolicy.for_sources(source_ids, settings.weights, settings.priority)

    if fetch_reading is not None:
        results = await fetch_all(source_ids, lat, lon, fetch_reading)
    else:
        async with httpx.AsyncClient(timeout=settings.http_timeout, follow_redirects=True) as client:
            adapter = partial(fetch_source_reading, client=client, settings=settings)
            results = await fetch_all(source_ids, lat, lon, adapter)

    successful = {sid: r.reading for sid, r in results.items() if r.reading is not None}
    combined = build_combined(results, reconcile(successful, policy), policy)
    logger.info(
        "combined_reading",
        lat=lat,
        lon=lon,
        aqi=combined.aqi,
        confidence=combined.confidence.value,
        succeeded=sum(combined.sources.values()),
        enabled=len(source_ids),
    )
    return combined
