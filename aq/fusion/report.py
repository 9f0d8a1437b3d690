"""Tabular views of combined readings.

This module turns combined readings into pandas dataframes: one row per
source for diagnosing a single combine, or one row per location for a batch
run.  Batch results can be written to CSV.
"""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Tuple

import pandas as pd
import structlog

from .models import POLLUTANT_FIELDS, CombinedReading

logger = structlog.get_logger(__name__)

LOCATION_COLUMNS = ("name", "latitude", "longitude")


def readings_frame(combined: CombinedReading) -> pd.DataFrame:
    """Return one row per source plus a final ``combined`` row.

    Sources whose adapter call failed appear with ``success=False`` and the
    ``-1`` sentinel in every value column.
    """
    records = []
    for sid, ok in combined.sources.items():
        reading = combined.raw_readings.get(sid)
        record = {
            "source": sid,
            "success": ok,
            "aqi": reading.aqi if reading else -1,
            "level": reading.category.value if reading else "Unknown",
        }
        for name in POLLUTANT_FIELDS:
            record[name] = getattr(reading.pollutants, name) if reading else -1
        records.append(record)
    summary = {
        "source": combined.source_id,
        "success": combined.error is None,
        "aqi": combined.aqi,
        "level": combined.category.value,
    }
    summary.update(combined.pollutants.as_dict())
    records.append(summary)
    return pd.DataFrame(records)


def load_locations(path: Path) -> pd.DataFrame:
    """Read a CSV of locations with ``name``, ``latitude`` and ``longitude``."""
    df = pd.read_csv(path)
    missing = set(LOCATION_COLUMNS) - set(df.columns)
    if missing:
        raise ValueError(f"Missing required columns: {', '.join(sorted(missing))}")
    return df[list(LOCATION_COLUMNS)]


def batch_frame(results: Iterable[Tuple[str, float, float, CombinedReading]]) -> pd.DataFrame:
    """Return one row per location with the combined AQI and confidence."""
    records: List[dict] = []
    for name, lat, lon, combined in results:
        records.append(
            {
                "name": name,
                "latitude": lat,
                "longitude": lon,
                "aqi": combined.aqi,
                "level": combined.category.value,
                "confidence": combined.confidence.value,
                "sources_ok": sum(combined.sources.values()),
                "strategy": combined.discrepancy.strategy.value if combined.discrepancy else None,
                "max_difference": combined.discrepancy.max_difference if combined.discrepancy else None,
                "error": combined.error,
                "timestamp": combined.timestamp,
            }
        )
    return pd.DataFrame(records)


def export_to_csv(df: pd.DataFrame, out_path: Path) -> None:
    """Write a dataframe to CSV, creating the parent directory."""
    out_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(out_path, index=False)
    logger.info("wrote_csv", path=str(out_path), rows=len(df))
