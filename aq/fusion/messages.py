"""Short human-readable summaries of a combined reading."""
from __future__ import annotations

from typing import Mapping, Optional

from .models import CombinedReading, Confidence, Strategy

SOURCE_LABELS = {
    "airnow": "AirNow (EPA)",
    "google": "Google Air Quality",
    "openweather": "OpenWeatherMap",
    "waqi": "WAQI",
    "purpleair": "PurpleAir",
    "microsoft": "Microsoft Azure Maps",
}

CONFIDENCE_INDICATORS = {
    Confidence.HIGH: "●●●●●",
    Confidence.MEDIUM: "●●●●○",
    Confidence.CONFLICTING: "⚠●●●●",
    Confidence.LOW: "●○○○○",
}


def data_source_message(sources: Mapping[str, bool]) -> str:
    """Describe which providers contributed to a reading."""
    names = [SOURCE_LABELS.get(sid, sid) for sid, ok in sources.items() if ok]
    if not names:
        return "No air quality data available"
    return "Data from " + ", ".join(names)


def confidence_indicator(confidence: Confidence) -> str:
    return CONFIDENCE_INDICATORS.get(confidence, "○○○○○")


def discrepancy_message(reading: CombinedReading) -> Optional[str]:
    """Warning text for a reading whose sources disagree, if any."""
    discrepancy = reading.discrepancy
    if discrepancy is None or not discrepancy.detected:
        return None
    diff = f"{discrepancy.max_difference:g}"
    if discrepancy.strategy is Strategy.FAVOR_MAJORITY:
        return f"Large data variance detected (+{diff} points). Using preferred source."
    if discrepancy.strategy is Strategy.MEDIAN:
        return f"Sources disagree by {diff} points. Using the median to limit outliers."
    return f"Sources disagree by {diff} points. Data averaged but uncertain."
