"""Canonical data model shared by every stage of the combine pipeline.

Each provider adapter produces a :class:`Reading`; the reconciler turns a set
of readings into a single :class:`CombinedReading`.  The value ``-1`` is the
fixed "unavailable" sentinel for the AQI and for every pollutant field, so
arithmetic can uniformly test ``>= 0`` instead of checking for ``None``.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Mapping, Optional

UNAVAILABLE = -1

POLLUTANT_FIELDS = ("pm25", "pm10", "o3", "no2", "so2", "co")


class Category(str, Enum):
    GOOD = "Good"
    MODERATE = "Moderate"
    UNHEALTHY_SENSITIVE = "Unhealthy for Sensitive Groups"
    UNHEALTHY = "Unhealthy"
    VERY_UNHEALTHY = "Very Unhealthy"
    HAZARDOUS = "Hazardous"
    UNKNOWN = "Unknown"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    CONFLICTING = "conflicting"


class Strategy(str, Enum):
    AVERAGE = "average"
    WEIGHTED_AVERAGE = "weighted_average"
    MEDIAN = "median"
    FAVOR_MAJORITY = "favor_majority"


@dataclass(frozen=True)
class Pollutants:
    """Pollutant concentrations in µg/m³; ``-1`` marks a missing field."""

    pm25: float = UNAVAILABLE
    pm10: float = UNAVAILABLE
    o3: float = UNAVAILABLE
    no2: float = UNAVAILABLE
    so2: float = UNAVAILABLE
    co: float = UNAVAILABLE

    def as_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class Reading:
    """One source's current conditions on the canonical scale."""

    aqi: float
    category: Category
    pollutants: Pollutants
    timestamp: str
    source_id: str

    @property
    def level(self) -> Category:
        return self.category

    @property
    def available(self) -> bool:
        return self.aqi >= 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "aqi": self.aqi,
            "level": self.category.value,
            "pollutants": self.pollutants.as_dict(),
            "timestamp": self.timestamp,
            "source_id": self.source_id,
        }


@dataclass(frozen=True)
class Discrepancy:
    detected: bool
    max_difference: float
    strategy: Strategy
    details: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detected": self.detected,
            "max_difference": self.max_difference,
            "strategy": self.strategy.value,
            "details": self.details,
        }


@dataclass(frozen=True)
class CombinedReading(Reading):
    """Best-estimate reading synthesized from every enabled source.

    ``sources`` records whether each adapter call succeeded, independent of
    whether its value ended up contributing to ``aqi``.
    """

    sources: Mapping[str, bool] = field(default_factory=dict)
    confidence: Confidence = Confidence.LOW
    raw_readings: Mapping[str, Reading] = field(default_factory=dict)
    discrepancy: Optional[Discrepancy] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "sources": dict(self.sources),
                "confidence": self.confidence.value,
                "discrepancy": self.discrepancy.to_dict() if self.discrepancy else None,
                "raw_readings": {sid: r.to_dict() for sid, r in self.raw_readings.items()},
                "error": self.error,
            }
        )
        return data
