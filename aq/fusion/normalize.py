"""Normalization of vendor-specific air quality values.

This module converts the scales each provider reports (1-5 tiers, textual
categories, raw concentrations, pollutant sub-indices) into the canonical
0-500 AQI and the fixed six-tier category used by the rest of the package.
Pollutant names and units are standardized here as well.  Any field a vendor
does not report becomes the ``-1`` sentinel, never a missing key.
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import pandas as pd

from .models import UNAVAILABLE, Category, Pollutants, POLLUTANT_FIELDS
from .utils import ensure_datetime, round_half_away, to_utc, utc_now_iso

# Upper bound (inclusive) of each AQI band.
CATEGORY_BREAKPOINTS = (
    (50, Category.GOOD),
    (100, Category.MODERATE),
    (150, Category.UNHEALTHY_SENSITIVE),
    (200, Category.UNHEALTHY),
    (300, Category.VERY_UNHEALTHY),
    (500, Category.HAZARDOUS),
)

TIER_AQI = {1: 25, 2: 75, 3: 125, 4: 175, 5: 250}

CATEGORY_LABELS = {
    "excellent": Category.GOOD,
    "good": Category.GOOD,
    "moderate": Category.MODERATE,
    "fair": Category.MODERATE,
    "unhealthy for sensitive groups": Category.UNHEALTHY_SENSITIVE,
    "lightly polluted": Category.UNHEALTHY_SENSITIVE,
    "unhealthy": Category.UNHEALTHY,
    "moderately polluted": Category.UNHEALTHY,
    "very unhealthy": Category.VERY_UNHEALTHY,
    "heavily polluted": Category.VERY_UNHEALTHY,
    "hazardous": Category.HAZARDOUS,
    "severely polluted": Category.HAZARDOUS,
    "poor": Category.UNHEALTHY_SENSITIVE,
    "dangerous": Category.HAZARDOUS,
}

POLLUTANT_MAP = {
    "pm25": "pm25",
    "pm2.5": "pm25",
    "pm2_5": "pm25",
    "pm10": "pm10",
    "pm10.0": "pm10",
    "o3": "o3",
    "ozone": "o3",
    "no2": "no2",
    "so2": "so2",
    "co": "co",
}

# Approximate ppb to µg/m³ factors at 25 °C and 1 atm.
PPB_TO_UGM3 = {"no2": 1.88, "so2": 2.62, "co": 1.15, "o3": 1.96}

PPB_UNITS = {"ppb", "parts_per_billion", "partsperbillion"}
MG_UNITS = {"mg/m³", "mg/m3", "mg/m^3", "milligrams_per_cubic_meter", "milligramspercubicmeter"}

# EPA breakpoints: (conc_lo, conc_hi, aqi_lo, aqi_hi)
CONCENTRATION_BREAKPOINTS = {
    "pm25": (
        (0.0, 12.0, 0, 50),
        (12.1, 35.4, 51, 100),
        (35.5, 55.4, 101, 150),
        (55.5, 150.4, 151, 200),
        (150.5, 250.4, 201, 300),
        (250.5, 500.4, 301, 500),
    ),
    "pm10": (
        (0, 54, 0, 50),
        (55, 154, 51, 100),
        (155, 254, 101, 150),
        (255, 354, 151, 200),
        (355, 424, 201, 300),
        (425, 604, 301, 500),
    ),
}


def sentinel(value: Any) -> float:
    """Return ``value`` as a float, or ``-1`` when it is missing or negative."""
    if value is None:
        return UNAVAILABLE
    try:
        if pd.isna(value):
            return UNAVAILABLE
        number = float(value)
    except (TypeError, ValueError):
        return UNAVAILABLE
    return number if number >= 0 else UNAVAILABLE


def category_for_aqi(aqi: float) -> Category:
    """Map a canonical AQI to its category; ``-1`` maps to Unknown."""
    if aqi < 0:
        return Category.UNKNOWN
    for upper, category in CATEGORY_BREAKPOINTS:
        if aqi <= upper:
            return category
    return Category.HAZARDOUS


def tier_to_aqi(tier: Any) -> int:
    """Convert a 1-5 tier index to a representative canonical AQI."""
    try:
        return TIER_AQI.get(int(tier), UNAVAILABLE)
    except (TypeError, ValueError):
        return UNAVAILABLE


def category_from_label(label: Optional[str]) -> Category:
    """Map a vendor's textual category to the canonical category."""
    if not isinstance(label, str):
        return Category.UNKNOWN
    key = label.strip().lower().removesuffix(" air quality")
    return CATEGORY_LABELS.get(key, Category.UNKNOWN)


def concentration_to_aqi(pollutant: str, value: Any) -> int:
    """Compute the EPA sub-index for a pm25 or pm10 concentration in µg/m³.

    Concentrations above the top breakpoint saturate at 500.  Missing or
    negative input, or an unsupported pollutant, yields ``-1``.
    """
    conc = sentinel(value)
    table = CONCENTRATION_BREAKPOINTS.get(POLLUTANT_MAP.get(pollutant.lower(), pollutant))
    if conc < 0 or table is None:
        return UNAVAILABLE
    for c_lo, c_hi, a_lo, a_hi in table:
        if conc <= c_hi:
            # Values falling in the gap between two bands use the upper band.
            c_lo = min(c_lo, conc)
            return round_half_away((a_hi - a_lo) / (c_hi - c_lo) * (conc - c_lo) + a_lo)
    return 500


def epa_corrected_pm25(pm25: float, humidity: float) -> float:
    """Apply the US EPA correction for low-cost optical PM2.5 sensors."""
    if pm25 < 0 or humidity < 0:
        return pm25
    return max(0.0, 0.524 * pm25 - 0.0862 * humidity + 5.75)


def canonical_aqi(value: Any) -> float:
    """Return a vendor AQI on the canonical scale, saturating at 500."""
    aqi = sentinel(value)
    return min(aqi, 500) if aqi >= 0 else UNAVAILABLE


def convert_unit(value: float, unit: Optional[str], pollutant: Optional[str] = None) -> float:
    """Convert pollutant concentration to µg/m³ where necessary.

    mg/m³ is rescaled by 1000 and ppb is converted with a fixed per-gas
    factor.  Other units are passed through unchanged.
    """
    unit = unit.lower() if isinstance(unit, str) else ""
    if unit in MG_UNITS:
        return value * 1000
    if unit in PPB_UNITS and pollutant in PPB_TO_UGM3:
        return value * PPB_TO_UGM3[pollutant]
    return value


def normalize_timestamp(ts: Any = None) -> str:
    """Return a vendor timestamp as an ISO 8601 string in UTC.

    Accepts ISO strings, epoch seconds or datetimes.  A missing or unparseable
    timestamp falls back to the current time.
    """
    if ts is None or ts == "":
        return utc_now_iso()
    try:
        return to_utc(ensure_datetime(ts)).isoformat()
    except (TypeError, ValueError, OverflowError):
        return utc_now_iso()


def build_pollutants(values: Mapping[str, Any], units: Optional[Mapping[str, str]] = None) -> Pollutants:
    """Build canonical pollutants from a vendor mapping of code to value.

    Vendor codes are resolved through :data:`POLLUTANT_MAP`; unknown codes are
    ignored and absent pollutants stay at ``-1``.  ``units`` optionally gives
    the unit of each vendor code for conversion to µg/m³.  Values are kept
    unrounded; rounding happens once, when readings are merged.
    """
    canonical: Dict[str, float] = {name: UNAVAILABLE for name in POLLUTANT_FIELDS}
    units = units or {}
    for code, raw in values.items():
        name = POLLUTANT_MAP.get(str(code).lower())
        if name is None:
            continue
        value = sentinel(raw)
        if value >= 0:
            value = convert_unit(value, units.get(code), name)
        canonical[name] = value
    return Pollutants(**canonical)
