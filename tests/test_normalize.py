import math

from aq.fusion.models import Category
from aq.fusion.normalize import (
    build_pollutants,
    canonical_aqi,
    category_for_aqi,
    category_from_label,
    concentration_to_aqi,
    convert_unit,
    epa_corrected_pm25,
    normalize_timestamp,
    sentinel,
    tier_to_aqi,
)
from aq.fusion.utils import round_half_away


def test_category_for_aqi_uses_epa_breakpoints() -> None:
    assert category_for_aqi(-1) is Category.UNKNOWN
    assert category_for_aqi(0) is Category.GOOD
    assert category_for_aqi(50) is Category.GOOD
    assert category_for_aqi(51) is Category.MODERATE
    assert category_for_aqi(100) is Category.MODERATE
    assert category_for_aqi(101) is Category.UNHEALTHY_SENSITIVE
    assert category_for_aqi(150) is Category.UNHEALTHY_SENSITIVE
    assert category_for_aqi(151) is Category.UNHEALTHY
    assert category_for_aqi(201) is Category.VERY_UNHEALTHY
    assert category_for_aqi(300) is Category.VERY_UNHEALTHY
    assert category_for_aqi(301) is Category.HAZARDOUS
    assert category_for_aqi(500) is Category.HAZARDOUS


def test_tier_to_aqi_maps_five_tier_scale() -> None:
    assert [tier_to_aqi(t) for t in (1, 2, 3, 4, 5)] == [25, 75, 125, 175, 250]
    assert tier_to_aqi(0) == -1
    assert tier_to_aqi(None) == -1
    assert tier_to_aqi("x") == -1


def test_category_from_label_handles_vendor_vocabulary() -> None:
    assert category_from_label("Excellent") is Category.GOOD
    assert category_from_label("lightly polluted") is Category.UNHEALTHY_SENSITIVE
    assert category_from_label("Moderate air quality") is Category.MODERATE
    assert category_from_label("Severely Polluted") is Category.HAZARDOUS
    assert category_from_label("sparkling") is Category.UNKNOWN
    assert category_from_label(None) is Category.UNKNOWN


def test_concentration_to_aqi_pm25_and_pm10() -> None:
    assert concentration_to_aqi("pm25", 0) == 0
    assert concentration_to_aqi("pm25", 12.0) == 50
    assert concentration_to_aqi("pm25", 35.4) == 100
    assert concentration_to_aqi("PM2.5", 10.0) == 42
    assert concentration_to_aqi("pm10", 20) == 19
    assert concentration_to_aqi("pm25", 900) == 500
    assert concentration_to_aqi("pm25", -3) == -1
    assert concentration_to_aqi("o3", 40) == -1


def test_epa_correction_is_floored_at_zero() -> None:
    assert math.isclose(epa_corrected_pm25(20, 50), 11.92)
    assert epa_corrected_pm25(0, 90) == 0.0
    assert epa_corrected_pm25(-1, 40) == -1


def test_sentinel_and_canonical_aqi() -> None:
    assert sentinel(None) == -1
    assert sentinel(float("nan")) == -1
    assert sentinel("-") == -1
    assert sentinel(-4) == -1
    assert sentinel("12.5") == 12.5
    assert canonical_aqi(612) == 500
    assert canonical_aqi(None) == -1


def test_convert_unit_to_micrograms() -> None:
    assert convert_unit(1.5, "mg/m³") == 1500.0
    assert math.isclose(convert_unit(10, "PARTS_PER_BILLION", "no2"), 18.8)
    assert convert_unit(10, "ppb", "pm25") == 10
    assert convert_unit(7, "µg/m³") == 7


def test_build_pollutants_maps_codes_and_fills_sentinels() -> None:
    pollutants = build_pollutants({"pm2_5": 0.5, "PM10": 20.4, "co": 201.94, "nh3": 3.0})
    assert pollutants.pm25 == 0.5
    assert pollutants.pm10 == 20.4
    assert pollutants.co == 201.94
    assert pollutants.o3 == -1
    assert pollutants.no2 == -1
    assert pollutants.so2 == -1


def test_normalize_timestamp_converts_to_utc() -> None:
    assert normalize_timestamp(1700000000) == "2023-11-14T22:13:20+00:00"
    assert normalize_timestamp("2024-05-01T14:00:00+02:00") == "2024-05-01T12:00:00+00:00"
    assert normalize_timestamp(None).endswith("+00:00")


def test_round_half_away_from_zero() -> None:
    assert [round_half_away(v) for v in (0.5, 1.5, 2.5, 50.5, -2.5, 2.49)] == [1, 2, 3, 51, -3, 2]
