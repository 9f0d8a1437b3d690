import pytest
from conftest import fake_fetcher, make_reading

from aq.fusion import combine
from aq.fusion.config import SOURCE_IDS, Settings
from aq.fusion.engine import NO_DATA_ERROR
from aq.fusion.errors import ConfigurationMissing, ProviderUnavailable
from aq.fusion.models import Category, Confidence, Strategy

FIVE = ("airnow", "google", "openweather", "waqi", "purpleair")


async def _combine(enabled, outcomes):
    return await combine(
        39.74,
        -104.99,
        settings=Settings(enabled_sources=enabled),
        fetch_reading=fake_fetcher(outcomes),
    )


@pytest.mark.asyncio
async def test_five_agreeing_sources_give_high_confidence() -> None:
    values = dict(zip(FIVE, (48, 52, 50, 49, 51)))
    result = await _combine(FIVE, {sid: make_reading(sid, v) for sid, v in values.items()})
    assert result.aqi == 50
    assert result.level is Category.GOOD
    assert result.confidence is Confidence.HIGH
    assert result.discrepancy is None
    assert result.error is None
    assert result.sources == {sid: True for sid in FIVE}
    assert set(result.raw_readings) == set(FIVE)


@pytest.mark.asyncio
async def test_four_of_five_with_forty_point_spread_is_conflicting() -> None:
    outcomes = {
        "airnow": make_reading("airnow", 40),
        "google": make_reading("google", 45),
        "openweather": ProviderUnavailable("openweather", "HTTP 503 Service Unavailable"),
        "waqi": make_reading("waqi", 80),
        "purpleair": make_reading("purpleair", 42),
    }
    result = await _combine(FIVE, outcomes)
    assert result.sources["openweather"] is False
    assert "openweather" not in result.raw_readings
    assert result.discrepancy.detected
    assert result.discrepancy.max_difference == 40
    assert result.discrepancy.strategy is Strategy.AVERAGE
    assert result.confidence is Confidence.CONFLICTING


@pytest.mark.asyncio
async def test_median_strategy_keeps_medium_confidence() -> None:
    values = dict(zip(FIVE, (20, 25, 30, 35, 100)))
    result = await _combine(FIVE, {sid: make_reading(sid, v) for sid, v in values.items()})
    assert result.aqi == 30
    assert result.discrepancy.strategy is Strategy.MEDIAN
    assert result.confidence is Confidence.MEDIUM


@pytest.mark.asyncio
async def test_single_source_gives_medium_confidence() -> None:
    outcomes = {
        "airnow": make_reading("airnow", 50),
        "waqi": ConfigurationMissing("waqi", "API key not configured"),
    }
    result = await _combine(("airnow", "waqi"), outcomes)
    assert result.aqi == 50
    assert result.confidence is Confidence.MEDIUM
    assert result.sources == {"airnow": True, "waqi": False}


@pytest.mark.asyncio
async def test_two_sources_far_apart_favor_airnow() -> None:
    outcomes = {
        "airnow": make_reading("airnow", 30),
        "openweather": make_reading("openweather", 100),
    }
    result = await _combine(("airnow", "openweather"), outcomes)
    assert result.aqi == 30
    assert result.discrepancy.strategy is Strategy.FAVOR_MAJORITY
    assert result.confidence is Confidence.CONFLICTING


@pytest.mark.asyncio
async def test_all_sources_failing_returns_unavailable_reading() -> None:
    outcomes = {
        "airnow": ProviderUnavailable("airnow", "timeout"),
        "waqi": RuntimeError("boom"),
    }
    result = await _combine(("airnow", "waqi"), outcomes)
    assert result.aqi == -1
    assert result.level is Category.UNKNOWN
    assert result.confidence is Confidence.LOW
    assert result.error == NO_DATA_ERROR
    assert result.sources == {"airnow": False, "waqi": False}
    assert result.raw_readings == {}


@pytest.mark.asyncio
async def test_successful_sources_without_aqi_still_report_no_data() -> None:
    outcomes = {
        "google": make_reading("google", -1, pm25=12),
        "microsoft": make_reading("microsoft", -1, pm25=14),
    }
    result = await _combine(("google", "microsoft"), outcomes)
    assert result.aqi == -1
    assert result.error == NO_DATA_ERROR
    assert result.confidence is Confidence.LOW
    assert result.sources == {"google": True, "microsoft": True}
    assert result.pollutants.pm25 == 13


@pytest.mark.asyncio
async def test_no_enabled_sources() -> None:
    result = await _combine((), {})
    assert result.aqi == -1
    assert result.sources == {}
    assert result.confidence is Confidence.LOW
    assert result.error == NO_DATA_ERROR


@pytest.mark.asyncio
async def test_reading_outside_contract_counts_as_failure() -> None:
    outcomes = {
        "airnow": make_reading("airnow", 612),
        "waqi": make_reading("waqi", 60),
    }
    result = await _combine(("airnow", "waqi"), outcomes)
    assert result.sources == {"airnow": False, "waqi": True}
    assert result.aqi == 60


@pytest.mark.asyncio
async def test_to_dict_is_json_ready() -> None:
    result = await _combine(("airnow",), {"airnow": make_reading("airnow", 75, pm25=22)})
    data = result.to_dict()
    assert data["aqi"] == 75
    assert data["level"] == "Moderate"
    assert data["confidence"] == "medium"
    assert data["discrepancy"] is None
    assert data["raw_readings"]["airnow"]["pollutants"]["pm25"] == 22
    assert data["source_id"] == "combined"



async def _combine_all_six(outcomes):
    return await combine(39.74, -104.99, settings=Settings(), fetch_reading=fake_fetcher(outcomes))


@pytest.mark.asyncio
async def test_six_agreeing_sources_give_high_confidence() -> None:
    values = dict(zip(SOURCE_IDS, (48, 50, 52, 49, 51, 50)))
    result = await _combine_all_six({sid: make_reading(sid, v) for sid, v in values.items()})
    assert result.aqi == 50
    assert result.discrepancy is None
    assert result.confidence is Confidence.HIGH


@pytest.mark.asyncio
async def test_five_of_six_with_moderate_spread_use_weighted_average() -> None:
    values = dict(zip(SOURCE_IDS, (40, 45, 50, 60, 90)))
    outcomes = {sid: make_reading(sid, v) for sid, v in values.items()}
    outcomes["microsoft"] = ProviderUnavailable("microsoft", "HTTP 401 Unauthorized")
    result = await _combine_all_six(outcomes)
    assert result.aqi == 59
    assert result.discrepancy.strategy is Strategy.WEIGHTED_AVERAGE
    assert result.confidence is Confidence.CONFLICTING
    assert result.sources["microsoft"] is False


@pytest.mark.asyncio
async def test_high_confidence_needs_five_of_six_successes() -> None:
    outcomes = {sid: make_reading(sid, 50) for sid in SOURCE_IDS}
    outcomes["microsoft"] = ProviderUnavailable("microsoft", "timeout")
    assert (await _combine_all_six(outcomes)).confidence is Confidence.HIGH

    outcomes["purpleair"] = ProviderUnavailable("purpleair", "no valid sensors found in the area")
    assert (await _combine_all_six(outcomes)).confidence is Confidence.MEDIUM
