from conftest import make_reading

from aq.fusion.messages import confidence_indicator, data_source_message, discrepancy_message
from aq.fusion.models import Category, CombinedReading, Confidence, Discrepancy, Pollutants, Strategy


def _combined(discrepancy=None) -> CombinedReading:
    return CombinedReading(
        aqi=52,
        category=Category.MODERATE,
        pollutants=Pollutants(),
        timestamp="2025-08-28T14:00:00+00:00",
        source_id="combined",
        sources={"airnow": True, "waqi": True},
        confidence=Confidence.CONFLICTING,
        raw_readings={"airnow": make_reading("airnow", 40), "waqi": make_reading("waqi", 80)},
        discrepancy=discrepancy,
    )


def test_data_source_message_lists_successful_sources() -> None:
    assert data_source_message({"airnow": True, "waqi": False, "purpleair": True}) == (
        "Data from AirNow (EPA), PurpleAir"
    )
    assert data_source_message({"airnow": False}) == "No air quality data available"
    assert data_source_message({}) == "No air quality data available"


def test_confidence_indicator() -> None:
    assert confidence_indicator(Confidence.HIGH) == "●●●●●"
    assert confidence_indicator(Confidence.LOW) == "●○○○○"


def test_discrepancy_message_by_strategy() -> None:
    assert discrepancy_message(_combined()) is None
    averaged = _combined(Discrepancy(True, 40, Strategy.AVERAGE, ""))
    assert discrepancy_message(averaged) == "Sources disagree by 40 points. Data averaged but uncertain."
    favored = _combined(Discrepancy(True, 70, Strategy.FAVOR_MAJORITY, ""))
    assert "Using preferred source" in discrepancy_message(favored)
    median = _combined(Discrepancy(True, 80, Strategy.MEDIAN, ""))
    assert "median" in discrepancy_message(median)
