from typing import Dict, Union

import pytest
import structlog

from aq.fusion.models import Pollutants, Reading
from aq.fusion.normalize import category_for_aqi


@pytest.fixture(autouse=True)
def _reset_structlog():
    """CLI tests configure structlog onto a stream the runner closes afterwards."""
    yield
    structlog.reset_defaults()


def make_reading(source_id: str, aqi: float, **pollutants: float) -> Reading:
    return Reading(
        aqi=aqi,
        category=category_for_aqi(aqi),
        pollutants=Pollutants(**pollutants),
        timestamp="2025-08-28T14:00:00+00:00",
        source_id=source_id,
    )


def fake_fetcher(outcomes: Dict[str, Union[Reading, Exception]]):
    """Adapter stand-in: returns the reading or raises the exception given per source."""

    async def fetch(source_id: str, lat: float, lon: float) -> Reading:
        outcome = outcomes[source_id]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    return fetch
