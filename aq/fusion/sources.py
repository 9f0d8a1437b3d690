"""Connectors for the air quality providers.

This module defines an abstract base class :class:`Source` that describes the
common interface for all provider adapters.  Each concrete implementation
knows how to request the current conditions for a coordinate and parse the
vendor's response into a canonical :class:`~aq.fusion.models.Reading`.

Adapters never return placeholders: any failure raises
:class:`~aq.fusion.errors.ProviderUnavailable` (or
:class:`~aq.fusion.errors.ConfigurationMissing` when no API key is set), and
any field the vendor does not supply is reported as ``-1``.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Type

import httpx
import pandas as pd
import structlog

from .config import Settings
from .errors import ConfigurationMissing, ProviderUnavailable
from .models import Category, Pollutants, Reading
from .normalize import (
    build_pollutants,
    canonical_aqi,
    category_for_aqi,
    category_from_label,
    concentration_to_aqi,
    epa_corrected_pm25,
    normalize_timestamp,
    sentinel,
    tier_to_aqi,
)


logger = structlog.get_logger(__name__)


class Source(ABC):
    """Abstract base class for all provider adapters."""

    name: str
    base_url: str

    def __init__(self, api_key: Optional[str] = None) -> None:
        self.api_key = api_key

    async def fetch_reading(self, client: httpx.AsyncClient, lat: float, lon: float) -> Reading:
        """Fetch and parse the current reading for a coordinate."""
        if not self.api_key:
            raise ConfigurationMissing(self.name, "API key not configured")
        payload = await self.request(client, lat, lon)
        try:
            return self.parse(payload, lat, lon)
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise ProviderUnavailable(self.name, f"unexpected response shape: {exc!r}") from exc

    @abstractmethod
    async def request(self, client: httpx.AsyncClient, lat: float, lon: float) -> Any:
        """Issue the vendor request and return the decoded JSON body."""

    @abstractmethod
    def parse(self, payload: Any, lat: float, lon: float) -> Reading:
        """Convert a decoded vendor body into a canonical reading."""

    async def _get_json(self, client: httpx.AsyncClient, method: str, url: str, **kwargs: Any) -> Any:
        """Helper to send a request and decode its JSON body."""
        logger.debug("source_request", source=self.name, url=url)
        try:
            resp = await client.request(method, url, **kwargs)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            raise ProviderUnavailable(
                self.name, f"HTTP {exc.response.status_code} {exc.response.reason_phrase}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderUnavailable(self.name, f"request failed: {exc!r}") from exc
        except ValueError as exc:
            raise ProviderUnavailable(self.name, "response body is not valid JSON") from exc

    def _reading(self, aqi: float, pollutants: Pollutants, timestamp: Any = None, category: Category = Category.UNKNOWN) -> Reading:
        if category is Category.UNKNOWN or aqi < 0:
            category = category_for_aqi(aqi)
        return Reading(
            aqi=aqi,
            category=category,
            pollutants=pollutants,
            timestamp=normalize_timestamp(timestamp),
            source_id=self.name,
        )


class AirNowSource(Source):
    """Connector for the EPA AirNow current observations feed.

    AirNow reports one observation per parameter (PM2.5, PM10, OZONE), each
    with its own AQI.  The overall AQI is the highest of them.  AirNow does
    not publish concentrations, so all pollutant fields are ``-1``.
    """

    name = "airnow"
    base_url = "https://www.airnowapi.org/aq/observation/latLong/current/"

    async def request(self, client: httpx.AsyncClient, lat: float, lon: float) -> Any:
        params = {
            "format": "application/json",
            "latitude": lat,
            "longitude": lon,
            "distance": 50,
            "API_KEY": self.api_key,
        }
        return await self._get_json(client, "GET", self.base_url, params=params)

    def parse(self, payload: Any, lat: float, lon: float) -> Reading:
        if not isinstance(payload, list):
            raise ProviderUnavailable(self.name, f"unexpected response body: {payload!r}")
        if not payload:
            raise ProviderUnavailable(self.name, "no observations near coordinate")
        values = [canonical_aqi(obs.get("AQI")) for obs in payload]
        aqi = max(values)
        worst = payload[values.index(aqi)]
        label = (worst.get("Category") or {}).get("Name")
        return self._reading(aqi, Pollutants(), category=category_from_label(label))


class GoogleSource(Source):
    """Connector for the Google Air Quality current conditions API.

    The local US EPA index is requested through ``LOCAL_AQI``; the universal
    index uses an inverted 0-100 scale and only contributes a category.
    """

    name = "google"
    base_url = "https://airquality.googleapis.com/v1/currentConditions:lookup"

    async def request(self, client: httpx.AsyncClient, lat: float, lon: float) -> Any:
        body = {
            "universalAqi": True,
            "location": {"latitude": lat, "longitude": lon},
            "extraComputations": ["POLLUTANT_CONCENTRATION", "LOCAL_AQI"],
            "languageCode": "en",
        }
        return await self._get_json(client, "POST", self.base_url, params={"key": self.api_key}, json=body)

    def parse(self, payload: Any, lat: float, lon: float) -> Reading:
        indexes = {idx.get("code"): idx for idx in payload.get("indexes") or []}
        if not indexes:
            raise ProviderUnavailable(self.name, "no AQI index in response")
        epa = indexes.get("usa_epa")
        label_source = epa or indexes.get("uaqi") or next(iter(indexes.values()))
        aqi = canonical_aqi(epa.get("aqi")) if epa else -1
        values: Dict[str, Any] = {}
        units: Dict[str, str] = {}
        for pollutant in payload.get("pollutants") or []:
            code = pollutant.get("code")
            conc = pollutant.get("concentration") or {}
            values[code] = conc.get("value")
            units[code] = conc.get("units")
        return self._reading(
            aqi,
            build_pollutants(values, units),
            timestamp=payload.get("dateTime"),
            category=category_from_label(label_source.get("category")),
        )


class OpenWeatherSource(Source):
    """Connector for the OpenWeatherMap air pollution API (1-5 tier scale)."""

    name = "openweather"
    base_url = "https://api.openweathermap.org/data/2.5/air_pollution"

    async def request(self, client: httpx.AsyncClient, lat: float, lon: float) -> Any:
        params = {"lat": lat, "lon": lon, "appid": self.api_key}
        return await self._get_json(client, "GET", self.base_url, params=params)

    def parse(self, payload: Any, lat: float, lon: float) -> Reading:
        entries = payload.get("list") or []
        if not entries:
            raise ProviderUnavailable(self.name, "no air pollution data in response")
        current = entries[0]
        components = current.get("components") or {}
        return self._reading(
            tier_to_aqi(current["main"]["aqi"]),
            build_pollutants(components),
            timestamp=current.get("dt"),
        )


class WaqiSource(Source):
    """Connector for the World Air Quality Index geo feed.

    WAQI publishes per-pollutant sub-indices rather than concentrations, so
    only the overall AQI is taken from it.
    """

    name = "waqi"
    base_url = "https://api.waqi.info/feed/geo:{lat};{lon}/"

    async def request(self, client: httpx.AsyncClient, lat: float, lon: float) -> Any:
        url = self.base_url.format(lat=lat, lon=lon)
        return await self._get_json(client, "GET", url, params={"token": self.api_key})

    def parse(self, payload: Any, lat: float, lon: float) -> Reading:
        if payload.get("status") != "ok":
            raise ProviderUnavailable(self.name, f"status {payload.get('status')!r}: {payload.get('data')}")
        data = payload.get("data") or {}
        if data.get("aqi") is None:
            raise ProviderUnavailable(self.name, "no AQI in response")
        return self._reading(
            canonical_aqi(data["aqi"]),
            Pollutants(),
            timestamp=(data.get("time") or {}).get("iso"),
        )


class PurpleAirSource(Source):
    """Connector for the PurpleAir sensor network.

    Outdoor sensors within roughly 0.1 degrees are filtered for uptime and
    signal quality, the three closest are averaged after the EPA humidity
    correction, and the AQI is the higher of the PM2.5 and PM10 sub-indices.
    """

    name = "purpleair"
    base_url = "https://api.purpleair.com/v1/sensors"
    fields = (
        "sensor_index",
        "latitude",
        "longitude",
        "pm2.5",
        "pm10.0",
        "humidity",
        "uptime",
        "rssi",
    )
    box = 0.1
    nearest = 3

    async def request(self, client: httpx.AsyncClient, lat: float, lon: float) -> Any:
        params = {
            "fields": ",".join(self.fields),
            "location_type": 0,
            "max_age": 3600,
            "nwlat": lat + self.box,
            "nwlng": lon - self.box,
            "selat": lat - self.box,
            "selng": lon + self.box,
        }
        return await self._get_json(
            client, "GET", self.base_url, params=params, headers={"X-API-Key": self.api_key}
        )

    def parse(self, payload: Any, lat: float, lon: float) -> Reading:
        rows = payload.get("data") or []
        if not rows:
            raise ProviderUnavailable(self.name, "no sensors found in the area")
        df = pd.DataFrame(rows, columns=payload["fields"])
        for column in ("pm2.5", "pm10.0", "humidity", "uptime", "rssi"):
            if column not in df.columns:
                df[column] = float("nan")
            df[column] = pd.to_numeric(df[column], errors="coerce")
        valid = df[(df["uptime"] > 0) & (df["pm2.5"] >= 0) & (df["rssi"] > -95)].copy()
        logger.debug("purpleair_sensors", total=len(df), valid=len(valid))
        if valid.empty:
            raise ProviderUnavailable(self.name, "no valid sensors found in the area")
        valid["distance"] = ((valid["latitude"] - lat) ** 2 + (valid["longitude"] - lon) ** 2) ** 0.5
        closest = valid.nsmallest(self.nearest, "distance")
        pm25 = closest.apply(
            lambda row: epa_corrected_pm25(row["pm2.5"], row["humidity"]) if row["humidity"] > 0 else row["pm2.5"],
            axis=1,
        ).mean()
        # Sensors without a PM10 channel are skipped, not counted as zero.
        pm10 = sentinel(closest["pm10.0"].mean())
        aqi = concentration_to_aqi("pm25", pm25)
        if pm10 >= 0:
            aqi = max(aqi, concentration_to_aqi("pm10", pm10))
        return self._reading(
            aqi,
            build_pollutants({"pm25": pm25, "pm10": pm10}),
            timestamp=payload.get("data_time_stamp"),
        )


class MicrosoftSource(Source):
    """Connector for the Azure Maps current air quality API."""

    name = "microsoft"
    base_url = "https://atlas.microsoft.com/weather/airQuality/current/json"

    async def request(self, client: httpx.AsyncClient, lat: float, lon: float) -> Any:
        params = {
            "api-version": "1.1",
            "query": f"{lat},{lon}",
            "pollutants": "true",
            "subscription-key": self.api_key,
        }
        return await self._get_json(client, "GET", self.base_url, params=params)

    def parse(self, payload: Any, lat: float, lon: float) -> Reading:
        results = payload.get("results") or []
        if not results:
            raise ProviderUnavailable(self.name, "no air quality results in response")
        current = results[0]
        index = current.get("globalIndex")
        if sentinel(index) < 0:
            index = current.get("index")
        values: Dict[str, Any] = {}
        units: Dict[str, str] = {}
        for pollutant in current.get("pollutants") or []:
            code = pollutant.get("type")
            conc = pollutant.get("concentration") or {}
            values[code] = conc.get("value")
            units[code] = conc.get("unit")
        return self._reading(
            canonical_aqi(index),
            build_pollutants(values, units),
            timestamp=current.get("dateTime"),
            category=category_from_label(current.get("category")),
        )


SOURCE_CLASSES: Dict[str, Type[Source]] = {
    cls.name: cls
    for cls in (
        AirNowSource,
        GoogleSource,
        OpenWeatherSource,
        WaqiSource,
        PurpleAirSource,
        MicrosoftSource,
    )
}


def get_source(source_id: str, settings: Settings) -> Source:
    """Instantiate the adapter for ``source_id`` with its configured key."""
    try:
        cls = SOURCE_CLASSES[source_id]
    except KeyError:
        raise ConfigurationMissing(source_id, "no adapter registered for this source") from None
    return cls(api_key=settings.api_key(source_id))


def get_sources(settings: Settings) -> List[Source]:
    """Instantiate and return all enabled sources.

    Additional providers can be added by registering a new connector class in
    :data:`SOURCE_CLASSES` and enabling it in the settings.
    """
    return [get_source(sid, settings) for sid in settings.enabled_sources]


async def fetch_reading(
    source_id: str,
    lat: float,
    lon: float,
    *,
    client: httpx.AsyncClient,
    settings: Settings,
) -> Reading:
    """Fetch one provider's current reading; raises on any failure."""
    return await get_source(source_id, settings).fetch_reading(client, lat, lon)
