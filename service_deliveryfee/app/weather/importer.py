"""
Periodic import of weather observations from the Estonian Environment
Agency XML feed.
"""

import asyncio
import xml.etree.ElementTree as ET
from typing import List, Optional

import httpx

from shared.logging import get_logger
from ..fees.models import TRACKED_STATIONS, WeatherObservation


def _text(station: ET.Element, tag: str) -> str:
    element = station.find(tag)
    if element is None or element.text is None:
        return ""
    return element.text.strip()


def _float_or_none(value: str) -> Optional[float]:
    return float(value) if value else None


def parse_observations(xml_text: str) -> List[WeatherObservation]:
    """
    Parse an observations document into weather observations.

    The document root carries a ``timestamp`` attribute in epoch seconds;
    each ``station`` element carries name, wmocode, airtemperature,
    windspeed and phenomenon. Only tracked stations are returned.

    Raises:
        ET.ParseError: the document is not well-formed XML.
        ValueError: the timestamp or a numeric value cannot be parsed.
    """
    root = ET.fromstring(xml_text)
    timestamp = int(root.get("timestamp", ""))

    observations = []
    for station in root.iter("station"):
        name = _text(station, "name")
        if name not in TRACKED_STATIONS:
            continue

        observations.append(WeatherObservation(
            station_name=name,
            wmo_code=_text(station, "wmocode") or None,
            air_temperature=_float_or_none(_text(station, "airtemperature")),
            wind_speed=_float_or_none(_text(station, "windspeed")),
            weather_phenomenon=_text(station, "phenomenon") or None,
            timestamp=timestamp,
        ))

    return observations


class WeatherImporter:
    """Fetches the weather feed on a fixed interval and stores observations."""

    def __init__(
        self,
        weather_store,
        feed_url: str,
        interval_seconds: int = 900,
        timeout_seconds: float = 10.0,
        metrics=None,
    ):
        self.weather_store = weather_store
        self.feed_url = feed_url
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds
        self.metrics = metrics
        self.logger = get_logger("deliveryfee.weather_importer")

        self.import_task: Optional[asyncio.Task] = None
        self.running = False

    async def start(self):
        """Start the import loop."""
        self.running = True
        self.import_task = asyncio.create_task(self._import_loop())
        self.logger.info("Weather importer started", interval=self.interval_seconds, url=self.feed_url)

    async def stop(self):
        """Stop the import loop."""
        self.running = False
        if self.import_task:
            self.import_task.cancel()
            try:
                await self.import_task
            except asyncio.CancelledError:
                pass
            self.import_task = None

        self.logger.info("Weather importer stopped")

    async def fetch(self) -> str:
        """Download the raw observations document."""
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            response = await client.get(self.feed_url)
            response.raise_for_status()
            return response.text

    async def import_once(self) -> int:
        """
        Run a single import. Returns the number of observations stored.

        Fetch, parse and store failures are logged and absorbed; the next
        scheduled run tries again. Observations stored before a store
        failure stay stored and are counted.
        """
        stored = 0
        try:
            xml_text = await self.fetch()
            observations = parse_observations(xml_text)
            for observation in observations:
                await self.weather_store.add(observation)
                stored += 1
        except Exception as e:
            self.logger.error("Weather import failed", url=self.feed_url, stored=stored, error=str(e))
            self._record("error", stored)
            return stored

        self.logger.info("Weather data imported", stations=stored)
        self._record("ok", stored)
        return stored

    async def _import_loop(self):
        """Main import loop."""
        while self.running:
            try:
                await self.import_once()
                await asyncio.sleep(self.interval_seconds)
            except asyncio.CancelledError:
                break

    def _record(self, status: str, observations: int = 0):
        if self.metrics is not None:
            self.metrics.record_weather_import(status, observations)
