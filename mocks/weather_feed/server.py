"""
Mock weather observations feed serving the Environment Agency XML format.
"""

import time
from dataclasses import dataclass
from typing import Dict, List, Optional
from xml.sax.saxutils import escape

from fastapi import FastAPI, Body, Response
from pydantic import BaseModel

from shared.logging import get_logger


@dataclass
class MockStation:
    """Mock station reading."""
    name: str
    wmocode: str = ""
    airtemperature: Optional[float] = None
    windspeed: Optional[float] = None
    phenomenon: str = ""


class StationUpdate(BaseModel):
    """Request model for overriding a station reading."""
    airtemperature: Optional[float] = None
    windspeed: Optional[float] = None
    phenomenon: str = ""


class MockWeatherFeedServer:
    """Mock weather feed implementation."""

    def __init__(self, port: int = 8091):
        self.port = port
        self.logger = get_logger("mock.weather_feed")
        self.app = FastAPI(title="Mock Weather Feed", version="1.0.0")
        self.stations: Dict[str, MockStation] = {}
        self.timestamp: Optional[int] = None

        self._create_default_stations()
        self._setup_routes()

    def _create_default_stations(self):
        """Create default stations, including one that is not tracked."""
        for station in [
            MockStation("Tallinn-Harku", "26038", -2.1, 4.5, "Light snow shower"),
            MockStation("Tartu-Tõravere", "26242", 1.4, 11.0, "Overcast"),
            MockStation("Pärnu", "41803", 3.0, 6.2, "Light rain"),
            MockStation("Kuressaare linn", "", 2.5, 5.0, ""),
        ]:
            self.stations[station.name] = station

    def render(self) -> str:
        """Render the observations document."""
        timestamp = self.timestamp if self.timestamp is not None else int(time.time())
        parts: List[str] = [f'<observations timestamp="{timestamp}">']
        for station in self.stations.values():
            parts.append(
                "<station>"
                f"<name>{escape(station.name)}</name>"
                f"<wmocode>{escape(station.wmocode)}</wmocode>"
                f"<airtemperature>{_number(station.airtemperature)}</airtemperature>"
                f"<windspeed>{_number(station.windspeed)}</windspeed>"
                f"<phenomenon>{escape(station.phenomenon)}</phenomenon>"
                "</station>"
            )
        parts.append("</observations>")
        return "".join(parts)

    def _setup_routes(self):
        """Set up mock routes."""

        @self.app.get("/ilma_andmed/xml/observations.php")
        async def observations():
            return Response(content=self.render(), media_type="application/xml")

        @self.app.put("/stations/{name}")
        async def update_station(name: str, update: StationUpdate = Body(...)):
            station = self.stations.setdefault(name, MockStation(name))
            station.airtemperature = update.airtemperature
            station.windspeed = update.windspeed
            station.phenomenon = update.phenomenon
            self.logger.info("Station updated", station=name)
            return {"success": True}

        @self.app.put("/timestamp/{timestamp}")
        async def pin_timestamp(timestamp: int):
            self.timestamp = timestamp
            return {"timestamp": timestamp}


def _number(value: Optional[float]) -> str:
    return "" if value is None else str(value)


def create_app():
    """Create mock weather feed application."""
    server = MockWeatherFeedServer()
    return server.app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8091)
