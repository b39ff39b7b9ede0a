"""
Delivery Fee service: fee calculation from weather data and fee rule
management.
"""

from typing import List, Optional

from fastapi import Query, Response

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import NotFoundError

from .fees.defaults import seed_default_rules
from .fees.models import (
    DeliveryFeeResponse, FeeRuleRequest, FeeRuleResponse, WeatherObservationResponse
)
from .persistence import create_stores
from .services.delivery_fee import DeliveryFeeService, parse_engine
from .services.fee_rules import FeeRuleService
from .weather.importer import WeatherImporter


class DeliveryFeeApplication(BaseService):
    """Delivery Fee service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None, rule_store=None, weather_store=None):
        super().__init__("deliveryfee", 8080, config=config)

        if rule_store is None or weather_store is None:
            default_rules, default_weather = create_stores(
                self.config.storage_backend, self.config.postgres_dsn
            )
            rule_store = rule_store if rule_store is not None else default_rules
            weather_store = weather_store if weather_store is not None else default_weather
        self.rule_store = rule_store
        self.weather_store = weather_store

        self.delivery_fees = DeliveryFeeService(
            self.rule_store,
            self.weather_store,
            default_engine=parse_engine(self.config.fee_engine),
            metrics=self.metrics,
        )
        self.fee_rules = FeeRuleService(self.rule_store)
        self.importer = WeatherImporter(
            self.weather_store,
            self.config.weather_feed_url,
            interval_seconds=self.config.weather_import_interval_seconds,
            timeout_seconds=self.config.weather_fetch_timeout_seconds,
            metrics=self.metrics,
        )

        self._setup_deliveryfee_routes()

    def _setup_deliveryfee_routes(self):
        """Set up delivery fee specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "deliveryfee",
                "message": "Food delivery fee calculation service",
                "version": "1.0.0",
                "capabilities": ["static_engine", "rule_engine", "weather_import"]
            }

        @self.app.get("/api/deliveryfee", response_model=DeliveryFeeResponse)
        async def get_delivery_fee(
            city: str = Query(..., description="Tallinn, Tartu or Pärnu"),
            vehicle_type: str = Query(..., alias="vehicleType", description="Car, Scooter or Bike"),
            date_time: Optional[str] = Query(None, alias="dateTime", description="ISO-8601, UTC when naive"),
            engine: Optional[str] = Query(None, description="static or rules")
        ):
            """Calculate the delivery fee for a city and vehicle type."""
            result = await self.delivery_fees.get_delivery_fee(city, vehicle_type, date_time, engine)
            return DeliveryFeeResponse(
                city=result.city,
                vehicle_type=result.vehicle_type,
                fee=float(result.fee),
                engine=result.engine.value,
                observed_at=result.observation.timestamp,
            )

        @self.app.post("/api/feerules", response_model=FeeRuleResponse, status_code=201)
        async def create_fee_rule(request: FeeRuleRequest):
            """Create a new fee rule."""
            rule = await self.fee_rules.create_fee_rule(request.to_rule())
            return FeeRuleResponse.from_rule(rule)

        @self.app.get("/api/feerules", response_model=List[FeeRuleResponse])
        async def get_fee_rules():
            """Get all fee rules in store order."""
            rules = await self.fee_rules.get_all_fee_rules()
            return [FeeRuleResponse.from_rule(rule) for rule in rules]

        @self.app.get("/api/feerules/{rule_id}", response_model=FeeRuleResponse)
        async def get_fee_rule(rule_id: int):
            """Get a fee rule by id."""
            rule = await self.fee_rules.get_fee_rule(rule_id)
            if rule is None:
                raise NotFoundError(f"Fee rule not found: {rule_id}")
            return FeeRuleResponse.from_rule(rule)

        @self.app.put("/api/feerules/{rule_id}", response_model=FeeRuleResponse)
        async def update_fee_rule(rule_id: int, request: FeeRuleRequest):
            """Replace an existing fee rule."""
            rule = await self.fee_rules.update_fee_rule(rule_id, request.to_rule())
            if rule is None:
                raise NotFoundError(f"Fee rule not found: {rule_id}")
            return FeeRuleResponse.from_rule(rule)

        @self.app.delete("/api/feerules/{rule_id}", status_code=204)
        async def delete_fee_rule(rule_id: int):
            """Delete a fee rule."""
            await self.fee_rules.delete_fee_rule(rule_id)
            return Response(status_code=204)

        @self.app.get("/api/weather/{city}", response_model=WeatherObservationResponse)
        async def get_latest_weather(city: str):
            """Latest observation for a city's weather station."""
            observation = await self.delivery_fees.latest_observation(city)
            return WeatherObservationResponse.from_observation(observation)

        @self.app.post("/api/weather/import")
        async def import_weather():
            """Run a weather import immediately."""
            imported = await self.importer.import_once()
            return {"imported": imported}

    async def _check_dependencies(self):
        """Check delivery fee service dependencies."""
        dependencies = {}

        for name, store in (("rule_store", self.rule_store), ("weather_store", self.weather_store)):
            try:
                dependencies[name] = "ok" if await store.health_check() else "error"
            except Exception:
                dependencies[name] = "error"

        dependencies["weather_importer"] = "running" if self.importer.running else "stopped"
        return dependencies

    async def start(self):
        """Start delivery fee service components."""
        await self.rule_store.start()
        await self.weather_store.start()

        if self.config.seed_rules:
            await seed_default_rules(self.rule_store)

        if self.config.weather_import_enabled:
            await self.importer.start()

        self.logger.info(
            "Delivery fee service started",
            storage=self.config.storage_backend,
            engine=self.config.fee_engine
        )

    async def stop(self):
        """Stop delivery fee service components."""
        await self.importer.stop()
        await self.weather_store.stop()
        await self.rule_store.stop()

        self.logger.info("Delivery fee service stopped")


def create_app(config: Optional[ServiceConfig] = None):
    """Create delivery fee service application."""
    service = DeliveryFeeApplication(config=config)
    return service.app


if __name__ == "__main__":
    service = DeliveryFeeApplication()
    service.run()
