"""
Delivery fee orchestration: resolves the weather observation for a
request and delegates to the selected fee engine.
"""

from contextlib import nullcontext
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Union

from shared.errors import NotFoundError, ServiceException, UpstreamError, ValidationError
from shared.logging import get_logger
from ..fees.dynamic import RuleFeeCalculator
from ..fees.engine import FeeEngine, StaticFeeCalculator
from ..fees.models import City, VehicleType, WeatherObservation


@dataclass(frozen=True)
class DeliveryFeeResult:
    """Outcome of a delivery fee query."""
    city: City
    vehicle_type: VehicleType
    fee: Decimal
    engine: FeeEngine
    observation: WeatherObservation


def parse_date_time(value: str) -> int:
    """Parse an ISO-8601 date/time into epoch seconds; naive values are UTC."""
    try:
        moment = datetime.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"Invalid dateTime: {value}", details={"dateTime": value})

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp())


def parse_engine(value: Union[str, FeeEngine]) -> FeeEngine:
    if isinstance(value, FeeEngine):
        return value
    try:
        return FeeEngine(value.strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown fee engine: {value}", details={"engine": value})


class DeliveryFeeService:
    """Computes delivery fees from stored weather data and fee rules."""

    def __init__(self, rule_store, weather_store, default_engine: FeeEngine = FeeEngine.RULES, metrics=None):
        self.rule_store = rule_store
        self.weather_store = weather_store
        self.default_engine = default_engine
        self.metrics = metrics
        self.static_calculator = StaticFeeCalculator()
        self.rule_calculator = RuleFeeCalculator()
        self.logger = get_logger("deliveryfee.service")

    async def get_delivery_fee(
        self,
        city: str,
        vehicle_type: str,
        date_time: Optional[str] = None,
        engine: Optional[str] = None,
    ) -> DeliveryFeeResult:
        """
        Calculate the delivery fee for a city and vehicle type.

        Uses the latest observation for the city's station, or the latest
        one taken at or before ``date_time`` when given.

        Raises:
            ValidationError: unknown city, vehicle type, engine or bad dateTime.
            NotFoundError: no observation is available for the station.
            ForbiddenUsageError: the weather forbids the vehicle type.
            UpstreamError: the rule or weather store failed.
        """
        parsed_city = City.parse(city)
        parsed_vehicle = VehicleType.parse(vehicle_type)
        selected_engine = parse_engine(engine) if engine else self.default_engine
        timestamp = parse_date_time(date_time) if date_time else None

        try:
            observation = await self._find_observation(parsed_city, timestamp)
            if observation is None:
                raise NotFoundError(
                    f"No weather data found for city: {parsed_city.value}",
                    details={"station": parsed_city.station_name, "timestamp": timestamp}
                )

            with self._timed(selected_engine):
                fee = await self._calculate(selected_engine, parsed_city, parsed_vehicle, observation)
        except ServiceException as e:
            self._record(selected_engine, e.code.lower())
            raise
        except Exception as e:
            self.logger.error("Delivery fee calculation failed", error=str(e))
            self._record(selected_engine, "upstream_error")
            raise UpstreamError(str(e))

        self._record(selected_engine, "ok")
        self.logger.info(
            "Delivery fee calculated",
            city=parsed_city.value,
            vehicle_type=parsed_vehicle.value,
            engine=selected_engine.value,
            fee=str(fee),
            observed_at=observation.timestamp
        )

        return DeliveryFeeResult(
            city=parsed_city,
            vehicle_type=parsed_vehicle,
            fee=fee,
            engine=selected_engine,
            observation=observation,
        )

    async def latest_observation(self, city: str) -> WeatherObservation:
        """Latest stored observation for a city's station."""
        parsed_city = City.parse(city)
        observation = await self._find_observation(parsed_city, None)
        if observation is None:
            raise NotFoundError(f"No weather data found for city: {parsed_city.value}")
        return observation

    async def _find_observation(self, city: City, timestamp: Optional[int]) -> Optional[WeatherObservation]:
        if timestamp is None:
            return await self.weather_store.latest(city.station_name)
        return await self.weather_store.latest_at_or_before(city.station_name, timestamp)

    async def _calculate(
        self,
        engine: FeeEngine,
        city: City,
        vehicle_type: VehicleType,
        observation: WeatherObservation,
    ) -> Decimal:
        if engine == FeeEngine.STATIC:
            return self.static_calculator.calculate(city, vehicle_type, observation)

        rules = await self.rule_store.all()
        return self.rule_calculator.calculate(city, vehicle_type, observation, rules)

    def _timed(self, engine: FeeEngine):
        if self.metrics is None:
            return nullcontext()
        return self.metrics.time_fee_calculation(engine.value)

    def _record(self, engine: FeeEngine, outcome: str):
        if self.metrics is not None:
            self.metrics.record_fee_calculation(engine.value, outcome)

