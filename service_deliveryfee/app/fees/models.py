"""
Fee rule and weather data models for the Delivery Fee service.
"""

from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from shared.errors import ValidationError


class City(str, Enum):
    """Supported delivery cities."""
    TALLINN = "TALLINN"
    TARTU = "TARTU"
    PARNU = "PÄRNU"

    @property
    def station_name(self) -> str:
        """Weather station observing this city."""
        return CITY_STATIONS[self]

    @classmethod
    def parse(cls, token: str) -> "City":
        """Parse a city token case-insensitively."""
        normalized = (token or "").strip().upper()
        if normalized == "PARNU":
            return cls.PARNU
        try:
            return cls(normalized)
        except ValueError:
            raise ValidationError(
                f"Invalid city or vehicle type. Unknown city: {token}",
                details={"city": token}
            )


class VehicleType(str, Enum):
    """Supported courier vehicle types."""
    CAR = "CAR"
    SCOOTER = "SCOOTER"
    BIKE = "BIKE"

    @classmethod
    def parse(cls, token: str) -> "VehicleType":
        """Parse a vehicle type token case-insensitively."""
        try:
            return cls((token or "").strip().upper())
        except ValueError:
            raise ValidationError(
                f"Invalid city or vehicle type. Unknown vehicle type: {token}",
                details={"vehicle_type": token}
            )


class RuleType(str, Enum):
    """Kinds of fee rules."""
    BASE_FEE = "BASE_FEE"
    AIR_TEMP = "AIR_TEMP"
    WIND_SPEED = "WIND_SPEED"
    PHENOMENON = "PHENOMENON"


CITY_STATIONS: Dict[City, str] = {
    City.TALLINN: "Tallinn-Harku",
    City.TARTU: "Tartu-Tõravere",
    City.PARNU: "Pärnu",
}

TRACKED_STATIONS = frozenset(CITY_STATIONS.values())

FEE_PRECISION = Decimal("0.01")
MAX_FEE = Decimal("100000000")

# Condition buckets
TEMP_BELOW_MINUS_10 = "< -10"
TEMP_MINUS_10_TO_0 = "[-10,0)"
WIND_10_TO_20 = "[10,20]"
PHENOMENON_SNOW_SLEET = "snow/sleet"
PHENOMENON_RAIN = "rain"
PHENOMENON_FORBIDDEN = "glaze/hail/thunder"

RULE_CONDITIONS: Dict[RuleType, List[str]] = {
    RuleType.BASE_FEE: [],
    RuleType.AIR_TEMP: [TEMP_BELOW_MINUS_10, TEMP_MINUS_10_TO_0],
    RuleType.WIND_SPEED: [WIND_10_TO_20],
    RuleType.PHENOMENON: [PHENOMENON_SNOW_SLEET, PHENOMENON_RAIN, PHENOMENON_FORBIDDEN],
}


@dataclass(frozen=True)
class WeatherObservation:
    """A single weather station observation."""
    station_name: str
    timestamp: int
    air_temperature: Optional[float] = None
    wind_speed: Optional[float] = None
    weather_phenomenon: Optional[str] = None
    wmo_code: Optional[str] = None
    id: Optional[int] = None


@dataclass
class FeeRule:
    """Pricing rule used by the rule-driven fee engine."""
    rule_type: RuleType
    vehicle_type: VehicleType
    fee: Decimal
    city: Optional[City] = None
    condition: Optional[str] = None
    id: Optional[int] = None

    def with_id(self, rule_id: int) -> "FeeRule":
        """Return a copy of the rule carrying a store-assigned id."""
        return replace(self, id=rule_id)

    def validate(self) -> None:
        """Check the rule is well formed for its kind."""
        if self.fee < 0:
            raise ValidationError("Fee must not be negative", details={"fee": str(self.fee)})
        # Stored as NUMERIC(10, 2)
        if self.fee >= MAX_FEE or self.fee != self.fee.quantize(FEE_PRECISION):
            raise ValidationError(
                "Fee must have at most 2 decimal places and be below 100000000",
                details={"fee": str(self.fee)}
            )

        if self.rule_type == RuleType.BASE_FEE:
            if self.city is None:
                raise ValidationError("Base fee rules require a city")
            if self.condition is not None:
                raise ValidationError("Base fee rules take no condition")
            return

        allowed = RULE_CONDITIONS[self.rule_type]
        if self.condition not in allowed:
            raise ValidationError(
                f"Invalid condition for {self.rule_type.value}: {self.condition}",
                details={"allowed": allowed}
            )


class FeeRuleRequest(BaseModel):
    """Request model for creating or replacing a fee rule."""
    rule_type: RuleType = Field(..., alias="ruleType", description="Rule kind")
    city: Optional[str] = Field(None, description="City, only for base fees")
    vehicle_type: str = Field(..., alias="vehicleType", description="Vehicle type")
    condition: Optional[str] = Field(None, description="Condition bucket")
    fee: Decimal = Field(..., description="Fee amount")

    model_config = {"populate_by_name": True}

    @field_validator("city", "condition")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value

    def to_rule(self) -> FeeRule:
        """Convert into a domain rule."""
        rule = FeeRule(
            rule_type=self.rule_type,
            city=City.parse(self.city) if self.city else None,
            vehicle_type=VehicleType.parse(self.vehicle_type),
            condition=self.condition,
            fee=self.fee,
        )
        rule.validate()
        return rule


class FeeRuleResponse(BaseModel):
    """Response model for fee rule operations."""
    id: int
    rule_type: RuleType = Field(..., alias="ruleType")
    city: Optional[City]
    vehicle_type: VehicleType = Field(..., alias="vehicleType")
    condition: Optional[str]
    fee: float

    model_config = {"populate_by_name": True}

    @classmethod
    def from_rule(cls, rule: FeeRule) -> "FeeRuleResponse":
        return cls(
            id=rule.id,
            rule_type=rule.rule_type,
            city=rule.city,
            vehicle_type=rule.vehicle_type,
            condition=rule.condition,
            fee=float(rule.fee),
        )


class WeatherObservationResponse(BaseModel):
    """Response model for a stored weather observation."""
    station_name: str = Field(..., alias="stationName")
    wmo_code: Optional[str] = Field(None, alias="wmoCode")
    air_temperature: Optional[float] = Field(None, alias="airTemperature")
    wind_speed: Optional[float] = Field(None, alias="windSpeed")
    weather_phenomenon: Optional[str] = Field(None, alias="weatherPhenomenon")
    timestamp: int

    model_config = {"populate_by_name": True}

    @classmethod
    def from_observation(cls, observation: WeatherObservation) -> "WeatherObservationResponse":
        return cls(
            station_name=observation.station_name,
            wmo_code=observation.wmo_code,
            air_temperature=observation.air_temperature,
            wind_speed=observation.wind_speed,
            weather_phenomenon=observation.weather_phenomenon,
            timestamp=observation.timestamp,
        )


class DeliveryFeeResponse(BaseModel):
    """Response model for a delivery fee query."""
    city: City
    vehicle_type: VehicleType = Field(..., alias="vehicleType")
    fee: float
    engine: str
    observed_at: int = Field(..., alias="observedAt")

    model_config = {"populate_by_name": True}
