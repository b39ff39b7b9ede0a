"""
Static fee calculation engine for the Delivery Fee service.

The base fee table and weather surcharges are fixed in code. The
rule-driven variant in ``dynamic`` prices the same terms from stored
fee rules.
"""

from decimal import Decimal
from enum import Enum
from typing import Dict, Optional

from shared.errors import ForbiddenUsageError
from .models import City, VehicleType, WeatherObservation

ZERO = Decimal("0.0")

FORBIDDEN_PHENOMENA = ("glaze", "hail", "thunder")
SNOW_PHENOMENA = ("snow", "sleet")
RAIN_PHENOMENA = ("rain",)

REGIONAL_BASE_FEES: Dict[City, Dict[VehicleType, Decimal]] = {
    City.TALLINN: {
        VehicleType.CAR: Decimal("4.0"),
        VehicleType.SCOOTER: Decimal("3.5"),
        VehicleType.BIKE: Decimal("3.0"),
    },
    City.TARTU: {
        VehicleType.CAR: Decimal("3.5"),
        VehicleType.SCOOTER: Decimal("3.0"),
        VehicleType.BIKE: Decimal("2.5"),
    },
    City.PARNU: {
        VehicleType.CAR: Decimal("3.0"),
        VehicleType.SCOOTER: Decimal("2.5"),
        VehicleType.BIKE: Decimal("2.0"),
    },
}

WEATHER_SENSITIVE_VEHICLES = (VehicleType.SCOOTER, VehicleType.BIKE)


class FeeEngine(str, Enum):
    """Available fee calculation variants."""
    STATIC = "static"
    RULES = "rules"


class PhenomenonClass(str, Enum):
    """Classification of a free-text weather phenomenon."""
    FORBIDDEN = "forbidden"
    SNOW_OR_SLEET = "snow_or_sleet"
    RAIN = "rain"
    NONE = "none"


def classify_phenomenon(phenomenon: Optional[str]) -> PhenomenonClass:
    """Classify a phenomenon description, forbidden conditions first."""
    if not phenomenon:
        return PhenomenonClass.NONE

    text = phenomenon.lower()
    if any(word in text for word in FORBIDDEN_PHENOMENA):
        return PhenomenonClass.FORBIDDEN
    if any(word in text for word in SNOW_PHENOMENA):
        return PhenomenonClass.SNOW_OR_SLEET
    if any(word in text for word in RAIN_PHENOMENA):
        return PhenomenonClass.RAIN
    return PhenomenonClass.NONE


class StaticFeeCalculator:
    """Fee calculator with the regional base fees and surcharges fixed in code."""

    engine = FeeEngine.STATIC

    def __init__(self, base_fees: Optional[Dict[City, Dict[VehicleType, Decimal]]] = None):
        self.base_fees = base_fees if base_fees is not None else REGIONAL_BASE_FEES

    def calculate(self, city: City, vehicle_type: VehicleType, observation: WeatherObservation) -> Decimal:
        """
        Calculate the delivery fee for a city, vehicle type and observation.

        The fee is the sum of the regional base fee and the air temperature,
        wind speed and weather phenomenon surcharges.

        Raises:
            ForbiddenUsageError: wind speed or phenomenon forbids the vehicle.
        """
        regional_fee = self.regional_base_fee(city, vehicle_type)
        air_temperature_fee = self.air_temperature_fee(vehicle_type, observation)
        wind_speed_fee = self.wind_speed_fee(vehicle_type, observation)
        phenomenon_fee = self.phenomenon_fee(vehicle_type, observation)

        return regional_fee + air_temperature_fee + wind_speed_fee + phenomenon_fee

    def regional_base_fee(self, city: City, vehicle_type: VehicleType) -> Decimal:
        return self.base_fees.get(city, {}).get(vehicle_type, ZERO)

    def air_temperature_fee(self, vehicle_type: VehicleType, observation: WeatherObservation) -> Decimal:
        """Surcharge for cold weather on scooters and bikes.

        The half-price window is open on both ends at -11 and 1 degrees.
        """
        if vehicle_type not in WEATHER_SENSITIVE_VEHICLES:
            return ZERO

        temperature = observation.air_temperature
        if temperature is None:
            return ZERO
        if temperature < -10:
            return Decimal("1.0")
        if -11 < temperature < 1:
            return Decimal("0.5")
        return ZERO

    def wind_speed_fee(self, vehicle_type: VehicleType, observation: WeatherObservation) -> Decimal:
        if vehicle_type != VehicleType.BIKE:
            return ZERO

        wind_speed = observation.wind_speed
        if wind_speed is None:
            return ZERO
        if wind_speed > 20:
            raise ForbiddenUsageError(details={"wind_speed": wind_speed})
        if 9 < wind_speed < 21:
            return Decimal("0.5")
        return ZERO

    def phenomenon_fee(self, vehicle_type: VehicleType, observation: WeatherObservation) -> Decimal:
        if vehicle_type not in WEATHER_SENSITIVE_VEHICLES:
            return ZERO

        category = classify_phenomenon(observation.weather_phenomenon)
        if category == PhenomenonClass.FORBIDDEN:
            raise ForbiddenUsageError(details={"phenomenon": observation.weather_phenomenon})
        if category == PhenomenonClass.SNOW_OR_SLEET:
            return Decimal("1.0")
        if category == PhenomenonClass.RAIN:
            return Decimal("0.5")
        return ZERO
