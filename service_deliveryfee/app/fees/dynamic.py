"""
Rule-driven fee calculation engine for the Delivery Fee service.
"""

from decimal import Decimal
from typing import Iterable, Optional, Sequence

from shared.errors import ForbiddenUsageError
from shared.logging import get_logger
from .engine import (
    FeeEngine, PhenomenonClass, WEATHER_SENSITIVE_VEHICLES, ZERO, classify_phenomenon
)
from .models import (
    City, FeeRule, RuleType, VehicleType, WeatherObservation,
    TEMP_BELOW_MINUS_10, TEMP_MINUS_10_TO_0, WIND_10_TO_20,
    PHENOMENON_SNOW_SLEET, PHENOMENON_RAIN,
)


def find_rule(
    rules: Iterable[FeeRule],
    rule_type: RuleType,
    city: Optional[City],
    vehicle_type: VehicleType,
    condition: Optional[str],
) -> Optional[FeeRule]:
    """
    Return the first rule matching the lookup key in store order.

    A ``None`` city or condition in the key matches any rule value.
    """
    for rule in rules:
        if rule.rule_type != rule_type:
            continue
        if city is not None and rule.city != city:
            continue
        if rule.vehicle_type != vehicle_type:
            continue
        if condition is not None and rule.condition != condition:
            continue
        return rule
    return None


def air_temperature_condition(temperature: Optional[float]) -> Optional[str]:
    """Select the air temperature bucket; the mild bucket is [-10, 0)."""
    if temperature is None:
        return None
    if temperature < -10:
        return TEMP_BELOW_MINUS_10
    if -10 <= temperature < 0:
        return TEMP_MINUS_10_TO_0
    return None


class RuleFeeCalculator:
    """Fee calculator pricing each term from a list of fee rules."""

    engine = FeeEngine.RULES

    def __init__(self):
        self.logger = get_logger("deliveryfee.rule_engine")

    def calculate(
        self,
        city: City,
        vehicle_type: VehicleType,
        observation: WeatherObservation,
        rules: Sequence[FeeRule],
    ) -> Decimal:
        """
        Calculate the delivery fee from the given fee rules.

        Forbidden wind speeds and phenomena raise regardless of the rules
        present. A selected surcharge without a matching rule adds nothing.

        Raises:
            ForbiddenUsageError: wind speed or phenomenon forbids the vehicle.
        """
        total = ZERO

        total += self._price(rules, RuleType.BASE_FEE, city, vehicle_type, None)

        if vehicle_type in WEATHER_SENSITIVE_VEHICLES:
            condition = air_temperature_condition(observation.air_temperature)
            if condition is not None:
                total += self._price(rules, RuleType.AIR_TEMP, None, vehicle_type, condition)

        if vehicle_type == VehicleType.BIKE and observation.wind_speed is not None:
            wind_speed = observation.wind_speed
            if wind_speed > 20:
                raise ForbiddenUsageError(details={"wind_speed": wind_speed})
            if 10 <= wind_speed <= 20:
                total += self._price(rules, RuleType.WIND_SPEED, None, vehicle_type, WIND_10_TO_20)

        if vehicle_type in WEATHER_SENSITIVE_VEHICLES:
            category = classify_phenomenon(observation.weather_phenomenon)
            if category == PhenomenonClass.FORBIDDEN:
                raise ForbiddenUsageError(details={"phenomenon": observation.weather_phenomenon})
            if category == PhenomenonClass.SNOW_OR_SLEET:
                total += self._price(rules, RuleType.PHENOMENON, None, vehicle_type, PHENOMENON_SNOW_SLEET)
            elif category == PhenomenonClass.RAIN:
                total += self._price(rules, RuleType.PHENOMENON, None, vehicle_type, PHENOMENON_RAIN)

        return total

    def _price(
        self,
        rules: Sequence[FeeRule],
        rule_type: RuleType,
        city: Optional[City],
        vehicle_type: VehicleType,
        condition: Optional[str],
    ) -> Decimal:
        rule = find_rule(rules, rule_type, city, vehicle_type, condition)
        if rule is None:
            self.logger.warning(
                "Fee rule missing",
                rule_type=rule_type.value,
                city=city.value if city else None,
                vehicle_type=vehicle_type.value,
                condition=condition
            )
            return ZERO
        return rule.fee
