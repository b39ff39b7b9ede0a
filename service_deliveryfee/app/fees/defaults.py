"""
Default fee rules and one-time seeding of the rule store.
"""

from decimal import Decimal
from typing import List

from shared.logging import get_logger
from .models import (
    City, FeeRule, RuleType, VehicleType,
    TEMP_BELOW_MINUS_10, TEMP_MINUS_10_TO_0, WIND_10_TO_20,
    PHENOMENON_SNOW_SLEET, PHENOMENON_RAIN, PHENOMENON_FORBIDDEN,
)

logger = get_logger("deliveryfee.seeder")


def _base(city: City, vehicle_type: VehicleType, fee: str) -> FeeRule:
    return FeeRule(RuleType.BASE_FEE, vehicle_type, Decimal(fee), city=city)


def _extra(rule_type: RuleType, vehicle_type: VehicleType, condition: str, fee: str) -> FeeRule:
    return FeeRule(rule_type, vehicle_type, Decimal(fee), condition=condition)


def default_fee_rules() -> List[FeeRule]:
    """
    Build the default rule set.

    Regional base fees for each city and vehicle type, then the air
    temperature, wind speed and phenomenon surcharges. Wind above 20 m/s
    and glaze, hail or thunder are forbidden in code; the zero-fee
    ``glaze/hail/thunder`` rows only record that condition.
    """
    return [
        _base(City.TALLINN, VehicleType.CAR, "4.0"),
        _base(City.TALLINN, VehicleType.SCOOTER, "3.5"),
        _base(City.TALLINN, VehicleType.BIKE, "3.0"),
        _base(City.TARTU, VehicleType.CAR, "3.5"),
        _base(City.TARTU, VehicleType.SCOOTER, "3.0"),
        _base(City.TARTU, VehicleType.BIKE, "2.5"),
        _base(City.PARNU, VehicleType.CAR, "3.0"),
        _base(City.PARNU, VehicleType.SCOOTER, "2.5"),
        _base(City.PARNU, VehicleType.BIKE, "2.0"),
        _extra(RuleType.AIR_TEMP, VehicleType.SCOOTER, TEMP_BELOW_MINUS_10, "1.0"),
        _extra(RuleType.AIR_TEMP, VehicleType.BIKE, TEMP_BELOW_MINUS_10, "1.0"),
        _extra(RuleType.AIR_TEMP, VehicleType.SCOOTER, TEMP_MINUS_10_TO_0, "0.5"),
        _extra(RuleType.AIR_TEMP, VehicleType.BIKE, TEMP_MINUS_10_TO_0, "0.5"),
        _extra(RuleType.WIND_SPEED, VehicleType.BIKE, WIND_10_TO_20, "0.5"),
        _extra(RuleType.PHENOMENON, VehicleType.SCOOTER, PHENOMENON_SNOW_SLEET, "1.0"),
        _extra(RuleType.PHENOMENON, VehicleType.BIKE, PHENOMENON_SNOW_SLEET, "1.0"),
        _extra(RuleType.PHENOMENON, VehicleType.SCOOTER, PHENOMENON_RAIN, "0.5"),
        _extra(RuleType.PHENOMENON, VehicleType.BIKE, PHENOMENON_RAIN, "0.5"),
        _extra(RuleType.PHENOMENON, VehicleType.SCOOTER, PHENOMENON_FORBIDDEN, "0.0"),
        _extra(RuleType.PHENOMENON, VehicleType.BIKE, PHENOMENON_FORBIDDEN, "0.0"),
    ]


async def seed_default_rules(store) -> int:
    """Insert the default rules if the store holds none. Returns rows inserted."""
    if await store.count() > 0:
        logger.info("Fee rules already present, skipping seed")
        return 0

    rules = default_fee_rules()
    for rule in rules:
        await store.insert(rule)

    logger.info("Seeded default fee rules", count=len(rules))
    return len(rules)
