"""
Unit tests for fee rule management and request validation.
"""

import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.errors import ValidationError
from service_deliveryfee.app.fees.models import (
    City, FeeRule, FeeRuleRequest, FeeRuleResponse, RuleType, VehicleType,
    TEMP_BELOW_MINUS_10, WIND_10_TO_20,
)
from service_deliveryfee.app.persistence import MemoryRuleStore
from service_deliveryfee.app.services.fee_rules import FeeRuleService


class TestFeeRuleService:
    """Test cases for FeeRuleService."""

    @pytest.fixture
    def store(self):
        return MemoryRuleStore()

    @pytest.fixture
    def service(self, store):
        return FeeRuleService(store)

    @pytest.fixture
    def wind_rule(self):
        return FeeRule(RuleType.WIND_SPEED, VehicleType.BIKE, Decimal("0.5"), condition=WIND_10_TO_20)

    @pytest.mark.asyncio
    async def test_create_and_get(self, service, wind_rule):
        created = await service.create_fee_rule(wind_rule)

        assert created.id == 1
        assert await service.get_fee_rule(created.id) == created

    @pytest.mark.asyncio
    async def test_get_all(self, service, wind_rule):
        await service.create_fee_rule(wind_rule)
        await service.create_fee_rule(FeeRule(RuleType.BASE_FEE, VehicleType.CAR, Decimal("4.0"), city=City.TALLINN))

        rules = await service.get_all_fee_rules()

        assert [r.rule_type for r in rules] == [RuleType.WIND_SPEED, RuleType.BASE_FEE]

    @pytest.mark.asyncio
    async def test_get_missing(self, service):
        assert await service.get_fee_rule(99) is None

    @pytest.mark.asyncio
    async def test_create_rejects_invalid_rule(self):
        store = MagicMock()
        store.insert = AsyncMock()
        service = FeeRuleService(store)

        with pytest.raises(ValidationError):
            await service.create_fee_rule(FeeRule(RuleType.BASE_FEE, VehicleType.CAR, Decimal("4.0")))

        store.insert.assert_not_called()

    @pytest.mark.asyncio
    async def test_update(self, service, wind_rule):
        created = await service.create_fee_rule(wind_rule)
        replacement = FeeRule(RuleType.WIND_SPEED, VehicleType.BIKE, Decimal("0.75"), condition=WIND_10_TO_20)

        updated = await service.update_fee_rule(created.id, replacement)

        assert updated.id == created.id
        assert (await service.get_fee_rule(created.id)).fee == Decimal("0.75")

    @pytest.mark.asyncio
    async def test_update_missing(self, service, wind_rule):
        assert await service.update_fee_rule(12, wind_rule) is None

    @pytest.mark.asyncio
    async def test_update_rejects_invalid_rule(self, service, wind_rule):
        created = await service.create_fee_rule(wind_rule)

        with pytest.raises(ValidationError):
            await service.update_fee_rule(
                created.id,
                FeeRule(RuleType.WIND_SPEED, VehicleType.BIKE, Decimal("-1"), condition=WIND_10_TO_20)
            )

        assert (await service.get_fee_rule(created.id)).fee == Decimal("0.5")

    @pytest.mark.asyncio
    async def test_delete(self, service, wind_rule):
        created = await service.create_fee_rule(wind_rule)

        await service.delete_fee_rule(created.id)

        assert await service.get_fee_rule(created.id) is None

    @pytest.mark.asyncio
    async def test_delete_missing_is_noop(self, service):
        await service.delete_fee_rule(404)

        assert await service.get_all_fee_rules() == []


class TestFeeRuleValidation:
    """Test cases for FeeRule.validate."""

    def test_negative_fee(self):
        rule = FeeRule(RuleType.BASE_FEE, VehicleType.CAR, Decimal("-0.5"), city=City.TARTU)

        with pytest.raises(ValidationError):
            rule.validate()

    @pytest.mark.parametrize("fee", ["0.125", "4.001", "100000000", "123456789.5"])
    def test_fee_out_of_column_range(self, fee):
        rule = FeeRule(RuleType.BASE_FEE, VehicleType.CAR, Decimal(fee), city=City.TARTU)

        with pytest.raises(ValidationError) as exc_info:
            rule.validate()

        assert exc_info.value.details == {"fee": fee}

    @pytest.mark.parametrize("fee", ["0", "4.50", "4.000", "99999999.99"])
    def test_fee_within_column_range(self, fee):
        FeeRule(RuleType.BASE_FEE, VehicleType.CAR, Decimal(fee), city=City.TARTU).validate()

    def test_base_fee_takes_no_condition(self):
        rule = FeeRule(RuleType.BASE_FEE, VehicleType.CAR, Decimal("1"), city=City.TARTU, condition="rain")

        with pytest.raises(ValidationError):
            rule.validate()

    def test_unknown_condition(self):
        rule = FeeRule(RuleType.AIR_TEMP, VehicleType.BIKE, Decimal("1"), condition="< -20")

        with pytest.raises(ValidationError) as exc_info:
            rule.validate()

        assert exc_info.value.details["allowed"] == ["< -10", "[-10,0)"]

    def test_surcharge_requires_condition(self):
        rule = FeeRule(RuleType.PHENOMENON, VehicleType.SCOOTER, Decimal("1"))

        with pytest.raises(ValidationError):
            rule.validate()

    def test_zero_fee_is_valid(self):
        FeeRule(RuleType.AIR_TEMP, VehicleType.BIKE, Decimal("0"), condition=TEMP_BELOW_MINUS_10).validate()


class TestFeeRuleRequest:
    """Test cases for the request and response models."""

    def test_to_rule(self):
        request = FeeRuleRequest(ruleType="BASE_FEE", city="parnu", vehicleType="bike", fee="2.25")

        rule = request.to_rule()

        assert rule.city == City.PARNU
        assert rule.vehicle_type == VehicleType.BIKE
        assert rule.fee == Decimal("2.25")
        assert rule.condition is None

    def test_blank_city_and_condition(self):
        request = FeeRuleRequest(
            ruleType="AIR_TEMP", city="", vehicleType="SCOOTER", condition=TEMP_BELOW_MINUS_10, fee=1
        )

        assert request.to_rule().city is None

        blank = FeeRuleRequest(ruleType="BASE_FEE", city="Tartu", vehicleType="CAR", condition="  ", fee=1)
        assert blank.to_rule().condition is None

    def test_unknown_city(self):
        request = FeeRuleRequest(ruleType="BASE_FEE", city="Narva", vehicleType="CAR", fee=1)

        with pytest.raises(ValidationError):
            request.to_rule()

    def test_response_uses_wire_names(self):
        rule = FeeRule(RuleType.BASE_FEE, VehicleType.CAR, Decimal("4.0"), city=City.PARNU, id=3)

        data = FeeRuleResponse.from_rule(rule).model_dump(by_alias=True)

        assert data == {
            "id": 3,
            "ruleType": RuleType.BASE_FEE,
            "city": City.PARNU,
            "vehicleType": VehicleType.CAR,
            "condition": None,
            "fee": 4.0,
        }
