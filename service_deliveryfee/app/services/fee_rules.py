"""
Fee rule management for the Delivery Fee service.
"""

from typing import List, Optional

from shared.logging import get_logger
from ..fees.models import FeeRule


class FeeRuleService:
    """Create, read, update and delete fee rules in the rule store."""

    def __init__(self, rule_store):
        self.rule_store = rule_store
        self.logger = get_logger("deliveryfee.fee_rules")

    async def create_fee_rule(self, rule: FeeRule) -> FeeRule:
        rule.validate()
        created = await self.rule_store.insert(rule)
        self.logger.info("Rule created", rule_id=created.id, rule_type=created.rule_type.value)
        return created

    async def get_all_fee_rules(self) -> List[FeeRule]:
        return await self.rule_store.all()

    async def get_fee_rule(self, rule_id: int) -> Optional[FeeRule]:
        """Return the rule with the given id, or None when it does not exist."""
        return await self.rule_store.get(rule_id)

    async def update_fee_rule(self, rule_id: int, rule: FeeRule) -> Optional[FeeRule]:
        """
        Replace rule type, city, vehicle type, condition and fee of a rule.

        Returns None when no rule has the given id.
        """
        rule.validate()
        updated = await self.rule_store.update(rule_id, rule)
        if updated is None:
            self.logger.info("Rule not found for update", rule_id=rule_id)
            return None

        self.logger.info("Rule updated", rule_id=rule_id)
        return updated

    async def delete_fee_rule(self, rule_id: int) -> None:
        """Delete a rule; deleting a missing id is a no-op."""
        await self.rule_store.delete(rule_id)
        self.logger.info("Rule deleted", rule_id=rule_id)
