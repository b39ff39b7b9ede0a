"""
In-memory persistence for fee rules and weather observations.
"""

import asyncio
from dataclasses import replace
from typing import List, Optional

from shared.logging import get_logger
from ..fees.models import FeeRule, WeatherObservation


class MemoryRuleStore:
    """Fee rule store keeping rows in insertion order."""

    def __init__(self):
        self.logger = get_logger("deliveryfee.persistence.memory")
        self._rules: List[FeeRule] = []
        self._next_id = 1
        self._lock = asyncio.Lock()

    async def start(self):
        """Start the store."""

    async def stop(self):
        """Stop the store."""

    async def health_check(self) -> bool:
        return True

    async def insert(self, rule: FeeRule) -> FeeRule:
        """Store a rule and return it with its assigned id."""
        async with self._lock:
            stored = rule.with_id(self._next_id)
            self._next_id += 1
            self._rules.append(stored)
        self.logger.debug("Rule saved", rule_id=stored.id)
        return stored

    async def all(self) -> List[FeeRule]:
        async with self._lock:
            return list(self._rules)

    async def count(self) -> int:
        async with self._lock:
            return len(self._rules)

    async def get(self, rule_id: int) -> Optional[FeeRule]:
        async with self._lock:
            for rule in self._rules:
                if rule.id == rule_id:
                    return rule
        return None

    async def update(self, rule_id: int, rule: FeeRule) -> Optional[FeeRule]:
        """Replace the rule with the given id, keeping its position."""
        async with self._lock:
            for index, existing in enumerate(self._rules):
                if existing.id == rule_id:
                    updated = rule.with_id(rule_id)
                    self._rules[index] = updated
                    return updated
        return None

    async def delete(self, rule_id: int) -> None:
        async with self._lock:
            self._rules = [rule for rule in self._rules if rule.id != rule_id]


class MemoryWeatherStore:
    """Weather observation store; observations are append-only."""

    def __init__(self):
        self.logger = get_logger("deliveryfee.persistence.memory")
        self._observations: List[WeatherObservation] = []
        self._next_id = 1
        self._lock = asyncio.Lock()

    async def start(self):
        """Start the store."""

    async def stop(self):
        """Stop the store."""

    async def health_check(self) -> bool:
        return True

    async def add(self, observation: WeatherObservation) -> WeatherObservation:
        async with self._lock:
            stored = replace(observation, id=self._next_id)
            self._next_id += 1
            self._observations.append(stored)
        return stored

    async def latest(self, station_name: str) -> Optional[WeatherObservation]:
        """Most recent observation for a station."""
        return await self._latest(station_name, None)

    async def latest_at_or_before(self, station_name: str, timestamp: int) -> Optional[WeatherObservation]:
        """Most recent observation for a station taken at or before ``timestamp``."""
        return await self._latest(station_name, timestamp)

    async def _latest(self, station_name: str, timestamp: Optional[int]) -> Optional[WeatherObservation]:
        async with self._lock:
            candidates = [
                o for o in self._observations
                if o.station_name == station_name
                and (timestamp is None or o.timestamp <= timestamp)
            ]
        if not candidates:
            return None
        # Later inserts win ties on timestamp
        return max(reversed(candidates), key=lambda o: o.timestamp)
