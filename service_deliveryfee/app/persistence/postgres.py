"""
PostgreSQL persistence layer for the Delivery Fee service.
"""

from decimal import Decimal
from typing import List, Optional

import asyncpg
from shared.logging import get_logger
from shared.errors import UpstreamError
from ..fees.models import City, FeeRule, RuleType, VehicleType, WeatherObservation


class PostgreSQLPersistence:
    """Connection pool shared by the rule and weather stores."""

    def __init__(self, dsn: str):
        self.dsn = dsn
        self.logger = get_logger("deliveryfee.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        if self.pool is not None:
            return
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=2,
                max_size=10,
                command_timeout=30
            )

            await self._create_tables()

            self.logger.info("PostgreSQL persistence started")

        except Exception as e:
            self.logger.error("Failed to start PostgreSQL persistence", error=str(e))
            raise UpstreamError(f"Failed to start PostgreSQL persistence: {e}")

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL persistence stopped")

    async def health_check(self) -> bool:
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except Exception as e:
            self.logger.error("PostgreSQL health check failed", error=str(e))
            return False

    async def _create_tables(self):
        """Create database tables."""
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS fee_rules (
                    id BIGSERIAL PRIMARY KEY,
                    rule_type VARCHAR(32) NOT NULL,
                    city VARCHAR(32),
                    vehicle_type VARCHAR(32) NOT NULL,
                    condition VARCHAR(64),
                    fee NUMERIC(10, 2) NOT NULL
                );
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS weather_data (
                    id BIGSERIAL PRIMARY KEY,
                    station_name VARCHAR(255) NOT NULL,
                    wmo_code VARCHAR(32),
                    air_temperature DOUBLE PRECISION,
                    wind_speed DOUBLE PRECISION,
                    weather_phenomenon TEXT,
                    timestamp BIGINT NOT NULL
                );
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_weather_station_time
                ON weather_data(station_name, timestamp DESC);
            """)


class PostgresRuleStore:
    """Fee rule store backed by PostgreSQL."""

    def __init__(self, persistence: PostgreSQLPersistence):
        self.persistence = persistence
        self.logger = get_logger("deliveryfee.persistence.rules")

    async def start(self):
        await self.persistence.start()

    async def stop(self):
        await self.persistence.stop()

    async def health_check(self) -> bool:
        return await self.persistence.health_check()

    async def insert(self, rule: FeeRule) -> FeeRule:
        try:
            async with self.persistence.pool.acquire() as conn:
                rule_id = await conn.fetchval("""
                    INSERT INTO fee_rules (rule_type, city, vehicle_type, condition, fee)
                    VALUES ($1, $2, $3, $4, $5)
                    RETURNING id
                """, *self._params(rule))
        except Exception as e:
            self.logger.error("Error saving rule", error=str(e))
            raise UpstreamError(f"Failed to save fee rule: {e}")

        self.logger.info("Rule saved", rule_id=rule_id)
        return rule.with_id(rule_id)

    async def all(self) -> List[FeeRule]:
        try:
            async with self.persistence.pool.acquire() as conn:
                rows = await conn.fetch("SELECT * FROM fee_rules ORDER BY id")
        except Exception as e:
            self.logger.error("Error loading rules", error=str(e))
            raise UpstreamError(f"Failed to load fee rules: {e}")
        return [self._row_to_rule(row) for row in rows]

    async def count(self) -> int:
        try:
            async with self.persistence.pool.acquire() as conn:
                return await conn.fetchval("SELECT COUNT(*) FROM fee_rules")
        except Exception as e:
            raise UpstreamError(f"Failed to count fee rules: {e}")

    async def get(self, rule_id: int) -> Optional[FeeRule]:
        try:
            async with self.persistence.pool.acquire() as conn:
                row = await conn.fetchrow("SELECT * FROM fee_rules WHERE id = $1", rule_id)
        except Exception as e:
            self.logger.error("Error loading rule", rule_id=rule_id, error=str(e))
            raise UpstreamError(f"Failed to load fee rule: {e}")
        return self._row_to_rule(row) if row else None

    async def update(self, rule_id: int, rule: FeeRule) -> Optional[FeeRule]:
        try:
            async with self.persistence.pool.acquire() as conn:
                row = await conn.fetchrow("""
                    UPDATE fee_rules
                    SET rule_type = $2, city = $3, vehicle_type = $4, condition = $5, fee = $6
                    WHERE id = $1
                    RETURNING *
                """, rule_id, *self._params(rule))
        except Exception as e:
            self.logger.error("Error updating rule", rule_id=rule_id, error=str(e))
            raise UpstreamError(f"Failed to update fee rule: {e}")
        return self._row_to_rule(row) if row else None

    async def delete(self, rule_id: int) -> None:
        try:
            async with self.persistence.pool.acquire() as conn:
                await conn.execute("DELETE FROM fee_rules WHERE id = $1", rule_id)
        except Exception as e:
            self.logger.error("Error deleting rule", rule_id=rule_id, error=str(e))
            raise UpstreamError(f"Failed to delete fee rule: {e}")

    @staticmethod
    def _params(rule: FeeRule):
        return (
            rule.rule_type.value,
            rule.city.value if rule.city else None,
            rule.vehicle_type.value,
            rule.condition,
            rule.fee,
        )

    @staticmethod
    def _row_to_rule(row) -> FeeRule:
        return FeeRule(
            id=row["id"],
            rule_type=RuleType(row["rule_type"]),
            city=City(row["city"]) if row["city"] else None,
            vehicle_type=VehicleType(row["vehicle_type"]),
            condition=row["condition"],
            fee=Decimal(row["fee"]),
        )


class PostgresWeatherStore:
    """Weather observation store backed by PostgreSQL."""

    def __init__(self, persistence: PostgreSQLPersistence):
        self.persistence = persistence
        self.logger = get_logger("deliveryfee.persistence.weather")

    async def start(self):
        await self.persistence.start()

    async def stop(self):
        await self.persistence.stop()

    async def health_check(self) -> bool:
        return await self.persistence.health_check()

    async def add(self, observation: WeatherObservation) -> WeatherObservation:
        try:
            async with self.persistence.pool.acquire() as conn:
                row_id = await conn.fetchval("""
                    INSERT INTO weather_data (
                        station_name, wmo_code, air_temperature, wind_speed,
                        weather_phenomenon, timestamp
                    ) VALUES ($1, $2, $3, $4, $5, $6)
                    RETURNING id
                """,
                    observation.station_name, observation.wmo_code,
                    observation.air_temperature, observation.wind_speed,
                    observation.weather_phenomenon, observation.timestamp
                )
        except Exception as e:
            self.logger.error("Error saving observation", station=observation.station_name, error=str(e))
            raise UpstreamError(f"Failed to save weather observation: {e}")

        return WeatherObservation(
            id=row_id,
            station_name=observation.station_name,
            wmo_code=observation.wmo_code,
            air_temperature=observation.air_temperature,
            wind_speed=observation.wind_speed,
            weather_phenomenon=observation.weather_phenomenon,
            timestamp=observation.timestamp,
        )

    async def latest(self, station_name: str) -> Optional[WeatherObservation]:
        return await self._fetch_one("""
            SELECT * FROM weather_data
            WHERE station_name = $1
            ORDER BY timestamp DESC, id DESC
            LIMIT 1
        """, station_name)

    async def latest_at_or_before(self, station_name: str, timestamp: int) -> Optional[WeatherObservation]:
        return await self._fetch_one("""
            SELECT * FROM weather_data
            WHERE station_name = $1 AND timestamp <= $2
            ORDER BY timestamp DESC, id DESC
            LIMIT 1
        """, station_name, timestamp)

    async def _fetch_one(self, query: str, *args) -> Optional[WeatherObservation]:
        try:
            async with self.persistence.pool.acquire() as conn:
                row = await conn.fetchrow(query, *args)
        except Exception as e:
            self.logger.error("Error loading observation", error=str(e))
            raise UpstreamError(f"Failed to load weather data: {e}")

        if not row:
            return None

        return WeatherObservation(
            id=row["id"],
            station_name=row["station_name"],
            wmo_code=row["wmo_code"],
            air_temperature=row["air_temperature"],
            wind_speed=row["wind_speed"],
            weather_phenomenon=row["weather_phenomenon"],
            timestamp=row["timestamp"],
        )
