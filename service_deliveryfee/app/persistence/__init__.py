"""
Persistence for fee rules and weather observations.

Two interchangeable backends expose the same async interface:

- memory: In-process stores, used locally and in tests.
- postgres: asyncpg-backed stores sharing one connection pool.

Rule stores provide insert/all/count/get/update/delete; weather stores
provide add/latest/latest_at_or_before.
"""

from .memory import MemoryRuleStore, MemoryWeatherStore
from .postgres import PostgreSQLPersistence, PostgresRuleStore, PostgresWeatherStore


def create_stores(backend: str, postgres_dsn: str):
    """Build the (rule store, weather store) pair for a backend name."""
    if backend == "memory":
        return MemoryRuleStore(), MemoryWeatherStore()
    if backend == "postgres":
        persistence = PostgreSQLPersistence(postgres_dsn)
        return PostgresRuleStore(persistence), PostgresWeatherStore(persistence)
    raise ValueError(f"Unknown storage backend: {backend}")


__all__ = [
    "MemoryRuleStore",
    "MemoryWeatherStore",
    "PostgreSQLPersistence",
    "PostgresRuleStore",
    "PostgresWeatherStore",
    "create_stores",
]
