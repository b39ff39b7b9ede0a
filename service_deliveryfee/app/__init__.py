"""
Delivery Fee Service package.

Calculates food delivery fees from a city, a vehicle type and the latest
weather observation for the city's station, and manages the fee rules
behind that calculation. It provides:

- app.main: API surface for fee queries, fee rule CRUD and health.
- app.fees: Fee rule model and the static and rule-driven engines.
- app.persistence: Memory and PostgreSQL stores for rules and weather.
- app.weather: Periodic import of the weather observations feed.
- app.services: Orchestration between stores and engines.

Guidelines:
- Fee calculation is pure; all I/O happens in app.services.
- Forbidden weather is an error, never a priced surcharge.
"""
