"""
Unit tests for the Delivery Fee HTTP API.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from fastapi.testclient import TestClient

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.config import get_config
from service_deliveryfee.app.main import DeliveryFeeApplication, create_app
from service_deliveryfee.app.persistence import (
    MemoryWeatherStore, PostgreSQLPersistence, PostgresRuleStore
)


FEED = """<observations timestamp="1742760780">
  <station>
    <name>Tallinn-Harku</name><wmocode>26038</wmocode>
    <airtemperature>-2.1</airtemperature><windspeed>4.5</windspeed>
    <phenomenon>Light snow shower</phenomenon>
  </station>
  <station>
    <name>Tartu-Tõravere</name><wmocode>26242</wmocode>
    <airtemperature>1.4</airtemperature><windspeed>11.0</windspeed>
    <phenomenon>Overcast</phenomenon>
  </station>
  <station>
    <name>Pärnu</name><wmocode>41803</wmocode>
    <airtemperature>3.0</airtemperature><windspeed>22.0</windspeed>
    <phenomenon>Light rain</phenomenon>
  </station>
</observations>"""


class TestDeliveryFeeApplication:
    """Test cases for DeliveryFeeApplication."""

    @pytest.fixture
    def config(self):
        return get_config("deliveryfee", 8080, weather_import_enabled=False, storage_backend="memory")

    @pytest.fixture
    def service(self, config):
        return DeliveryFeeApplication(config=config)

    @pytest.fixture
    def client(self, service):
        """Test client with startup and shutdown hooks run."""
        with TestClient(service.app) as client:
            yield client

    @pytest.fixture
    def imported(self, service, client):
        """Load the sample feed through the import endpoint."""
        with patch.object(service.importer, "fetch", AsyncMock(return_value=FEED)):
            response = client.post("/api/weather/import")
        assert response.json() == {"imported": 3}

    def test_root_endpoint(self, client):
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "deliveryfee"
        assert data["version"] == "1.0.0"

    def test_health_check(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["dependencies"] == {
            "rule_store": "ok",
            "weather_store": "ok",
            "weather_importer": "stopped",
        }

    def test_health_degraded_when_store_fails(self, service, client):
        with patch.object(service.rule_store, "health_check", AsyncMock(return_value=False)):
            data = client.get("/health").json()

        assert data["status"] == "degraded"
        assert data["dependencies"]["rule_store"] == "error"

    def test_rules_seeded_on_startup(self, client):
        response = client.get("/api/feerules")

        assert response.status_code == 200
        rules = response.json()
        assert len(rules) == 20
        assert rules[0] == {
            "id": 1,
            "ruleType": "BASE_FEE",
            "city": "TALLINN",
            "vehicleType": "CAR",
            "condition": None,
            "fee": 4.0,
        }

    def test_no_seed_when_disabled(self):
        config = get_config("deliveryfee", 8080, weather_import_enabled=False, seed_rules=False)

        with TestClient(create_app(config)) as client:
            assert client.get("/api/feerules").json() == []

    def test_delivery_fee(self, client, imported):
        response = client.get("/api/deliveryfee", params={"city": "Tallinn", "vehicleType": "Bike"})

        assert response.status_code == 200
        assert response.json() == {
            "city": "TALLINN",
            "vehicleType": "BIKE",
            "fee": 4.5,
            "engine": "rules",
            "observedAt": 1742760780,
        }

    def test_delivery_fee_static_engine(self, client, imported):
        response = client.get(
            "/api/deliveryfee", params={"city": "tartu", "vehicleType": "scooter", "engine": "static"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["engine"] == "static"
        assert data["fee"] == 3.0

    def test_delivery_fee_forbidden(self, client, imported):
        response = client.get("/api/deliveryfee", params={"city": "Parnu", "vehicleType": "Bike"})

        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "FORBIDDEN_USAGE"
        assert data["message"] == "Usage of selected vehicle type is forbidden"

    def test_delivery_fee_invalid_city(self, client, imported):
        response = client.get("/api/deliveryfee", params={"city": "Narva", "vehicleType": "Car"})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_delivery_fee_without_weather(self, client):
        response = client.get("/api/deliveryfee", params={"city": "Tartu", "vehicleType": "Car"})

        assert response.status_code == 404
        assert response.json()["message"] == "No weather data found for city: TARTU"

    def test_delivery_fee_before_first_observation(self, client, imported):
        response = client.get(
            "/api/deliveryfee",
            params={"city": "Tartu", "vehicleType": "Car", "dateTime": "2020-01-01T12:00:00"}
        )

        assert response.status_code == 404

    def test_delivery_fee_at_date_time(self, client, imported):
        response = client.get(
            "/api/deliveryfee",
            params={"city": "Tartu", "vehicleType": "Car", "dateTime": "2025-03-23T22:13:00+02:00"}
        )

        assert response.status_code == 200
        assert response.json()["fee"] == 3.5

    def test_rule_lifecycle(self, client):
        create = client.post("/api/feerules", json={
            "ruleType": "BASE_FEE", "city": "Tartu", "vehicleType": "Car", "fee": 5.0
        })
        assert create.status_code == 201
        rule = create.json()
        assert rule["id"] == 21
        assert rule["city"] == "TARTU"

        fetched = client.get(f"/api/feerules/{rule['id']}")
        assert fetched.json() == rule

        update = client.put(f"/api/feerules/{rule['id']}", json={
            "ruleType": "BASE_FEE", "city": "Tartu", "vehicleType": "Car", "fee": 6.5
        })
        assert update.status_code == 200
        assert update.json()["fee"] == 6.5

        delete = client.delete(f"/api/feerules/{rule['id']}")
        assert delete.status_code == 204

        missing = client.get(f"/api/feerules/{rule['id']}")
        assert missing.status_code == 404
        assert missing.json()["code"] == "NOT_FOUND"

    def test_updated_rule_drives_fee(self, client, imported):
        client.put("/api/feerules/3", json={
            "ruleType": "BASE_FEE", "city": "Tallinn", "vehicleType": "Bike", "fee": 10.0
        })

        response = client.get("/api/deliveryfee", params={"city": "Tallinn", "vehicleType": "Bike"})

        assert response.json()["fee"] == 11.5

    def test_create_invalid_rule(self, client):
        response = client.post("/api/feerules", json={
            "ruleType": "AIR_TEMP", "vehicleType": "Bike", "condition": "< -30", "fee": 1.0
        })

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_create_rule_with_sub_cent_fee(self, client):
        response = client.post("/api/feerules", json={
            "ruleType": "BASE_FEE", "city": "Tartu", "vehicleType": "Car", "fee": 0.125
        })

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert len(client.get("/api/feerules").json()) == 20

    def test_create_rule_unknown_type(self, client):
        response = client.post("/api/feerules", json={
            "ruleType": "HUMIDITY", "vehicleType": "Bike", "fee": 1.0
        })

        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "VALIDATION_ERROR"
        assert "body.ruleType" in data["details"]["fields"]

    def test_delivery_fee_missing_parameter(self, client):
        response = client.get("/api/deliveryfee", params={"city": "Tartu"})

        assert response.status_code == 400
        assert response.json()["details"]["fields"] == ["query.vehicleType"]

    def test_request_id_echoed(self, client):
        response = client.get("/", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"

    def test_update_missing_rule(self, client):
        response = client.put("/api/feerules/999", json={
            "ruleType": "BASE_FEE", "city": "Tartu", "vehicleType": "Car", "fee": 1.0
        })

        assert response.status_code == 404

    def test_delete_missing_rule(self, client):
        assert client.delete("/api/feerules/999").status_code == 204

    def test_latest_weather(self, client, imported):
        response = client.get("/api/weather/P%C3%A4rnu")

        assert response.status_code == 200
        assert response.json() == {
            "stationName": "Pärnu",
            "wmoCode": "41803",
            "airTemperature": 3.0,
            "windSpeed": 22.0,
            "weatherPhenomenon": "Light rain",
            "timestamp": 1742760780,
        }

    def test_latest_weather_missing(self, client):
        assert client.get("/api/weather/Tallinn").status_code == 404

    def test_import_failure(self, service, client):
        with patch.object(service.importer, "fetch", AsyncMock(side_effect=RuntimeError("feed down"))):
            response = client.post("/api/weather/import")

        assert response.status_code == 200
        assert response.json() == {"imported": 0}

    def test_metrics_endpoint(self, client, imported):
        client.get("/api/deliveryfee", params={"city": "Tallinn", "vehicleType": "Car"})

        response = client.get("/metrics")

        assert response.status_code == 200
        body = response.text
        assert 'fee_calculations_total{engine="rules",outcome="ok"} 1.0' in body
        assert 'weather_imports_total{status="ok"} 1.0' in body


class TestDatabaseUnavailable:
    """Test cases for the API when PostgreSQL cannot be reached."""

    @pytest.fixture
    def client(self):
        persistence = PostgreSQLPersistence("postgres://localhost/test")
        persistence.pool = MagicMock()
        persistence.pool.acquire.side_effect = ConnectionRefusedError("connect call failed")
        persistence.pool.close = AsyncMock()

        config = get_config("deliveryfee", 8080, weather_import_enabled=False, seed_rules=False)
        service = DeliveryFeeApplication(
            config=config,
            rule_store=PostgresRuleStore(persistence),
            weather_store=MemoryWeatherStore(),
        )
        with TestClient(service.app) as client:
            yield client

    def test_rule_routes_report_upstream_error(self, client):
        for method, path in (("GET", "/api/feerules"), ("GET", "/api/feerules/1"), ("DELETE", "/api/feerules/1")):
            response = client.request(method, path)

            assert response.status_code == 400
            assert response.json()["code"] == "UPSTREAM_ERROR"

    def test_health_reports_store_error(self, client):
        data = client.get("/health").json()

        assert data["status"] == "degraded"
        assert data["dependencies"]["rule_store"] == "error"


class TestImporterLifecycle:
    """Test cases for starting the importer with the service."""

    def test_importer_runs_while_service_is_up(self):
        config = get_config("deliveryfee", 8080, weather_import_enabled=True, weather_import_interval_seconds=3600)
        service = DeliveryFeeApplication(config=config)

        with patch.object(service.importer, "fetch", AsyncMock(return_value=FEED)):
            with TestClient(service.app) as client:
                health = client.get("/health").json()
                assert health["dependencies"]["weather_importer"] == "running"

        assert service.importer.running is False
