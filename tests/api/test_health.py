"""
Tests for the health endpoints.

Readiness depends on the broker consuming and MongoDB answering a ping.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

from energy_sync.api import health
from energy_sync.core.config import ServiceRole


@pytest.fixture
def app():
    """App with the health router and no lifespan"""
    application = FastAPI()
    application.include_router(health.router)
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


class TestLiveness:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["role"] in {role.value for role in ServiceRole}

    def test_live(self, client):
        response = client.get("/health/live")

        assert response.status_code == 200
        assert response.json()["status"] == "alive"
        assert response.json()["uptime"] >= 0


class TestReadiness:
    @pytest.mark.asyncio
    async def test_ready_when_consuming_and_database_up(self, app, client, memory_broker_factory, fake_db):
        _, broker = memory_broker_factory(ServiceRole.MONITORING)
        await broker.start()
        app.state.broker = broker
        app.state.database = fake_db

        response = client.get("/health/ready")

        assert response.status_code == 200
        checks = {check["name"]: check for check in response.json()["checks"]}
        assert checks["message_broker"]["status"] == "healthy"
        assert checks["message_broker"]["queues"] == {"monitoring_sync_queue": 0, "device_data_queue": 0}
        assert checks["database"]["database"] == "test_db"
        fake_db.command.assert_awaited_once_with("ping")

    def test_not_ready_while_broker_disconnected(self, app, client, memory_broker_factory, fake_db):
        _, broker = memory_broker_factory(ServiceRole.USERS_DATA)
        app.state.broker = broker
        app.state.database = fake_db

        response = client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "not ready"

    @pytest.mark.asyncio
    async def test_not_ready_when_database_unreachable(self, app, client, memory_broker_factory, fake_db):
        _, broker = memory_broker_factory(ServiceRole.USERS_DATA)
        await broker.start()
        fake_db.command.side_effect = ServerSelectionTimeoutError("localhost:27017: connection refused")
        app.state.broker = broker
        app.state.database = fake_db

        response = client.get("/health/ready")

        assert response.status_code == 503
        database_check = next(c for c in response.json()["checks"] if c["name"] == "database")
        assert "connection refused" in database_check["error"]

    def test_not_ready_before_startup(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 503
        errors = {check["name"]: check["error"] for check in response.json()["checks"]}
        assert errors == {"message_broker": "Broker not initialized", "database": "Database not initialized"}


class TestApplication:
    def test_main_app_exposes_health_routes(self):
        from energy_sync.main import app as main_app

        paths = {route.path for route in main_app.routes}
        assert {"/health", "/health/live", "/health/ready"} <= paths
