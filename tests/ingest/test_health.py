"""Tests for HealthCheckServer endpoints."""

import pytest
from aiohttp import test_utils

from ingest.health import HealthCheckServer


@pytest.fixture
def state():
    return {"streaming": False}


@pytest.fixture
def health_server(state):
    return HealthCheckServer(
        port=0,
        worker_name="cast-ingest",
        readiness_check=lambda: state["streaming"],
        state_provider=lambda: "streaming" if state["streaming"] else "disconnected",
    )


class TestEndpoints:
    @pytest.mark.asyncio
    async def test_liveness_always_ok(self, health_server):
        async with test_utils.TestClient(test_utils.TestServer(health_server.create_app())) as client:
            response = await client.get("/health/live")
            body = await response.json()

        assert response.status == 200
        assert body["status"] == "alive"
        assert body["worker"] == "cast-ingest"

    @pytest.mark.asyncio
    async def test_not_ready_until_streaming(self, health_server, state):
        async with test_utils.TestClient(test_utils.TestServer(health_server.create_app())) as client:
            response = await client.get("/health/ready")
            body = await response.json()
            assert response.status == 503
            assert body["connection_state"] == "disconnected"

            state["streaming"] = True
            response = await client.get("/health/ready")
            body = await response.json()

        assert response.status == 200
        assert body["status"] == "ready"


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_on_dynamic_port_and_stop(self, health_server):
        await health_server.start()
        assert health_server.actual_port

        await health_server.stop()
        assert health_server.actual_port is None

    @pytest.mark.asyncio
    async def test_disabled_server_is_noop(self):
        server = HealthCheckServer(port=None)

        await server.start()

        assert server.is_enabled is False
        assert server.actual_port is None
