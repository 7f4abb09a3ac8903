"""Unit tests for the scheduler health check endpoints."""

from contextlib import asynccontextmanager
from unittest.mock import MagicMock

import pytest
from aiohttp import test_utils

from jobs import health


async def database_up() -> bool:
    return True


async def database_down() -> bool:
    return False


@asynccontextmanager
async def health_client(probe=database_up):
    app = health.create_health_app(probe)
    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        yield client


@pytest.fixture
def running_scheduler():
    scheduler = MagicMock()
    scheduler.running = True
    job = MagicMock()
    job.id = "settle_referrals"
    job.name = "Release matured referral commissions"
    job.next_run_time = None
    scheduler.get_jobs.return_value = [job]
    health.set_scheduler(scheduler)
    yield scheduler
    health._scheduler = None


class TestHealthEndpoints:
    """Test /health, /readiness and /liveness."""

    @pytest.mark.asyncio
    async def test_liveness(self):
        async with health_client() as client:
            response = await client.get("/liveness")
            body = await response.json()

        assert response.status == 200
        assert body["alive"] is True

    @pytest.mark.asyncio
    async def test_health_without_scheduler(self):
        health._scheduler = None
        async with health_client() as client:
            response = await client.get("/health")

        assert response.status == 503

    @pytest.mark.asyncio
    async def test_health_lists_jobs(self, running_scheduler):
        async with health_client() as client:
            response = await client.get("/health")
            body = await response.json()

        assert response.status == 200
        assert body["status"] == "healthy"
        assert body["jobs"][0]["id"] == "settle_referrals"

    @pytest.mark.asyncio
    async def test_readiness_requires_database(self, running_scheduler):
        async with health_client(database_down) as client:
            response = await client.get("/readiness")
            body = await response.json()

        assert response.status == 503
        assert body["scheduler"] is True
        assert body["database"] is False

    @pytest.mark.asyncio
    async def test_ready(self, running_scheduler):
        async with health_client() as client:
            response = await client.get("/readiness")

        assert response.status == 200
