"""Tests for the index and health check routes."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

from clustermanager.config import Config


@pytest.mark.asyncio
async def test_get_index(client: AsyncClient, config: Config) -> None:
    r = await client.get("/")
    assert r.status_code == 200
    data = r.json()
    assert data["name"] == config.name
    assert isinstance(data["version"], str)
    assert isinstance(data["description"], str)


@pytest.mark.asyncio
async def test_healthz(client: AsyncClient) -> None:
    r = await client.get("/v2/healthz")
    assert r.status_code == 200
    assert r.json() == "cm rest server is healthy"

    # The health check does not need an active project.
    r = await client.get("/v2/healthz", headers={"Activeprojectid": ""})
    assert r.status_code == 200
