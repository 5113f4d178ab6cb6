"""Test fixtures for cluster manager tests."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from contextlib import contextmanager

import pytest
import pytest_asyncio
import respx
from asgi_lifespan import LifespanManager
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from safir.testing.slack import MockSlackWebhook, mock_slack_webhook

from clustermanager.config import Config
from clustermanager.factory import Factory
from clustermanager.main import create_app

from .support.config import configure
from .support.constants import TEST_BASE_URL, TEST_PROJECT
from .support.data import store_input_objects
from .support.kubernetes import MockClusterKubernetesApi, patch_kubernetes

_INPUT_OBJECTS = ("templates", "clusters", "machines", "intelmachines")
"""Files of custom objects stored in the mock Kubernetes for every test."""


@pytest_asyncio.fixture
async def config() -> Config:
    """Construct default configuration for tests."""
    return await configure("standard")


@pytest_asyncio.fixture
async def app(
    config: Config,
    mock_kubernetes: MockClusterKubernetesApi,
    mock_slack: MockSlackWebhook,
) -> AsyncIterator[FastAPI]:
    """Return a configured test application.

    Wraps the application in a lifespan manager so that startup and shutdown
    events are sent during test execution.
    """
    app = create_app()
    async with LifespanManager(app):
        yield app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Return an ``httpx.AsyncClient`` configured to talk to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url=TEST_BASE_URL,
        headers={"Activeprojectid": TEST_PROJECT},
    ) as client:
        yield client


@pytest_asyncio.fixture
async def factory(
    config: Config,
    mock_kubernetes: MockClusterKubernetesApi,
    mock_slack: MockSlackWebhook,
) -> AsyncIterator[Factory]:
    """Create a component factory for tests."""
    async with Factory.standalone(config) as factory:
        yield factory


@pytest_asyncio.fixture
async def mock_kubernetes() -> AsyncIterator[MockClusterKubernetesApi]:
    """Mock Kubernetes holding the clusters and templates of a project."""
    with contextmanager(patch_kubernetes)() as mock:
        for filename in _INPUT_OBJECTS:
            await store_input_objects(mock, TEST_PROJECT, "base", filename)
        yield mock


@pytest.fixture
def mock_slack(
    config: Config, respx_mock: respx.Router
) -> Iterator[MockSlackWebhook]:
    config.slack_webhook = "https://slack.example.com/webhook"
    yield mock_slack_webhook(config.slack_webhook, respx_mock)
    config.slack_webhook = None
