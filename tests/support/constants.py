"""Constants for cluster manager tests."""

__all__ = [
    "TEST_BASE_URL",
    "TEST_OTHER_PROJECT",
    "TEST_PROJECT",
    "TEST_TOKEN",
]

TEST_BASE_URL = "https://example.com"
"""Base URL used for the test `httpx.AsyncClient`."""

TEST_PROJECT = "0dd1b9a4-4f4c-4c1c-8a54-3b6f2d7e9c10"
"""Project ID of the test data, which is also its namespace."""

TEST_OTHER_PROJECT = "6a7b4c8d-1e2f-4a3b-9c4d-5e6f7a8b9c0d"
"""Project with no clusters or templates."""

TEST_TOKEN = "user-access-token"
"""Bearer token of the requesting user."""
