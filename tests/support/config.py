"""Build test configurations for the cluster manager."""

from __future__ import annotations

from pathlib import Path

from clustermanager.config import Config
from clustermanager.dependencies.config import config_dependency
from clustermanager.dependencies.context import context_dependency

__all__ = ["configure"]


async def configure(directory: str) -> Config:
    """Configure or reconfigure with a test configuration.

    If the global process context was already initialized, it is recreated
    with the new configuration.

    Parameters
    ----------
    directory
        Configuration directory to use.

    Returns
    -------
    Config
        New configuration.
    """
    config_path = Path(__file__).parent.parent / "data" / directory / "input"
    base_path = Path(__file__).parent.parent / "data" / "base" / "input"
    config_dependency.set_path(config_path / "config.yaml")
    config = config_dependency.config

    # The Vault login presents the service account token, which lives with
    # the test data rather than where Kubernetes would mount it.
    config.service_account_token_path = base_path / "serviceaccount-token"

    if context_dependency.is_initialized:
        await context_dependency.aclose()
        await context_dependency.initialize(config)

    return config_dependency.config
