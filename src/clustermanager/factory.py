"""Component factory and global and per-request context management."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import aclosing, asynccontextmanager
from dataclasses import dataclass
from typing import Self

import structlog
from httpx import AsyncClient
from kubernetes_asyncio import client
from kubernetes_asyncio.client import ApiClient
from safir.dependencies.http_client import http_client_dependency
from structlog.stdlib import BoundLogger

from .config import Config
from .services.cluster import ClusterService
from .services.kubeconfig import KubeconfigService
from .services.template import TemplateService
from .services.token import CredentialCache, TokenService, TTLEnforcer
from .services.view import ClusterViewService
from .storage.inventory import InventoryStorageClient
from .storage.keycloak import KeycloakStorageClient
from .storage.kubernetes.cluster import ClusterStorage
from .storage.kubernetes.custom import (
    DockerMachineStorage,
    IntelMachineStorage,
    MachineBindingStorage,
    MachineStorage,
)
from .storage.kubernetes.secret import SecretStorage
from .storage.kubernetes.template import ClusterTemplateStorage
from .storage.vault import VaultStorageClient

__all__ = ["Factory", "ProcessContext"]


@dataclass(frozen=True, slots=True)
class ProcessContext:
    """Per-process global application state.

    This object holds all of the per-process singletons and is managed by
    `~clustermanager.dependencies.context.ContextDependency`. It is used by
    the `Factory` class as a source of dependencies to inject into created
    service and storage objects.
    """

    config: Config
    """Cluster manager configuration."""

    http_client: AsyncClient
    """Shared HTTP client."""

    kubernetes_client: ApiClient
    """Shared Kubernetes client."""

    credential_cache: CredentialCache
    """Cache of the M2M client credentials."""

    ttl_enforcer: TTLEnforcer
    """Record of the token lifetime applied to the M2M client."""

    @classmethod
    async def from_config(cls, config: Config) -> Self:
        """Create a new process context from the configuration.

        Parameters
        ----------
        config
            Cluster manager configuration.

        Returns
        -------
        ProcessContext
            Shared context for a cluster manager process.
        """
        return cls(
            config=config,
            http_client=await http_client_dependency(),
            kubernetes_client=client.ApiClient(),
            credential_cache=CredentialCache(),
            ttl_enforcer=TTLEnforcer(),
        )

    async def aclose(self) -> None:
        """Free allocated resources."""
        await self.kubernetes_client.close()


class Factory:
    """Build cluster manager components.

    Uses the contents of a `ProcessContext` to construct the components of the
    application on demand.

    Parameters
    ----------
    context
        Shared process context.
    logger
        Logger to use for messages.
    """

    @classmethod
    @asynccontextmanager
    async def standalone(cls, config: Config) -> AsyncIterator[Self]:
        """Async context manager for cluster manager components.

        Intended for the test suite.

        Parameters
        ----------
        config
            Cluster manager configuration.

        Yields
        ------
        Factory
            Newly-created factory. Must be used as a context manager.
        """
        logger = structlog.get_logger(__name__)
        context = await ProcessContext.from_config(config)
        factory = cls(context, logger)
        async with aclosing(factory):
            yield factory

    def __init__(self, context: ProcessContext, logger: BoundLogger) -> None:
        self._context = context
        self._logger = logger

    @property
    def ttl_enforcer(self) -> TTLEnforcer:
        """Global token lifetime enforcer, from the `ProcessContext`.

        Only used by tests.
        """
        return self._context.ttl_enforcer

    async def aclose(self) -> None:
        """Shut down the factory.

        After this method is called, the factory object is no longer valid and
        must not be used.
        """
        await self._context.aclose()

    def create_cluster_service(self) -> ClusterService:
        """Create service to manage the lifecycle of clusters.

        Returns
        -------
        ClusterService
            Newly-created cluster service.
        """
        return ClusterService(
            config=self._context.config,
            cluster_storage=self.create_cluster_storage(),
            binding_storage=MachineBindingStorage(
                self._context.kubernetes_client, self._logger
            ),
            template_service=self.create_template_service(),
            view_service=self.create_cluster_view_service(),
            inventory_client=self.create_inventory_client(),
            logger=self._logger,
        )

    def create_cluster_storage(self) -> ClusterStorage:
        """Create Kubernetes storage object for clusters.

        Returns
        -------
        ClusterStorage
            Newly-created cluster storage.
        """
        return ClusterStorage(self._context.kubernetes_client, self._logger)

    def create_cluster_view_service(self) -> ClusterViewService:
        """Create service to build views of clusters.

        Returns
        -------
        ClusterViewService
            Newly-created cluster view service.
        """
        api_client = self._context.kubernetes_client
        return ClusterViewService(
            config=self._context.config,
            cluster_storage=self.create_cluster_storage(),
            machine_storage=MachineStorage(api_client, self._logger),
            intel_machine_storage=IntelMachineStorage(
                api_client, self._logger
            ),
            docker_machine_storage=DockerMachineStorage(
                api_client, self._logger
            ),
            logger=self._logger,
        )

    def create_inventory_client(self) -> InventoryStorageClient:
        """Create client for the host inventory.

        Returns
        -------
        InventoryStorageClient
            Newly-created inventory client.
        """
        return InventoryStorageClient(
            self._context.config, self._context.http_client, self._logger
        )

    def create_kubeconfig_service(self) -> KubeconfigService:
        """Create service to issue kubeconfigs.

        Returns
        -------
        KubeconfigService
            Newly-created kubeconfig service.
        """
        return KubeconfigService(
            config=self._context.config,
            secret_storage=SecretStorage(
                self._context.kubernetes_client, self._logger
            ),
            token_service=self.create_token_service(),
            logger=self._logger,
        )

    def create_template_service(self) -> TemplateService:
        """Create service to manage cluster templates.

        Returns
        -------
        TemplateService
            Newly-created template service.
        """
        storage = ClusterTemplateStorage(
            self._context.kubernetes_client, self._logger
        )
        return TemplateService(storage, self._logger)

    def create_token_service(self) -> TokenService:
        """Create service to mint kubeconfig tokens.

        Returns
        -------
        TokenService
            Newly-created token service.
        """
        config = self._context.config
        http_client = self._context.http_client
        return TokenService(
            config=config,
            vault_client=VaultStorageClient(config, http_client, self._logger),
            keycloak_client=KeycloakStorageClient(
                config, http_client, self._logger
            ),
            credential_cache=self._context.credential_cache,
            ttl_enforcer=self._context.ttl_enforcer,
            logger=self._logger,
        )

    def set_logger(self, logger: BoundLogger) -> None:
        """Replace the internal logger.

        Used by the context dependency to update the logger for all
        newly-created components when it's rebound with additional context.

        Parameters
        ----------
        logger
            New logger.
        """
        self._logger = logger
