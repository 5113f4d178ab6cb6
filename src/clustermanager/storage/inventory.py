"""Client for the edge host inventory."""

from __future__ import annotations

from httpx import AsyncClient, HTTPError
from pydantic import ValidationError
from structlog.stdlib import BoundLogger

from ..config import Config
from ..exceptions import InventoryError, InventoryWebError
from ..models.domain.inventory import (
    OS_TYPE_IMMUTABLE,
    SECURITY_FEATURE_TRUSTED_COMPUTE,
    Host,
    HostInstance,
)

__all__ = ["InventoryStorageClient"]


class InventoryStorageClient:
    """Look up host attributes in the inventory.

    Parameters
    ----------
    config
        Cluster manager configuration.
    http_client
        Shared HTTP client.
    logger
        Logger for messages.
    """

    def __init__(
        self, config: Config, http_client: AsyncClient, logger: BoundLogger
    ) -> None:
        self._config = config
        self._http_client = http_client
        self._logger = logger

    async def get_host_trusted_compute(
        self, project: str, host_id: str
    ) -> bool:
        """Determine whether a host is trusted-compute compatible.

        Parameters
        ----------
        project
            Project owning the host.
        host_id
            Resource ID or UUID of the host.

        Returns
        -------
        bool
            Whether the host has secure boot and full disk encryption.

        Raises
        ------
        InventoryError
            Raised if the host has no instance or the reply is invalid.
        InventoryWebError
            Raised if the request to the inventory failed.
        """
        instance = await self._get_instance(project, host_id)
        return instance.security_feature == SECURITY_FEATURE_TRUSTED_COMPUTE

    async def is_immutable(self, project: str, host_id: str) -> bool:
        """Determine whether a host runs an immutable operating system.

        Parameters
        ----------
        project
            Project owning the host.
        host_id
            Resource ID or UUID of the host.

        Returns
        -------
        bool
            Whether the desired operating system of the host is immutable.

        Raises
        ------
        InventoryError
            Raised if the host has no instance or desired operating system,
            or the reply is invalid.
        InventoryWebError
            Raised if the request to the inventory failed.
        """
        instance = await self._get_instance(project, host_id)
        if not instance.desired_os:
            msg = f"Host {host_id} has no desired operating system"
            raise InventoryError(msg)
        return instance.desired_os.os_type == OS_TYPE_IMMUTABLE

    async def _get_instance(self, project: str, host_id: str) -> HostInstance:
        if not self._config.inventory_url:
            raise InventoryError("Inventory URL not configured")
        url = (
            f"{self._config.inventory_url}/v1/projects/{project}"
            f"/compute/hosts/{host_id}"
        )
        try:
            r = await self._http_client.get(url)
            r.raise_for_status()
            host = Host.model_validate(r.json())
        except HTTPError as e:
            raise InventoryWebError.from_exception(e) from e
        except ValidationError as e:
            msg = f"Cannot parse inventory host {host_id}: {e}"
            raise InventoryError(msg) from e
        self._logger.debug("Retrieved host from inventory", host=host_id)
        if not host.instance:
            msg = f"Host {host_id} has no instance"
            raise InventoryError(msg)
        return host.instance
