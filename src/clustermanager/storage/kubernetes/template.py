"""Storage layer for ``ClusterTemplate`` objects."""

from __future__ import annotations

from kubernetes_asyncio.client import ApiClient
from structlog.stdlib import BoundLogger

from ...constants import DEFAULT_TEMPLATE_LABEL, DEFAULT_TEMPLATE_VALUE
from ...models.domain.template import ClusterTemplate
from .custom import CustomObjectStorage

__all__ = ["ClusterTemplateStorage"]


class ClusterTemplateStorage(CustomObjectStorage[ClusterTemplate]):
    """Storage layer for ``ClusterTemplate`` objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        super().__init__(
            api_client=api_client, object_type=ClusterTemplate, logger=logger
        )

    async def list_defaults(
        self, namespace: str, *, cached: bool = False
    ) -> list[ClusterTemplate]:
        """List the templates marked as default.

        Normally there is at most one, but nothing in the control plane
        enforces that.

        Parameters
        ----------
        namespace
            Namespace of the project.
        cached
            Whether to allow the reply to come from the API server cache.

        Returns
        -------
        list of ClusterTemplate
            Templates carrying the default label.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        selector = f"{DEFAULT_TEMPLATE_LABEL}={DEFAULT_TEMPLATE_VALUE}"
        return await self.list(
            namespace, label_selector=selector, cached=cached
        )

    async def set_label(
        self, name: str, namespace: str, key: str, value: str
    ) -> None:
        """Add or change one label of a template.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        patch = {"metadata": {"labels": {key: value}}}
        await self.patch(name, namespace, patch)

    async def remove_label(self, name: str, namespace: str, key: str) -> None:
        """Remove one label of a template.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        patch = {"metadata": {"labels": {key: None}}}
        await self.patch(name, namespace, patch)
