"""Storage layer for Cluster API ``Cluster`` objects."""

from __future__ import annotations

from collections.abc import Callable

from kubernetes_asyncio.client import ApiClient
from structlog.stdlib import BoundLogger

from ...exceptions import KubernetesError
from ...models.domain.capi import Cluster
from .custom import CustomObjectStorage

__all__ = ["ClusterStorage"]


class ClusterStorage(CustomObjectStorage[Cluster]):
    """Storage layer for Cluster API ``Cluster`` objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        super().__init__(
            api_client=api_client, object_type=Cluster, logger=logger
        )

    async def replace_user_labels(
        self,
        name: str,
        namespace: str,
        labels: dict[str, str],
        *,
        is_system_label: Callable[[str], bool],
    ) -> None:
        """Replace the user labels of a cluster.

        Reads the current cluster, keeps all of its system labels, and
        replaces all other labels with the new user labels. The write is a
        merge patch carrying the resource version of the read, so it fails
        with a conflict if the cluster changed in between.

        Parameters
        ----------
        name
            Name of the cluster.
        namespace
            Namespace of the cluster.
        labels
            New user labels. System labels in here are ignored.
        is_system_label
            Predicate deciding whether a label key is a system label.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server, including
            if the cluster does not exist or was concurrently modified.
        """
        cluster = await self.read(name, namespace)
        if not cluster:
            raise KubernetesError(
                "Cluster not found",
                kind=self._kind,
                namespace=namespace,
                name=name,
                status=404,
            )
        new_labels: dict[str, str | None] = {
            k: None for k in cluster.labels if not is_system_label(k)
        }
        new_labels.update(
            {k: v for k, v in labels.items() if not is_system_label(k)}
        )
        metadata = {
            "labels": new_labels,
            "resourceVersion": cluster.metadata.resource_version,
        }
        await self.patch(name, namespace, {"metadata": metadata})

    async def unpause(self, name: str, namespace: str) -> None:
        """Resume reconciliation of a paused cluster.

        Parameters
        ----------
        name
            Name of the cluster.
        namespace
            Namespace of the cluster.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        await self.patch(name, namespace, {"spec": {"paused": False}})
