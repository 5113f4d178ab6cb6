"""Storage layer for ``Secret`` objects."""

from __future__ import annotations

from kubernetes_asyncio import client
from kubernetes_asyncio.client import ApiClient, ApiException, V1Secret
from structlog.stdlib import BoundLogger

from ...exceptions import KubernetesError

__all__ = ["SecretStorage"]


class SecretStorage:
    """Storage layer for ``Secret`` objects.

    The cluster manager only ever reads secrets, namely the kubeconfig
    secrets written by the control plane provider for each cluster.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        self._api = client.CoreV1Api(api_client)
        self._logger = logger

    async def read(self, name: str, namespace: str) -> V1Secret | None:
        """Read a secret.

        Parameters
        ----------
        name
            Name of the secret.
        namespace
            Namespace of the secret.

        Returns
        -------
        kubernetes_asyncio.client.V1Secret or None
            Secret, or `None` if it does not exist.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        try:
            return await self._api.read_namespaced_secret(name, namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise KubernetesError.from_exception(
                "Error reading object",
                e,
                kind="Secret",
                namespace=namespace,
                name=name,
            ) from e
