"""Generic storage layer for Kubernetes custom objects.

Provides a typed wrapper around the custom object API and instantiations of
it for the Cluster API object types that need nothing beyond the generic
operations. Storage for clusters and templates, which need additional
operations, is defined in its own modules.
"""

from __future__ import annotations

from typing import Any

from kubernetes_asyncio import client
from kubernetes_asyncio.client import ApiClient, ApiException
from pydantic import ValidationError
from structlog.stdlib import BoundLogger

from ...exceptions import KubernetesError
from ...models.domain.capi import (
    DockerMachine,
    IntelMachine,
    Machine,
    MachineBinding,
)
from ...models.domain.kubernetes import KubernetesResource

__all__ = [
    "CustomObjectStorage",
    "DockerMachineStorage",
    "IntelMachineStorage",
    "MachineBindingStorage",
    "MachineStorage",
]

_MERGE_PATCH = "application/merge-patch+json"


class CustomObjectStorage[T: KubernetesResource]:
    """Typed storage for one kind of Kubernetes custom object.

    Reads come in two flavors. Live reads go directly to the API server.
    Cached reads are list calls with a resource version of ``0``, which the
    API server answers from its watch cache. Cached reads may be slightly
    stale, so anything that writes or reads back its own writes must use
    live reads.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    object_type
        Model of the custom object, which also determines the group,
        version, and plural used in API calls.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        api_client: ApiClient,
        object_type: type[T],
        logger: BoundLogger,
    ) -> None:
        self._api = client.CustomObjectsApi(api_client)
        self._type = object_type
        self._group = object_type.resource.group
        self._version = object_type.resource.version
        self._plural = object_type.resource.plural
        self._kind = object_type.resource.kind
        self._logger = logger

    async def create(self, namespace: str, body: T) -> None:
        """Create a new custom object.

        Parameters
        ----------
        namespace
            Namespace of the object.
        body
            Object to create.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        name = body.name
        msg = f"Creating {self._kind}"
        self._logger.debug(msg, name=name, namespace=namespace)
        try:
            await self._api.create_namespaced_custom_object(
                self._group,
                self._version,
                namespace,
                self._plural,
                body.to_kubernetes(),
            )
        except ApiException as e:
            raise KubernetesError.from_exception(
                "Error creating object",
                e,
                kind=self._kind,
                namespace=namespace,
                name=name,
            ) from e

    async def delete(
        self,
        name: str,
        namespace: str,
        *,
        grace_period_seconds: int | None = None,
    ) -> None:
        """Delete a custom object.

        Unlike reads, deleting an object that does not exist is an error,
        since callers need to report it.

        Parameters
        ----------
        name
            Name of the object.
        namespace
            Namespace of the object.
        grace_period_seconds
            If set, override the grace period for the deletion. Zero deletes
            the object immediately.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server, including
            if the object does not exist.
        """
        msg = f"Deleting {self._kind}"
        self._logger.debug(msg, name=name, namespace=namespace)
        extra = {}
        if grace_period_seconds is not None:
            extra["grace_period_seconds"] = grace_period_seconds
        try:
            await self._api.delete_namespaced_custom_object(
                self._group,
                self._version,
                namespace,
                self._plural,
                name,
                **extra,
            )
        except ApiException as e:
            raise KubernetesError.from_exception(
                "Error deleting object",
                e,
                kind=self._kind,
                namespace=namespace,
                name=name,
            ) from e

    async def list(
        self,
        namespace: str,
        *,
        label_selector: str | None = None,
        cached: bool = False,
    ) -> list[T]:
        """List the custom objects in a namespace.

        Parameters
        ----------
        namespace
            Namespace in which to list custom objects.
        label_selector
            If given, only list objects matching this label selector.
        cached
            Whether to allow the reply to come from the API server cache.

        Returns
        -------
        list of KubernetesResource
            Objects found.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server or if an
            object could not be parsed.
        """
        extra: dict[str, str] = {}
        if label_selector:
            extra["label_selector"] = label_selector
        if cached:
            extra["resource_version"] = "0"
        objs = await self._list(namespace, **extra)
        return [self._parse(o, namespace) for o in objs]

    async def patch(
        self, name: str, namespace: str, patch: dict[str, Any]
    ) -> None:
        """Apply a JSON merge patch to a custom object.

        Parameters
        ----------
        name
            Name of the object.
        namespace
            Namespace of the object.
        patch
            Merge patch to apply. Keys with a value of `None` are removed.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        """
        msg = f"Patching {self._kind}"
        self._logger.debug(msg, name=name, namespace=namespace, patch=patch)
        try:
            await self._api.patch_namespaced_custom_object(
                self._group,
                self._version,
                namespace,
                self._plural,
                name,
                patch,
                _content_type=_MERGE_PATCH,
            )
        except ApiException as e:
            raise KubernetesError.from_exception(
                "Error patching object",
                e,
                kind=self._kind,
                namespace=namespace,
                name=name,
            ) from e

    async def read(
        self, name: str, namespace: str, *, cached: bool = False
    ) -> T | None:
        """Read a custom object.

        Parameters
        ----------
        name
            Name of the custom object.
        namespace
            Namespace of the custom object.
        cached
            Whether to allow the reply to come from the API server cache.

        Returns
        -------
        KubernetesResource or None
            Custom object, or `None` if it does not exist.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server or if the
            object could not be parsed.
        """
        if cached:
            selector = f"metadata.name={name}"
            objs = await self._list(
                namespace, field_selector=selector, resource_version="0"
            )
            if not objs:
                return None
            return self._parse(objs[0], namespace)
        try:
            obj = await self._api.get_namespaced_custom_object(
                self._group, self._version, namespace, self._plural, name
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise KubernetesError.from_exception(
                "Error reading object",
                e,
                kind=self._kind,
                namespace=namespace,
                name=name,
            ) from e
        return self._parse(obj, namespace)

    async def _list(
        self, namespace: str, **kwargs: str
    ) -> list[dict[str, Any]]:
        try:
            objs = await self._api.list_namespaced_custom_object(
                self._group, self._version, namespace, self._plural, **kwargs
            )
        except ApiException as e:
            raise KubernetesError.from_exception(
                "Error listing objects",
                e,
                kind=self._kind,
                namespace=namespace,
            ) from e
        return objs["items"]

    def _parse(self, obj: dict[str, Any], namespace: str) -> T:
        try:
            return self._type.from_kubernetes(obj)
        except ValidationError as e:
            name = obj.get("metadata", {}).get("name")
            msg = f"Cannot parse object: {e}"
            raise KubernetesError(
                msg, kind=self._kind, namespace=namespace, name=name
            ) from e


class MachineStorage(CustomObjectStorage[Machine]):
    """Storage layer for Cluster API ``Machine`` objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        super().__init__(
            api_client=api_client, object_type=Machine, logger=logger
        )


class IntelMachineStorage(CustomObjectStorage[IntelMachine]):
    """Storage layer for ``IntelMachine`` objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        super().__init__(
            api_client=api_client, object_type=IntelMachine, logger=logger
        )


class DockerMachineStorage(CustomObjectStorage[DockerMachine]):
    """Storage layer for ``DockerMachine`` objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        super().__init__(
            api_client=api_client, object_type=DockerMachine, logger=logger
        )


class MachineBindingStorage(CustomObjectStorage[MachineBinding]):
    """Storage layer for ``IntelMachineBinding`` objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        super().__init__(
            api_client=api_client, object_type=MachineBinding, logger=logger
        )
