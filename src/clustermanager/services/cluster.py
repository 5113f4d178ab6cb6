"""Creation, deletion, and relabeling of clusters."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping

from structlog.stdlib import BoundLogger

from ..config import Config
from ..constants import (
    PLATFORM_PREFIX,
    PROMETHEUS_METRICS_LABEL,
    PROMETHEUS_METRICS_SUBDOMAIN,
    TEMPLATE_ANNOTATION,
    TRUSTED_COMPUTE_LABEL,
)
from ..exceptions import (
    InternalError,
    InvalidRequestError,
    InventoryError,
    InventoryWebError,
    KubernetesError,
    NotFoundError,
)
from ..models.domain.capi import (
    Cluster,
    ClusterNetwork,
    ClusterSpec,
    ClusterTopology,
    ControlPlaneTopology,
    MachineBinding,
    MachineBindingSpec,
    NetworkRanges,
    TopologyVariable,
)
from ..models.domain.kubernetes import ObjectMetadata
from ..models.domain.template import (
    ClusterTemplate,
    ControlPlaneProvider,
    InfraProvider,
)
from ..models.v1.cluster import ClusterSpec as ClusterRequest
from ..models.v1.cluster import NodeSpec
from ..storage.inventory import InventoryStorageClient
from ..storage.kubernetes.cluster import ClusterStorage
from ..storage.kubernetes.custom import MachineBindingStorage
from .labels import is_system_label, is_valid_labels
from .template import TemplateService
from .view import ClusterViewService

__all__ = ["ClusterService"]


class ClusterService:
    """Manage the lifecycle of clusters.

    Parameters
    ----------
    config
        Cluster manager configuration.
    cluster_storage
        Storage for ``Cluster`` objects.
    binding_storage
        Storage for ``IntelMachineBinding`` objects.
    template_service
        Service used to find the template of new clusters.
    view_service
        Service used to inspect existing clusters.
    inventory_client
        Client for the host inventory.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        config: Config,
        cluster_storage: ClusterStorage,
        binding_storage: MachineBindingStorage,
        template_service: TemplateService,
        view_service: ClusterViewService,
        inventory_client: InventoryStorageClient,
        logger: BoundLogger,
    ) -> None:
        self._config = config
        self._clusters = cluster_storage
        self._bindings = binding_storage
        self._templates = template_service
        self._views = view_service
        self._inventory = inventory_client
        self._logger = logger

    async def create(self, project: str, request: ClusterRequest) -> str:
        """Create a new cluster.

        If the template uses the Intel infrastructure provider, a machine
        binding is also created for each node. The cluster is not removed
        if creating the bindings fails.

        Parameters
        ----------
        project
            Project in which to create the cluster.
        request
            Cluster to create.

        Returns
        -------
        str
            Name of the new cluster.

        Raises
        ------
        InternalError
            Raised if the template cannot be used or creating the cluster or
            its bindings failed.
        InvalidRequestError
            Raised if the request has other than one node or the resulting
            labels are invalid.
        """
        nodes = request.nodes
        if len(nodes) != 1:
            msg = (
                "only single node clusters are supported, got"
                f" {len(nodes)} nodes"
            )
            raise InvalidRequestError(msg)
        name = request.name or f"cluster-{int(time.time())}"
        logger = self._logger.bind(namespace=project, name=name)
        if not request.name:
            logger.info("Cluster name not provided, generated one")

        try:
            template = await self._templates.resolve(project, request.template)
        except (InternalError, KubernetesError) as e:
            msg = f"failed to create cluster: {e}"
            logger.exception("Failed to resolve template")
            raise InternalError(msg) from e

        node_id = nodes[0].id
        trusted_compute = await self._is_trusted_compute(project, node_id)
        system_labels = self._system_labels(
            project, name, trusted_compute=trusted_compute
        )
        labels = {
            **(request.labels or {}),
            **(template.spec.cluster_labels or {}),
            **system_labels,
        }
        if not is_valid_labels(labels):
            logger.warning("Invalid cluster labels", labels=labels)
            raise InvalidRequestError("invalid cluster labels")

        read_only = await self._is_read_only(project, node_id, template)
        cluster = self._build_cluster(name, nodes, labels, template, read_only)
        try:
            await self._clusters.create(project, cluster)
        except KubernetesError as e:
            logger.exception("Failed to create cluster")
            raise InternalError(f"failed to create cluster: {e}") from e

        if template.spec.infra_provider_type == InfraProvider.INTEL:
            try:
                await self._create_bindings(project, name, template, nodes)
            except KubernetesError as e:
                msg = f"failed to create machine bindings: {e}"
                logger.exception("Failed to create machine bindings")
                raise InternalError(msg) from e

        logger.info("Created cluster", template=template.name)
        return name

    async def delete(
        self, project: str, name: str, *, force: bool = False
    ) -> None:
        """Delete a cluster, resuming it first if it is paused.

        A paused cluster is not reconciled, so its deletion would never
        finish.

        Parameters
        ----------
        project
            Project owning the cluster.
        name
            Name of the cluster.
        force
            Whether to delete the cluster without a grace period.

        Raises
        ------
        InternalError
            Raised if resuming or deleting the cluster failed.
        NotFoundError
            Raised if the cluster does not exist.
        """
        logger = self._logger.bind(namespace=project, name=name)
        not_found = f"cluster '{name}' not found in namespace '{project}'"
        try:
            cluster = await self._clusters.read(name, project)
            if not cluster:
                raise NotFoundError(not_found)
            if cluster.paused:
                logger.info("Resuming paused cluster before deletion")
                await self._clusters.unpause(name, project)
        except KubernetesError as e:
            if e.is_not_found:
                raise NotFoundError(not_found) from e
            logger.exception("Failed to unpause cluster before deletion")
            msg = "failed to unpause cluster before deletion"
            raise InternalError(msg) from e

        grace_period = 0 if force else None
        try:
            await self._clusters.delete(
                name, project, grace_period_seconds=grace_period
            )
        except KubernetesError as e:
            if e.is_not_found:
                raise NotFoundError(not_found) from e
            logger.exception("Failed to delete cluster")
            raise InternalError("failed to delete cluster") from e
        logger.info("Deleted cluster")

    async def delete_node(
        self, project: str, name: str, node_id: str, *, force: bool = False
    ) -> None:
        """Remove a node from a cluster.

        Only single-node clusters are supported, for which removing the node
        deletes the whole cluster.

        Parameters
        ----------
        project
            Project owning the cluster.
        name
            Name of the cluster.
        node_id
            ID of the host to remove.
        force
            Whether to delete without a grace period.

        Raises
        ------
        InternalError
            Raised if the cluster could not be retrieved or deleted, or has
            more than one node.
        """
        logger = self._logger.bind(namespace=project, name=name, node=node_id)
        try:
            cluster = await self._views.get_cluster(project, name)
        except (InternalError, KubernetesError, NotFoundError) as e:
            logger.exception("Failed to retrieve cluster")
            raise InternalError("failed to retrieve cluster") from e
        if len(cluster.nodes) != 1:
            logger.error("Multi-node clusters are not supported")
            raise InternalError("multi node clusters are not supported")
        try:
            await self.delete(project, name, force=force)
        except (InternalError, NotFoundError) as e:
            raise InternalError("failed to delete cluster") from e

    async def update_labels(
        self, project: str, name: str, labels: Mapping[str, str]
    ) -> None:
        """Replace the user labels of a cluster.

        System labels are kept and cannot be changed this way. The write is
        retried if it races with another change to the cluster.

        Parameters
        ----------
        project
            Project owning the cluster.
        name
            Name of the cluster.
        labels
            New user labels.

        Raises
        ------
        InternalError
            Raised if the labels could not be written.
        InvalidRequestError
            Raised if the labels are invalid or the control plane rejected
            them.
        NotFoundError
            Raised if the cluster does not exist.
        """
        if not is_valid_labels(labels):
            self._logger.warning("Invalid cluster labels", labels=labels)
            raise InvalidRequestError("invalid cluster label keys")
        try:
            await self._replace_labels(project, name, dict(labels))
        except KubernetesError as e:
            if e.is_bad_request:
                msg = f"cluster '{name}' is invalid: {e}"
                raise InvalidRequestError(msg) from e
            elif e.is_not_found:
                raise NotFoundError(f"cluster '{name}' not found: {e}") from e
            msg = f"failed to update Cluster '{name}': {e}"
            raise InternalError(msg) from e
        self._logger.info(
            "Updated cluster labels", namespace=project, name=name
        )

    def _build_cluster(
        self,
        name: str,
        nodes: list[NodeSpec],
        labels: dict[str, str],
        template: ClusterTemplate,
        read_only: bool,
    ) -> Cluster:
        class_ref = template.status.cluster_class_ref
        if not class_ref:
            msg = f"template {template.name} has no cluster class"
            raise InternalError(msg)
        network = template.spec.cluster_network or ClusterNetwork()
        variables = None
        if read_only:
            variables = [TopologyVariable(name="readOnly", value=True)]
        return Cluster(
            metadata=ObjectMetadata(
                name=name,
                labels=labels,
                annotations={TEMPLATE_ANNOTATION: template.name},
            ),
            spec=ClusterSpec(
                cluster_network=ClusterNetwork(
                    pods=network.pods or NetworkRanges(),
                    services=network.services or NetworkRanges(),
                ),
                topology=ClusterTopology(
                    cluster_class=class_ref.name,
                    version=template.spec.kubernetes_version,
                    control_plane=ControlPlaneTopology(replicas=len(nodes)),
                    variables=variables,
                ),
            ),
        )

    async def _create_bindings(
        self,
        project: str,
        name: str,
        template: ClusterTemplate,
        nodes: list[NodeSpec],
    ) -> None:
        for node in nodes:
            binding = MachineBinding(
                metadata=ObjectMetadata(name=f"{name}-{node.id}"),
                spec=MachineBindingSpec(
                    node_guid=node.id,
                    cluster_name=name,
                    intel_machine_template_name=(
                        f"{template.name}-controlplane"
                    ),
                ),
            )
            await self._bindings.create(project, binding)

    async def _is_read_only(
        self, project: str, node_id: str, template: ClusterTemplate
    ) -> bool:
        """Determine whether the cluster needs a read-only installation.

        Only K3s clusters support read-only installation, which is used on
        hosts with an immutable operating system.
        """
        provider = template.spec.control_plane_provider_type
        if provider != ControlPlaneProvider.K3S:
            return False
        if self._config.disable_inventory:
            return True
        try:
            return await self._inventory.is_immutable(project, node_id)
        except (InventoryError, InventoryWebError) as e:
            msg = (
                f"failed to determine read-only install for cluster, node:"
                f" {node_id}: {e}"
            )
            self._logger.exception(msg, namespace=project)
            raise InternalError(f"failed to create cluster: {msg}") from e

    async def _is_trusted_compute(self, project: str, node_id: str) -> bool:
        if self._config.disable_inventory:
            return False
        try:
            return await self._inventory.get_host_trusted_compute(
                project, node_id
            )
        except (InventoryError, InventoryWebError) as e:
            self._logger.warning(
                "Failed to get host trusted compute",
                namespace=project,
                node=node_id,
                error=str(e),
            )
            return False

    async def _replace_labels(
        self, project: str, name: str, labels: dict[str, str]
    ) -> None:
        retries = self._config.label_update_retries
        backoff = self._config.label_update_backoff.total_seconds()
        prefixes = self._config.system_label_prefixes
        for attempt in range(retries + 1):
            try:
                await self._clusters.replace_user_labels(
                    name,
                    project,
                    labels,
                    is_system_label=lambda k: is_system_label(k, prefixes),
                )
            except KubernetesError as e:
                if not e.is_modified_conflict or attempt == retries:
                    raise
                self._logger.debug(
                    "Cluster modified while updating labels, retrying",
                    namespace=project,
                    name=name,
                    attempt=attempt + 1,
                )
                await asyncio.sleep(backoff)
            else:
                return

    def _system_labels(
        self, project: str, name: str, *, trusted_compute: bool
    ) -> dict[str, str]:
        domain = self._config.cluster_domain
        metrics = f"{PROMETHEUS_METRICS_SUBDOMAIN}.{domain}"
        return {
            f"{PLATFORM_PREFIX}/clustername": name,
            f"{PLATFORM_PREFIX}/project-id": project,
            PROMETHEUS_METRICS_LABEL: metrics,
            TRUSTED_COMPUTE_LABEL: str(trusted_compute).lower(),
        }
