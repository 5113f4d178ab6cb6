"""Assembly of tenant-visible views of clusters."""

from __future__ import annotations

from collections import defaultdict

from structlog.stdlib import BoundLogger

from ..config import Config
from ..constants import CLUSTER_NAME_LABEL, CLUSTER_NAME_REGEX
from ..exceptions import InternalError, InvalidRequestError, NotFoundError
from ..models.domain.capi import Cluster, Machine, ProviderMachineKind
from ..models.domain.query import ListQuery
from ..models.v1.cluster import (
    ClusterDetailInfo,
    ClusterInfo,
    ClusterInfoList,
    ClusterSummary,
    NodeInfo,
    NodeRole,
    StatusIndicator,
)
from ..storage.kubernetes.cluster import ClusterStorage
from ..storage.kubernetes.custom import (
    DockerMachineStorage,
    IntelMachineStorage,
    MachineStorage,
)
from .labels import user_labels
from .query import FieldGetters, apply_query
from .status import ClusterStatus, node_status, synthesize_status

__all__ = ["ClusterViewService"]

_CLUSTER_FIELDS: FieldGetters[ClusterInfo] = {
    "name": lambda c: c.name,
    "kubernetesVersion": lambda c: c.kubernetes_version,
    "providerStatus": lambda c: (
        c.provider_status.message if c.provider_status else None
    ),
    "lifecyclePhase": lambda c: (
        c.lifecycle_phase.message if c.lifecycle_phase else None
    ),
}


class ClusterViewService:
    """Build the views of clusters returned by the API.

    Parameters
    ----------
    config
        Cluster manager configuration.
    cluster_storage
        Storage for ``Cluster`` objects.
    machine_storage
        Storage for ``Machine`` objects.
    intel_machine_storage
        Storage for ``IntelMachine`` objects.
    docker_machine_storage
        Storage for ``DockerMachine`` objects.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        config: Config,
        cluster_storage: ClusterStorage,
        machine_storage: MachineStorage,
        intel_machine_storage: IntelMachineStorage,
        docker_machine_storage: DockerMachineStorage,
        logger: BoundLogger,
    ) -> None:
        self._config = config
        self._clusters = cluster_storage
        self._machines = machine_storage
        self._intel_machines = intel_machine_storage
        self._docker_machines = docker_machine_storage
        self._logger = logger

    async def get_cluster(self, project: str, name: str) -> ClusterDetailInfo:
        """Build the detailed view of a cluster.

        Parameters
        ----------
        project
            Project owning the cluster.
        name
            Name of the cluster.

        Returns
        -------
        ClusterDetailInfo
            Detailed view of the cluster.

        Raises
        ------
        InternalError
            Raised if the view is incomplete or a node could not be resolved.
        InvalidRequestError
            Raised if the name is not a valid cluster name.
        KubernetesError
            Raised on failure to talk to Kubernetes.
        NotFoundError
            Raised if the cluster does not exist.
        """
        if not CLUSTER_NAME_REGEX.match(name):
            raise InvalidRequestError("invalid cluster name format")
        cluster = await self._clusters.read(name, project)
        if not cluster:
            raise NotFoundError("cluster not found")
        if not cluster.name:
            raise InternalError("missing cluster name")
        selector = f"{CLUSTER_NAME_LABEL}={cluster.name}"
        machines = await self._machines.list(project, label_selector=selector)
        nodes = [await self._build_node(project, m) for m in machines]
        status = synthesize_status(cluster, machines)
        self._log_errors(cluster, status)
        detail = ClusterDetailInfo(
            name=cluster.name,
            kubernetes_version=cluster.kubernetes_version,
            labels=self._user_labels(cluster),
            lifecycle_phase=status.lifecycle_phase,
            provider_status=status.provider_status,
            control_plane_ready=status.control_plane_ready,
            infrastructure_ready=status.infrastructure_ready,
            node_health=status.node_health,
            template=cluster.template,
            nodes=nodes,
        )
        self._validate_detail(detail)
        return detail

    async def get_cluster_by_node(
        self, project: str, node_id: str
    ) -> ClusterDetailInfo:
        """Build the detailed view of the cluster containing a node.

        Parameters
        ----------
        project
            Project owning the cluster.
        node_id
            UID of the Kubernetes node.

        Returns
        -------
        ClusterDetailInfo
            Detailed view of the cluster.

        Raises
        ------
        InternalError
            Raised if the view is incomplete or a node could not be resolved.
        KubernetesError
            Raised on failure to talk to Kubernetes.
        NotFoundError
            Raised if no machine became that node or its cluster does not
            exist.
        """
        machines = await self._machines.list(project, cached=True)
        machine = next((m for m in machines if m.node_uid == node_id), None)
        if not machine:
            raise NotFoundError("machine not found")
        return await self.get_cluster(project, machine.spec.cluster_name)

    async def list_clusters(
        self, project: str, query: ListQuery
    ) -> ClusterInfoList:
        """Build the list of clusters of a project.

        Parameters
        ----------
        project
            Project whose clusters to list.
        query
            Filtering, ordering, and pagination to apply.

        Returns
        -------
        ClusterInfoList
            Requested page of clusters.

        Raises
        ------
        KubernetesError
            Raised on failure to talk to Kubernetes.
        """
        clusters = await self._clusters.list(project)
        machines = await self._machines_by_cluster(project)
        infos = []
        for cluster in clusters:
            if not cluster.name or not cluster.kubernetes_version:
                msg = "Skipping cluster without name or version"
                self._logger.warning(msg, name=cluster.name)
                continue
            infos.append(self._build_info(cluster, machines[cluster.name]))
        page, total = apply_query(infos, query, _CLUSTER_FIELDS)
        if total == 0:
            return ClusterInfoList(clusters=None, total_elements=0)
        return ClusterInfoList(clusters=page, total_elements=total)

    async def summarize(self, project: str) -> ClusterSummary:
        """Count the clusters of a project by overall status.

        A cluster is ready if all of its status indicators are idle, in error
        if any of them is an error, in progress if any of them is in
        progress, and unknown otherwise.

        Parameters
        ----------
        project
            Project whose clusters to count.

        Returns
        -------
        ClusterSummary
            Cluster counts.

        Raises
        ------
        KubernetesError
            Raised on failure to talk to Kubernetes.
        """
        clusters = await self._clusters.list(project, cached=True)
        machines = await self._machines_by_cluster(project)
        summary = ClusterSummary(total_clusters=len(clusters))
        for cluster in clusters:
            status = synthesize_status(cluster, machines[cluster.name])
            indicators = [
                (
                    status.lifecycle_phase.indicator
                    if status.lifecycle_phase
                    else StatusIndicator.UNSPECIFIED
                ),
                status.provider_status.indicator,
                status.control_plane_ready.indicator,
                status.infrastructure_ready.indicator,
                status.node_health.indicator,
            ]
            if all(i == StatusIndicator.IDLE for i in indicators):
                summary.ready += 1
            elif StatusIndicator.ERROR in indicators:
                summary.error += 1
            elif StatusIndicator.IN_PROGRESS in indicators:
                summary.in_progress += 1
            else:
                summary.unknown += 1
        return summary

    def _build_info(
        self, cluster: Cluster, machines: list[Machine]
    ) -> ClusterInfo:
        status = synthesize_status(cluster, machines)
        self._log_errors(cluster, status)
        return ClusterInfo(
            name=cluster.name,
            kubernetes_version=cluster.kubernetes_version,
            labels=self._user_labels(cluster),
            lifecycle_phase=status.lifecycle_phase,
            provider_status=status.provider_status,
            control_plane_ready=status.control_plane_ready,
            infrastructure_ready=status.infrastructure_ready,
            node_health=status.node_health,
            node_quantity=len(machines),
        )

    async def _build_node(self, project: str, machine: Machine) -> NodeInfo:
        ref = machine.spec.infrastructure_ref
        if not ref:
            msg = (
                f"failed to get nodes: machine {machine.name} has no"
                " infrastructure reference"
            )
            raise InternalError(msg)
        kind = ref.kind
        match kind:
            case ProviderMachineKind.INTEL:
                storage = self._intel_machines
            case ProviderMachineKind.DOCKER:
                storage = self._docker_machines
            case _:
                msg = f"unsupported provider machine kind {kind}"
                raise InternalError(msg)
        provider_machine = await storage.read(ref.name, project)
        if not provider_machine:
            msg = f"failed to get nodes: {kind} {ref.name} not found"
            raise InternalError(msg)
        return NodeInfo(
            id=provider_machine.host_id,
            role=NodeRole.ALL,
            status=node_status(machine),
        )

    def _log_errors(self, cluster: Cluster, status: ClusterStatus) -> None:
        if status.errors:
            self._logger.debug(
                "Cluster failed",
                name=cluster.name,
                namespace=cluster.metadata.namespace,
                errors=status.errors,
            )

    async def _machines_by_cluster(
        self, project: str
    ) -> defaultdict[str, list[Machine]]:
        result: defaultdict[str, list[Machine]] = defaultdict(list)
        for machine in await self._machines.list(project, cached=True):
            cluster_name = machine.labels.get(CLUSTER_NAME_LABEL)
            if cluster_name:
                result[cluster_name].append(machine)
        return result

    def _user_labels(self, cluster: Cluster) -> dict[str, str]:
        prefixes = self._config.system_label_prefixes
        return user_labels(cluster.labels, prefixes)

    def _validate_detail(self, detail: ClusterDetailInfo) -> None:
        missing = None
        if not detail.provider_status:
            missing = "provider status"
        elif not detail.kubernetes_version:
            missing = "Kubernetes version"
        elif not detail.lifecycle_phase:
            missing = "lifecycle phase"
        elif not detail.node_health:
            missing = "node health"
        elif not detail.nodes:
            missing = "nodes"
        elif not detail.template:
            missing = "template"
        if missing:
            msg = (
                "failed to validate cluster detail: missing or invalid"
                f" {missing}"
            )
            self._logger.error(msg, name=detail.name)
            raise InternalError(msg)
