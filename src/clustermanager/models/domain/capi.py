"""Models for Cluster API objects in the control plane."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ...constants import HOST_ID_ANNOTATION
from .kubernetes import (
    Condition,
    KubernetesResource,
    ObjectReference,
    ResourceSchema,
)

__all__ = [
    "CLUSTER_RESOURCE",
    "DOCKER_MACHINE_RESOURCE",
    "INTEL_MACHINE_RESOURCE",
    "MACHINE_BINDING_RESOURCE",
    "MACHINE_RESOURCE",
    "Cluster",
    "ClusterNetwork",
    "ClusterPhase",
    "ClusterSpec",
    "ClusterStatus",
    "ClusterTopology",
    "ControlPlaneTopology",
    "DockerMachine",
    "IntelMachine",
    "Machine",
    "MachineBinding",
    "MachineBindingSpec",
    "MachinePhase",
    "MachineSpec",
    "MachineStatus",
    "NetworkRanges",
    "ProviderMachineKind",
    "TopologyVariable",
]

CLUSTER_RESOURCE = ResourceSchema(
    group="cluster.x-k8s.io",
    version="v1beta1",
    plural="clusters",
    kind="Cluster",
)
"""Cluster API ``Cluster`` resource."""

MACHINE_RESOURCE = ResourceSchema(
    group="cluster.x-k8s.io",
    version="v1beta1",
    plural="machines",
    kind="Machine",
)
"""Cluster API ``Machine`` resource."""

INTEL_MACHINE_RESOURCE = ResourceSchema(
    group="infrastructure.cluster.x-k8s.io",
    version="v1alpha1",
    plural="intelmachines",
    kind="IntelMachine",
)
"""Intel infrastructure provider machine resource."""

DOCKER_MACHINE_RESOURCE = ResourceSchema(
    group="infrastructure.cluster.x-k8s.io",
    version="v1beta1",
    plural="dockermachines",
    kind="DockerMachine",
)
"""Docker infrastructure provider machine resource."""

MACHINE_BINDING_RESOURCE = ResourceSchema(
    group="infrastructure.cluster.x-k8s.io",
    version="v1alpha1",
    plural="intelmachinebindings",
    kind="IntelMachineBinding",
)
"""Intel infrastructure provider binding of a host to a cluster."""


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, extra="ignore", populate_by_name=True
    )


class ClusterPhase(StrEnum):
    """Phases reported by Cluster API for a ``Cluster``."""

    PENDING = "Pending"
    PROVISIONING = "Provisioning"
    PROVISIONED = "Provisioned"
    DELETING = "Deleting"
    FAILED = "Failed"
    UNKNOWN = "Unknown"


class MachinePhase(StrEnum):
    """Phases reported by Cluster API for a ``Machine``."""

    PENDING = "Pending"
    PROVISIONING = "Provisioning"
    PROVISIONED = "Provisioned"
    RUNNING = "Running"
    DELETING = "Deleting"
    DELETED = "Deleted"
    FAILED = "Failed"
    UNKNOWN = "Unknown"


class NetworkRanges(_CamelModel):
    """A list of CIDR blocks."""

    cidr_blocks: list[str] = []


class ClusterNetwork(_CamelModel):
    """Pod and service networks of a cluster."""

    pods: NetworkRanges | None = None
    services: NetworkRanges | None = None


class TopologyVariable(_CamelModel):
    """A variable passed to the cluster class."""

    name: str
    value: Any


class ControlPlaneTopology(_CamelModel):
    """Control plane part of the managed topology."""

    replicas: int | None = None


class ClusterTopology(_CamelModel):
    """Managed topology of a cluster built from a cluster class."""

    cluster_class: Annotated[str, Field(alias="class")] = ""
    version: str = ""
    control_plane: ControlPlaneTopology | None = None
    variables: list[TopologyVariable] | None = None


class ClusterSpec(_CamelModel):
    """Desired state of a ``Cluster``."""

    paused: bool | None = None
    cluster_network: ClusterNetwork | None = None
    topology: ClusterTopology | None = None


class ClusterStatus(_CamelModel):
    """Observed state of a ``Cluster``."""

    phase: str = ""
    conditions: list[Condition] = []


class Cluster(KubernetesResource):
    """A Cluster API workload cluster."""

    resource: ClassVar = CLUSTER_RESOURCE

    spec: ClusterSpec = ClusterSpec()
    status: ClusterStatus = ClusterStatus()

    @property
    def paused(self) -> bool:
        """Whether reconciliation of the cluster is paused."""
        return bool(self.spec.paused)

    @property
    def kubernetes_version(self) -> str | None:
        """Kubernetes version of the cluster topology, if known."""
        if self.spec.topology and self.spec.topology.version:
            return self.spec.topology.version
        return None

    @property
    def template(self) -> str:
        """Cluster class the cluster was built from."""
        if not self.spec.topology:
            return ""
        return self.spec.topology.cluster_class


class MachineSpec(_CamelModel):
    """Desired state of a ``Machine``."""

    cluster_name: str = ""
    infrastructure_ref: ObjectReference | None = None


class MachineStatus(_CamelModel):
    """Observed state of a ``Machine``."""

    phase: str = ""
    node_ref: ObjectReference | None = None
    last_updated: datetime | None = None
    conditions: list[Condition] = []


class Machine(KubernetesResource):
    """A Cluster API machine backing one node of a cluster."""

    resource: ClassVar = MACHINE_RESOURCE

    spec: MachineSpec = MachineSpec()
    status: MachineStatus = MachineStatus()

    @property
    def node_uid(self) -> str | None:
        """UID of the Kubernetes node this machine became, if any."""
        if not self.status.node_ref:
            return None
        return self.status.node_ref.uid


class ProviderMachineKind(StrEnum):
    """Kinds of infrastructure provider machines."""

    INTEL = "IntelMachine"
    DOCKER = "DockerMachine"


class _ProviderMachineBase(KubernetesResource):
    @property
    def host_id(self) -> str:
        """Tenant-visible identifier of the host backing the machine."""
        return self.annotations.get(HOST_ID_ANNOTATION, "")


class IntelMachine(_ProviderMachineBase):
    """Machine of the Intel infrastructure provider."""

    resource: ClassVar = INTEL_MACHINE_RESOURCE


class DockerMachine(_ProviderMachineBase):
    """Machine of the Docker infrastructure provider."""

    resource: ClassVar = DOCKER_MACHINE_RESOURCE


class MachineBindingSpec(_CamelModel):
    """Desired state of an ``IntelMachineBinding``."""

    node_guid: Annotated[str, Field(alias="nodeGUID")]
    cluster_name: str
    intel_machine_template_name: str


class MachineBinding(KubernetesResource):
    """Binding of a host to the control plane machine template of a cluster.

    Only used by the Intel infrastructure provider, which needs to know in
    advance which host will become which node.
    """

    resource: ClassVar = MACHINE_BINDING_RESOURCE

    spec: MachineBindingSpec
