"""API-visible models for workload clusters."""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel

__all__ = [
    "ClusterDetailInfo",
    "ClusterInfo",
    "ClusterInfoList",
    "ClusterLabels",
    "ClusterSpec",
    "ClusterSummary",
    "GenericStatus",
    "KubeconfigInfo",
    "NodeInfo",
    "NodeRole",
    "NodeSpec",
    "ProblemDetails",
    "StatusCondition",
    "StatusIndicator",
    "StatusInfo",
]

_NAME_PATTERN = r"^$|^[a-zA-Z0-9][a-zA-Z0-9.-]*[a-zA-Z0-9]$"
_TEMPLATE_PATTERN = (
    r"^$|^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$"
)

type LabelValue = Annotated[
    str, StringConstraints(max_length=63, pattern=_NAME_PATTERN)
]
"""Value of a user-supplied cluster label."""


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StatusIndicator(StrEnum):
    """Coarse classification of a synthesized status."""

    UNSPECIFIED = "STATUS_INDICATION_UNSPECIFIED"
    ERROR = "STATUS_INDICATION_ERROR"
    IN_PROGRESS = "STATUS_INDICATION_IN_PROGRESS"
    IDLE = "STATUS_INDICATION_IDLE"


class StatusCondition(StrEnum):
    """Condition of a single node."""

    UNKNOWN = "STATUS_CONDITION_UNKNOWN"
    READY = "STATUS_CONDITION_READY"
    NOT_READY = "STATUS_CONDITION_NOTREADY"
    PROVISIONING = "STATUS_CONDITION_PROVISIONING"
    REMOVING = "STATUS_CONDITION_REMOVING"


class NodeRole(StrEnum):
    """Role of a node in a cluster."""

    ALL = "all"
    CONTROLPLANE = "controlplane"
    WORKER = "worker"


class ProblemDetails(BaseModel):
    """Body of every error reply."""

    message: Annotated[str, Field(title="Error message")]


class GenericStatus(_ApiModel):
    """A status synthesized from the conditions of a cluster."""

    indicator: Annotated[
        StatusIndicator, Field(title="Status indicator")
    ] = StatusIndicator.UNSPECIFIED

    message: Annotated[
        str,
        Field(title="Status message", description="Human-readable status"),
    ] = ""

    timestamp: Annotated[
        int,
        Field(
            title="Last update",
            description="Unix timestamp (UTC) of the last status change",
        ),
    ] = 0


class StatusInfo(_ApiModel):
    """Status of one node of a cluster."""

    timestamp: Annotated[
        str | None, Field(title="Time the node status was last updated")
    ] = None

    condition: Annotated[
        StatusCondition, Field(title="Node condition")
    ] = StatusCondition.UNKNOWN

    reason: Annotated[
        str, Field(title="Machine phase behind the condition")
    ] = ""


class NodeInfo(_ApiModel):
    """One node of a cluster."""

    id: Annotated[str, Field(title="Host resource ID", examples=["host-1"])]

    role: Annotated[NodeRole, Field(title="Node role")] = NodeRole.ALL

    status: Annotated[StatusInfo, Field(title="Node status")]


class NodeSpec(_ApiModel):
    """One node requested for a new cluster."""

    id: Annotated[
        str,
        Field(
            title="Host UUID",
            examples=["6e6422c3-625e-507a-bc8a-bd2330e07e7e"],
        ),
    ]

    role: Annotated[NodeRole, Field(title="Node role")] = NodeRole.ALL


class ClusterSpec(_ApiModel):
    """Request to create a new cluster."""

    name: Annotated[
        str,
        Field(
            title="Cluster name",
            description="Generated from the current time if empty",
            max_length=63,
            pattern=_NAME_PATTERN,
        ),
    ] = ""

    template: Annotated[
        str,
        Field(
            title="Template",
            description=(
                "Resource name (``<name>-<version>``) of the cluster template."
                " The default template of the project is used if empty."
            ),
            max_length=63,
            pattern=_TEMPLATE_PATTERN,
        ),
    ] = ""

    nodes: Annotated[
        list[NodeSpec],
        Field(title="Nodes", description="Exactly one node is supported"),
    ]

    labels: Annotated[
        dict[str, LabelValue] | None,
        Field(
            title="Labels",
            description="User labels to attach to the cluster",
            examples=[{"key-1": "value-1"}],
        ),
    ] = None


class ClusterLabels(_ApiModel):
    """Replacement set of user labels of a cluster."""

    labels: Annotated[
        dict[str, LabelValue] | None,
        Field(
            title="Labels",
            description=(
                "New user labels. Label keys are validated separately from"
                " this schema."
            ),
        ),
    ] = None


class _ClusterStatusFields(_ApiModel):
    name: Annotated[str, Field(title="Cluster name")]

    kubernetes_version: Annotated[
        str | None, Field(title="Kubernetes version")
    ] = None

    labels: Annotated[dict[str, str], Field(title="User labels")] = {}

    lifecycle_phase: Annotated[
        GenericStatus | None,
        Field(title="Current phase in the cluster lifecycle"),
    ] = None

    provider_status: Annotated[
        GenericStatus | None,
        Field(title="Cluster status reported by the cluster provider"),
    ] = None

    control_plane_ready: Annotated[
        GenericStatus | None,
        Field(title="Control plane status"),
    ] = None

    infrastructure_ready: Annotated[
        GenericStatus | None,
        Field(title="Infrastructure status"),
    ] = None

    node_health: Annotated[
        GenericStatus | None, Field(title="Health summary of the nodes")
    ] = None


class ClusterInfo(_ClusterStatusFields):
    """Summary of a cluster as shown in the cluster list."""

    node_quantity: Annotated[
        int, Field(title="Number of nodes", ge=0, examples=[1])
    ] = 0


class ClusterDetailInfo(_ClusterStatusFields):
    """Full view of a single cluster."""

    template: Annotated[
        str | None, Field(title="Cluster class the cluster was built from")
    ] = None

    nodes: Annotated[list[NodeInfo], Field(title="Nodes")] = []


class ClusterInfoList(_ApiModel):
    """One page of the cluster list."""

    clusters: Annotated[
        list[ClusterInfo] | None,
        Field(title="Clusters", description="Null if no cluster matched"),
    ] = None

    total_elements: Annotated[
        int,
        Field(
            title="Total clusters",
            description="Number of matching clusters, ignoring pagination",
        ),
    ] = 0


class ClusterSummary(_ApiModel):
    """Count of the clusters of a project by overall status."""

    total_clusters: Annotated[int, Field(title="Total clusters")] = 0
    ready: Annotated[int, Field(title="Ready clusters")] = 0
    error: Annotated[int, Field(title="Clusters in error")] = 0
    in_progress: Annotated[
        int, Field(title="Clusters being provisioned or deleted")
    ] = 0
    unknown: Annotated[int, Field(title="Clusters in unknown state")] = 0


class KubeconfigInfo(_ApiModel):
    """Kubeconfig issued for a cluster."""

    id: Annotated[str | None, Field(title="Cluster name")] = None

    kubeconfig: Annotated[str, Field(title="Kubeconfig in YAML")]
