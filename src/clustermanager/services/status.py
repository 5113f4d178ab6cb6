"""Synthesis of tenant-visible status from Cluster API conditions.

Cluster API reports the state of a cluster as a phase plus a variable list
of conditions on the cluster and each of its machines. The functions here
collapse those into the small set of `GenericStatus` values shown to
tenants. They do no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..models.domain.capi import Cluster, ClusterPhase, Machine, MachinePhase
from ..models.domain.kubernetes import ConditionStatus
from ..models.v1.cluster import (
    GenericStatus,
    StatusCondition,
    StatusIndicator,
    StatusInfo,
)

__all__ = [
    "ClusterStatus",
    "control_plane_ready",
    "infrastructure_ready",
    "lifecycle_phase",
    "node_health",
    "node_status",
    "provider_status",
    "synthesize_status",
]

_WAITING_FOR_SERVER_REASONS = {
    "WaitingForRKE2Server",
    "WaitingForKThreesServer",
}
_WAITING_FOR_SERVER_MESSAGE = (
    "waiting for control plane provider to indicate the control plane has"
    " been initialized"
)
_NODE_HEALTH_CONDITIONS = {"MachineHealthCheckSucceeded", "MachineNodeHealthy"}
_WAITING_FOR_NODE_REF_MESSAGE = "waiting for node information to be populated"

_NODE_CONDITIONS = {
    MachinePhase.PENDING: StatusCondition.PROVISIONING,
    MachinePhase.PROVISIONING: StatusCondition.PROVISIONING,
    MachinePhase.PROVISIONED: StatusCondition.PROVISIONING,
    MachinePhase.RUNNING: StatusCondition.READY,
    MachinePhase.DELETING: StatusCondition.REMOVING,
    MachinePhase.DELETED: StatusCondition.NOT_READY,
}


@dataclass(slots=True)
class _ComponentMessages:
    ready: str
    not_ready: str
    unknown: str
    not_found: str = "condition not found"


@dataclass(slots=True)
class ClusterStatus:
    """All synthesized status of one cluster."""

    lifecycle_phase: GenericStatus | None
    """Lifecycle phase, or `None` if the cluster phase is unrecognized."""

    provider_status: GenericStatus
    """Status of the ``Ready`` condition."""

    control_plane_ready: GenericStatus
    """Status of the ``ControlPlaneReady`` condition."""

    infrastructure_ready: GenericStatus
    """Status of the ``InfrastructureReady`` condition."""

    node_health: GenericStatus
    """Health summary of the machines of the cluster."""

    errors: list[str]
    """Reasons collected from a failed cluster, for logging."""


def _component_ready(
    cluster: Cluster, condition_type: str, messages: _ComponentMessages
) -> GenericStatus:
    conditions = cluster.status.conditions
    condition = next((c for c in conditions if c.type == condition_type), None)
    if not condition:
        return GenericStatus(
            indicator=StatusIndicator.UNSPECIFIED,
            message=messages.not_found,
            timestamp=0,
        )
    match condition.status:
        case ConditionStatus.TRUE:
            indicator = StatusIndicator.IDLE
            message = messages.ready
        case ConditionStatus.FALSE:
            indicator = StatusIndicator.IN_PROGRESS
            if condition.reason in _WAITING_FOR_SERVER_REASONS:
                reason = _WAITING_FOR_SERVER_MESSAGE
            else:
                reason = condition.reason
            message = f"{messages.not_ready};{reason}"
        case _:
            indicator = StatusIndicator.ERROR
            message = messages.unknown
    return GenericStatus(
        indicator=indicator, message=message, timestamp=condition.timestamp
    )


def provider_status(cluster: Cluster) -> GenericStatus:
    """Summarize the ``Ready`` condition of a cluster."""
    messages = _ComponentMessages("ready", "not ready", "unknown")
    return _component_ready(cluster, "Ready", messages)


def control_plane_ready(cluster: Cluster) -> GenericStatus:
    """Summarize the ``ControlPlaneReady`` condition of a cluster."""
    messages = _ComponentMessages("ready", "not ready", "status is unknown")
    return _component_ready(cluster, "ControlPlaneReady", messages)


def infrastructure_ready(cluster: Cluster) -> GenericStatus:
    """Summarize the ``InfrastructureReady`` condition of a cluster."""
    messages = _ComponentMessages("ready", "not ready", "unknown")
    return _component_ready(cluster, "InfrastructureReady", messages)


def lifecycle_phase(
    cluster: Cluster,
) -> tuple[GenericStatus | None, list[str]]:
    """Summarize the phase of a cluster.

    Parameters
    ----------
    cluster
        Cluster to summarize.

    Returns
    -------
    tuple
        The lifecycle phase, or `None` if the phase is not one known to
        Cluster API, and the ``reason: message`` strings of all false
        conditions if the cluster failed.
    """
    conditions = cluster.status.conditions
    errors: list[str] = []
    if not conditions:
        status = GenericStatus(
            indicator=StatusIndicator.UNSPECIFIED,
            message="Condition not found",
            timestamp=0,
        )
        return status, errors
    match cluster.status.phase:
        case ClusterPhase.PENDING | ClusterPhase.PROVISIONING:
            indicator = StatusIndicator.IN_PROGRESS
            message = cluster.status.phase.lower()
        case ClusterPhase.DELETING:
            indicator = StatusIndicator.IN_PROGRESS
            message = "deleting"
        case ClusterPhase.PROVISIONED:
            if provider_status(cluster).indicator != StatusIndicator.IDLE:
                indicator = StatusIndicator.IN_PROGRESS
                message = "provisioned"
            else:
                indicator = StatusIndicator.IDLE
                message = "active"
        case ClusterPhase.FAILED:
            indicator = StatusIndicator.ERROR
            message = "failed"
            errors = [
                f"{c.reason}: {c.message}"
                for c in conditions
                if c.status == ConditionStatus.FALSE
            ]
        case ClusterPhase.UNKNOWN:
            indicator = StatusIndicator.UNSPECIFIED
            message = "unknown"
        case _:
            return None, errors
    status = GenericStatus(
        indicator=indicator, message=message, timestamp=conditions[0].timestamp
    )
    return status, errors


def node_health(cluster: Cluster, machines: list[Machine]) -> GenericStatus:
    """Summarize the health of the machines of a cluster.

    Parameters
    ----------
    cluster
        Cluster owning the machines, used for the timestamp.
    machines
        Machines of the cluster.

    Returns
    -------
    GenericStatus
        Health summary. Idle if every machine is running and no health
        check failed, in progress while any machine is provisioning or
        failing health checks, and error otherwise.
    """
    all_healthy = True
    in_progress = False
    running = 0
    details: list[str] = []
    unhealthy: list[str] = []
    for machine in machines:
        for condition in machine.status.conditions:
            if condition.type not in _NODE_HEALTH_CONDITIONS:
                continue
            if condition.status != ConditionStatus.FALSE:
                continue
            all_healthy = False
            in_progress = True
            if condition.reason == "WaitingForNodeRef":
                reason = _WAITING_FOR_NODE_REF_MESSAGE
            else:
                reason = condition.reason
            details.append(f"{machine.name}: {reason}")
            unhealthy.append(f"{machine.name}: {condition.message}")
        match machine.status.phase:
            case MachinePhase.RUNNING:
                running += 1
                in_progress = False
            case MachinePhase.PROVISIONING:
                in_progress = True
                details.append(f"{machine.name}: Provisioning")
            case phase:
                unhealthy.append(f"MachinePhase {phase}")

    total = len(machines)
    if in_progress:
        indicator = StatusIndicator.IN_PROGRESS
        joined = ", ".join(details)
        message = f"node(s) health unknown ({running}/{total});{joined}"
    elif all_healthy and running == total:
        indicator = StatusIndicator.IDLE
        message = "nodes are healthy"
    else:
        indicator = StatusIndicator.ERROR
        joined = ", ".join(unhealthy)
        message = f"nodes are unhealthy ({running}/{total});{joined}"
    conditions = cluster.status.conditions
    timestamp = conditions[0].timestamp if conditions else 0
    return GenericStatus(
        indicator=indicator, message=message, timestamp=timestamp
    )


def node_status(machine: Machine) -> StatusInfo:
    """Convert the phase of a machine to the status of its node."""
    phase = machine.status.phase
    try:
        condition = _NODE_CONDITIONS[MachinePhase(phase)]
    except ValueError:
        condition = StatusCondition.UNKNOWN
        phase = MachinePhase.UNKNOWN.value
    except KeyError:
        condition = StatusCondition.UNKNOWN
    timestamp = None
    if machine.status.last_updated:
        timestamp = str(machine.status.last_updated)
    return StatusInfo(timestamp=timestamp, condition=condition, reason=phase)


def synthesize_status(
    cluster: Cluster, machines: list[Machine]
) -> ClusterStatus:
    """Compute all synthesized status of a cluster.

    Parameters
    ----------
    cluster
        Cluster to summarize.
    machines
        Machines of the cluster.

    Returns
    -------
    ClusterStatus
        All status values of the cluster.
    """
    phase, errors = lifecycle_phase(cluster)
    return ClusterStatus(
        lifecycle_phase=phase,
        provider_status=provider_status(cluster),
        control_plane_ready=control_plane_ready(cluster),
        infrastructure_ready=infrastructure_ready(cluster),
        node_health=node_health(cluster, machines),
        errors=errors,
    )
