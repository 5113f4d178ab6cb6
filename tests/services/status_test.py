"""Tests for status synthesis."""

from __future__ import annotations

from typing import Any

from clustermanager.models.domain.capi import Cluster, Machine
from clustermanager.models.v1.cluster import (
    GenericStatus,
    StatusCondition,
    StatusIndicator,
    StatusInfo,
)
from clustermanager.services.status import (
    control_plane_ready,
    infrastructure_ready,
    lifecycle_phase,
    node_health,
    node_status,
    provider_status,
    synthesize_status,
)

TIMESTAMP = "2024-05-01T12:00:00Z"
EPOCH = 1714564800


def condition(
    type_: str, status: str, reason: str = "", message: str = ""
) -> dict[str, Any]:
    return {
        "type": type_,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": TIMESTAMP,
    }


def make_cluster(
    phase: str, conditions: list[dict[str, Any]] | None = None
) -> Cluster:
    return Cluster.from_kubernetes(
        {
            "metadata": {"name": "demo-cluster", "namespace": "project"},
            "spec": {},
            "status": {"phase": phase, "conditions": conditions or []},
        }
    )


def make_machine(
    name: str, phase: str, conditions: list[dict[str, Any]] | None = None
) -> Machine:
    return Machine.from_kubernetes(
        {
            "metadata": {"name": name, "namespace": "project"},
            "spec": {"clusterName": "demo-cluster"},
            "status": {
                "phase": phase,
                "lastUpdated": TIMESTAMP,
                "conditions": conditions or [],
            },
        }
    )


READY_CONDITIONS = [
    condition("Ready", "True"),
    condition("ControlPlaneReady", "True"),
    condition("InfrastructureReady", "True"),
]


def test_component_status() -> None:
    cluster = make_cluster("Provisioned", READY_CONDITIONS)
    ready = GenericStatus(
        indicator=StatusIndicator.IDLE, message="ready", timestamp=EPOCH
    )
    assert provider_status(cluster) == ready
    assert control_plane_ready(cluster) == ready
    assert infrastructure_ready(cluster) == ready

    cluster = make_cluster(
        "Provisioning",
        [
            condition("Ready", "False", "WaitingForInfrastructure"),
            condition("ControlPlaneReady", "False", "WaitingForRKE2Server"),
            condition("InfrastructureReady", "Unknown"),
        ],
    )
    assert provider_status(cluster) == GenericStatus(
        indicator=StatusIndicator.IN_PROGRESS,
        message="not ready;WaitingForInfrastructure",
        timestamp=EPOCH,
    )
    assert control_plane_ready(cluster) == GenericStatus(
        indicator=StatusIndicator.IN_PROGRESS,
        message=(
            "not ready;waiting for control plane provider to indicate the"
            " control plane has been initialized"
        ),
        timestamp=EPOCH,
    )
    assert infrastructure_ready(cluster) == GenericStatus(
        indicator=StatusIndicator.ERROR, message="unknown", timestamp=EPOCH
    )
    cluster = make_cluster(
        "Provisioning", [condition("ControlPlaneReady", "Unknown")]
    )
    assert control_plane_ready(cluster).message == "status is unknown"

    cluster = make_cluster("Pending")
    not_found = GenericStatus(
        indicator=StatusIndicator.UNSPECIFIED,
        message="condition not found",
        timestamp=0,
    )
    assert provider_status(cluster) == not_found
    assert control_plane_ready(cluster) == not_found
    assert infrastructure_ready(cluster) == not_found


def test_lifecycle_phase() -> None:
    assert lifecycle_phase(make_cluster("Provisioned")) == (
        GenericStatus(
            indicator=StatusIndicator.UNSPECIFIED,
            message="Condition not found",
            timestamp=0,
        ),
        [],
    )

    expected = [
        ("Pending", StatusIndicator.IN_PROGRESS, "pending"),
        ("Provisioning", StatusIndicator.IN_PROGRESS, "provisioning"),
        ("Deleting", StatusIndicator.IN_PROGRESS, "deleting"),
        ("Provisioned", StatusIndicator.IDLE, "active"),
        ("Unknown", StatusIndicator.UNSPECIFIED, "unknown"),
    ]
    for phase, indicator, message in expected:
        cluster = make_cluster(phase, READY_CONDITIONS)
        status, errors = lifecycle_phase(cluster)
        assert status == GenericStatus(
            indicator=indicator, message=message, timestamp=EPOCH
        )
        assert errors == []

    # A provisioned cluster is only active once it is ready.
    cluster = make_cluster(
        "Provisioned", [condition("Ready", "False", "ScalingUp")]
    )
    status, _ = lifecycle_phase(cluster)
    assert status
    assert status.indicator == StatusIndicator.IN_PROGRESS
    assert status.message == "provisioned"

    assert lifecycle_phase(make_cluster("Exploded", READY_CONDITIONS)) == (
        None,
        [],
    )


def test_lifecycle_phase_failed() -> None:
    cluster = make_cluster(
        "Failed",
        [
            condition("Ready", "False", "MachinesFailed", "host-1 failed"),
            condition("ControlPlaneReady", "True"),
            condition("InfrastructureReady", "False", "NoHost", "no host"),
        ],
    )
    status, errors = lifecycle_phase(cluster)
    assert status == GenericStatus(
        indicator=StatusIndicator.ERROR, message="failed", timestamp=EPOCH
    )
    assert errors == ["MachinesFailed: host-1 failed", "NoHost: no host"]


def test_node_health() -> None:
    cluster = make_cluster("Provisioned", READY_CONDITIONS)
    healthy = [
        condition("MachineHealthCheckSucceeded", "True"),
        condition("MachineNodeHealthy", "True"),
    ]
    machines = [
        make_machine("machine-1", "Running", healthy),
        make_machine("machine-2", "Running", healthy),
    ]
    assert node_health(cluster, machines) == GenericStatus(
        indicator=StatusIndicator.IDLE,
        message="nodes are healthy",
        timestamp=EPOCH,
    )

    waiting = [
        condition("MachineNodeHealthy", "False", "WaitingForNodeRef"),
        condition("BootstrapReady", "False", "Ignored"),
    ]
    machines = [make_machine("machine-1", "Provisioning", waiting)]
    assert node_health(cluster, machines) == GenericStatus(
        indicator=StatusIndicator.IN_PROGRESS,
        message=(
            "node(s) health unknown (0/1);machine-1: waiting for node"
            " information to be populated, machine-1: Provisioning"
        ),
        timestamp=EPOCH,
    )

    machines = [make_machine("machine-1", "Failed")]
    assert node_health(cluster, machines) == GenericStatus(
        indicator=StatusIndicator.ERROR,
        message="nodes are unhealthy (0/1);MachinePhase Failed",
        timestamp=EPOCH,
    )

    # Without conditions on the cluster, there is no timestamp.
    status = node_health(make_cluster("Pending"), [])
    assert status.indicator == StatusIndicator.IDLE
    assert status.timestamp == 0


def test_node_status() -> None:
    machine = make_machine("machine-1", "Running")
    assert node_status(machine) == StatusInfo(
        timestamp="2024-05-01 12:00:00+00:00",
        condition=StatusCondition.READY,
        reason="Running",
    )
    expected = [
        ("Pending", StatusCondition.PROVISIONING, "Pending"),
        ("Provisioned", StatusCondition.PROVISIONING, "Provisioned"),
        ("Deleting", StatusCondition.REMOVING, "Deleting"),
        ("Deleted", StatusCondition.NOT_READY, "Deleted"),
        ("Failed", StatusCondition.UNKNOWN, "Failed"),
        ("Exploded", StatusCondition.UNKNOWN, "Unknown"),
    ]
    for phase, status_condition, reason in expected:
        status = node_status(make_machine("machine-1", phase))
        assert status.condition == status_condition
        assert status.reason == reason


def test_synthesize_status() -> None:
    cluster = make_cluster("Provisioned", READY_CONDITIONS)
    machines = [make_machine("machine-1", "Running")]
    status = synthesize_status(cluster, machines)
    assert status.lifecycle_phase
    assert status.lifecycle_phase.message == "active"
    assert status.provider_status.indicator == StatusIndicator.IDLE
    assert status.control_plane_ready.indicator == StatusIndicator.IDLE
    assert status.infrastructure_ready.indicator == StatusIndicator.IDLE
    assert status.node_health.message == "nodes are healthy"
    assert status.errors == []
