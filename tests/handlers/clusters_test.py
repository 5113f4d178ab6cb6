"""Tests for the cluster routes."""

from __future__ import annotations

import pytest
import respx
from httpx import AsyncClient, Response
from safir.testing.slack import MockSlackWebhook

from clustermanager.models.domain.capi import (
    CLUSTER_RESOURCE,
    MACHINE_BINDING_RESOURCE,
    MACHINE_RESOURCE,
)

from ..support.config import configure
from ..support.constants import TEST_OTHER_PROJECT, TEST_PROJECT
from ..support.kubernetes import MockClusterKubernetesApi

IDLE = "STATUS_INDICATION_IDLE"
IN_PROGRESS = "STATUS_INDICATION_IN_PROGRESS"
DEMO_TIMESTAMP = 1714564800
EDGE_TIMESTAMP = 1714636800
DEMO_NODE_UID = "1b5c3e8a-2f7d-4e6b-9a1c-0d2e3f4a5b6c"
HOST_UUID = "6e6422c3-625e-507a-bc8a-bd2330e07e7e"

DEMO_CLUSTER = {
    "name": "demo-cluster",
    "kubernetesVersion": "v1.30.6+rke2r1",
    "labels": {"app": "demo", "default-extension": "baseline"},
    "lifecyclePhase": {
        "indicator": IDLE,
        "message": "active",
        "timestamp": DEMO_TIMESTAMP,
    },
    "providerStatus": {
        "indicator": IDLE,
        "message": "ready",
        "timestamp": DEMO_TIMESTAMP,
    },
    "controlPlaneReady": {
        "indicator": IDLE,
        "message": "ready",
        "timestamp": DEMO_TIMESTAMP,
    },
    "infrastructureReady": {
        "indicator": IDLE,
        "message": "ready",
        "timestamp": DEMO_TIMESTAMP - 600,
    },
    "nodeHealth": {
        "indicator": IDLE,
        "message": "nodes are healthy",
        "timestamp": DEMO_TIMESTAMP,
    },
}


def system_labels(name: str, *, trusted_compute: bool) -> dict[str, str]:
    return {
        "edge-orchestrator.intel.com/clustername": name,
        "edge-orchestrator.intel.com/project-id": TEST_PROJECT,
        "prometheusMetricsURL": "metrics-node.kind.internal",
        "trusted-compute-compatible": str(trusted_compute).lower(),
    }


@pytest.mark.asyncio
async def test_list(client: AsyncClient) -> None:
    r = await client.get("/v2/clusters")
    assert r.status_code == 200
    data = r.json()
    assert data["totalElements"] == 2
    assert [c["name"] for c in data["clusters"]] == [
        "demo-cluster",
        "edge-cluster",
    ]
    assert data["clusters"][0] == {**DEMO_CLUSTER, "nodeQuantity": 1}

    edge = data["clusters"][1]
    assert edge["labels"] == {"site": "factory-7"}
    assert edge["lifecyclePhase"] == {
        "indicator": IN_PROGRESS,
        "message": "provisioning",
        "timestamp": EDGE_TIMESTAMP,
    }
    assert edge["providerStatus"]["message"] == (
        "not ready;waiting for control plane provider to indicate the"
        " control plane has been initialized"
    )
    assert edge["nodeHealth"] == {
        "indicator": IN_PROGRESS,
        "message": (
            "node(s) health unknown (0/1);edge-cluster-cp-9k4mz: waiting for"
            " node information to be populated, edge-cluster-cp-9k4mz:"
            " Provisioning"
        ),
        "timestamp": EDGE_TIMESTAMP,
    }


@pytest.mark.asyncio
async def test_list_query(client: AsyncClient) -> None:
    r = await client.get("/v2/clusters", params={"filter": "name=edge"})
    assert r.status_code == 200
    assert [c["name"] for c in r.json()["clusters"]] == ["edge-cluster"]

    r = await client.get(
        "/v2/clusters", params={"filter": "name=demo OR name = edge*"}
    )
    assert r.status_code == 200
    assert r.json()["totalElements"] == 2

    r = await client.get(
        "/v2/clusters",
        params={"filter": "name=demo AND kubernetesVersion=k3s"},
    )
    assert r.status_code == 200
    assert r.json() == {"clusters": None, "totalElements": 0}

    r = await client.get(
        "/v2/clusters", params={"filter": "lifecyclePhase=provisioning"}
    )
    assert r.status_code == 200
    assert [c["name"] for c in r.json()["clusters"]] == ["edge-cluster"]

    r = await client.get("/v2/clusters", params={"orderBy": "name desc"})
    assert r.status_code == 200
    assert [c["name"] for c in r.json()["clusters"]] == [
        "edge-cluster",
        "demo-cluster",
    ]

    r = await client.get(
        "/v2/clusters", params={"pageSize": 1, "offset": 1}
    )
    assert r.status_code == 200
    data = r.json()
    assert [c["name"] for c in data["clusters"]] == ["edge-cluster"]
    assert data["totalElements"] == 2

    r = await client.get("/v2/clusters", params={"pageSize": 0})
    assert r.status_code == 200
    assert len(r.json()["clusters"]) == 2


@pytest.mark.asyncio
async def test_list_errors(client: AsyncClient) -> None:
    r = await client.get("/v2/clusters", params={"filter": "color=blue"})
    assert r.status_code == 400
    assert r.json() == {"message": "invalid filter field"}

    r = await client.get("/v2/clusters", params={"filter": "name=a OR"})
    assert r.status_code == 400
    assert r.json() == {"message": "invalid filter field"}

    r = await client.get("/v2/clusters", params={"orderBy": "name up"})
    assert r.status_code == 400
    assert r.json() == {"message": "invalid orderBy field"}

    r = await client.get(
        "/v2/clusters", params={"pageSize": 0, "offset": 5}
    )
    assert r.status_code == 400
    assert r.json() == {"message": "invalid pageSize: must be greater than 0"}

    r = await client.get("/v2/clusters", params={"pageSize": 101})
    assert r.status_code == 400
    assert "pageSize" in r.json()["message"]


@pytest.mark.asyncio
async def test_list_empty(client: AsyncClient) -> None:
    r = await client.get(
        "/v2/clusters", headers={"Activeprojectid": TEST_OTHER_PROJECT}
    )
    assert r.status_code == 200
    assert r.json() == {"clusters": None, "totalElements": 0}


@pytest.mark.asyncio
async def test_invalid_project(client: AsyncClient) -> None:
    for project in ("", "not-a-uuid", "00000000-0000-0000-0000-000000000000"):
        r = await client.get(
            "/v2/clusters", headers={"Activeprojectid": project}
        )
        assert r.status_code == 400
        assert r.json() == {"message": "no active project id provided"}


@pytest.mark.asyncio
async def test_summary(client: AsyncClient) -> None:
    r = await client.get("/v2/clusters/summary")
    assert r.status_code == 200
    assert r.json() == {
        "totalClusters": 2,
        "ready": 1,
        "error": 0,
        "inProgress": 1,
        "unknown": 0,
    }

    r = await client.get(
        "/v2/clusters/summary",
        headers={"Activeprojectid": TEST_OTHER_PROJECT},
    )
    assert r.status_code == 200
    assert r.json()["totalClusters"] == 0


@pytest.mark.asyncio
async def test_kubernetes_failure(
    client: AsyncClient,
    mock_kubernetes: MockClusterKubernetesApi,
    mock_slack: MockSlackWebhook,
) -> None:
    mock_kubernetes.fail_for_test("list_namespaced_custom_object", 500, "boom")
    r = await client.get("/v2/clusters/summary")
    assert r.status_code == 500
    error = "Error listing objects (Cluster, status 500): boom"
    assert r.json() == {"message": error}

    assert len(mock_slack.messages) == 1
    text = mock_slack.messages[0]["blocks"][0]["text"]["text"]
    assert "Error listing objects (Cluster, status 500)" in text


@pytest.mark.asyncio
async def test_get(client: AsyncClient) -> None:
    r = await client.get("/v2/clusters/demo-cluster")
    assert r.status_code == 200
    assert r.json() == {
        **DEMO_CLUSTER,
        "template": "baseline-v0.1.0",
        "nodes": [
            {
                "id": "host-4f9a2c1e",
                "role": "all",
                "status": {
                    "timestamp": "2024-05-01 12:05:00+00:00",
                    "condition": "STATUS_CONDITION_READY",
                    "reason": "Running",
                },
            }
        ],
    }

    r = await client.get("/v2/clusters/edge-cluster")
    assert r.status_code == 200
    data = r.json()
    assert data["template"] == "edge-k3s-v0.1.0"
    assert data["nodes"] == [
        {
            "id": "host-8b3d7e2f",
            "role": "all",
            "status": {
                "timestamp": None,
                "condition": "STATUS_CONDITION_PROVISIONING",
                "reason": "Provisioning",
            },
        }
    ]


@pytest.mark.asyncio
async def test_get_errors(
    client: AsyncClient, mock_kubernetes: MockClusterKubernetesApi
) -> None:
    r = await client.get("/v2/clusters/missing")
    assert r.status_code == 404
    assert r.json() == {"message": "cluster not found"}

    r = await client.get("/v2/clusters/-invalid-")
    assert r.status_code == 400
    assert r.json() == {"message": "invalid cluster name format"}

    # A cluster whose machines have not been created yet fails validation.
    cluster = mock_kubernetes.get_custom_object_for_test(
        CLUSTER_RESOURCE, TEST_PROJECT, "demo-cluster"
    )
    assert cluster
    cluster["metadata"]["name"] = "new-cluster"
    await mock_kubernetes.store_for_test(TEST_PROJECT, cluster)
    r = await client.get("/v2/clusters/new-cluster")
    assert r.status_code == 500
    assert r.json() == {
        "message": (
            "failed to validate cluster detail: missing or invalid nodes"
        )
    }

    # A machine must refer to its provider machine.
    machine = mock_kubernetes.get_custom_object_for_test(
        MACHINE_RESOURCE, TEST_PROJECT, "demo-cluster-cp-7x2lq"
    )
    assert machine
    del machine["spec"]["infrastructureRef"]
    await mock_kubernetes.store_for_test(TEST_PROJECT, machine)
    r = await client.get("/v2/clusters/demo-cluster")
    assert r.status_code == 500
    assert r.json() == {
        "message": (
            "failed to get nodes: machine demo-cluster-cp-7x2lq has no"
            " infrastructure reference"
        )
    }



@pytest.mark.asyncio
async def test_get_by_node(client: AsyncClient) -> None:
    r = await client.get(f"/v2/clusters/{DEMO_NODE_UID}/clusterdetail")
    assert r.status_code == 200
    data = r.json()
    assert data["name"] == "demo-cluster"
    assert data["nodes"][0]["id"] == "host-4f9a2c1e"

    r = await client.get(f"/v2/clusters/{HOST_UUID}/clusterdetail")
    assert r.status_code == 404
    assert r.json() == {"message": "machine not found"}


@pytest.mark.asyncio
async def test_create(
    client: AsyncClient, mock_kubernetes: MockClusterKubernetesApi
) -> None:
    r = await client.post(
        "/v2/clusters",
        json={
            "name": "new-cluster",
            "nodes": [{"id": HOST_UUID, "role": "all"}],
            "labels": {"app": "new"},
        },
    )
    assert r.status_code == 201
    assert r.json() == "successfully created cluster new-cluster"

    cluster = mock_kubernetes.get_custom_object_for_test(
        CLUSTER_RESOURCE, TEST_PROJECT, "new-cluster"
    )
    assert cluster
    assert cluster["metadata"]["labels"] == {
        "app": "new",
        "default-extension": "baseline",
        **system_labels("new-cluster", trusted_compute=False),
    }
    assert cluster["metadata"]["annotations"] == {
        "edge-orchestrator.intel.com/template": "baseline-v0.1.0"
    }
    assert cluster["spec"] == {
        "clusterNetwork": {
            "pods": {"cidrBlocks": ["10.42.0.0/16"]},
            "services": {"cidrBlocks": ["10.43.0.0/16"]},
        },
        "topology": {
            "class": "baseline-v0.1.0",
            "version": "v1.30.6+rke2r1",
            "controlPlane": {"replicas": 1},
        },
    }

    binding = mock_kubernetes.get_custom_object_for_test(
        MACHINE_BINDING_RESOURCE, TEST_PROJECT, f"new-cluster-{HOST_UUID}"
    )
    assert binding
    assert binding["spec"] == {
        "nodeGUID": HOST_UUID,
        "clusterName": "new-cluster",
        "intelMachineTemplateName": "baseline-v0.1.0-controlplane",
    }


@pytest.mark.asyncio
async def test_create_generated_name(
    client: AsyncClient, mock_kubernetes: MockClusterKubernetesApi
) -> None:
    r = await client.post(
        "/v2/clusters",
        json={"template": "baseline-v0.2.0", "nodes": [{"id": HOST_UUID}]},
    )
    assert r.status_code == 201
    name = r.json().removeprefix("successfully created cluster ")
    assert name.startswith("cluster-")
    cluster = mock_kubernetes.get_custom_object_for_test(
        CLUSTER_RESOURCE, TEST_PROJECT, name
    )
    assert cluster
    assert cluster["spec"]["topology"]["class"] == "baseline-v0.2.0"

    # Templates without a network get empty network ranges.
    assert cluster["spec"]["clusterNetwork"] == {
        "pods": {"cidrBlocks": []},
        "services": {"cidrBlocks": []},
    }


@pytest.mark.asyncio
async def test_create_k3s(
    client: AsyncClient, mock_kubernetes: MockClusterKubernetesApi
) -> None:
    r = await client.post(
        "/v2/clusters",
        json={
            "name": "k3s-cluster",
            "template": "edge-k3s-v0.1.0",
            "nodes": [{"id": HOST_UUID}],
        },
    )
    assert r.status_code == 201

    # With inventory lookups disabled, k3s clusters are always read-only.
    cluster = mock_kubernetes.get_custom_object_for_test(
        CLUSTER_RESOURCE, TEST_PROJECT, "k3s-cluster"
    )
    assert cluster
    assert cluster["spec"]["topology"]["variables"] == [
        {"name": "readOnly", "value": True}
    ]


@pytest.mark.asyncio
async def test_create_inventory(
    client: AsyncClient,
    mock_kubernetes: MockClusterKubernetesApi,
    respx_mock: respx.Router,
) -> None:
    await configure("inventory")
    host_url = (
        f"https://inventory.example.com/v1/projects/{TEST_PROJECT}"
        f"/compute/hosts/{HOST_UUID}"
    )
    host = {
        "resourceId": "host-1a2b3c4d",
        "uuid": HOST_UUID,
        "instance": {
            "securityFeature": (
                "SECURITY_FEATURE_SECURE_BOOT_AND_FULL_DISK_ENCRYPTION"
            ),
            "desiredOs": {
                "name": "Edge Microvisor Toolkit",
                "osType": "OS_TYPE_MUTABLE",
            },
        },
    }
    route = respx_mock.get(host_url).mock(
        return_value=Response(200, json=host)
    )

    r = await client.post(
        "/v2/clusters",
        json={
            "name": "trusted",
            "template": "edge-k3s-v0.1.0",
            "nodes": [{"id": HOST_UUID}],
        },
    )
    assert r.status_code == 201
    assert route.call_count == 2
    cluster = mock_kubernetes.get_custom_object_for_test(
        CLUSTER_RESOURCE, TEST_PROJECT, "trusted"
    )
    assert cluster
    labels = cluster["metadata"]["labels"]
    assert labels["trusted-compute-compatible"] == "true"
    assert "variables" not in cluster["spec"]["topology"]

    # If the inventory fails, the host is not trusted, but the install mode
    # of a k3s cluster cannot be determined.
    route.mock(return_value=Response(500))
    r = await client.post(
        "/v2/clusters",
        json={"name": "untrusted", "nodes": [{"id": HOST_UUID}]},
    )
    assert r.status_code == 201
    cluster = mock_kubernetes.get_custom_object_for_test(
        CLUSTER_RESOURCE, TEST_PROJECT, "untrusted"
    )
    assert cluster
    labels = cluster["metadata"]["labels"]
    assert labels["trusted-compute-compatible"] == "false"

    r = await client.post(
        "/v2/clusters",
        json={
            "name": "unknown",
            "template": "edge-k3s-v0.1.0",
            "nodes": [{"id": HOST_UUID}],
        },
    )
    assert r.status_code == 500
    assert r.json()["message"].startswith(
        "failed to create cluster: failed to determine read-only install"
    )
    assert not mock_kubernetes.get_custom_object_for_test(
        CLUSTER_RESOURCE, TEST_PROJECT, "unknown"
    )


@pytest.mark.asyncio
async def test_create_errors(
    client: AsyncClient, mock_kubernetes: MockClusterKubernetesApi
) -> None:
    node = {"id": HOST_UUID}
    r = await client.post("/v2/clusters", json={"name": "x", "nodes": []})
    assert r.status_code == 400
    assert r.json() == {
        "message": "only single node clusters are supported, got 0 nodes"
    }

    r = await client.post(
        "/v2/clusters", json={"name": "two", "nodes": [node, node]}
    )
    assert r.status_code == 400
    assert r.json() == {
        "message": "only single node clusters are supported, got 2 nodes"
    }

    r = await client.post(
        "/v2/clusters",
        json={
            "name": "docker",
            "template": "docker-dev-v0.1.0",
            "nodes": [node],
        },
    )
    assert r.status_code == 500
    assert r.json() == {
        "message": (
            "failed to create cluster: template docker-dev-v0.1.0 is not"
            " ready"
        )
    }

    r = await client.post(
        "/v2/clusters",
        json={"name": "missing", "template": "other-v1.0.0", "nodes": [node]},
    )
    assert r.status_code == 500
    assert r.json() == {
        "message": (
            "failed to create cluster: clusterTemplate 'other-v1.0.0' not"
            " found"
        )
    }

    r = await client.post(
        "/v2/clusters",
        json={"name": "bad", "nodes": [node], "labels": {"bad key": "x"}},
    )
    assert r.status_code == 400
    assert r.json() == {"message": "invalid cluster labels"}

    r = await client.post(
        "/v2/clusters", json={"name": "-bad-name", "nodes": [node]}
    )
    assert r.status_code == 400

    r = await client.post(
        "/v2/clusters", json={"name": "demo-cluster", "nodes": [node]}
    )
    assert r.status_code == 500
    assert r.json()["message"].startswith("failed to create cluster: ")

    # None of the failed requests created anything.
    clusters = mock_kubernetes.get_custom_objects_for_test(
        CLUSTER_RESOURCE, TEST_PROJECT
    )
    assert sorted(c["metadata"]["name"] for c in clusters) == [
        "demo-cluster",
        "edge-cluster",
    ]
    assert not mock_kubernetes.get_custom_objects_for_test(
        MACHINE_BINDING_RESOURCE, TEST_PROJECT
    )


@pytest.mark.asyncio
async def test_create_binding_failure(
    client: AsyncClient, mock_kubernetes: MockClusterKubernetesApi
) -> None:
    binding = {
        "apiVersion": "infrastructure.cluster.x-k8s.io/v1alpha1",
        "kind": "IntelMachineBinding",
        "metadata": {"name": f"new-cluster-{HOST_UUID}"},
        "spec": {
            "nodeGUID": HOST_UUID,
            "clusterName": "old-cluster",
            "intelMachineTemplateName": "baseline-v0.1.0-controlplane",
        },
    }
    await mock_kubernetes.store_for_test(TEST_PROJECT, binding)

    r = await client.post(
        "/v2/clusters",
        json={"name": "new-cluster", "nodes": [{"id": HOST_UUID}]},
    )
    assert r.status_code == 500
    assert r.json()["message"].startswith(
        "failed to create machine bindings: Error creating object"
    )

    # The cluster is left in place and the existing binding is untouched.
    assert mock_kubernetes.get_custom_object_for_test(
        CLUSTER_RESOURCE, TEST_PROJECT, "new-cluster"
    )
    stored = mock_kubernetes.get_custom_object_for_test(
        MACHINE_BINDING_RESOURCE, TEST_PROJECT, f"new-cluster-{HOST_UUID}"
    )
    assert stored
    assert stored["spec"]["clusterName"] == "old-cluster"


@pytest.mark.asyncio
async def test_delete(
    client: AsyncClient, mock_kubernetes: MockClusterKubernetesApi
) -> None:
    r = await client.delete("/v2/clusters/demo-cluster")
    assert r.status_code == 204
    assert not mock_kubernetes.get_custom_object_for_test(
        CLUSTER_RESOURCE, TEST_PROJECT, "demo-cluster"
    )
    calls = mock_kubernetes.calls_for_test("clusters")
    assert [c.method for c in calls] == [
        "get_namespaced_custom_object",
        "delete_namespaced_custom_object",
    ]
    assert calls[-1].grace_period_seconds is None

    r = await client.delete("/v2/clusters/demo-cluster")
    assert r.status_code == 404
    assert r.json() == {
        "message": (
            f"cluster 'demo-cluster' not found in namespace '{TEST_PROJECT}'"
        )
    }


@pytest.mark.asyncio
async def test_delete_paused(
    client: AsyncClient, mock_kubernetes: MockClusterKubernetesApi
) -> None:
    cluster = mock_kubernetes.get_custom_object_for_test(
        CLUSTER_RESOURCE, TEST_PROJECT, "edge-cluster"
    )
    assert cluster
    cluster["spec"]["paused"] = True
    await mock_kubernetes.store_for_test(TEST_PROJECT, cluster)
    mock_kubernetes.calls.clear()

    r = await client.delete("/v2/clusters/edge-cluster")
    assert r.status_code == 204
    calls = mock_kubernetes.calls_for_test("clusters")
    assert [c.method for c in calls] == [
        "get_namespaced_custom_object",
        "patch_namespaced_custom_object",
        "delete_namespaced_custom_object",
    ]
    assert calls[1].body == {"spec": {"paused": False}}


@pytest.mark.asyncio
async def test_delete_failure(
    client: AsyncClient,
    mock_kubernetes: MockClusterKubernetesApi,
    mock_slack: MockSlackWebhook,
) -> None:
    mock_kubernetes.fail_for_test("delete_namespaced_custom_object", 500)
    r = await client.delete("/v2/clusters/demo-cluster")
    assert r.status_code == 500
    assert r.json() == {"message": "failed to delete cluster"}
    assert mock_kubernetes.get_custom_object_for_test(
        CLUSTER_RESOURCE, TEST_PROJECT, "demo-cluster"
    )

    # Failures with a known message are not reported to Slack.
    assert mock_slack.messages == []


@pytest.mark.asyncio
async def test_delete_node(
    client: AsyncClient, mock_kubernetes: MockClusterKubernetesApi
) -> None:
    mock_kubernetes.calls.clear()
    r = await client.delete(
        "/v2/clusters/demo-cluster/nodes/host-4f9a2c1e",
        params={"force": "true"},
    )
    assert r.status_code == 200
    assert not mock_kubernetes.get_custom_object_for_test(
        CLUSTER_RESOURCE, TEST_PROJECT, "demo-cluster"
    )
    deletes = [
        c
        for c in mock_kubernetes.calls_for_test("clusters")
        if c.method == "delete_namespaced_custom_object"
    ]
    assert len(deletes) == 1
    assert deletes[0].grace_period_seconds == 0

    r = await client.delete("/v2/clusters/demo-cluster/nodes/host-4f9a2c1e")
    assert r.status_code == 500
    assert r.json() == {"message": "failed to retrieve cluster"}


@pytest.mark.asyncio
async def test_update_labels(
    client: AsyncClient, mock_kubernetes: MockClusterKubernetesApi
) -> None:
    r = await client.put(
        "/v2/clusters/demo-cluster/labels",
        json={"labels": {"env": "prod", "prometheusMetricsURL": "evil"}},
    )
    assert r.status_code == 200

    # User labels are replaced and system labels cannot be changed.
    cluster = mock_kubernetes.get_custom_object_for_test(
        CLUSTER_RESOURCE, TEST_PROJECT, "demo-cluster"
    )
    assert cluster
    assert cluster["metadata"]["labels"] == {
        "env": "prod",
        "topology.cluster.x-k8s.io/owned": "",
        **system_labels("demo-cluster", trusted_compute=False),
    }
    r = await client.get("/v2/clusters/demo-cluster")
    assert r.json()["labels"] == {"env": "prod"}

    r = await client.put(
        "/v2/clusters/demo-cluster/labels", json={"labels": {}}
    )
    assert r.status_code == 200
    r = await client.get("/v2/clusters/demo-cluster")
    assert r.json()["labels"] == {}


@pytest.mark.asyncio
async def test_update_labels_conflict(
    client: AsyncClient, mock_kubernetes: MockClusterKubernetesApi
) -> None:
    method = "patch_namespaced_custom_object"
    mock_kubernetes.fail_with_conflict_for_test(method)
    mock_kubernetes.fail_with_conflict_for_test(method)
    mock_kubernetes.calls.clear()

    r = await client.put(
        "/v2/clusters/edge-cluster/labels", json={"labels": {"site": "lab"}}
    )
    assert r.status_code == 200
    patches = [
        c
        for c in mock_kubernetes.calls_for_test("clusters")
        if c.method == method
    ]
    assert len(patches) == 3
    r = await client.get("/v2/clusters/edge-cluster")
    assert r.json()["labels"] == {"site": "lab"}

    # Other conflicts are not retried.
    mock_kubernetes.fail_for_test(method, 409, "conflict")
    r = await client.put(
        "/v2/clusters/edge-cluster/labels", json={"labels": {"site": "x"}}
    )
    assert r.status_code == 500
    assert r.json()["message"].startswith(
        "failed to update Cluster 'edge-cluster': "
    )


@pytest.mark.asyncio
async def test_update_labels_errors(client: AsyncClient) -> None:
    r = await client.put("/v2/clusters/demo-cluster/labels", json={})
    assert r.status_code == 400
    assert r.json() == {"message": "no labels provided"}

    r = await client.put(
        "/v2/clusters/demo-cluster/labels",
        json={"labels": {"bad key!": "value"}},
    )
    assert r.status_code == 400
    assert r.json() == {"message": "invalid cluster label keys"}

    r = await client.put(
        "/v2/clusters/demo-cluster/labels",
        json={"labels": {"key": "bad value!"}},
    )
    assert r.status_code == 400

    r = await client.put(
        "/v2/clusters/missing/labels", json={"labels": {"key": "value"}}
    )
    assert r.status_code == 404
    assert r.json()["message"].startswith("cluster 'missing' not found: ")


@pytest.mark.asyncio
async def test_update_template(client: AsyncClient) -> None:
    r = await client.put(
        "/v2/clusters/demo-cluster/template",
        json={"name": "baseline", "version": "v0.2.0"},
    )
    assert r.status_code == 501
    assert r.json() == {
        "message": (
            "In-place cluster updates are not supported. Please delete the"
            " cluster and create a new one with updated cluster template."
        )
    }
