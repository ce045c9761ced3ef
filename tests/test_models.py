"""Tests for Pydantic models: policy aliases, k8s normalisation, snapshot helpers."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from driver_upgrade.consts import (
    UPGRADE_STATE_CORDON_REQUIRED,
    UPGRADE_STATE_DONE,
    UPGRADE_STATE_FAILED,
    UPGRADE_STATE_UNKNOWN,
)
from driver_upgrade.models import (
    ClusterUpgradeState,
    DaemonSetInfo,
    DriverPodInfo,
    NodeInfo,
    NodeUpgradeState,
    UpgradePolicy,
)


def _make_node_state(name: str) -> NodeUpgradeState:
    return NodeUpgradeState(
        node=NodeInfo(name=name),
        driver_pod=DriverPodInfo(name=f"gpu-driver-{name}", namespace="gpu-operator", node_name=name),
        driver_daemon_set=DaemonSetInfo(name="gpu-driver", namespace="gpu-operator", generation=1),
    )


def _make_cluster_state(phases: dict[str, list[NodeUpgradeState]]) -> ClusterUpgradeState:
    state = ClusterUpgradeState()
    for phase, node_states in phases.items():
        for node_state in node_states:
            state.add_node_state(phase, node_state)
    return state


class TestUpgradePolicy:
    def test_defaults(self) -> None:
        policy = UpgradePolicy()
        assert policy.auto_upgrade is False
        assert policy.max_parallel_upgrades == 1
        assert policy.wait_for_completion is None
        assert policy.pod_deletion is None
        assert policy.drain_spec is None

    def test_parses_custom_resource_keys(self) -> None:
        policy = UpgradePolicy.model_validate(
            {
                "autoUpgrade": True,
                "maxParallelUpgrades": 3,
                "waitForCompletion": {"podSelector": "app=training", "timeoutSeconds": 600},
                "podDeletion": {"force": True, "deleteEmptyDir": True},
                "drain": {"enable": True, "podSelector": "tier=batch", "timeoutSeconds": 120},
            }
        )
        assert policy.auto_upgrade is True
        assert policy.max_parallel_upgrades == 3
        assert policy.wait_for_completion is not None
        assert policy.wait_for_completion.pod_selector == "app=training"
        assert policy.wait_for_completion.timeout_seconds == 600
        assert policy.pod_deletion is not None
        assert policy.pod_deletion.delete_empty_dir is True
        assert policy.pod_deletion.timeout_seconds == 300
        assert policy.drain_spec is not None
        assert policy.drain_spec.enable is True
        assert policy.drain_spec.pod_selector == "tier=batch"

    def test_accepts_field_names(self) -> None:
        policy = UpgradePolicy(auto_upgrade=True, max_parallel_upgrades=0)
        assert policy.max_parallel_upgrades == 0

    def test_negative_parallelism_rejected(self) -> None:
        with pytest.raises(ValidationError):
            UpgradePolicy(max_parallel_upgrades=-1)


class TestNodeInfoFromK8s:
    def test_normalises_node(self) -> None:
        node = MagicMock()
        node.metadata.name = "gpu-node-1"
        node.metadata.labels = {"role": "gpu"}
        node.metadata.annotations = None
        node.spec.unschedulable = None

        info = NodeInfo.from_k8s(node)

        assert info == NodeInfo(name="gpu-node-1", unschedulable=False, labels={"role": "gpu"}, annotations={})

    def test_cordoned_node(self) -> None:
        node = MagicMock()
        node.metadata.name = "gpu-node-2"
        node.metadata.labels = None
        node.metadata.annotations = {"a": "b"}
        node.spec.unschedulable = True

        info = NodeInfo.from_k8s(node)

        assert info.unschedulable is True
        assert info.labels == {}
        assert info.annotations == {"a": "b"}


class TestDriverPodInfoFromK8s:
    def test_normalises_pod(self) -> None:
        deleted_at = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
        ready = MagicMock()
        ready.name = "driver"
        ready.ready = True
        not_ready = MagicMock()
        not_ready.name = "toolkit"
        not_ready.ready = None

        pod = MagicMock()
        pod.metadata.name = "gpu-driver-abc"
        pod.metadata.namespace = "gpu-operator"
        pod.metadata.labels = {"pod-template-generation": "4"}
        pod.metadata.deletion_timestamp = deleted_at
        pod.spec.node_name = "gpu-node-1"
        pod.status.phase = "Running"
        pod.status.container_statuses = [ready, not_ready]

        info = DriverPodInfo.from_k8s(pod)

        assert info.node_name == "gpu-node-1"
        assert info.phase == "Running"
        assert [(cs.name, cs.ready) for cs in info.container_statuses] == [("driver", True), ("toolkit", False)]
        assert info.deletion_timestamp == deleted_at

    def test_pod_without_status(self) -> None:
        pod = MagicMock()
        pod.metadata.name = "gpu-driver-abc"
        pod.metadata.namespace = "gpu-operator"
        pod.metadata.labels = None
        pod.metadata.deletion_timestamp = None
        pod.spec = None
        pod.status = None

        info = DriverPodInfo.from_k8s(pod)

        assert info.phase is None
        assert info.container_statuses == []
        assert info.labels == {}


class TestDaemonSetInfoFromK8s:
    def test_missing_generation_is_zero(self) -> None:
        ds = MagicMock()
        ds.metadata.name = "gpu-driver"
        ds.metadata.namespace = "gpu-operator"
        ds.metadata.generation = None

        assert DaemonSetInfo.from_k8s(ds).generation == 0


class TestClusterUpgradeState:
    def test_nodes_in_missing_phase_is_empty(self) -> None:
        assert ClusterUpgradeState().nodes_in(UPGRADE_STATE_DONE) == []

    def test_add_and_count(self) -> None:
        state = _make_cluster_state(
            {
                UPGRADE_STATE_CORDON_REQUIRED: [_make_node_state("a"), _make_node_state("b")],
                UPGRADE_STATE_FAILED: [_make_node_state("c")],
            }
        )
        state.add_node_state(UPGRADE_STATE_FAILED, _make_node_state("d"))

        assert [ns.node.name for ns in state.nodes_in(UPGRADE_STATE_FAILED)] == ["c", "d"]
        assert state.count(UPGRADE_STATE_CORDON_REQUIRED, UPGRADE_STATE_FAILED) == 4
        assert state.count() == 0

    def test_summary_names_unknown_phase(self) -> None:
        state = _make_cluster_state({UPGRADE_STATE_UNKNOWN: [_make_node_state("a")]})

        summary = state.summary()

        assert summary["unknown"] == 1
        assert summary[UPGRADE_STATE_DONE] == 0
        assert "" not in summary
        assert len(summary) == 10
