"""Pydantic v2 models for the upgrade policy, workload units, and the cluster snapshot."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from driver_upgrade.consts import ALL_UPGRADE_STATES

# --- Upgrade policy ---


class _PolicyModel(BaseModel):
    # Accept both the custom resource's camelCase keys and Python field names.
    model_config = ConfigDict(populate_by_name=True)


class WaitForCompletionSpec(_PolicyModel):
    """Pods that must complete on a node before its driver is replaced."""

    pod_selector: str = Field(default="", alias="podSelector")
    timeout_seconds: int = Field(default=0, ge=0, alias="timeoutSeconds")


class PodDeletionSpec(_PolicyModel):
    """Options passed through to the pod manager when evicting selected pods."""

    force: bool = False
    timeout_seconds: int = Field(default=300, ge=0, alias="timeoutSeconds")
    delete_empty_dir: bool = Field(default=False, alias="deleteEmptyDir")


class DrainSpec(_PolicyModel):
    """Node drain options passed through to the drain manager."""

    enable: bool = False
    force: bool = False
    pod_selector: str = Field(default="", alias="podSelector")
    timeout_seconds: int = Field(default=300, ge=0, alias="timeoutSeconds")
    delete_empty_dir: bool = Field(default=False, alias="deleteEmptyDir")


class UpgradePolicy(_PolicyModel):
    """Driver upgrade policy.

    ``max_parallel_upgrades`` of 0 means every node that needs an upgrade may
    start at once.
    """

    auto_upgrade: bool = Field(default=False, alias="autoUpgrade")
    max_parallel_upgrades: int = Field(default=1, ge=0, alias="maxParallelUpgrades")
    wait_for_completion: WaitForCompletionSpec | None = Field(default=None, alias="waitForCompletion")
    pod_deletion: PodDeletionSpec | None = Field(default=None, alias="podDeletion")
    drain_spec: DrainSpec | None = Field(default=None, alias="drain")


# --- Workload units ---


class NodeInfo(BaseModel):
    """The parts of a cluster node the upgrade state machine reads."""

    name: str
    unschedulable: bool = False
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_k8s(cls, node: Any) -> NodeInfo:
        """Normalise a kubernetes ``V1Node``."""
        return cls(
            name=node.metadata.name,
            unschedulable=bool(node.spec.unschedulable) if node.spec else False,
            labels=node.metadata.labels or {},
            annotations=node.metadata.annotations or {},
        )


class ContainerStatusInfo(BaseModel):
    """Readiness of one container in the driver pod."""

    name: str
    ready: bool = False


class DriverPodInfo(BaseModel):
    """The driver pod scheduled on a node by the driver daemonset."""

    name: str
    namespace: str
    node_name: str | None = None
    labels: dict[str, str] = Field(default_factory=dict)
    phase: str | None = None
    container_statuses: list[ContainerStatusInfo] = Field(default_factory=list)
    deletion_timestamp: datetime | None = None

    @classmethod
    def from_k8s(cls, pod: Any) -> DriverPodInfo:
        """Normalise a kubernetes ``V1Pod``."""
        status = pod.status
        return cls(
            name=pod.metadata.name,
            namespace=pod.metadata.namespace,
            node_name=pod.spec.node_name if pod.spec else None,
            labels=pod.metadata.labels or {},
            phase=status.phase if status else None,
            container_statuses=[
                ContainerStatusInfo(name=cs.name, ready=bool(cs.ready))
                for cs in ((status.container_statuses if status else None) or [])
            ],
            deletion_timestamp=pod.metadata.deletion_timestamp,
        )


class DaemonSetInfo(BaseModel):
    """The daemonset whose template the driver pods are stamped from."""

    name: str
    namespace: str
    generation: int

    @classmethod
    def from_k8s(cls, daemon_set: Any) -> DaemonSetInfo:
        """Normalise a kubernetes ``V1DaemonSet``."""
        return cls(
            name=daemon_set.metadata.name,
            namespace=daemon_set.metadata.namespace,
            generation=daemon_set.metadata.generation or 0,
        )


class NodeUpgradeState(BaseModel):
    """A node paired with its driver pod and the daemonset controlling that pod."""

    node: NodeInfo
    driver_pod: DriverPodInfo
    driver_daemon_set: DaemonSetInfo


# --- Cluster snapshot ---


class ClusterUpgradeState(BaseModel):
    """Snapshot of the driver upgrade state in the cluster, grouped by phase.

    Built fresh for each reconciliation pass and only read by the state manager.
    """

    node_states: dict[str, list[NodeUpgradeState]] = Field(default_factory=dict)

    def nodes_in(self, state: str) -> list[NodeUpgradeState]:
        """Return the units currently in ``state`` (empty when none)."""
        return self.node_states.get(state, [])

    def add_node_state(self, state: str, node_state: NodeUpgradeState) -> None:
        """Append a unit to a phase; used by snapshot builders."""
        self.node_states.setdefault(state, []).append(node_state)

    def count(self, *states: str) -> int:
        """Total number of units across the given phases."""
        return sum(len(self.nodes_in(s)) for s in states)

    def summary(self) -> dict[str, int]:
        """Per-phase unit counts keyed by phase name ('unknown' for the empty phase)."""
        return {(state or "unknown"): len(self.nodes_in(state)) for state in ALL_UPGRADE_STATES}
