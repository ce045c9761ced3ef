"""Collaborator contracts the state manager schedules work through.

Every method is a schedule-and-return call from the state manager's point of
view. Jobs that take a while (completion checks, eviction, drain, restart)
advance the node's phase themselves once they finish; the state manager only
observes that in the next snapshot.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from driver_upgrade.consts import UpgradeState
from driver_upgrade.models import DrainSpec, DriverPodInfo, NodeInfo, PodDeletionSpec


@dataclass(frozen=True)
class PodManagerConfig:
    """A batch of nodes handed to the pod manager."""

    nodes: list[NodeInfo] = field(default_factory=list)
    selector: str = ""
    deletion_spec: PodDeletionSpec | None = None


@dataclass(frozen=True)
class DrainConfiguration:
    """A batch of nodes handed to the drain manager."""

    spec: DrainSpec
    nodes: list[NodeInfo] = field(default_factory=list)


class NodeUpgradeStateProvider(ABC):
    """Durable per-node storage for the upgrade phase and auxiliary annotations."""

    @abstractmethod
    async def change_node_upgrade_state(self, node: NodeInfo, new_state: UpgradeState) -> None:
        """Persist ``new_state`` as the node's upgrade phase."""

    @abstractmethod
    async def change_node_upgrade_annotation(self, node: NodeInfo, key: str, value: str) -> None:
        """Set a node annotation. The value ``"null"`` removes the annotation."""


class CordonManager(ABC):
    """Marks nodes unschedulable and schedulable again."""

    @abstractmethod
    async def cordon(self, node: NodeInfo) -> None:
        """Mark the node unschedulable."""

    @abstractmethod
    async def uncordon(self, node: NodeInfo) -> None:
        """Mark the node schedulable."""


class PodManager(ABC):
    """Schedules pod-level jobs on nodes."""

    @abstractmethod
    async def schedule_check_on_pod_completion(self, config: PodManagerConfig) -> None:
        """Wait for pods matching ``config.selector`` to finish on ``config.nodes``."""

    @abstractmethod
    async def schedule_pod_eviction(self, config: PodManagerConfig) -> None:
        """Evict the pods selected by ``config.deletion_spec`` from ``config.nodes``."""

    @abstractmethod
    async def schedule_pods_restart(self, pods: list[DriverPodInfo]) -> None:
        """Delete the given driver pods so the daemonset recreates them."""


class DrainManager(ABC):
    """Schedules node drains."""

    @abstractmethod
    async def schedule_nodes_drain(self, config: DrainConfiguration) -> None:
        """Cordon and evict workloads from ``config.nodes`` per ``config.spec``."""
