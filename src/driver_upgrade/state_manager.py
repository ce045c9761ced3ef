"""Cluster upgrade state machine: decides which nodes advance to which phase next."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from functools import partial

import structlog

from driver_upgrade.config import ControllerConfig
from driver_upgrade.consts import (
    IN_PROGRESS_UPGRADE_STATES,
    NULL_STRING,
    TRUE_STRING,
    UPGRADE_STATE_CORDON_REQUIRED,
    UPGRADE_STATE_DONE,
    UPGRADE_STATE_DRAIN_REQUIRED,
    UPGRADE_STATE_FAILED,
    UPGRADE_STATE_POD_DELETION_REQUIRED,
    UPGRADE_STATE_POD_RESTART_REQUIRED,
    UPGRADE_STATE_UNCORDON_REQUIRED,
    UPGRADE_STATE_UNKNOWN,
    UPGRADE_STATE_UPGRADE_REQUIRED,
    UPGRADE_STATE_WAIT_FOR_JOBS_REQUIRED,
    UpgradeState,
)
from driver_upgrade.driver_pod import is_driver_pod_in_sync, is_driver_pod_outdated, is_pod_terminating
from driver_upgrade.interfaces import (
    CordonManager,
    DrainConfiguration,
    DrainManager,
    NodeUpgradeStateProvider,
    PodManager,
    PodManagerConfig,
)
from driver_upgrade.models import (
    ClusterUpgradeState,
    DrainSpec,
    DriverPodInfo,
    NodeInfo,
    NodeUpgradeState,
    PodDeletionSpec,
    UpgradePolicy,
    WaitForCompletionSpec,
)

log = structlog.get_logger()


class InvalidClusterStateError(ValueError):
    """Raised when apply_state is called without a cluster snapshot."""


class ClusterUpgradeStateManager:
    """State machine for a ClusterUpgradeState snapshot.

    Each pass walks every phase in a fixed order and either moves a node to its
    next phase or schedules the collaborator job that will move it later. All
    decisions are based on the snapshot, so a pass interrupted by an error is
    completed by the next pass over a freshly built snapshot.
    """

    def __init__(
        self,
        drain_manager: DrainManager,
        pod_manager: PodManager,
        cordon_manager: CordonManager,
        node_upgrade_state_provider: NodeUpgradeStateProvider,
        config: ControllerConfig | None = None,
    ) -> None:
        self.drain_manager = drain_manager
        self.pod_manager = pod_manager
        self.cordon_manager = cordon_manager
        self.node_upgrade_state_provider = node_upgrade_state_provider
        self.config = config or ControllerConfig()

    async def apply_state(
        self,
        current_state: ClusterUpgradeState | None,
        upgrade_policy: UpgradePolicy | None,
    ) -> None:
        """Process every node in the snapshot according to the upgrade policy.

        Stops at the first failing step and re-raises its exception. Transitions
        written before the failure are kept.

        Raises:
            InvalidClusterStateError: If ``current_state`` is None.
        """
        log.info("state_manager_got_state_update")

        if current_state is None:
            msg = "current_state should not be empty"
            raise InvalidClusterStateError(msg)

        if upgrade_policy is None or not upgrade_policy.auto_upgrade:
            log.info("driver_auto_upgrade_disabled")
            return

        log.info("node_states", **current_state.summary())

        upgrades_in_progress = current_state.count(*IN_PROGRESS_UPGRADE_STATES)
        if upgrade_policy.max_parallel_upgrades == 0:
            # Unlimited: every node waiting for an upgrade may start now.
            upgrades_available = len(current_state.nodes_in(UPGRADE_STATE_UPGRADE_REQUIRED))
        else:
            upgrades_available = upgrade_policy.max_parallel_upgrades - upgrades_in_progress

        log.info(
            "upgrades_in_progress",
            in_progress=upgrades_in_progress,
            max_parallel_upgrades=upgrade_policy.max_parallel_upgrades,
            slots_available=upgrades_available,
        )

        steps: list[tuple[str, Callable[[], Awaitable[None]]]] = [
            ("unknown", partial(self.process_done_or_unknown_nodes, current_state, UPGRADE_STATE_UNKNOWN)),
            ("done", partial(self.process_done_or_unknown_nodes, current_state, UPGRADE_STATE_DONE)),
            ("upgrade_required", partial(self.process_upgrade_required_nodes, current_state, upgrades_available)),
            ("cordon_required", partial(self.process_cordon_required_nodes, current_state)),
            (
                "wait_for_jobs_required",
                partial(self.process_wait_for_jobs_required_nodes, current_state, upgrade_policy.wait_for_completion),
            ),
            (
                "pod_deletion_required",
                partial(self.process_pod_deletion_required_nodes, current_state, upgrade_policy.pod_deletion),
            ),
            ("drain_required", partial(self.process_drain_nodes, current_state, upgrade_policy.drain_spec)),
            ("pod_restart_required", partial(self.process_pod_restart_nodes, current_state)),
            ("upgrade_failed", partial(self.process_upgrade_failed_nodes, current_state)),
            ("uncordon_required", partial(self.process_uncordon_required_nodes, current_state)),
        ]
        for phase, step in steps:
            try:
                await step()
            except Exception:
                log.error("failed_to_process_nodes", phase=phase)
                raise

        log.info("state_manager_finished_processing")

    async def process_done_or_unknown_nodes(self, current_state: ClusterUpgradeState, state_name: UpgradeState) -> None:
        """Move Unknown or Done nodes whose driver pod is outdated to UpgradeRequired.

        Unknown nodes with a current driver pod are marked Done; Done nodes with
        a current driver pod are left alone. A node that is already
        unschedulable gets the initial-state annotation before its phase
        changes, so the upgrade will not uncordon it at the end.
        """
        for node_state in current_state.nodes_in(state_name):
            node = node_state.node
            if is_driver_pod_outdated(node_state):
                if node.unschedulable:
                    annotation_key = self.config.upgrade_initial_state_annotation_key
                    log.info("node_unschedulable_tracking_initial_state", node=node.name, annotation=annotation_key)
                    await self.node_upgrade_state_provider.change_node_upgrade_annotation(
                        node, annotation_key, TRUE_STRING
                    )
                await self._change_state(node, UPGRADE_STATE_UPGRADE_REQUIRED)
                continue

            if state_name == UPGRADE_STATE_UNKNOWN:
                await self._change_state(node, UPGRADE_STATE_DONE)
                continue

            log.debug("node_upgrade_not_required", node=node.name)

    async def process_upgrade_required_nodes(self, current_state: ClusterUpgradeState, limit: int) -> None:
        """Move UpgradeRequired nodes to CordonRequired until ``limit`` slots are used."""
        for node_state in current_state.nodes_in(UPGRADE_STATE_UPGRADE_REQUIRED):
            if limit <= 0:
                log.info("upgrade_limit_reached")
                break

            node = node_state.node
            if self._skip_node_upgrade(node):
                log.info("node_marked_skip_upgrade", node=node.name)
                continue

            await self._change_state(node, UPGRADE_STATE_CORDON_REQUIRED)
            limit -= 1

    async def process_cordon_required_nodes(self, current_state: ClusterUpgradeState) -> None:
        """Cordon CordonRequired nodes and move them to WaitForJobsRequired."""
        for node_state in current_state.nodes_in(UPGRADE_STATE_CORDON_REQUIRED):
            node = node_state.node
            try:
                await self.cordon_manager.cordon(node)
            except Exception:
                log.warning("node_cordon_failed", node=node.name)
                raise
            await self._change_state(node, UPGRADE_STATE_WAIT_FOR_JOBS_REQUIRED)

    async def process_wait_for_jobs_required_nodes(
        self,
        current_state: ClusterUpgradeState,
        wait_for_completion_spec: WaitForCompletionSpec | None,
    ) -> None:
        """Schedule a job-completion check for WaitForJobsRequired nodes.

        Without a pod selector there is nothing to wait for, and the nodes move
        straight to PodDeletionRequired. Otherwise the pod manager advances them
        once the selected pods have finished.
        """
        node_states = current_state.nodes_in(UPGRADE_STATE_WAIT_FOR_JOBS_REQUIRED)

        if wait_for_completion_spec is None or not wait_for_completion_spec.pod_selector:
            for node_state in node_states:
                await self._change_state(node_state.node, UPGRADE_STATE_POD_DELETION_REQUIRED)
            return

        if not node_states:
            return

        config = PodManagerConfig(
            nodes=[ns.node for ns in node_states],
            selector=wait_for_completion_spec.pod_selector,
        )
        await self.pod_manager.schedule_check_on_pod_completion(config)

    async def process_pod_deletion_required_nodes(
        self,
        current_state: ClusterUpgradeState,
        pod_deletion_spec: PodDeletionSpec | None,
    ) -> None:
        """Hand PodDeletionRequired nodes to the pod manager for eviction."""
        nodes = [ns.node for ns in current_state.nodes_in(UPGRADE_STATE_POD_DELETION_REQUIRED)]
        if not nodes:
            return

        config = PodManagerConfig(nodes=nodes, deletion_spec=pod_deletion_spec)
        await self.pod_manager.schedule_pod_eviction(config)

    async def process_drain_nodes(self, current_state: ClusterUpgradeState, drain_spec: DrainSpec | None) -> None:
        """Schedule DrainRequired nodes for drain.

        When drain is disabled by the policy the nodes move straight to
        PodRestartRequired. The controller's own pod carries the skip-drain
        label and is excluded from eviction; evicting it could stall the
        upgrade when it has nowhere else to run.
        """
        node_states = current_state.nodes_in(UPGRADE_STATE_DRAIN_REQUIRED)

        if drain_spec is None or not drain_spec.enable:
            log.info("node_drain_disabled")
            for node_state in node_states:
                await self._change_state(node_state.node, UPGRADE_STATE_POD_RESTART_REQUIRED)
            return

        if not node_states:
            return

        skip_drain_selector = f"{self.config.upgrade_skip_drain_pod_label_key}!={TRUE_STRING}"
        if drain_spec.pod_selector:
            pod_selector = f"{drain_spec.pod_selector},{skip_drain_selector}"
        else:
            pod_selector = skip_drain_selector

        config = DrainConfiguration(
            spec=drain_spec.model_copy(update={"pod_selector": pod_selector}),
            nodes=[ns.node for ns in node_states],
        )
        await self.drain_manager.schedule_nodes_drain(config)

    async def process_pod_restart_nodes(self, current_state: ClusterUpgradeState) -> None:
        """Schedule outdated driver pods for restart and finish nodes whose pod is in sync."""
        pods: list[DriverPodInfo] = []
        for node_state in current_state.nodes_in(UPGRADE_STATE_POD_RESTART_REQUIRED):
            if is_driver_pod_outdated(node_state):
                # A terminating pod is already being replaced.
                if not is_pod_terminating(node_state.driver_pod):
                    pods.append(node_state.driver_pod)
                continue

            if is_driver_pod_in_sync(node_state):
                await self._finish_node_upgrade(node_state)

        if not pods:
            return

        await self.pod_manager.schedule_pods_restart(pods)

    async def process_upgrade_failed_nodes(self, current_state: ClusterUpgradeState) -> None:
        """Finish Failed nodes whose driver pod has since become in sync."""
        for node_state in current_state.nodes_in(UPGRADE_STATE_FAILED):
            if is_driver_pod_in_sync(node_state):
                await self._finish_node_upgrade(node_state)

    async def process_uncordon_required_nodes(self, current_state: ClusterUpgradeState) -> None:
        """Uncordon UncordonRequired nodes and move them to Done."""
        for node_state in current_state.nodes_in(UPGRADE_STATE_UNCORDON_REQUIRED):
            node = node_state.node
            try:
                await self.cordon_manager.uncordon(node)
            except Exception:
                log.warning("node_uncordon_failed", node=node.name)
                raise
            await self._change_state(node, UPGRADE_STATE_DONE)

    async def _finish_node_upgrade(self, node_state: NodeUpgradeState) -> None:
        # A node that was unschedulable before the upgrade skips the uncordon
        # step and keeps its original schedulability.
        node = node_state.node
        annotation_key = self.config.upgrade_initial_state_annotation_key
        if annotation_key not in node.annotations:
            await self._change_state(node, UPGRADE_STATE_UNCORDON_REQUIRED)
            return

        log.info("node_initially_unschedulable_skipping_uncordon", node=node.name)
        await self._change_state(node, UPGRADE_STATE_DONE)
        log.debug("removing_node_upgrade_annotation", node=node.name, annotation=annotation_key)
        await self.node_upgrade_state_provider.change_node_upgrade_annotation(node, annotation_key, NULL_STRING)

    async def _change_state(self, node: NodeInfo, new_state: UpgradeState) -> None:
        try:
            await self.node_upgrade_state_provider.change_node_upgrade_state(node, new_state)
        except Exception:
            log.error("failed_to_change_node_upgrade_state", node=node.name, state=new_state)
            raise
        log.info("node_upgrade_state_changed", node=node.name, state=new_state)

    def _skip_node_upgrade(self, node: NodeInfo) -> bool:
        return node.labels.get(self.config.upgrade_skip_node_label_key) == TRUE_STRING
