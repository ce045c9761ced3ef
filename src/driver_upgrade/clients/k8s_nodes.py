"""Kubernetes Core API wrappers that persist upgrade phases and cordon nodes."""

from __future__ import annotations

import asyncio
import threading
from typing import Any

import structlog
from kubernetes import client as k8s_client

from driver_upgrade.clients import load_k8s_api_client
from driver_upgrade.config import ControllerConfig
from driver_upgrade.consts import NULL_STRING, UPGRADE_STATE_UNKNOWN, UpgradeState
from driver_upgrade.interfaces import CordonManager, NodeUpgradeStateProvider
from driver_upgrade.models import NodeInfo

log = structlog.get_logger()


class _K8sNodeClient:
    """Lazily created, lock-guarded CoreV1Api shared by the node wrappers."""

    def __init__(self, config: ControllerConfig) -> None:
        self._config = config
        self._api: k8s_client.CoreV1Api | None = None
        self._lock = threading.Lock()

    def _get_api(self) -> k8s_client.CoreV1Api:
        with self._lock:
            if self._api is None:
                api_client = load_k8s_api_client(self._config.kubeconfig_context)
                self._api = k8s_client.CoreV1Api(api_client)
            return self._api

    async def _patch_node(self, node: NodeInfo, body: dict[str, Any]) -> None:
        # patch_node sends a strategic merge patch; a None value removes the key.
        api = self._get_api()
        await asyncio.to_thread(api.patch_node, node.name, body)


class K8sNodeUpgradeStateProvider(_K8sNodeClient, NodeUpgradeStateProvider):
    """Stores the upgrade phase in a node label and markers in node annotations."""

    async def change_node_upgrade_state(self, node: NodeInfo, new_state: UpgradeState) -> None:
        """Write ``new_state`` to the node's upgrade-state label.

        The Unknown phase is stored as the absence of the label.
        """
        label_key = self._config.upgrade_state_label_key
        value = None if new_state == UPGRADE_STATE_UNKNOWN else new_state
        try:
            await self._patch_node(node, {"metadata": {"labels": {label_key: value}}})
        except Exception:
            log.error("failed_to_update_node_state_label", node=node.name, label=label_key, state=new_state)
            raise
        log.debug("node_state_label_updated", node=node.name, label=label_key, state=new_state)

    async def change_node_upgrade_annotation(self, node: NodeInfo, key: str, value: str) -> None:
        """Set a node annotation; the value ``"null"`` removes it."""
        patch_value = None if value == NULL_STRING else value
        try:
            await self._patch_node(node, {"metadata": {"annotations": {key: patch_value}}})
        except Exception:
            log.error("failed_to_update_node_annotation", node=node.name, annotation=key)
            raise
        log.debug("node_annotation_updated", node=node.name, annotation=key, value=patch_value)


class K8sCordonManager(_K8sNodeClient, CordonManager):
    """Toggles ``spec.unschedulable`` on nodes."""

    async def cordon(self, node: NodeInfo) -> None:
        """Mark the node unschedulable."""
        await self._set_unschedulable(node, True)

    async def uncordon(self, node: NodeInfo) -> None:
        """Mark the node schedulable."""
        await self._set_unschedulable(node, False)

    async def _set_unschedulable(self, node: NodeInfo, unschedulable: bool) -> None:
        try:
            await self._patch_node(node, {"spec": {"unschedulable": unschedulable}})
        except Exception:
            log.error("failed_to_set_node_unschedulable", node=node.name, unschedulable=unschedulable)
            raise
        log.info("node_schedulability_changed", node=node.name, unschedulable=unschedulable)
