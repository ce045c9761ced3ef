"""Kubernetes-backed implementations of the state provider and cordon manager."""

from __future__ import annotations

from kubernetes import client as k8s_client
from kubernetes.config import new_client_from_config


def load_k8s_api_client(context: str | None) -> k8s_client.ApiClient:
    """Build the ApiClient the node wrappers patch nodes through.

    ``context`` comes from ``ControllerConfig.kubeconfig_context``; None means
    the kubeconfig's current context. The client carries its own
    configuration, so an embedding process keeps its global kubernetes
    settings untouched.
    """
    return new_client_from_config(context=context)
