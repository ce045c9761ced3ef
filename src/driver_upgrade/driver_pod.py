"""Driver pod template-generation comparison and readiness checks."""

from __future__ import annotations

from driver_upgrade.consts import POD_PHASE_RUNNING, POD_TEMPLATE_GENERATION_LABEL
from driver_upgrade.models import DriverPodInfo, NodeUpgradeState


def get_pod_template_generation(pod: DriverPodInfo) -> int:
    """Return the daemonset template generation a driver pod was created from.

    Raises:
        ValueError: If the pod has no ``pod-template-generation`` label or the
            label is not an integer.
    """
    value = pod.labels.get(POD_TEMPLATE_GENERATION_LABEL)
    if value is None:
        msg = f"Pod {pod.namespace}/{pod.name} has no {POD_TEMPLATE_GENERATION_LABEL!r} label."
        raise ValueError(msg)
    try:
        return int(value)
    except ValueError:
        msg = f"Pod {pod.namespace}/{pod.name} has a non-integer {POD_TEMPLATE_GENERATION_LABEL!r} label: {value!r}."
        raise ValueError(msg) from None


def is_driver_pod_outdated(node_state: NodeUpgradeState) -> bool:
    """True when the driver pod was not created from the current daemonset template."""
    return get_pod_template_generation(node_state.driver_pod) != node_state.driver_daemon_set.generation


def is_pod_terminating(pod: DriverPodInfo) -> bool:
    """True once pod termination has started (deletion timestamp is set)."""
    return pod.deletion_timestamp is not None


def is_driver_pod_in_sync(node_state: NodeUpgradeState) -> bool:
    """Check that the driver pod is current, running, and fully ready.

    A pod is in sync when its template generation matches the daemonset, it is
    in the Running phase, it reports at least one container, and every
    reported container is ready.
    """
    if is_driver_pod_outdated(node_state):
        return False

    pod = node_state.driver_pod
    if pod.phase != POD_PHASE_RUNNING or not pod.container_statuses:
        return False

    return all(cs.ready for cs in pod.container_statuses)
