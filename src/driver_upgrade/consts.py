"""Upgrade phase names and well-known label/annotation key formats."""

from __future__ import annotations

from typing import Literal

UPGRADE_STATE_UNKNOWN = ""
UPGRADE_STATE_UPGRADE_REQUIRED = "upgrade-required"
UPGRADE_STATE_CORDON_REQUIRED = "cordon-required"
UPGRADE_STATE_WAIT_FOR_JOBS_REQUIRED = "wait-for-jobs-required"
UPGRADE_STATE_POD_DELETION_REQUIRED = "pod-deletion-required"
UPGRADE_STATE_DRAIN_REQUIRED = "drain-required"
UPGRADE_STATE_POD_RESTART_REQUIRED = "pod-restart-required"
UPGRADE_STATE_FAILED = "upgrade-failed"
UPGRADE_STATE_UNCORDON_REQUIRED = "uncordon-required"
UPGRADE_STATE_DONE = "upgrade-done"

UpgradeState = Literal[
    "",
    "upgrade-required",
    "cordon-required",
    "wait-for-jobs-required",
    "pod-deletion-required",
    "drain-required",
    "pod-restart-required",
    "upgrade-failed",
    "uncordon-required",
    "upgrade-done",
]

# Processing order of a reconciliation pass.
ALL_UPGRADE_STATES: tuple[str, ...] = (
    UPGRADE_STATE_UNKNOWN,
    UPGRADE_STATE_DONE,
    UPGRADE_STATE_UPGRADE_REQUIRED,
    UPGRADE_STATE_CORDON_REQUIRED,
    UPGRADE_STATE_WAIT_FOR_JOBS_REQUIRED,
    UPGRADE_STATE_POD_DELETION_REQUIRED,
    UPGRADE_STATE_DRAIN_REQUIRED,
    UPGRADE_STATE_POD_RESTART_REQUIRED,
    UPGRADE_STATE_FAILED,
    UPGRADE_STATE_UNCORDON_REQUIRED,
)

# Every phase strictly between "upgrade required" and "done" holds a slot,
# including the failure phase.
IN_PROGRESS_UPGRADE_STATES = frozenset(
    {
        UPGRADE_STATE_CORDON_REQUIRED,
        UPGRADE_STATE_WAIT_FOR_JOBS_REQUIRED,
        UPGRADE_STATE_POD_DELETION_REQUIRED,
        UPGRADE_STATE_DRAIN_REQUIRED,
        UPGRADE_STATE_POD_RESTART_REQUIRED,
        UPGRADE_STATE_FAILED,
        UPGRADE_STATE_UNCORDON_REQUIRED,
    }
)

POD_TEMPLATE_GENERATION_LABEL = "pod-template-generation"
POD_PHASE_RUNNING = "Running"

TRUE_STRING = "true"
# Annotation value that asks the state provider to remove the key.
NULL_STRING = "null"

UPGRADE_STATE_LABEL_KEY_FMT = "{domain}/{driver}-driver-upgrade-state"
UPGRADE_SKIP_NODE_LABEL_KEY_FMT = "{domain}/{driver}-driver-upgrade.skip"
UPGRADE_SKIP_DRAIN_POD_LABEL_KEY_FMT = "{domain}/{driver}-driver-upgrade-drain.skip"
UPGRADE_INITIAL_STATE_ANNOTATION_KEY_FMT = "{domain}/{driver}-driver-upgrade.node-initial-state.unschedulable"
