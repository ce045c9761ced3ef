"""Controller configuration, well-known key names, and environment variable overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from driver_upgrade.consts import (
    UPGRADE_INITIAL_STATE_ANNOTATION_KEY_FMT,
    UPGRADE_SKIP_DRAIN_POD_LABEL_KEY_FMT,
    UPGRADE_SKIP_NODE_LABEL_KEY_FMT,
    UPGRADE_STATE_LABEL_KEY_FMT,
)
from driver_upgrade.validation import validate_domain, validate_driver_name


@dataclass(frozen=True)
class ControllerConfig:
    """Identity of the managed driver and how to reach the cluster.

    The driver name and domain are substituted into every label and annotation
    key the controller reads or writes, so two operators managing different
    drivers on the same nodes never share keys.
    """

    driver_name: str = field(default_factory=lambda: os.environ.get("DRIVER_UPGRADE_DRIVER_NAME", "gpu"))
    domain: str = field(default_factory=lambda: os.environ.get("DRIVER_UPGRADE_DOMAIN", "nvidia.com"))
    kubeconfig_context: str | None = field(
        default_factory=lambda: os.environ.get("DRIVER_UPGRADE_KUBE_CONTEXT") or None
    )

    def __post_init__(self) -> None:
        validate_driver_name(self.driver_name)
        validate_domain(self.domain)

    def _key(self, fmt: str) -> str:
        return fmt.format(domain=self.domain, driver=self.driver_name)

    @property
    def upgrade_state_label_key(self) -> str:
        """Node label holding the persisted upgrade phase."""
        return self._key(UPGRADE_STATE_LABEL_KEY_FMT)

    @property
    def upgrade_skip_node_label_key(self) -> str:
        """Node label that pins a node in the upgrade-required phase."""
        return self._key(UPGRADE_SKIP_NODE_LABEL_KEY_FMT)

    @property
    def upgrade_skip_drain_pod_label_key(self) -> str:
        """Pod label that excludes a pod from drain eviction."""
        return self._key(UPGRADE_SKIP_DRAIN_POD_LABEL_KEY_FMT)

    @property
    def upgrade_initial_state_annotation_key(self) -> str:
        """Node annotation recording that the node was unschedulable before the upgrade."""
        return self._key(UPGRADE_INITIAL_STATE_ANNOTATION_KEY_FMT)


_ALLOWED_FIELDS = ("driver_name", "domain", "kubeconfig_context")


def load_controller_config(path: Path) -> ControllerConfig:
    """Parse a YAML controller configuration file.

    Fields missing from the file fall back to environment variables and then to
    the built-in defaults.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        The parsed ControllerConfig.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ValueError: If the file content is malformed or holds invalid values.
    """
    if not path.exists():
        msg = (
            f"Controller configuration file not found: {path}. "
            "Unset DRIVER_UPGRADE_CONFIG to use environment defaults."
        )
        raise FileNotFoundError(msg)

    raw = yaml.safe_load(path.read_text())

    if not isinstance(raw, dict) or "controller" not in raw:
        msg = f"Controller config file {path} must contain a top-level 'controller' key."
        raise ValueError(msg)

    entry: Any = raw["controller"]
    if not isinstance(entry, dict):
        msg = f"'controller' in {path} must be a mapping, got {type(entry).__name__}."
        raise ValueError(msg)

    unknown = sorted(k for k in entry if k not in _ALLOWED_FIELDS)
    if unknown:
        msg = f"Controller config file {path} has unknown fields: {', '.join(unknown)}."
        raise ValueError(msg)

    return ControllerConfig(**{k: str(v) for k, v in entry.items() if v is not None})


def get_controller_config() -> ControllerConfig:
    """Return the controller configuration.

    Reads the file named by ``DRIVER_UPGRADE_CONFIG`` when it is set, otherwise
    builds the configuration from environment variable overrides alone.
    """
    config_path = os.environ.get("DRIVER_UPGRADE_CONFIG")
    if config_path:
        return load_controller_config(Path(config_path))
    return ControllerConfig()
