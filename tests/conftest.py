"""Shared test fixtures.

Fixtures are injected by name; test modules keep their own ``_make_*`` factories.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from driver_upgrade.config import ControllerConfig
from driver_upgrade.interfaces import CordonManager, DrainManager, PodManager


@pytest.fixture
def controller_config() -> ControllerConfig:
    return ControllerConfig(driver_name="gpu", domain="nvidia.com", kubeconfig_context=None)


@pytest.fixture
def cordon_manager() -> AsyncMock:
    return AsyncMock(spec=CordonManager)


@pytest.fixture
def pod_manager() -> AsyncMock:
    return AsyncMock(spec=PodManager)


@pytest.fixture
def drain_manager() -> AsyncMock:
    return AsyncMock(spec=DrainManager)
