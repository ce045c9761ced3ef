"""Tests for client initialization and lazy API loading."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from driver_upgrade.clients import load_k8s_api_client
from driver_upgrade.clients.k8s_nodes import K8sCordonManager, K8sNodeUpgradeStateProvider
from driver_upgrade.config import ControllerConfig


@pytest.mark.parametrize("client_cls", [K8sNodeUpgradeStateProvider, K8sCordonManager])
class TestNodeClientInit:
    def test_lazy_api_creation(self, client_cls: type, controller_config: ControllerConfig) -> None:
        client = client_cls(controller_config)
        assert client._api is None

    def test_get_api_creates_once(self, client_cls: type, controller_config: ControllerConfig) -> None:
        client = client_cls(controller_config)
        with patch("driver_upgrade.clients.k8s_nodes.load_k8s_api_client") as mock_load:
            mock_load.return_value = MagicMock()
            api1 = client._get_api()
            api2 = client._get_api()
        assert api1 is api2
        mock_load.assert_called_once_with(None)

    def test_get_api_uses_configured_context(self, client_cls: type) -> None:
        client = client_cls(ControllerConfig(driver_name="gpu", domain="nvidia.com", kubeconfig_context="lab"))
        with patch("driver_upgrade.clients.k8s_nodes.load_k8s_api_client") as mock_load:
            client._get_api()
        mock_load.assert_called_once_with("lab")


class TestLoadK8sApiClient:
    def test_uses_isolated_client(self) -> None:
        with patch("driver_upgrade.clients.new_client_from_config") as mock_new:
            result = load_k8s_api_client("lab")
        mock_new.assert_called_once_with(context="lab")
        assert result is mock_new.return_value

    def test_no_context_uses_current_context(self) -> None:
        with patch("driver_upgrade.clients.new_client_from_config") as mock_new:
            load_k8s_api_client(None)
        mock_new.assert_called_once_with(context=None)
