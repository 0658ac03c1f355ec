"""Unit tests for the local (kind) provider."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import yaml

from tests.conftest import make_kubeconfig
from tptctl.controlplane.control_plane import ControlPlane
from tptctl.controlplane.providers.kind import KindEngine, LocalProvider, kind_config
from tptctl.errors import ProvisioningError, ResourcesState, ToolNotInstalledError


def completed(returncode=0, stdout="", stderr=""):
    return MagicMock(returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.mark.cli_unit
class TestKindConfig:
    """Tests for the kind cluster configuration."""

    def test_maps_api_port_on_worker(self):
        config = yaml.safe_load(kind_config("threeport-dev"))
        assert config["name"] == "threeport-dev"
        roles = [n["role"] for n in config["nodes"]]
        assert roles == ["control-plane", "worker"]
        mapping = config["nodes"][1]["extraPortMappings"][0]
        assert mapping["containerPort"] == 1323
        assert mapping["hostPort"] == 1323


@pytest.mark.cli_unit
class TestKindEngine:
    """Tests for the kind CLI wrapper."""

    @patch("subprocess.run")
    def test_create_cluster_passes_config_file(self, mock_run):
        seen = {}

        def run(cmd, **kwargs):
            seen["cmd"] = cmd
            with open(cmd[-1]) as f:
                seen["config"] = f.read()
            return completed()

        mock_run.side_effect = run
        ok, _ = KindEngine().create_cluster("kind: Cluster\n")

        assert ok is True
        assert seen["cmd"][:4] == ["kind", "create", "cluster", "--config"]
        assert seen["config"] == "kind: Cluster\n"

    @patch("subprocess.run")
    def test_create_cluster_failure(self, mock_run):
        mock_run.return_value = completed(1, stderr="node(s) already exist\n")
        assert KindEngine().create_cluster("x") == (False, "node(s) already exist")

    @patch("subprocess.run")
    def test_get_kubeconfig(self, mock_run):
        mock_run.return_value = completed(stdout="apiVersion: v1\n")
        assert KindEngine().get_kubeconfig("threeport-dev") == (True, "apiVersion: v1\n")
        assert mock_run.call_args[0][0] == [
            "kind", "get", "kubeconfig", "--name", "threeport-dev"
        ]

    @patch("subprocess.run", side_effect=FileNotFoundError)
    def test_missing_binary(self, mock_run):
        with pytest.raises(ToolNotInstalledError, match="kind"):
            KindEngine().delete_cluster("x")


@pytest.mark.cli_unit
class TestLocalProvider:
    """Tests for LocalProvider."""

    def _engine(self, create=(True, "ok"), kubeconfig=None, delete=(True, "ok")):
        engine = MagicMock(spec=KindEngine)
        engine.create_cluster.return_value = create
        engine.get_kubeconfig.return_value = kubeconfig or (
            True,
            yaml.safe_dump(make_kubeconfig("kind-threeport-dev")),
        )
        engine.delete_cluster.return_value = delete
        return engine

    def test_create_writes_kubeconfig(self, tmp_path):
        engine = self._engine()
        provisioned = LocalProvider(engine).create(ControlPlane("dev"), tmp_path)

        assert provisioned.kubeconfig_path == tmp_path / "kubeconfig-threeport-dev"
        assert provisioned.kubeconfig_path.exists()
        assert provisioned.api_endpoint == "http://localhost:1323"
        engine.get_kubeconfig.assert_called_once_with("threeport-dev")

    def test_create_failure_leaves_nothing(self, tmp_path):
        engine = self._engine(create=(False, "docker not running"))
        with pytest.raises(ProvisioningError, match="docker not running") as exc_info:
            LocalProvider(engine).create(ControlPlane("dev"), tmp_path)

        assert exc_info.value.resources is ResourcesState.NONE
        assert list(tmp_path.iterdir()) == []
        engine.get_kubeconfig.assert_not_called()

    def test_kubeconfig_failure_reports_running_cluster(self, tmp_path):
        engine = self._engine(kubeconfig=(False, "no such cluster"))
        with pytest.raises(ProvisioningError) as exc_info:
            LocalProvider(engine).create(ControlPlane("dev"), tmp_path)
        assert exc_info.value.resources is ResourcesState.FULL

    def test_delete_removes_cluster_and_kubeconfig(self, tmp_path):
        cp = ControlPlane("dev")
        cp.kubeconfig_path(tmp_path).write_text("x")
        engine = self._engine()

        LocalProvider(engine).delete(cp, tmp_path)

        engine.delete_cluster.assert_called_once_with("threeport-dev")
        assert not cp.kubeconfig_path(tmp_path).exists()

    def test_delete_failure_is_surfaced(self, tmp_path):
        engine = self._engine(delete=(False, "boom"))
        with pytest.raises(ProvisioningError, match="boom"):
            LocalProvider(engine).delete(ControlPlane("dev"), tmp_path)

    def test_preflight_requires_kind(self, tmp_path):
        engine = self._engine()
        engine.installed.return_value = False
        engine.binary = "kind"
        with pytest.raises(ToolNotInstalledError, match="kind is not installed"):
            LocalProvider(engine).preflight(ControlPlane("dev"), tmp_path)
        engine.create_cluster.assert_not_called()

    def test_provider_metadata(self):
        provider = LocalProvider(self._engine())
        assert provider.install_support_services is False
        assert provider.compute_cluster_provider == "kind"
        assert provider.resolve_api_endpoint(ControlPlane("dev"), MagicMock()) == (
            "http://localhost:1323"
        )
