"""Unit tests for CLI commands."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from tptctl.errors import DuplicateInstanceError, InstanceNotFoundError
from tptctl.main import cli
from tptctl.registry import Instance, InstanceRegistry, Provider


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def registry_file(tmp_path):
    path = tmp_path / "config.yaml"
    InstanceRegistry(
        instances=[
            Instance("dev", Provider.LOCAL, "http://localhost:1323"),
            Instance("prod", Provider.CLOUD, "http://lb.example.com"),
        ],
        current_instance="dev",
    ).save(path)
    return path


def invoke(runner, registry_file, *args):
    return runner.invoke(cli, ["--threeport-config", str(registry_file), *args], obj={})


@pytest.mark.cli_unit
class TestCLIBasics:
    """Tests for the top-level group."""

    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Manage Threeport" in result.output
        for group in ("create", "delete", "get", "config", "version"):
            assert group in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["version"], obj={})
        assert result.exit_code == 0
        assert result.output.startswith("tptctl version ")

    def test_log_file(self, runner, tmp_path):
        log_file = tmp_path / "tptctl.log"
        result = runner.invoke(cli, ["-vv", "--log-file", str(log_file), "version"], obj={})
        assert result.exit_code == 0
        assert log_file.exists()


@pytest.mark.cli_unit
class TestGetControlPlanes:
    """Tests for `tptctl get control-planes`."""

    def test_table(self, runner, registry_file):
        result = invoke(runner, registry_file, "get", "control-planes")
        assert result.exit_code == 0
        assert "NAME" in result.output
        assert "dev" in result.output
        assert "prod" in result.output
        assert "*" in result.output

    def test_json(self, runner, registry_file):
        result = invoke(runner, registry_file, "get", "control-planes", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data[0] == {
            "Name": "dev",
            "Provider": "local",
            "APIServer": "http://localhost:1323",
            "Current": True,
        }
        assert data[1]["Current"] is False

    def test_empty(self, runner, tmp_path):
        result = invoke(runner, tmp_path / "missing.yaml", "get", "control-planes")
        assert result.exit_code == 0
        assert "No Threeport instances found." in result.output

    def test_corrupt_registry(self, runner, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        result = invoke(runner, path, "get", "control-planes")
        assert result.exit_code == 1
        assert "failed to read threeport config" in result.output


@pytest.mark.cli_unit
class TestControlPlaneCommands:
    """Tests for create/delete control-plane wiring."""

    @patch("tptctl.commands.control_plane.LifecycleOrchestrator")
    def test_create_success(self, mock_orchestrator, runner, registry_file):
        mock_orchestrator.return_value.create.return_value = Instance(
            "qa", Provider.LOCAL, "http://localhost:1323"
        )
        result = invoke(runner, registry_file, "create", "control-plane", "-n", "qa")

        assert result.exit_code == 0
        assert "threeport instance qa created" in result.output
        mock_orchestrator.return_value.create.assert_called_once_with(
            "qa", "local", force_overwrite=False
        )
        config = mock_orchestrator.call_args[0][0]
        assert config.registry_file == registry_file

    @patch("tptctl.commands.control_plane.LifecycleOrchestrator")
    def test_create_passes_provider_and_overwrite(self, mock_orchestrator, runner, registry_file):
        mock_orchestrator.return_value.create.return_value = Instance(
            "dev", Provider.CLOUD, "http://lb"
        )
        result = invoke(
            runner,
            registry_file,
            "create",
            "control-plane",
            "--name",
            "dev",
            "--provider",
            "EKS",
            "--force-overwrite-config",
        )
        assert result.exit_code == 0
        args, kwargs = mock_orchestrator.return_value.create.call_args
        assert args[0] == "dev"
        assert args[1].lower() == "eks"
        assert kwargs == {"force_overwrite": True}

    def test_create_rejects_unknown_provider(self, runner, registry_file):
        result = invoke(
            runner, registry_file, "create", "control-plane", "-n", "qa", "-p", "gke"
        )
        assert result.exit_code == 2
        assert "gke" in result.output

    @patch("tptctl.commands.control_plane.LifecycleOrchestrator")
    def test_create_failure_exits_nonzero(self, mock_orchestrator, runner, registry_file):
        mock_orchestrator.return_value.create.side_effect = DuplicateInstanceError("dev")
        result = invoke(runner, registry_file, "create", "control-plane", "-n", "dev")

        assert result.exit_code == 1
        assert "failed to create threeport control plane" in result.output
        assert "--force-overwrite-config" in result.output

    def test_create_requires_name(self, runner, registry_file):
        result = invoke(runner, registry_file, "create", "control-plane")
        assert result.exit_code == 2

    @patch("tptctl.commands.control_plane.LifecycleOrchestrator")
    def test_delete_success(self, mock_orchestrator, runner, registry_file):
        mock_orchestrator.return_value.delete.return_value = Instance(
            "dev", Provider.LOCAL, "http://localhost:1323"
        )
        result = invoke(runner, registry_file, "delete", "control-plane", "-n", "dev")

        assert result.exit_code == 0
        assert "threeport instance dev deleted" in result.output
        mock_orchestrator.return_value.delete.assert_called_once_with(
            "dev", cleanup_inventory=False
        )

    @patch("tptctl.commands.control_plane.LifecycleOrchestrator")
    def test_delete_cleanup_inventory(self, mock_orchestrator, runner, registry_file):
        mock_orchestrator.return_value.delete.return_value = None
        result = invoke(
            runner, registry_file, "delete", "control-plane", "-n", "old", "--cleanup-inventory"
        )
        assert result.exit_code == 0
        assert "leftover resources for threeport instance old deleted" in result.output

    @patch("tptctl.commands.control_plane.LifecycleOrchestrator")
    def test_delete_not_found(self, mock_orchestrator, runner, registry_file):
        mock_orchestrator.return_value.delete.side_effect = InstanceNotFoundError("nope")
        result = invoke(runner, registry_file, "delete", "control-plane", "-n", "nope")

        assert result.exit_code == 1
        assert "name nope not found" in result.output


@pytest.mark.cli_unit
class TestConfigCommands:
    """Tests for `tptctl config`."""

    def test_show(self, runner, registry_file):
        result = invoke(runner, registry_file, "config", "show")
        assert result.exit_code == 0
        assert "settle_seconds" in result.output
        assert "(flag)" in result.output

    def test_show_json(self, runner, registry_file):
        result = invoke(runner, registry_file, "config", "show", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["registry_file"] == str(registry_file)
        assert data["sources"]["registry_file"] == "flag"

    def test_set_then_show(self, runner, registry_file):
        result = invoke(runner, registry_file, "config", "set", "settle_seconds", "15")
        assert result.exit_code == 0
        assert "settle_seconds = 15" in result.output

        data = json.loads(invoke(runner, registry_file, "config", "show", "--json").output)
        assert data["settle_seconds"] == 15
        assert data["sources"]["settle_seconds"] == "config file"

    def test_set_invalid_value(self, runner, registry_file):
        result = invoke(runner, registry_file, "config", "set", "settle_seconds", "soon")
        assert result.exit_code == 1
        assert "invalid value" in result.output

    def test_set_unknown_key(self, runner, registry_file):
        result = invoke(runner, registry_file, "config", "set", "registry_file", "x")
        assert result.exit_code == 2

    def test_unset(self, runner, registry_file):
        invoke(runner, registry_file, "config", "set", "aws_region", "eu-west-1")
        result = invoke(runner, registry_file, "config", "unset", "aws_region")
        assert result.exit_code == 0
        assert "aws_region unset" in result.output

        result = invoke(runner, registry_file, "config", "unset", "aws_region")
        assert "aws_region was not set" in result.output
