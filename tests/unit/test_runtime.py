"""Tests for the docker command boundary, configuration loading and the executor CLI."""
from __future__ import annotations

import json
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import yaml

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from system_agent import cli
from system_agent.models import AgentConfig
from system_agent.runtime.docker import CommandError, DockerExecutor
from system_agent.storage import CONFIG_ENV_VAR, ConfigRepository


class TestDockerExecutor:
    def test_runs_binary_with_args(self):
        with patch("system_agent.runtime.docker.subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout=b"core-data\n")
            output = DockerExecutor()("start", "core-data")

        assert output == b"core-data\n"
        assert mock_run.call_args.args[0] == ["docker", "start", "core-data"]

    def test_non_zero_exit_raises_with_output(self):
        with patch("system_agent.runtime.docker.subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=1, stdout=b"Error: No such container\n")
            with pytest.raises(CommandError) as excinfo:
                DockerExecutor()("stop", "core-data")

        assert str(excinfo.value) == "exit status 1"
        assert excinfo.value.output == b"Error: No such container\n"

    def test_missing_binary(self):
        with patch("system_agent.runtime.docker.subprocess.run", side_effect=FileNotFoundError):
            with pytest.raises(CommandError, match="executable not found: podman"):
                DockerExecutor("podman")("inspect", "core-data")

    def test_timeout(self):
        timeout = subprocess.TimeoutExpired(cmd=["docker"], timeout=1, output=b"partial")
        with patch("system_agent.runtime.docker.subprocess.run", side_effect=timeout):
            with pytest.raises(CommandError, match="timed out") as excinfo:
                DockerExecutor(timeout=1)("restart", "core-data")
        assert excinfo.value.output == b"partial"


class TestConfigRepository:
    def test_defaults_when_missing(self, tmp_path: Path, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        config = ConfigRepository(tmp_path).load_agent()
        assert config == AgentConfig()
        assert "core-data" in config.known_services()

    def test_loads_agent_yaml(self, tmp_path: Path, agent_config: AgentConfig, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        (tmp_path / "agent.yaml").write_text(yaml.safe_dump(agent_config.model_dump(mode="json")))
        assert ConfigRepository(tmp_path).load_agent() == agent_config

    def test_env_override(self, tmp_path: Path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text(yaml.safe_dump({"services": ["only-one"], "metrics_mechanism": "executor"}))
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

        config = ConfigRepository(Path("/nonexistent")).load_agent()
        assert config.services == ["only-one"]
        assert config.metrics_mechanism == "executor"

    def test_invalid_mechanism_rejected(self, tmp_path: Path, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        (tmp_path / "agent.yaml").write_text(yaml.safe_dump({"metrics_mechanism": "snmp"}))
        with pytest.raises(Exception):
            ConfigRepository(tmp_path).load_agent()


class TestExecutorCli:
    def test_prints_envelope(self, tmp_path: Path, monkeypatch, capsys):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        monkeypatch.chdir(tmp_path)
        results = [MagicMock(returncode=0, stdout=b""), MagicMock(returncode=0, stdout=b'[{"State": {"Running": true}}]')]
        with patch("system_agent.runtime.docker.subprocess.run", side_effect=results):
            exit_code = cli.main(["/usr/bin/system-agent-executor", "core-data", "start"])

        assert exit_code == 0
        envelope = json.loads(capsys.readouterr().out)
        assert envelope == {
            "operation": "start",
            "service": "core-data",
            "executor": "docker",
            "success": True,
        }

    def test_missing_arguments(self, tmp_path: Path, monkeypatch, capsys):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        monkeypatch.chdir(tmp_path)
        with patch("system_agent.runtime.docker.subprocess.run") as mock_run:
            cli.main(["/usr/bin/system-agent-executor"])

        mock_run.assert_not_called()
        envelope = json.loads(capsys.readouterr().out)
        assert envelope["success"] is False
        assert envelope["errorMessage"].startswith("Usage: ./system-agent-executor")
