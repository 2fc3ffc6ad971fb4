"""Tests for the flygate command line."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from flygate import __version__
from flygate.cli.main import cli

from conftest import ip


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def loaded_config(config):
    with patch("flygate.cli.main.Config.load", return_value=config):
        yield config


@pytest.fixture
def wired(safe):
    with patch("flygate.cli.main.ToolDispatcher.create", return_value=safe) as create:
        yield create


class TestCli:
    """Tests for the click command group."""

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_tools(self, runner, wired):
        result = runner.invoke(cli, ["tools"])

        assert result.exit_code == 0
        assert "router_deploy" in result.output
        assert "fly_ip_allocate_v4" not in result.output

    def test_tools_info(self, runner, wired):
        result = runner.invoke(cli, ["tools", "--info", "fly_volumes_destroy"])

        assert result.exit_code == 0
        assert "confirm" in result.output

    def test_tools_info_unknown(self, runner, wired):
        result = runner.invoke(cli, ["tools", "--info", "nope"])

        assert result.exit_code == 1

    def test_call(self, runner, wired, fly):
        fly.ips["my-app"] = [ip("fd00::1", "private_v6", "browsers")]

        result = runner.invoke(cli, ["call", "fly_ip_list", "--args", json.dumps({"app": "my-app"})])

        assert result.exit_code == 0
        assert "fd00::1" in result.output

    def test_call_failure(self, runner, wired, fly):
        result = runner.invoke(cli, ["call", "fly_app_destroy", "--args", '{"app": "a", "confirm": "b"}'])

        assert result.exit_code == 1
        assert "ConfirmationMismatchError" in result.output
        assert fly.calls == []

    def test_call_bad_json(self, runner, wired):
        result = runner.invoke(cli, ["call", "fly_app_list", "--args", "{nope"])

        assert result.exit_code == 2

    def test_unsafe_flag_selects_mode(self, runner, unsafe):
        with patch("flygate.cli.main.ToolDispatcher.create", return_value=unsafe) as create:
            result = runner.invoke(cli, ["--unsafe", "tools"])

        assert result.exit_code == 0
        assert create.call_args.args[0].value == "unsafe"

    def test_audit_refused_in_unsafe_mode(self, runner):
        result = runner.invoke(cli, ["--unsafe", "audit", "my-app"])

        assert result.exit_code == 1


class TestScanCommand:
    """Tests for `flygate scan`."""

    def test_clean_descriptor(self, runner):
        with runner.isolated_filesystem():
            with open("fly.toml", "w") as f:
                f.write('app = "my-app"\n')

            result = runner.invoke(cli, ["scan"])

        assert result.exit_code == 0
        assert "ok" in result.output

    def test_rejected_descriptor(self, runner):
        with runner.isolated_filesystem():
            with open("public.toml", "w") as f:
                f.write("[http_service]\nforce_https = true\n")

            result = runner.invoke(cli, ["scan", "public.toml"])

        assert result.exit_code == 1
        assert "force_https" in result.output

    def test_no_descriptor(self, runner):
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["scan"])

        assert result.exit_code == 1
