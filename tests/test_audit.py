"""Tests for the post-deploy auditor."""

import pytest

from flygate.commands.builder import CommandExecutor
from flygate.commands.policy import Mode
from flygate.errors import ExecutionError
from flygate.guard.audit import DeployAuditor
from flygate.platform.process import ProcessResult

from conftest import ip


@pytest.fixture
def auditor(fly):
    return DeployAuditor(CommandExecutor(Mode.SAFE, fly))


class TestDeployAuditor:
    """Tests for DeployAuditor.audit."""

    def test_private_only(self, fly, auditor):
        fly.ips["my-app"] = [ip("fd00::1", "private_v6", "browsers")]

        result = auditor.audit("my-app")

        assert result.model_dump() == {
            "public_ips_released": 0,
            "flycast_allocations": [{"address": "fd00::1", "network": "browsers"}],
            "warnings": [],
        }
        assert not result.exposed
        assert fly.find("ips", "release") == []

    def test_public_ip_released(self, fly, auditor):
        fly.ips["my-app"] = [ip("1.2.3.4", "v4"), ip("fd00::1", "private_v6", "browsers")]

        result = auditor.audit("my-app")

        assert result.public_ips_released == 1
        assert result.exposed
        assert fly.find("ips", "release") == [("ips", "release", "1.2.3.4", "-a", "my-app", "--yes")]
        assert [r["Address"] for r in fly.ips["my-app"]] == ["fd00::1"]

    def test_second_run_releases_nothing(self, fly, auditor):
        fly.ips["my-app"] = [ip("1.2.3.4", "v4"), ip("2a09::1", "v6"), ip("fd00::1", "private_v6", "browsers")]

        first = auditor.audit("my-app")
        second = auditor.audit("my-app")

        assert first.public_ips_released == 2
        assert second.public_ips_released == 0
        assert second.flycast_allocations == first.flycast_allocations

    def test_missing_network_defaults(self, fly, auditor):
        fly.ips["my-app"] = [ip("fd00::2", "private_v6")]

        result = auditor.audit("my-app")

        assert result.flycast_allocations[0].network == "default"

    def test_no_flycast_warns(self, fly, auditor):
        result = auditor.audit("my-app")

        assert result.public_ips_released == 0
        assert len(result.warnings) == 1
        assert "No Flycast IP" in result.warnings[0]

    def test_config_warnings(self, fly, auditor):
        fly.ips["my-app"] = [ip("fd00::1", "private_v6", "browsers")]
        fly.configs["my-app"] = {
            "http_service": {"force_https": True},
            "services": [{"ports": [{"port": 443, "handlers": ["tls", "http"]}]}],
        }

        result = auditor.audit("my-app")

        assert not result.exposed
        assert len(result.warnings) == 2
        assert any("443" in w for w in result.warnings)
        assert any("force_https" in w for w in result.warnings)

    def test_config_failure_is_best_effort(self, fly, auditor):
        fly.ips["my-app"] = [ip("fd00::1", "private_v6", "browsers")]
        fly.failures[("config", "show")] = ProcessResult("", "Error: no config", 1)

        result = auditor.audit("my-app")

        assert result.warnings == ["Could not inspect merged config."]

    def test_undecodable_config_is_best_effort(self, fly, auditor):
        fly.ips["my-app"] = [ip("fd00::1", "private_v6", "browsers")]
        fly.failures[("config", "show")] = ProcessResult("app = 'toml'", "", 0)

        result = auditor.audit("my-app")

        assert result.warnings == ["Could not inspect merged config."]

    def test_failed_release_still_exposed(self, fly, auditor):
        fly.ips["my-app"] = [ip("1.2.3.4", "v4"), ip("fd00::1", "private_v6", "browsers")]
        fly.unreleasable.add("1.2.3.4")

        result = auditor.audit("my-app")

        assert result.public_ips_released == 0
        assert result.unreleased == ["1.2.3.4"]
        assert result.exposed
        assert any("1.2.3.4" in w for w in result.warnings)

    def test_ip_listing_failure_propagates(self, fly, auditor):
        fly.failures[("ips", "list")] = ProcessResult("", "Error: unauthorized", 1)

        with pytest.raises(ExecutionError):
            auditor.audit("my-app")
