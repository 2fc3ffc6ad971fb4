"""Tests for the pre-flight descriptor scanner."""

import tempfile
from pathlib import Path

import pytest

from flygate.errors import PreflightRejectedError
from flygate.guard.preflight import find_descriptor, load_descriptor, scan


class TestScan:
    """Tests for scan()."""

    def test_force_https_rejected(self):
        result = scan({"http_service": {"force_https": True}})

        assert not result.ok
        assert len(result.errors) == 1
        assert "force_https" in result.errors[0]

    def test_force_https_false_allowed(self):
        assert scan({"http_service": {"force_https": False, "internal_port": 8080}}).ok

    def test_public_tls_port_rejected(self):
        descriptor = {"services": [{"ports": [{"port": 443, "handlers": ["tls", "http"]}]}]}

        result = scan(descriptor)

        assert not result.ok
        assert "port 443" in result.errors[0]

    def test_plain_ports_warn_once(self):
        descriptor = {
            "services": [
                {"ports": [{"port": 80, "handlers": ["http"]}, {"port": 8080}]},
                {"ports": [{"port": 9000}]},
            ]
        }

        result = scan(descriptor)

        assert result.ok
        assert result.errors == []
        assert len(result.warnings) == 1

    def test_443_without_tls_is_only_a_warning(self):
        result = scan({"services": [{"ports": [{"port": 443, "handlers": ["http"]}]}]})

        assert result.ok
        assert len(result.warnings) == 1

    def test_empty_descriptor(self):
        result = scan({})

        assert result.ok
        assert result.errors == []
        assert result.warnings == []

    def test_both_rules_reported(self):
        descriptor = {
            "http_service": {"force_https": True},
            "services": [{"ports": [{"port": 443, "handlers": ["tls"]}]}],
        }

        result = scan(descriptor)

        assert len(result.errors) == 2

    def test_malformed_sections_ignored(self):
        assert scan({"services": "nope", "http_service": "nope"}).ok


class TestDescriptorFiles:
    """Tests for load_descriptor and find_descriptor."""

    @pytest.fixture
    def temp_dir(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    def test_load(self, temp_dir):
        path = temp_dir / "fly.toml"
        path.write_text('app = "my-app"\n\n[http_service]\nforce_https = true\n')

        descriptor = load_descriptor(path)

        assert descriptor["app"] == "my-app"
        assert not scan(descriptor).ok

    def test_invalid_toml_rejects(self, temp_dir):
        path = temp_dir / "fly.toml"
        path.write_text("app = [unterminated\n")

        with pytest.raises(PreflightRejectedError):
            load_descriptor(path)

    def test_undecodable_toml_rejects(self, temp_dir):
        path = temp_dir / "fly.toml"
        path.write_bytes(b"app = '\xff\xfe'\n")

        with pytest.raises(PreflightRejectedError) as excinfo:
            load_descriptor(path)

        assert "Invalid TOML" in excinfo.value.message

    def test_find_in_cwd(self, temp_dir):
        assert find_descriptor(None, temp_dir) is None

        (temp_dir / "fly.toml").write_text('app = "x"\n')

        assert find_descriptor(None, temp_dir) == temp_dir / "fly.toml"

    def test_explicit_path_must_exist(self, temp_dir):
        with pytest.raises(PreflightRejectedError):
            find_descriptor(str(temp_dir / "missing.toml"), temp_dir)

        other = temp_dir / "staging.toml"
        other.write_text('app = "x"\n')
        assert find_descriptor(str(other), temp_dir) == other
