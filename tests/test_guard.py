"""Tests for router protection and destructive confirmation."""

import pytest

from flygate.errors import ConfirmationMismatchError, MalformedOutputError, ProtectedResourceError
from flygate.guard.checks import (
    assert_confirmation,
    assert_not_protected,
    extract_subnet,
    is_router_app,
    router_app_name,
    router_network_from_name,
    router_tag,
)


class TestProtection:
    """Tests for assert_not_protected."""

    def test_router_app_is_protected(self):
        with pytest.raises(ProtectedResourceError) as exc_info:
            assert_not_protected("router-browsers-ab12")

        assert exc_info.value.details == {"app": "router-browsers-ab12"}
        assert exc_info.value.kind == "ProtectedResourceError"

    def test_ordinary_app_passes(self):
        assert_not_protected("my-app")

    def test_prefix_must_include_dash(self):
        assert not is_router_app("routers-app")
        assert not is_router_app("my-router-app")
        assert is_router_app("router-x")


class TestConfirmation:
    """Tests for assert_confirmation."""

    def test_exact_match_passes(self):
        assert_confirmation("vol-1", "vol-1")

    def test_trailing_space_fails(self):
        with pytest.raises(ConfirmationMismatchError) as exc_info:
            assert_confirmation("vol-1 ", "vol-1")

        assert exc_info.value.details == {"provided": "vol-1 ", "expected": "vol-1"}

    def test_case_sensitive(self):
        with pytest.raises(ConfirmationMismatchError):
            assert_confirmation("MY-APP", "my-app")

    def test_empty_fails(self):
        with pytest.raises(ConfirmationMismatchError):
            assert_confirmation("", "my-app")


class TestRouterNaming:
    """Tests for router name, tag and subnet helpers."""

    def test_app_name(self):
        assert router_app_name("browsers", "ab12cd") == "router-browsers-ab12cd"

    def test_network_from_name(self):
        assert router_network_from_name("router-browsers-ab12cd") == "browsers"
        assert router_network_from_name("router-my-net-ab12cd") == "my-net"

    def test_tag(self):
        assert router_tag("browsers") == "tag:router-browsers"

    def test_extract_subnet(self):
        assert extract_subnet("fdaa:0:1234:a7b:1::2") == "fdaa:0:1234::/48"

    def test_extract_subnet_compressed(self):
        assert extract_subnet("fdaa::3") == "fdaa::/48"
        assert extract_subnet("fdaa:0:1234::") == "fdaa:0:1234::/48"

    @pytest.mark.parametrize("address", ["fdaa", "10.0.0.2", ""])
    def test_extract_subnet_rejects_non_ipv6(self, address):
        with pytest.raises(MalformedOutputError):
            extract_subnet(address)
