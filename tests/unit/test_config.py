"""Tests for pagepress/config.py."""

from __future__ import annotations

import pytest

from pagepress.config import DEFAULT_HINT_ATTRIBUTES, DEFAULT_TRUSTED_IP_HEADERS, PagepressConfig


class TestDefaults:
    def test_documented_defaults(self):
        config = PagepressConfig()
        assert config.request_expiry_seconds == 300
        assert config.rate_limit_max_requests == 60
        assert config.rate_limit_window_seconds == 60
        assert config.idempotency_ttl_seconds == 3600
        assert config.version_retention == 10
        assert config.default_update_mode == "safe"
        assert config.no_marker_policy == "replace"
        assert config.ip_allowlist_enabled is False
        assert config.require_signature is False

    def test_list_defaults_are_independent(self):
        a = PagepressConfig()
        b = PagepressConfig()
        a.ip_allowlist.append("10.0.0.1")
        a.hint_attributes.append("data-x")
        assert b.ip_allowlist == []
        assert b.hint_attributes == list(DEFAULT_HINT_ATTRIBUTES)

    def test_trusted_headers_default_order(self):
        assert PagepressConfig().trusted_ip_headers == list(DEFAULT_TRUSTED_IP_HEADERS)
        assert DEFAULT_TRUSTED_IP_HEADERS[0] == "CF-Connecting-IP"

    def test_signing_secret_falls_back_to_api_key(self):
        assert PagepressConfig(api_key="abc").effective_signing_secret == "abc"
        assert PagepressConfig(api_key="abc", signing_secret="xyz").effective_signing_secret == "xyz"


class TestValidation:
    def test_insecure_remote_host_rejected(self):
        with pytest.raises(ValueError, match="insecure HTTP"):
            PagepressConfig(host_base_url="http://example.com/wp-json")

    @pytest.mark.parametrize("url", [
        "http://localhost/wp-json",
        "http://127.0.0.1:8080/wp-json",
        "https://example.com/wp-json",
    ])
    def test_allowed_host_urls(self, url):
        assert PagepressConfig(host_base_url=url).host_base_url == url

    @pytest.mark.parametrize("field,value", [
        ("request_expiry_seconds", 0),
        ("rate_limit_max_requests", 0),
        ("rate_limit_window_seconds", 0),
        ("idempotency_ttl_seconds", 0),
        ("idempotency_reservation_ttl_seconds", -1),
        ("version_retention", 0),
        ("publish_log_retention", 0),
        ("retry_max_attempts", 0),
        ("retry_base_delay", -0.1),
        ("timeout_seconds", 0),
    ])
    def test_numeric_bounds(self, field, value):
        with pytest.raises(ValueError, match=field):
            PagepressConfig(**{field: value})

    def test_bad_update_mode(self):
        with pytest.raises(ValueError, match="default_update_mode"):
            PagepressConfig(default_update_mode="partial")

    def test_bad_marker_policy(self):
        with pytest.raises(ValueError, match="no_marker_policy"):
            PagepressConfig(no_marker_policy="ignore")

    def test_empty_wrapper_class(self):
        with pytest.raises(ValueError, match="wrapper_class"):
            PagepressConfig(wrapper_class="  ")

    def test_allowlist_entries_must_parse(self):
        PagepressConfig(ip_allowlist=["10.0.0.0/8", "2001:db8::/32", "203.0.113.7"])
        with pytest.raises(ValueError, match="not-an-ip"):
            PagepressConfig(ip_allowlist=["not-an-ip"])


class TestRepr:
    def test_secrets_are_masked(self):
        config = PagepressConfig(
            api_key="super-secret-api-key",
            signing_secret="short",
            host_app_password="abcd efgh ijkl mnop",
        )
        text = repr(config)
        assert "super-secret-api-key" not in text
        assert "api_key='...-key'" in text
        assert "signing_secret='****'" in text
        assert "abcd efgh" not in text

    def test_non_secret_fields_visible(self):
        assert "version_retention=10" in repr(PagepressConfig())
