"""Tests for client configuration and base URL handling."""

from __future__ import annotations

import pytest

from chipa_license_validator import ErrorKind, LicenseClient, LicenseValidationError, RetryPolicy
from chipa_license_validator.config import ClientConfig, Settings, resolve_config


class TestResolveConfig:
    def test_builds_validation_endpoint(self):
        config = resolve_config("https://license.example.com", validate_path="/subscriptions/validateapp")
        assert config.validation_endpoint == "https://license.example.com/subscriptions/validateapp"

    def test_trailing_slash_is_stripped(self):
        config = resolve_config("https://license.example.com/api/", validate_path="validate/")
        assert config.base_url == "https://license.example.com/api"
        assert config.validation_endpoint == "https://license.example.com/api/validate"

    @pytest.mark.parametrize(
        "url",
        ["", "   ", "license.example.com", "/relative/path", "ftp://license.example.com", "http://"],
    )
    def test_rejects_bad_urls(self, url: str):
        with pytest.raises(LicenseValidationError) as exc_info:
            resolve_config(url)
        assert exc_info.value.kind is ErrorKind.INVALID_INPUT

    def test_rejects_non_string(self):
        with pytest.raises(LicenseValidationError):
            resolve_config(None)  # type: ignore[arg-type]

    def test_config_is_frozen(self):
        config = resolve_config("https://license.example.com")
        with pytest.raises(Exception):
            config.base_url = "https://other.example.com"  # type: ignore[misc]


class TestWithUrl:
    def test_returns_new_instance(self):
        policy = RetryPolicy(max_attempts=5)
        original = resolve_config("https://a.example.com", timeout=3.0, retry=policy)
        updated = original.with_url("https://b.example.com")

        assert updated is not original
        assert original.base_url == "https://a.example.com"
        assert updated.base_url == "https://b.example.com"
        assert updated.timeout == 3.0
        assert updated.retry == policy

    def test_revalidates(self):
        original = resolve_config("https://a.example.com")
        with pytest.raises(LicenseValidationError):
            original.with_url("not a url")


class TestClientConstruction:
    def test_new_rejects_empty_url(self):
        with pytest.raises(LicenseValidationError, match="Invalid input"):
            LicenseClient("")

    def test_set_url_rejects_bad_url_and_keeps_original(self):
        client = LicenseClient("https://a.example.com")
        with pytest.raises(LicenseValidationError):
            client.set_url("")
        assert client.base_url == "https://a.example.com"

    def test_set_url_keeps_other_settings(self):
        policy = RetryPolicy(max_attempts=4)
        client = LicenseClient("https://a.example.com", timeout=7.0, retry_policy=policy)
        moved = client.set_url("https://b.example.com")
        assert isinstance(moved, LicenseClient)
        assert moved.config.timeout == 7.0
        assert moved.config.retry.max_attempts == 4


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("LICENSE_API_URL", raising=False)
        monkeypatch.delenv("RETRY_MAX_ATTEMPTS", raising=False)
        s = Settings(_env_file=None)
        assert s.LICENSE_API_URL == "http://localhost:4000/api"
        assert s.retry_policy().max_attempts == 3

    def test_environment_override(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LICENSE_API_URL", "https://env.example.com")
        monkeypatch.setenv("RETRY_MAX_ATTEMPTS", "5")
        s = Settings(_env_file=None)
        assert s.LICENSE_API_URL == "https://env.example.com"
        assert s.retry_policy().max_attempts == 5

    def test_client_config_defaults(self):
        config = ClientConfig(base_url="https://license.example.com")
        assert config.validate_path == "/subscriptions/validateapp"
        assert config.retry == RetryPolicy()
