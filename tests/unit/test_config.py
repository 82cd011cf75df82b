"""
Unit tests for settings loading.
"""

import re

import pytest
from pydantic import ValidationError

from pactkit.core.config import Settings, default_provider_version, get_settings


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "PACT_BROKER_BASE_URL",
        "PROVIDER_VERSION",
        "BRANCH_NAME",
        "PACT_SEARCH_DEPTH",
        "PACT_SEARCH_DIRS",
        "PUBLISH_VERIFICATION_RESULTS",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSettings:
    """Tests for Settings defaults and environment overrides."""

    def test_defaults(self, clean_env):
        """Test that settings fall back to their defaults with no environment."""
        settings = Settings(_env_file=None)
        assert settings.pact_broker_base_url is None
        assert settings.branch_name == "main"
        assert settings.pact_search_depth == 10
        assert settings.pact_search_dirs_list == ["pacts", "Consumer/pacts"]
        assert re.fullmatch(r"1\.0\.\d{14}", settings.provider_version)
        assert not settings.publishing_enabled

    def test_environment_overrides(self, clean_env):
        """Test that environment variables override defaults, case-insensitively."""
        clean_env.setenv("PACT_BROKER_BASE_URL", "http://broker:9292")
        clean_env.setenv("PROVIDER_VERSION", "2.3.4")
        clean_env.setenv("branch_name", "release")
        clean_env.setenv("PUBLISH_VERIFICATION_RESULTS", "true")
        settings = Settings(_env_file=None)
        assert settings.pact_broker_base_url == "http://broker:9292"
        assert settings.provider_version == "2.3.4"
        assert settings.branch_name == "release"
        assert settings.publishing_enabled

    def test_publishing_needs_broker_url(self, clean_env):
        """Test that publishing stays disabled without a broker URL."""
        clean_env.setenv("PUBLISH_VERIFICATION_RESULTS", "true")
        assert not Settings(_env_file=None).publishing_enabled

    def test_search_depth_must_be_positive(self, clean_env):
        """Test that a zero search depth is rejected."""
        clean_env.setenv("PACT_SEARCH_DEPTH", "0")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_env_file(self, clean_env, tmp_path):
        """Test that values are read from a .env file."""
        env_file = tmp_path / ".env"
        env_file.write_text("BRANCH_NAME=feature-x\nPACT_SEARCH_DIRS=a, b\n")
        settings = Settings(_env_file=str(env_file))
        assert settings.branch_name == "feature-x"
        assert settings.pact_search_dirs_list == ["a", "b"]

    def test_get_settings_is_cached(self, clean_env):
        """Test that get_settings returns the same instance."""
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()


def test_default_provider_version_format():
    """Test that the default provider version is 1.0.<timestamp>."""
    assert re.fullmatch(r"1\.0\.\d{14}", default_provider_version())
