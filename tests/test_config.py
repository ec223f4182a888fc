"""Tests for lending core configuration.

These tests cover:
1. Default values
2. Environment variable loading
3. Validation rules
4. The configuration singleton
"""

import os
from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from library_lending.config import (
    DAILY_FINE_RATE,
    LOAN_PERIOD_DAYS,
    MAX_ACTIVE_LOANS,
    LendingConfig,
    get_config,
    reset_config,
)


class TestLendingPolicy:
    def test_policy_constants(self):
        assert MAX_ACTIVE_LOANS == 5
        assert LOAN_PERIOD_DAYS == 14
        assert DAILY_FINE_RATE == Decimal("1.00")


class TestLendingConfig:
    """Test lending core configuration behavior."""

    def test_default_configuration(self, tmp_path):
        config = LendingConfig(database_path=tmp_path / "library.db")

        assert config.service_name == "library-lending"
        assert config.service_version == "0.1.0"
        assert config.sqlite_busy_timeout == 30.0
        assert config.database_url is None
        assert config.debug is False
        assert config.log_level == "INFO"
        assert config.observability_enabled is True

        # Sensitive fields are None by default
        assert config.logfire_token is None

    def test_environment_variable_loading(self, tmp_path):
        """Test loading configuration from environment variables."""
        env_vars = {
            "LIBRARY_LENDING_SERVICE_NAME": "branch-lending",
            "LIBRARY_LENDING_DATABASE_PATH": str(tmp_path / "branch.db"),
            "LIBRARY_LENDING_SQLITE_BUSY_TIMEOUT": "5",
            "LIBRARY_LENDING_DEBUG": "true",
            "LIBRARY_LENDING_LOG_LEVEL": "WARNING",
            "LIBRARY_LENDING_LOGFIRE_TOKEN": "secret-token-123",
        }

        with patch.dict(os.environ, env_vars):
            config = LendingConfig()

            assert config.service_name == "branch-lending"
            assert config.database_path == tmp_path / "branch.db"
            assert config.sqlite_busy_timeout == 5.0
            assert config.debug is True
            assert config.log_level == "WARNING"
            assert config.logfire_token == "secret-token-123"

    def test_service_name_validation(self):
        for name in ["lending", "branch-42", "library-lending"]:
            assert LendingConfig(service_name=name).service_name == name

        invalid_names = [
            "Library_Lending",  # Uppercase and underscore not allowed
            "library lending",  # Spaces not allowed
            "ab",  # Too short
            "a" * 51,  # Too long
        ]
        for name in invalid_names:
            with pytest.raises(ValidationError):
                LendingConfig(service_name=name)

    def test_version_validation(self):
        for version in ["1.0.0", "0.1.0", "1.0.0-beta.1"]:
            assert LendingConfig(service_version=version).service_version == version

        for version in ["1.0", "v1.0.0", "latest"]:
            with pytest.raises(ValidationError):
                LendingConfig(service_version=version)

    def test_log_level_validation(self):
        with pytest.raises(ValidationError):
            LendingConfig(log_level="TRACE")

    def test_busy_timeout_bounds(self):
        with pytest.raises(ValidationError):
            LendingConfig(sqlite_busy_timeout=0)
        with pytest.raises(ValidationError):
            LendingConfig(sqlite_busy_timeout=301)

    def test_database_path_validation(self, tmp_path):
        """Parent directories are created and the path is made absolute."""
        db_path = tmp_path / "subdir" / "library.db"
        config = LendingConfig(database_path=db_path)

        assert db_path.parent.is_dir()
        assert config.database_path.is_absolute()

    def test_database_url_generation(self, tmp_path):
        config = LendingConfig(database_path=tmp_path / "library.db")
        url = config.get_database_url()
        assert url.startswith("sqlite:///")
        assert url.endswith("library.db")

        # An explicit URL wins over the path
        config = LendingConfig(database_url="postgresql://localhost/library")
        assert config.get_database_url() == "postgresql://localhost/library"

    def test_effective_log_level(self):
        assert LendingConfig(debug=True, log_level="WARNING").effective_log_level == "DEBUG"
        assert LendingConfig(log_level="ERROR").effective_log_level == "ERROR"
        assert LendingConfig(log_level="DEBUG").is_development is True
        assert LendingConfig().is_development is False

    def test_sensitive_data_repr(self):
        config = LendingConfig(logfire_token="secret-token")

        assert "secret-token" not in repr(config)
        assert config.logfire_token == "secret-token"


class TestConfigSingleton:
    def test_get_config_returns_same_instance(self):
        assert get_config() is get_config()

    def test_reset_config_rereads_environment(self, tmp_path):
        first = get_config()

        with patch.dict(os.environ, {"LIBRARY_LENDING_DATABASE_PATH": str(tmp_path / "x.db")}):
            reset_config()
            second = get_config()

        assert second is not first
        assert second.database_path == Path(tmp_path / "x.db")
