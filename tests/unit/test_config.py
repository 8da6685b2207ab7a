"""
Unit tests for configuration blocks and the registry.
"""

from dataclasses import FrozenInstanceError, replace

import pytest

from flow.config import (
    Configuration,
    CorsConfig,
    LoggerConfig,
    OrmConfig,
    OrmPool,
    RedisConfig,
    ServerConfig,
)
from flow.errors import ConfigurationError


class TestServerConfig:
    """Tests for ServerConfig."""

    def test_defaults(self):
        """Test default values."""
        config = ServerConfig()

        assert config.host == "127.0.0.1"
        assert config.port == 9505
        assert config.proxy is False
        assert config.static_path == "./statics"
        assert config.view_path == "./views"

    def test_immutable(self):
        """Test blocks cannot be changed in place."""
        config = ServerConfig()

        with pytest.raises(FrozenInstanceError):
            config.port = 80

        assert replace(config, port=80).port == 80

    def test_from_env(self, monkeypatch):
        """Test FLOW_* variables are read."""
        monkeypatch.setenv("FLOW_PORT", "3000")
        monkeypatch.setenv("FLOW_PROXY", "true")
        monkeypatch.setenv("FLOW_APP_NAME", "shop")

        config = ServerConfig.from_env()

        assert config.port == 3000
        assert config.proxy is True
        assert config.app_name == "shop"

    @pytest.mark.parametrize("overrides", [
        {"port": 70000},
        {"min_workers": 0},
        {"min_workers": 8, "max_workers": 4},
        {"buffer_size": 10},
        {"timeout": 0},
    ])
    def test_validate(self, overrides):
        """Test invalid values are refused."""
        with pytest.raises(ConfigurationError):
            ServerConfig(**overrides).validate()


class TestLoggerConfig:
    """Tests for LoggerConfig."""

    def test_from_env(self, monkeypatch):
        """Test FLOW_LOG_* variables are read."""
        monkeypatch.setenv("FLOW_LOG_LEVEL", "error")
        monkeypatch.setenv("FLOW_LOG_JSON", "1")

        config = LoggerConfig.from_env()

        assert config.level == "error"
        assert config.format_json is True

    def test_invalid_level(self):
        """Test unknown levels are refused."""
        with pytest.raises(ConfigurationError):
            LoggerConfig(level="loud").validate()


class TestConfiguration:
    """Tests for the Configuration registry."""

    def test_defaults(self):
        """Test every block starts at its defaults."""
        config = Configuration()

        assert config.server == ServerConfig()
        assert config.cors == CorsConfig()
        assert config.redis.enable is False
        assert config.orm.enable is False

    def test_set_and_reset(self):
        """Test None restores the defaults."""
        config = Configuration()
        config.set_redis_config(RedisConfig(enable=True, prefix="shop"))
        assert config.redis.prefix == "shop"

        config.set_redis_config(None)
        assert config.redis == RedisConfig()

    def test_orm_pool_backfilled(self):
        """Test an OrmConfig without a pool gets the default pool."""
        config = Configuration()
        config.set_orm_config(OrmConfig(enable=True, db_name="shop", pool=None))

        assert config.orm.pool == OrmPool()
        assert config.orm.db_name == "shop"

    def test_frozen(self):
        """Test setters raise once frozen."""
        config = Configuration()
        config.freeze()

        assert config.frozen
        with pytest.raises(ConfigurationError):
            config.set_server_config(ServerConfig(port=1))
        assert config.server.port == 9505

    def test_app_config_frozen_after_start(self, app):
        """Test the application freezes its configuration on start."""
        app.start()
        try:
            with pytest.raises(ConfigurationError):
                app.set_cors_config(CorsConfig(allow_origin="x"))
        finally:
            app.close()
