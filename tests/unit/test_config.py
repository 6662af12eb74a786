"""
Unit tests for ServerConfig.
"""

import dataclasses
import logging

import pytest

from fileserve.config import DEFAULT_HOST, DEFAULT_PORT, DEFAULT_WORKERS, ServerConfig


class TestServerConfig:

    def test_defaults(self):
        config = ServerConfig()

        assert config.host == DEFAULT_HOST == "127.0.0.1"
        assert config.port == DEFAULT_PORT == 8080
        assert config.workers == DEFAULT_WORKERS == 10
        assert config.directory == "."
        assert config.read_buffer_size == 1024
        assert config.timeout == 30.0
        assert config.queue_size == 0
        config.validate()

    def test_frozen(self):
        config = ServerConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.port = 9000

    def test_log_level_value(self):
        assert ServerConfig(log_level="debug").log_level_value == logging.DEBUG

    def test_port_zero_is_valid(self):
        ServerConfig(port=0).validate()

    def test_timeout_none_is_valid(self):
        ServerConfig(timeout=None).validate()

    @pytest.mark.parametrize("kwargs", [
        {"port": -1},
        {"port": 65536},
        {"workers": 0},
        {"queue_size": -1},
        {"backlog": 0},
        {"read_buffer_size": 10},
        {"timeout": 0},
        {"timeout": -5.0},
        {"log_level": "LOUD"},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            ServerConfig(**kwargs).validate()
