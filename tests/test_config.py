"""Tests for environment-driven configuration."""

import dataclasses

import pytest

from exchange_relay.config import (
    DEFAULT_PORT, DEFAULT_UPSTREAM_BASE, RelayConfig, load_config, log_level
)


def test_defaults():
    config = load_config({})
    assert config.upstream_base == DEFAULT_UPSTREAM_BASE
    assert config.port == DEFAULT_PORT
    assert config.upstream_timeout == 10.0


def test_environment():
    config = load_config({
        "RELAY_UPSTREAM_BASE": "https://testnet.binance.vision/",
        "RELAY_UPSTREAM_TIMEOUT": "2.5",
        "RELAY_HOST": "127.0.0.1",
        "RELAY_PORT": "9000",
    })
    assert config.upstream_base == "https://testnet.binance.vision"
    assert config.upstream_timeout == 2.5
    assert config.host == "127.0.0.1"
    assert config.port == 9000
    assert config.upstream_url("/api/v3/time") == "https://testnet.binance.vision/api/v3/time"


def test_overrides_win():
    config = load_config({"RELAY_PORT": "9000"}, port=9100, host=None)
    assert config.port == 9100
    assert config.host == "0.0.0.0"


def test_invalid_values():
    with pytest.raises(ValueError):
        load_config({"RELAY_PORT": "eighty"})
    with pytest.raises(ValueError):
        load_config({"RELAY_UPSTREAM_TIMEOUT": "0"})


def test_config_is_immutable():
    config = RelayConfig()
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.port = 1


def test_log_level():
    assert log_level({}) == "INFO"
    assert log_level({"RELAY_LOG_LEVEL": "debug"}) == "DEBUG"
