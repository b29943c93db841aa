"""Configuration constants and settings for the exchange relay."""

import os
from dataclasses import dataclass

# Upstream exchange
DEFAULT_UPSTREAM_BASE = "https://api.binance.com"
DEFAULT_UPSTREAM_TIMEOUT = 10.0  # seconds
API_KEY_HEADER = "X-MBX-APIKEY"

# Fixed upstream paths used by the signed routes
OPEN_ORDERS_PATH = "/api/v3/openOrders"
FIAT_ORDERS_PATH = "/sapi/v1/fiat/orders"
FIAT_PAYMENTS_PATH = "/sapi/v1/fiat/payments"
USER_DATA_STREAM_PATH = "/api/v3/userDataStream"

# Server configuration
# RELAY_HOST / RELAY_PORT override the bind address
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8787
SERVICE_NAME = "exchange-relay"

# CORS
ALLOWED_METHODS = "GET, POST, PUT, OPTIONS"
DEFAULT_ALLOW_HEADERS = f"Content-Type, {API_KEY_HEADER}"
PREFLIGHT_MAX_AGE = "86400"
VARY_HEADER = "Origin, Access-Control-Request-Method, Access-Control-Request-Headers"

# Every response is uncacheable
NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

DEFAULT_CONTENT_TYPE = "application/json"


@dataclass(frozen=True)
class RelayConfig:
    """Settings resolved once at startup and shared read-only by all requests."""

    upstream_base: str = DEFAULT_UPSTREAM_BASE
    upstream_timeout: float = DEFAULT_UPSTREAM_TIMEOUT
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    default_allow_headers: str = DEFAULT_ALLOW_HEADERS
    service_name: str = SERVICE_NAME

    def upstream_url(self, path: str) -> str:
        """Join the upstream base with an absolute endpoint path."""
        return f"{self.upstream_base}{path}"


def load_config(environ=None, **overrides) -> RelayConfig:
    """Build a RelayConfig from environment variables.

    Keyword overrides (e.g. a port given on the command line) win over the
    environment. Values of None are ignored.
    """
    env = os.environ if environ is None else environ
    values = {
        "upstream_base": env.get("RELAY_UPSTREAM_BASE", DEFAULT_UPSTREAM_BASE).rstrip("/"),
        "upstream_timeout": float(env.get("RELAY_UPSTREAM_TIMEOUT", DEFAULT_UPSTREAM_TIMEOUT)),
        "host": env.get("RELAY_HOST", DEFAULT_HOST),
        "port": int(env.get("RELAY_PORT", DEFAULT_PORT)),
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    if values["upstream_timeout"] <= 0:
        raise ValueError(f"RELAY_UPSTREAM_TIMEOUT must be positive, got {values['upstream_timeout']}")
    return RelayConfig(**values)


def log_level(environ=None) -> str:
    """Root log level name from RELAY_LOG_LEVEL (default INFO)."""
    env = os.environ if environ is None else environ
    return env.get("RELAY_LOG_LEVEL", "INFO").upper()
