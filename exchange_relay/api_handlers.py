"""Route handlers for the exchange relay.

Each handler validates its inputs, makes exactly one upstream call and hands
the upstream status, body and content type back to the server untouched.
Validation failures raise ``ValidationError`` before any network traffic;
the server turns them into 400 responses.
"""

import logging
import time
from typing import Any, Callable, Dict, NamedTuple, Optional
from urllib.parse import quote

import requests

from .config import (
    API_KEY_HEADER, DEFAULT_CONTENT_TYPE, FIAT_ORDERS_PATH, FIAT_PAYMENTS_PATH,
    OPEN_ORDERS_PATH, USER_DATA_STREAM_PATH, RelayConfig
)
from .utils import public_query, require_endpoint, require_str, with_query

logger = logging.getLogger(__name__)


class UpstreamReply(NamedTuple):
    status: int
    body: bytes
    content_type: str


class APIHandler:
    """Handles all relay routes.

    ``send_json(data, status)`` writes a relay-generated JSON response,
    ``send_raw(body, status, content_type)`` writes upstream bytes verbatim.
    """

    def __init__(self, config: RelayConfig,
                 send_json: Callable[[Any, int], None],
                 send_raw: Callable[[bytes, int, str], None]):
        self.config = config
        self.send_json = send_json
        self.send_raw = send_raw

    # Upstream

    def _fetch(self, method: str, path: str, query: str = "",
               api_key: Optional[str] = None) -> Optional[UpstreamReply]:
        """Issue one upstream request. Returns None on transport failure."""
        url = with_query(self.config.upstream_url(path), query)
        headers = {API_KEY_HEADER: api_key} if api_key else {}
        try:
            response = requests.request(method, url, headers=headers,
                                        timeout=self.config.upstream_timeout)
        except requests.exceptions.RequestException as e:
            # The URL may carry a signature, so only the path is logged
            logger.error(f"Upstream {method} {path} failed: {type(e).__name__}")
            self.send_json({"ok": False, "message": str(e)}, 500)
            return None

        logger.debug(f"Upstream {method} {path} -> {response.status_code}")
        content_type = response.headers.get("Content-Type") or DEFAULT_CONTENT_TYPE
        return UpstreamReply(response.status_code, response.content, content_type)

    def _forward(self, method: str, path: str, query: str = "",
                 api_key: Optional[str] = None) -> None:
        reply = self._fetch(method, path, query, api_key)
        if reply is not None:
            self.send_raw(reply.body, reply.status, reply.content_type)

    def _forward_signed_get(self, path: str, data: Dict[str, Any]) -> None:
        api_key = require_str(data, "apiKey")
        query = require_str(data, "queryString")
        self._forward("GET", path, query, api_key)

    # Routes

    def handle_proxy_public(self, query: str) -> None:
        """GET /proxyPublic?endpoint=/api/v3/...&... - unsigned market data."""
        endpoint, rest = public_query(query)
        endpoint = require_endpoint(endpoint)
        self._forward("GET", endpoint, rest)

    def handle_proxy_signed(self, data: Dict[str, Any]) -> None:
        """POST /proxySigned - signed GET to an arbitrary endpoint."""
        api_key = require_str(data, "apiKey")
        endpoint = require_endpoint(require_str(data, "endpoint"))
        query = require_str(data, "queryString")
        self._forward("GET", endpoint, query, api_key)

    def handle_open_orders(self, data: Dict[str, Any]) -> None:
        """POST /proxyOpenOrders"""
        self._forward_signed_get(OPEN_ORDERS_PATH, data)

    def handle_fiat_orders(self, data: Dict[str, Any]) -> None:
        """POST /proxyFiatOrders"""
        self._forward_signed_get(FIAT_ORDERS_PATH, data)

    def handle_fiat_payments(self, data: Dict[str, Any]) -> None:
        """POST /proxyFiatPayments"""
        self._forward_signed_get(FIAT_PAYMENTS_PATH, data)

    def handle_listen_key_create(self, data: Dict[str, Any]) -> None:
        """POST /listenKey - open a user data stream."""
        api_key = require_str(data, "apiKey")
        self._forward("POST", USER_DATA_STREAM_PATH, api_key=api_key)

    def handle_listen_key_keepalive(self, data: Dict[str, Any]) -> None:
        """PUT /listenKey - extend a user data stream."""
        api_key = require_str(data, "apiKey")
        listen_key = require_str(data, "listenKey")
        query = "listenKey=" + quote(listen_key, safe="!*'()")
        self._forward("PUT", USER_DATA_STREAM_PATH, query, api_key)

    def handle_health(self) -> None:
        """GET /__health - local status, no upstream call."""
        self.send_json({
            "ok": True,
            "service": self.config.service_name,
            "upstream": self.config.upstream_base,
            "time": int(time.time() * 1000),
        }, 200)
