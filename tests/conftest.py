"""Fixtures: a fake upstream exchange and a relay pointed at it."""

import socket
import threading
from http.server import HTTPServer, BaseHTTPRequestHandler

import pytest

from exchange_relay.config import RelayConfig
from exchange_relay.server import RelayServer


class FakeUpstream:
    """Records every call and answers with a canned reply."""

    def __init__(self):
        self.calls = []
        self.status = 200
        self.body = b'{"serverTime": 1700000000000}'
        self.content_type = "application/json;charset=UTF-8"

    def reply(self, status, body, content_type=None):
        self.status = status
        self.body = body
        self.content_type = content_type


def _make_handler(upstream):
    class Handler(BaseHTTPRequestHandler):
        def log_message(self, format, *args):
            pass  # Quiet logging

        def _handle(self):
            length = int(self.headers.get("Content-Length") or 0)
            body = self.rfile.read(length) if length > 0 else b""
            upstream.calls.append({
                "method": self.command,
                "path": self.path,
                "headers": self.headers,
                "body": body,
            })
            self.send_response(upstream.status)
            if upstream.content_type:
                self.send_header("Content-Type", upstream.content_type)
            self.send_header("Content-Length", str(len(upstream.body)))
            self.end_headers()
            self.wfile.write(upstream.body)

        do_GET = _handle
        do_POST = _handle
        do_PUT = _handle

    return Handler


def _serve(server):
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return thread


@pytest.fixture
def upstream():
    fake = FakeUpstream()
    server = HTTPServer(("127.0.0.1", 0), _make_handler(fake))
    _serve(server)
    fake.base = f"http://127.0.0.1:{server.server_port}"
    yield fake
    server.shutdown()
    server.server_close()


def _start_relay(upstream_base):
    config = RelayConfig(upstream_base=upstream_base, upstream_timeout=5,
                         host="127.0.0.1", port=0)
    server = RelayServer(config)
    _serve(server)
    return server


@pytest.fixture
def relay(upstream):
    """Base URL of a relay forwarding to the fake upstream."""
    server = _start_relay(upstream.base)
    yield f"http://127.0.0.1:{server.server_port}"
    server.shutdown()
    server.server_close()


@pytest.fixture
def dead_relay():
    """Base URL of a relay whose upstream port refuses connections."""
    sock = socket.socket()
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()

    server = _start_relay(f"http://127.0.0.1:{port}")
    yield f"http://127.0.0.1:{server.server_port}"
    server.shutdown()
    server.server_close()
