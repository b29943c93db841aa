"""HTTP server for the exchange relay."""

import argparse
import logging
from http.server import HTTPServer, BaseHTTPRequestHandler
from socketserver import ThreadingMixIn

from . import __version__
from .api_handlers import APIHandler
from .config import PREFLIGHT_MAX_AGE, RelayConfig, load_config, log_level
from .utils import ValidationError, cors_headers, json_bytes, parse_json_body, split_path

logger = logging.getLogger(__name__)


# (method, path) -> callable(api, request_handler)
ROUTES = {
    ("GET", "/proxyPublic"): lambda api, req: api.handle_proxy_public(req.query),
    ("POST", "/proxySigned"): lambda api, req: api.handle_proxy_signed(req.json_body()),
    ("POST", "/proxyOpenOrders"): lambda api, req: api.handle_open_orders(req.json_body()),
    ("POST", "/proxyFiatOrders"): lambda api, req: api.handle_fiat_orders(req.json_body()),
    ("POST", "/proxyFiatPayments"): lambda api, req: api.handle_fiat_payments(req.json_body()),
    ("POST", "/listenKey"): lambda api, req: api.handle_listen_key_create(req.json_body()),
    ("PUT", "/listenKey"): lambda api, req: api.handle_listen_key_keepalive(req.json_body()),
    ("GET", "/__health"): lambda api, req: api.handle_health(),
}


class RelayRequestHandler(BaseHTTPRequestHandler):
    """Dispatches relay routes and puts CORS headers on every response."""

    server_version = f"ExchangeRelay/{__version__}"

    query = ""
    _responded = False

    def log_request(self, code="-", size="-"):
        # requestline would include the signed query string
        path, _ = split_path(getattr(self, "path", ""))
        logger.info(f"{self.command} {path} {code}")

    def log_message(self, format, *args):
        logger.debug(format % args)

    def _cors(self):
        headers = cors_headers(
            self.headers.get("Origin"),
            self.headers.get("Access-Control-Request-Headers"),
            self.server.config.default_allow_headers,
        )
        for key, value in headers.items():
            self.send_header(key, value)

    def _write(self, body: bytes, status: int, content_type: str):
        """Send a complete response with CORS headers."""
        self._responded = True
        try:
            self.send_response(status)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body)))
            self._cors()
            self.end_headers()
            if self.command != "HEAD":
                self.wfile.write(body)
        except (BrokenPipeError, ConnectionResetError):
            logger.debug("Client disconnected before response was written")

    def _json(self, data, status=200):
        """Send relay-generated JSON."""
        self._write(json_bytes(data), status, "application/json")

    def _send_raw(self, body: bytes, status: int, content_type: str):
        """Send upstream bytes unchanged."""
        self._write(body, status, content_type)

    def _send_not_found(self):
        self._write(b"Not found", 404, "text/plain; charset=utf-8")

    def _read_body(self) -> bytes:
        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            raise ValidationError("invalid Content-Length")
        return self.rfile.read(length) if length > 0 else b""

    def json_body(self):
        """Parsed JSON request body (raises ValidationError)."""
        return parse_json_body(self._read_body())

    def send_error(self, code, message=None, explain=None):
        # Methods with no do_* handler are unmatched routes, not 501s
        if code == 501:
            self._send_not_found()
            return
        super().send_error(code, message, explain)

    def do_OPTIONS(self):
        """Handle CORS preflight requests on any path."""
        self._responded = True
        self.send_response(204)
        self._cors()
        self.send_header("Access-Control-Max-Age", PREFLIGHT_MAX_AGE)
        self.end_headers()

    def _dispatch(self):
        path, self.query = split_path(self.path)
        route = ROUTES.get((self.command, path))
        if route is None:
            self._send_not_found()
            return

        api = APIHandler(self.server.config, self._json, self._send_raw)
        try:
            route(api, self)
        except ValidationError as e:
            self._json({"ok": False, "message": str(e)}, 400)
        except Exception:
            logger.exception(f"Unhandled error on {self.command} {path}")
            if not self._responded:
                self._json({"ok": False, "message": "Internal relay error"}, 500)

    do_GET = _dispatch
    do_POST = _dispatch
    do_PUT = _dispatch
    do_DELETE = _dispatch
    do_PATCH = _dispatch
    do_HEAD = _dispatch


class RelayServer(ThreadingMixIn, HTTPServer):
    """Threaded HTTP server carrying the read-only relay configuration."""

    daemon_threads = True

    def __init__(self, config: RelayConfig, handler_class=RelayRequestHandler):
        self.config = config
        super().__init__((config.host, config.port), handler_class)


def run_server(config: RelayConfig = None):
    """Start the relay and serve until interrupted."""
    logging.basicConfig(
        level=log_level(),
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    config = config or load_config()
    server = RelayServer(config)
    logger.info(f"Exchange relay at http://{config.host}:{server.server_port} -> {config.upstream_base}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        server.server_close()


def main(argv=None):
    """Entry point for the server."""
    parser = argparse.ArgumentParser(description="Exchange CORS relay")
    parser.add_argument("-p", "--port", type=int, default=None,
                        help="Port to run on (default: $RELAY_PORT or 8787)")
    parser.add_argument("--host", default=None,
                        help="Address to bind (default: $RELAY_HOST or 0.0.0.0)")
    args = parser.parse_args(argv)

    run_server(load_config(port=args.port, host=args.host))


if __name__ == "__main__":
    main()
