#!/usr/bin/env python3
"""Entry point for the exchange relay."""

import argparse

from exchange_relay.config import load_config
from exchange_relay.server import run_server


def main():
    parser = argparse.ArgumentParser(description="Exchange CORS relay")
    subparsers = parser.add_subparsers(dest='command')

    # Server command
    server_parser = subparsers.add_parser('server', help='Run the relay server')
    server_parser.add_argument('-p', '--port', type=int, default=None,
                               help='Port to run on (default: $RELAY_PORT or 8787)')
    server_parser.add_argument('--host', default=None,
                               help='Address to bind (default: $RELAY_HOST or 0.0.0.0)')

    args = parser.parse_args()

    if args.command == 'server':
        run_server(load_config(port=args.port, host=args.host))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
