#!/usr/bin/env python3
"""
STChat Relay - Main Entry Point

Runs the single-room, zero-knowledge chat relay.

Usage:
    python main_server.py

Optional arguments:
    --host HOST           Bind address (default: $HOST or 0.0.0.0)
    --port PORT           TCP port (default: $PORT or 3000)
    --logs-dir DIR        Directory for the relay event log (default: logs)
    --debug               Enable debug logging
"""

import argparse
import asyncio
import logging

from server.main_server import RelayServer
from server.utils.config import ServerConfig
from server.utils.logger import logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='STChat Relay Server')
    parser.add_argument('--host', type=str, default=None,
                        help='Host to bind to (default: $HOST or 0.0.0.0)')
    parser.add_argument('--port', type=int, default=None,
                        help='TCP port (default: $PORT or 3000)')
    parser.add_argument('--logs-dir', type=str, default=None,
                        help='Directory for the relay event log (default: logs)')
    parser.add_argument('--debug', action='store_true',
                        help='Enable debug logging')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    if args.debug:
        logger.set_level(logging.DEBUG)

    try:
        config = ServerConfig.from_env(host=args.host, port=args.port, logs_dir=args.logs_dir)
    except ValueError as e:
        logger.log_error("configuration", e)
        return 2

    if args.logs_dir:
        logger.set_logs_dir(config.logs_dir)

    server = RelayServer(config)
    info = config.get_connection_info()
    logger.info(f"Server binding to {info['host']}:{info['port']}")
    try:
        asyncio.run(server.serve_forever())
    except KeyboardInterrupt:
        logger.info("Server shutting down...")
    except OSError as e:
        logger.log_error("server", e)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
