from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from .client import RelayClient, RelayClientError
from .config import CONFIG_PATH, RelayConfig, configure_logging, load_config, save_config
from .server import serve


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="devrelay",
        description="Relay MCP tool calls to a polling Chrome extension.",
    )
    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Run the relay HTTP server (peer endpoints + /mcp)")
    serve_parser.add_argument("--config", type=Path, default=CONFIG_PATH, help=f"Config file (default: {CONFIG_PATH})")
    serve_parser.add_argument("--host", help="Listen address (default: 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, help="Listen port (default: 3456)")
    serve_parser.add_argument("--command-timeout", type=float, help="Seconds a tool call waits for the extension")
    serve_parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], type=str.upper)
    serve_parser.set_defaults(func=serve_command)

    status_parser = subparsers.add_parser("status", help="Print the status of a running relay")
    status_parser.add_argument("--url", default="http://localhost:3456", help="Relay base URL")
    status_parser.set_defaults(func=status_command)

    init_parser = subparsers.add_parser("init-config", help="Write a config file with the default settings")
    init_parser.add_argument("--config", type=Path, default=CONFIG_PATH, help=f"Config file (default: {CONFIG_PATH})")
    init_parser.add_argument("--force", action="store_true", help="Overwrite an existing file")
    init_parser.set_defaults(func=init_config_command)

    return parser


def serve_command(args: argparse.Namespace) -> int:
    config = load_config(args.config).with_overrides(
        host=args.host,
        port=args.port,
        command_timeout=args.command_timeout,
        log_level=args.log_level,
    )
    configure_logging(config.log_level)
    serve(config)
    return 0


def status_command(args: argparse.Namespace) -> int:
    try:
        result = asyncio.run(RelayClient(args.url).status())
    except RelayClientError as exc:
        print(f"devrelay not reachable: {exc}", file=sys.stderr)
        return 1
    print(json.dumps(result, indent=2))
    return 0


def init_config_command(args: argparse.Namespace) -> int:
    if args.config.exists() and not args.force:
        print(f"{args.config} already exists (use --force to overwrite)", file=sys.stderr)
        return 1
    save_config(RelayConfig(), args.config)
    print(f"Wrote {args.config}")
    return 0


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    if hasattr(args, "func"):
        sys.exit(args.func(args))
    parser.print_help()
    sys.exit(2)


if __name__ == "__main__":
    main()
