"""CLI entry point for crossdevice."""

import argparse
import asyncio
import inspect
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

from .config import Config, load_config
from .identity import device_id
from .sync import RemoteClient, SyncEngine


class JSONFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


def setup_logging(verbose: bool = False, log_level: str | None = None, json_output: bool = False) -> None:
    """Configure the root logger. ``log_level`` wins over ``verbose``."""
    if log_level:
        level = getattr(logging, log_level.upper())
    else:
        level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
    logging.basicConfig(level=level, handlers=[handler])


def _load(args: argparse.Namespace) -> Config:
    config = load_config(args.config)
    if getattr(args, "hub_url", None):
        config.sync.hub_url = args.hub_url
    return config


def _hub_url(config: Config) -> str:
    return config.sync.hub_url or f"http://localhost:{config.network.port}"


def _parse_value(raw: str):
    """Interpret a CLI value as JSON, falling back to a plain string."""
    try:
        return json.loads(raw)
    except ValueError:
        return raw


async def cmd_serve(args: argparse.Namespace) -> int:
    """Serve the HTTP API as a hub, or as a satellite of ``--hub-url``."""
    config = _load(args)
    if args.host:
        config.network.host = args.host
    if args.port:
        config.network.port = args.port

    from .server import bind_first_free, create_app

    import uvicorn

    try:
        sock, port = bind_first_free(config.network.host, config.network.candidate_ports)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        engine = SyncEngine(config)
        app = create_app(engine, cors_origins=config.network.cors_origins)

        print(f"Starting crossdevice {engine.role.value} (device {engine.device_id})")
        print(f"URL: http://{config.network.host}:{port}")
        if engine.is_hub:
            print(f"Data: {config.storage.document_path}")
        else:
            print(f"Hub: {config.sync.hub_url}")

        verbose = getattr(args, "verbose", False)
        server = uvicorn.Server(
            uvicorn.Config(app, log_level="info" if verbose else "warning")
        )

        async with engine:
            await server.serve(sockets=[sock])
    finally:
        sock.close()

    return 0


async def cmd_status(args: argparse.Namespace) -> int:
    """Check whether the hub is reachable."""
    config = _load(args)
    url = _hub_url(config)
    client = RemoteClient(url, config.network)

    try:
        connected = await client.check_health()
    finally:
        await client.close()

    if args.json:
        print(json.dumps({
            "timestamp": datetime.now().isoformat(),
            "hub_url": url,
            "connected": connected,
            "device": device_id(),
        }, indent=2))
    elif connected:
        print(f"Connected to hub at {url}")
    else:
        print(f"Cannot reach hub at {url}")

    return 0 if connected else 1


async def cmd_get(args: argparse.Namespace) -> int:
    """Read a key, or the whole document, from the hub."""
    config = _load(args)
    client = RemoteClient(_hub_url(config), config.network)

    try:
        result = await client.read(args.key)
    finally:
        await client.close()

    if not result.ok:
        print(f"Load failed: {result.error}", file=sys.stderr)
        return 1

    print(json.dumps(result.value, indent=2))
    return 0


async def cmd_set(args: argparse.Namespace) -> int:
    """Write a key on the hub."""
    config = _load(args)
    client = RemoteClient(_hub_url(config), config.network)

    try:
        result = await client.write(args.key, _parse_value(args.value))
    finally:
        await client.close()

    if not result.ok:
        print(f"Save failed: {result.error}", file=sys.stderr)
        return 1

    print(f"Saved {args.key}")
    return 0


def cmd_device_id(args: argparse.Namespace) -> int:
    """Print this host's device identifier."""
    print(device_id())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crossdevice",
        description="Local-first key/value store shared across devices",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to config file",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["warning", "info", "debug"],
        default=None,
        help="Set log level explicitly (overrides -v/--verbose)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs as JSON for machine parsing",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", type=str, default=None, help="Host to bind")
    serve_parser.add_argument(
        "-p", "--port",
        type=int,
        default=None,
        help="Preferred port; configured fallback ports are tried after it",
    )
    serve_parser.add_argument(
        "--hub-url",
        type=str,
        default=None,
        help="Run as a satellite of this hub",
    )
    serve_parser.set_defaults(func=cmd_serve)

    # Status command
    status_parser = subparsers.add_parser("status", help="Check hub connectivity")
    status_parser.add_argument("--hub-url", type=str, default=None)
    status_parser.add_argument(
        "--json",
        action="store_true",
        help="Output status as JSON",
    )
    status_parser.set_defaults(func=cmd_status)

    # Get command
    get_parser = subparsers.add_parser("get", help="Read a key from the hub")
    get_parser.add_argument("key", nargs="?", default=None, help="Key (default: everything)")
    get_parser.add_argument("--hub-url", type=str, default=None)
    get_parser.set_defaults(func=cmd_get)

    # Set command
    set_parser = subparsers.add_parser("set", help="Write a key on the hub")
    set_parser.add_argument("key")
    set_parser.add_argument("value", help="JSON value, or a plain string")
    set_parser.add_argument("--hub-url", type=str, default=None)
    set_parser.set_defaults(func=cmd_set)

    # Device id command
    device_parser = subparsers.add_parser("device-id", help="Print this device's id")
    device_parser.set_defaults(func=cmd_device_id)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.log_level, args.json_logs)

    if not args.command:
        parser.print_help()
        return 1

    func = args.func
    if inspect.iscoroutinefunction(func):
        return asyncio.run(func(args))
    return func(args)


if __name__ == "__main__":
    sys.exit(main())
