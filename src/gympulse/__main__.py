"""Command line entry point.

Usage
-----
::

    python -m gympulse serve            # run the service on GYMPULSE_HOST:GYMPULSE_PORT
    python -m gympulse refresh          # sample every facility once into GYMPULSE_DATA_PATH
    python -m gympulse refresh --json   # ... and print the batch result as JSON

Configuration is read from ``GYMPULSE_*`` environment variables (see
:class:`gympulse.config.PulseConfig`).
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import sys

from gympulse.config import PulseConfig
from gympulse.exceptions import PulseError
from gympulse.monitor import PulseMonitor
from gympulse.server import serve

_logger = logging.getLogger("gympulse")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gympulse", description="Facility occupancy monitor")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    serve_parser = sub.add_parser("serve", help="Run the HTTP service")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: GYMPULSE_HOST)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port (default: GYMPULSE_PORT)")
    serve_parser.add_argument("--data", default=None, help="History document (default: GYMPULSE_DATA_PATH)")

    refresh_parser = sub.add_parser("refresh", help="Sample every facility once and exit")
    refresh_parser.add_argument("--data", default=None, help="History document (default: GYMPULSE_DATA_PATH)")
    refresh_parser.add_argument("--json", action="store_true", help="Print the batch result as JSON")
    return parser


async def _serve(config: PulseConfig) -> None:
    async with PulseMonitor(config, standalone=True) as monitor:
        runner = await serve(monitor, host=config.host, port=config.port)
        try:
            await asyncio.Event().wait()
        finally:
            await runner.cleanup()


async def _refresh(config: PulseConfig, *, as_json: bool) -> int:
    async with PulseMonitor(config, standalone=True) as monitor:
        await monitor.resolve()
        result = await monitor.refresh()
    if as_json:
        print(
            json.dumps(
                {"accepted": result.accepted, "skipped": result.skipped, "failed": result.failed},
                indent=2,
            )
        )
    return 0 if result.ok else 1


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    overrides: dict[str, object] = {}
    if getattr(args, "host", None):
        overrides["host"] = args.host
    if getattr(args, "port", None):
        overrides["port"] = args.port
    if args.data:
        overrides["data_path"] = args.data

    try:
        config = PulseConfig.from_env(**overrides)
    except PulseError as exc:
        _logger.error("Invalid configuration: %s", exc)
        return 2

    if args.command == "serve":
        with contextlib.suppress(KeyboardInterrupt):
            asyncio.run(_serve(config))
        return 0
    return asyncio.run(_refresh(config, as_json=args.json))


if __name__ == "__main__":
    sys.exit(main())
