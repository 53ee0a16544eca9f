"""
promwarp command line.

    promwarp serve --port 9090
    promwarp series -m 'http_requests_total{env="prod"}'
    promwarp labels -m '{__name__="http_requests_total"}'
    promwarp label-values job -m 'http_requests_total'
    promwarp metrics -m '{__name__=~".*request.*"}' --start 1700000000
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from typing import Any, Sequence

from rich.console import Console

from promwarp.config import get_settings
from promwarp.discovery import (
    DiscoveryConfig,
    DiscoveryError,
    DiscoveryOrchestrator,
    parse_timestamp,
)
from promwarp.logging import configure_logging
from promwarp.warp10 import Warp10Client

TOKEN_ENV = "PROMWARP_TOKEN"

console = Console()
err_console = Console(stderr=True)


def _add_query_arguments(parser: argparse.ArgumentParser, *, with_start: bool = False) -> None:
    parser.add_argument(
        "-m",
        "--match",
        action="append",
        default=[],
        dest="matches",
        help="Series selector (repeatable)",
    )
    parser.add_argument("--token", help=f"Warp 10 READ token (default: ${TOKEN_ENV})")
    parser.add_argument("--endpoint", help="Warp 10 endpoint (default: PROMWARP_WARP_ENDPOINT)")
    if with_start:
        parser.add_argument("--start", help="Start time, unix seconds or RFC 3339")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="promwarp", description="Prometheus discovery over Warp 10")
    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=9090, help="Bind port")

    series_parser = subparsers.add_parser("series", help="Find series matching selectors")
    _add_query_arguments(series_parser)

    labels_parser = subparsers.add_parser("labels", help="List label names")
    _add_query_arguments(labels_parser)

    values_parser = subparsers.add_parser("label-values", help="List values of one label")
    values_parser.add_argument("label", help="Label name")
    _add_query_arguments(values_parser)

    metrics_parser = subparsers.add_parser("metrics", help="Search metric names")
    _add_query_arguments(metrics_parser, with_start=True)

    return parser


def _build_orchestrator(endpoint: str | None) -> DiscoveryOrchestrator:
    settings = get_settings()
    finder = Warp10Client(
        endpoint or settings.warp_endpoint,
        timeout=settings.http_timeout,
        max_retries=settings.http_max_retries,
        backoff_factor=settings.http_retry_backoff_factor,
    )
    return DiscoveryOrchestrator(finder, DiscoveryConfig.from_settings(settings))


async def _run_query(args: argparse.Namespace, orchestrator: DiscoveryOrchestrator) -> Any:
    token = args.token or os.environ.get(TOKEN_ENV)

    if args.command == "series":
        return await orchestrator.find_series(token, args.matches)
    if args.command == "labels":
        return await orchestrator.find_label_names(token, args.matches)
    if args.command == "label-values":
        return await orchestrator.find_label_values(token, args.label, args.matches)

    start = parse_timestamp(args.start) if args.start else None
    return await orchestrator.find_metric_names(token, args.matches, start=start)


def query_command(args: argparse.Namespace, orchestrator: DiscoveryOrchestrator | None = None) -> int:
    """Run one discovery query and print the result as JSON."""
    orchestrator = orchestrator or _build_orchestrator(args.endpoint)
    try:
        data = asyncio.run(_run_query(args, orchestrator))
    except DiscoveryError as exc:
        err_console.print(f"[red]Error ({exc.category.value}):[/red] {exc.message}")
        return 1
    except ValueError as exc:
        err_console.print(f"[red]Error:[/red] {exc}")
        return 1

    console.print_json(data={"status": "success", "data": data})
    return 0


def serve_command(host: str, port: int) -> int:
    import uvicorn

    uvicorn.run("promwarp.api.main:app", host=host, port=port)
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(2)

    configure_logging(get_settings().log_level)

    if args.command == "serve":
        sys.exit(serve_command(args.host, args.port))

    sys.exit(query_command(args))


if __name__ == "__main__":  # pragma: no cover
    main()
