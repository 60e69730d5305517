"""Command-line interface for percycore.

Provides the main entry point for running the local control API or
serving a directory of static files with an automatic sitemap.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def parse_rewrite(value: str) -> tuple[str, str]:
    """Parse a ``SOURCE=DESTINATION`` rewrite argument."""
    source, sep, destination = value.partition("=")
    if not sep or not source or not destination:
        raise argparse.ArgumentTypeError(f"Invalid rewrite {value!r}, expected SOURCE=DESTINATION")
    return source, destination


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="percycore",
        description="Local control API for the Percy visual-testing agent",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: .percy.yml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    api_parser = subparsers.add_parser("api", help="Start the control API server")
    api_parser.add_argument(
        "--port", type=int, default=None,
        help="Port to listen on (default: 5338)",
    )
    api_parser.add_argument(
        "--testing", action="store_true",
        help="Enable testing mode and its /test/* routes",
    )

    static_parser = subparsers.add_parser("static", help="Serve a directory of static files")
    static_parser.add_argument(
        "directory", type=Path, nargs="?", default=None,
        help="Directory to serve",
    )
    static_parser.add_argument(
        "--port", type=int, default=None,
        help="Port to listen on (default: 8000)",
    )
    static_parser.add_argument(
        "--base-url", type=str, default=None,
        help="URL path to serve the directory under",
    )
    static_parser.add_argument(
        "--clean-urls", action="store_true",
        help="Serve and list pages without their .html extension",
    )
    static_parser.add_argument(
        "--rewrite", type=parse_rewrite, action="append", default=[],
        metavar="SOURCE=DESTINATION",
        help="Rewrite request paths matching SOURCE to DESTINATION (repeatable)",
    )

    return parser.parse_args(argv)


async def _run_api(settings, args) -> None:
    """Run the control API until the agent is stopped."""
    from percycore.agent import LocalAgent
    from percycore.logger import PercyLogger
    from percycore.server import create_percy_server, create_uvicorn_server

    log = PercyLogger(level=settings.logging.level)
    agent = LocalAgent(testing=settings.testing or args.testing, logger=log)
    app = create_percy_server(agent, log=log, dom_path=settings.dom_path)

    port = args.port or settings.server.port
    server = create_uvicorn_server(app, settings.server.host, port, settings.logging.level)

    async def _exit_when_stopped() -> None:
        await agent.wait_stopped()
        logger.info("Agent stopped, shutting down server")
        server.should_exit = True

    watcher = asyncio.create_task(_exit_when_stopped())
    try:
        logger.info("Percy control API listening on %s:%d", settings.server.host, port)
        await server.serve()
    finally:
        watcher.cancel()


async def _run_static(settings, args) -> None:
    """Serve a directory until interrupted."""
    from percycore.server import StaticServerOptions, create_static_server, create_uvicorn_server

    cfg = settings.static
    serve = args.directory or cfg.serve
    if serve is None:
        raise SystemExit("percycore static: no directory given and static.serve is not configured")

    rewrites = dict(cfg.rewrites)
    rewrites.update(args.rewrite)
    options = StaticServerOptions(
        serve=serve,
        base_url=args.base_url or cfg.base_url,
        rewrites=rewrites,
        clean_urls=args.clean_urls or cfg.clean_urls,
    )
    app = create_static_server(options)

    port = args.port or cfg.port
    server = create_uvicorn_server(app, cfg.host, port, settings.logging.level)
    logger.info("Serving %s at http://%s:%d%s", options.serve, cfg.host, port, options.base_url)
    await server.serve()


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the percycore CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from percycore.config.settings import load_settings
    from percycore.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "debug"

    setup_logging(settings.logging)

    if args.command == "api":
        logger.info("Starting control API")
        asyncio.run(_run_api(settings, args))

    elif args.command == "static":
        logger.info("Starting static server")
        asyncio.run(_run_static(settings, args))


if __name__ == "__main__":
    main()
