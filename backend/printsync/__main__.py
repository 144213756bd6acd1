"""
PrintSync command line.

    python -m printsync            run one resolution pass and exit
    python -m printsync serve      run the API with the periodic sync loop
"""

import argparse
import asyncio
import logging
import sys

from .core.config import settings
from .core.exceptions import SyncTimeoutError
from .core.log import setup_logging
from .db import database

logger = logging.getLogger("printsync")

EXIT_OK = 0
EXIT_TIMEOUT = 1
EXIT_FAILED = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="printsync", description="Resolve printer IP addresses on the local network")
    parser.add_argument("--debug", action="store_true", help="verbose logging")
    parser.add_argument("--data-path", help=f"directory of the MAC -> IP map (default: {settings.DATA_PATH})")
    parser.add_argument("--database-url", help="sync history database URL")

    subparsers = parser.add_subparsers(dest="command")
    serve = subparsers.add_parser("serve", help="run the API and the scheduled sync loop")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true")

    return parser


async def run_once(cache_path=None) -> int:
    from .sync.orchestrator import SyncOrchestrator

    try:
        await database.init_db()
    except Exception as e:
        logger.warning(f"History database unavailable, continuing without it: {e}")

    orchestrator = SyncOrchestrator(cache_path=cache_path)
    try:
        result = await orchestrator.run_pass(trigger="cli")
    except SyncTimeoutError as e:
        logger.critical(f"Aborting: {e}")
        return EXIT_TIMEOUT

    summary = result.summary()
    logger.info(
        f"Sync {summary['status']}: {summary['printers_resolved']}/{summary['printers_total']} printers resolved, "
        f"{summary['warnings']} warnings, {summary['errors']} errors, "
        f"{summary['cache_invalidations']} cache entries invalidated"
    )
    return EXIT_OK if result.status == "completed" else EXIT_FAILED


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(settings.LOG_LEVEL, args.debug or settings.DEBUG)

    if args.database_url:
        database.configure(args.database_url)

    cache_path = None
    if args.data_path:
        settings.DATA_PATH = args.data_path
        cache_path = settings.mac_ip_map_path

    if args.command == "serve":
        import uvicorn

        uvicorn.run(
            "printsync.main:app",
            host=args.host,
            port=args.port,
            reload=args.reload,
        )
        return EXIT_OK

    return asyncio.run(run_once(cache_path))


if __name__ == "__main__":
    sys.exit(main())
