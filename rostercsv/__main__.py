#!/usr/bin/env python3
"""
Roster CSV command line
=======================
Subcommands:

    fetch REGION NAME [--output FILE]   one scrape run, CSV to stdout or a file
    refresh [--server URL]              ask the running server to bulk refresh
    serve [--host H] [--port P]         run the HTTP layer under uvicorn

All configuration flows through ``EngineConfig`` (environment / ``.env``),
with the common flags below overriding it.

Run with: python -m rostercsv
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import requests
from dotenv import load_dotenv

env_path = Path(__file__).resolve().parent.parent / '.env'
if env_path.exists():
    load_dotenv(env_path)
else:
    load_dotenv()  # tries CWD

from .engine import RosterEngine
from .errors import EmptyRosterError, FetchError, NoEngineAvailable
from .run_config import EngineConfig

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(levelname)s | %(message)s',
    datefmt='%H:%M:%S'
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------

async def _fetch(config: EngineConfig, region: str, name: str) -> str:
    engine = RosterEngine(config)
    await engine.session.acquire()
    try:
        return await engine.get_csv_for_roster(region, name)
    finally:
        await engine.shutdown()


def server_url(config: EngineConfig) -> str:
    """Base URL of the local server; a wildcard bind address maps to loopback."""
    host = "127.0.0.1" if config.host in ("0.0.0.0", "::", "") else config.host
    return f"http://{host}:{config.port}"


def run_fetch(args, config: EngineConfig) -> int:
    csv_text = asyncio.run(_fetch(config, args.region, args.name))
    if args.output:
        Path(args.output).write_text(csv_text + "\n", encoding="utf-8")
        logger.info(f"Wrote {args.output}")
    else:
        print(csv_text)
    return 0


def run_refresh(args, config: EngineConfig) -> int:
    url = (args.server or server_url(config)).rstrip("/") + "/refresh"
    try:
        response = requests.post(url, timeout=10)
        response.raise_for_status()
        started = bool(response.json().get("started"))
    except (requests.RequestException, ValueError) as e:
        logger.error(f"Could not reach the roster server at {url}: {e}")
        return 1
    if started:
        logger.info(f"Bulk refresh started on {url}")
    else:
        logger.info("Bulk refresh skipped (cooldown active or already running)")
    return 0


def run_serve(args, config: EngineConfig) -> int:
    from .server import serve
    serve(config)
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='rostercsv',
        description='Scrape character roster stats into CSV',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m rostercsv fetch NAE Foo
  python -m rostercsv fetch EUC Bar --output bar.csv --concurrency 2
  python -m rostercsv refresh --server http://127.0.0.1:3000
  python -m rostercsv serve --port 3000
        """,
    )
    parser.add_argument('--concurrency', type=int, help='Concurrent character fetches per run (default: 1)')
    parser.add_argument('--timeout', type=int, help='Navigation timeout in seconds (default: 45)')
    parser.add_argument('--headed', action='store_true', help='Show the browser window')
    parser.add_argument('--storage-state', type=str, help='Session state file (default: storage.json)')

    sub = parser.add_subparsers(dest='command', required=True)

    fetch = sub.add_parser('fetch', help='Scrape one roster')
    fetch.add_argument('region', help='Region code, e.g. NAE')
    fetch.add_argument('name', help='Character name')
    fetch.add_argument('--output', '-o', type=str, help='Write CSV to this file instead of stdout')
    fetch.set_defaults(handler=run_fetch)

    refresh = sub.add_parser(
        'refresh',
        help='Ask the running server to refresh every priority character',
        description='Triggers POST /refresh on the running server, so the refreshed data '
                    'lands in its cache and the cooldown clock is advanced there.',
    )
    refresh.add_argument('--server', type=str, help='Server base URL (default: http://HOST:PORT from config)')
    refresh.add_argument('--host', type=str, help='Server host (default: 127.0.0.1 for a 0.0.0.0 bind)')
    refresh.add_argument('--port', type=int, help='Server port (default: 3000)')
    refresh.set_defaults(handler=run_refresh)

    serve = sub.add_parser('serve', help='Run the HTTP server')
    serve.add_argument('--host', type=str, help='Bind address (default: 0.0.0.0)')
    serve.add_argument('--port', type=int, help='Port (default: 3000)')
    serve.set_defaults(handler=run_serve)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = EngineConfig.from_cli_args(args)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    try:
        return args.handler(args, config)
    except EmptyRosterError as e:
        logger.error(f"Could not obtain the roster: {e}")
        return 1
    except FetchError as e:
        logger.error(f"Could not obtain the roster: {e}")
        return 1
    except NoEngineAvailable as e:
        logger.error(f"No browser engine available: {e}")
        return 1
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return 130


if __name__ == '__main__':
    sys.exit(main())
