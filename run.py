#!/usr/bin/env python3
"""
CoinWatch - Crypto watchlist & portfolio tracker

Usage:
    python run.py                       # Use config.json in the working directory
    python run.py --config my.json      # Use another config file
    python run.py --interval 30         # Override the refresh interval
    python run.py --help                # Show all options
"""

import argparse
import asyncio
import sys

from core.config import settings
from core.errors import PersistenceError
from core.logging_utils import get_logger, setup_logging, suppress_console_logging


async def run(config_path: str, interval_override: int | None = None) -> int:
    from apps.dashboard import run_dashboard_async
    from core.engine import TrackerEngine
    from core.persistence import ConfigPersistence, tokens_from_config
    from core.state_store import StateStore
    from datafeeds.coinmarketcap import CoinMarketCapClient
    from datafeeds.refresh_scheduler import RefreshScheduler

    logger = get_logger("run")

    persistence = ConfigPersistence(config_path)
    try:
        config = persistence.load()
    except PersistenceError as e:
        logger.error("[BOOT] %s", e)
        return 1

    store = StateStore(tokens_from_config(config))
    engine = TrackerEngine(store, persistence, config)

    api_key = settings.resolve_api_key(config.api_key)
    if not api_key:
        logger.warning("[BOOT] No CoinMarketCap API key (set CMC_API_KEY or api_key in %s)", config_path)

    client = CoinMarketCapClient(api_key, base_url=settings.cmc_base_url, timeout=settings.http_timeout)
    interval = settings.resolve_interval(interval_override or config.refresh_interval)
    scheduler = RefreshScheduler(client.fetch_quotes, engine, interval=interval)

    logger.info("[BOOT] Tracking %s tokens from %s, refresh every %ss", len(store), config_path, interval)

    # Console output would corrupt the TUI
    suppress_console_logging(True)
    try:
        await run_dashboard_async(engine, scheduler, client, config.fear_and_greed_limit)
    finally:
        suppress_console_logging(False)
    logger.info("[BOOT] Stopped | refresh stats: %s", scheduler.get_stats())
    return 0


def main():
    parser = argparse.ArgumentParser(
        prog='coinwatch',
        description='CoinWatch - Crypto watchlist & portfolio tracker',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands (press e):
  add <name> -w                      Add to watchlist
  add <name> -p <amount> <price>     Add / overwrite a holding
  add <name> -wp <amount> <price>    Both
  rm <name> [-w | -p | -wp]          Remove (default: both)
"""
    )

    parser.add_argument('-c', '--config', type=str, default=settings.config_path,
                        help=f'Config file (default: {settings.config_path})')
    parser.add_argument('-i', '--interval', type=int, default=None,
                        help='Refresh interval in seconds (overrides config)')
    parser.add_argument('--log-level', type=str, default=None,
                        help=f'Log level (default: {settings.log_level})')

    args = parser.parse_args()

    setup_logging(level=args.log_level, log_file=settings.log_file)
    try:
        code = asyncio.run(run(args.config, args.interval))
    except KeyboardInterrupt:
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    main()
