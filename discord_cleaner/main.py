#!/usr/bin/env python3
"""
Discord Cleaner - Bulk delete your own messages from one channel
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import List, Optional

from rich.console import Console

from discord_cleaner.cleaner import DeletionRunner
from discord_cleaner.config import ConfigError, Settings
from discord_cleaner.discord_api import DiscordApi
from discord_cleaner.models import RunStats
from discord_cleaner.rate_limit import RateLimitGate
from discord_cleaner.session_log import SessionLog


logger = logging.getLogger(__name__)

console = Console()

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CONFIG = 2
EXIT_INCOMPLETE = 3


def configure_logging() -> None:
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description='Delete every message you wrote in a Discord channel, keeping a text backup'
    )
    parser.add_argument('--channel-id', help='Channel to clean (default: DISCORD_CHANNEL_ID)')
    parser.add_argument('--author-id', help='Author whose messages are deleted (default: DISCORD_AUTHOR_ID)')
    parser.add_argument('--before-id', help='Only delete messages older than this message ID')
    parser.add_argument('--delete-delay', type=int, dest='delete_delay_ms', help='Pause after each delete, in ms')
    parser.add_argument('--search-delay', type=int, dest='search_delay_ms', help='Pause after each search page, in ms')
    parser.add_argument('--rate-limit', type=int, dest='rate_limit_ms', help='Minimum interval between API calls, in ms')
    parser.add_argument('--max-retries', type=int, help='Give up after this many 202/429 retries of one call')
    parser.add_argument('--log-dir', help='Directory for the log and backup files (default: logs)')
    return parser.parse_args(argv)


def install_interrupt_handler(runner: DeletionRunner) -> None:
    """On Ctrl+C print the summary right away and exit cleanly"""

    def _handle_interrupt(signum, frame):
        runner.interrupted = True
        runner.session_log.info('\nInterruption detected. Finalizing...')
        runner.print_summary()
        sys.exit(EXIT_OK)

    signal.signal(signal.SIGINT, _handle_interrupt)


async def run_session(settings: Settings) -> RunStats:
    """Open the HTTP client and log files, then run the deletion loop"""
    session_log = SessionLog(
        settings.log_dir,
        channel_id=settings.channel_id,
        author_id=settings.author_id,
        before_id=settings.before_id
    )
    try:
        async with DiscordApi.create_client(settings.auth_token, settings.api_base) as client:
            api = DiscordApi(
                client,
                settings.channel_id,
                gate=RateLimitGate(settings.rate_limit_ms),
                max_retries=settings.max_retries
            )
            runner = DeletionRunner(api, settings.cleanup_config(), session_log)
            install_interrupt_handler(runner)
            return await runner.run()
    finally:
        session_log.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    args = parse_args(argv)
    configure_logging()

    try:
        settings = Settings.from_env(overrides=vars(args))
    except ConfigError as error:
        console.print(f"[red]Configuration error: {error}[/red]")
        console.print("Set the missing values in the environment or in a .env file")
        return EXIT_CONFIG

    console.print("\n[bold blue]Starting Discord Cleanup[/bold blue]")
    console.print(f"[cyan]Channel: {settings.channel_id}[/cyan]")
    console.print(f"[cyan]Author: {settings.author_id}[/cyan]")
    if settings.before_id:
        console.print(f"[cyan]Before message: {settings.before_id}[/cyan]")
    console.print(f"[yellow]Deleted messages are backed up under {settings.log_dir}/[/yellow]\n")

    try:
        stats = asyncio.run(run_session(settings))
    except Exception as error:
        logger.debug("Session failed", exc_info=True)
        console.print(f"[red]Fatal error: {error}[/red]")
        return EXIT_FATAL

    if not stats.complete:
        console.print("[yellow]Stopped early: every delete on the last page failed. "
                      f"Re-run with --before-id {stats.resume_before_id} to continue past them[/yellow]")
        return EXIT_INCOMPLETE

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
