"""
Deletion Runner - Search-then-delete loop for one channel
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, Optional

import httpx

from discord_cleaner.discord_api import DiscordApi, DiscordApiError, STATUS_RATE_LIMITED
from discord_cleaner.models import CleanupConfig, Message, RunStats
from discord_cleaner.session_log import SessionLog, local_time, ms_to_hms


logger = logging.getLogger(__name__)


class DeletionRunner:
    """Deletes every message by one author in one channel, newest first"""

    def __init__(
        self,
        api: DiscordApi,
        config: CleanupConfig,
        session_log: SessionLog,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        progress_callback: Optional[Callable] = None
    ):
        self.api = api
        self.config = config
        self.session_log = session_log
        self.progress_callback = progress_callback
        self.stats = RunStats()
        self.cursor: Optional[str] = config.before_id
        self.interrupted = False
        self._sleep = sleep

        self.api.on_retry = self._handle_retry

    # === Main Entry Point ===

    async def run(self) -> RunStats:
        """Run the session to completion, then print the summary"""
        self.session_log.info(f"Starting deletion at {local_time(self.stats.start_time)}")
        await self._report_progress("deletion_started", {
            "channel_id": self.config.channel_id,
            "author_id": self.config.author_id,
            "before_id": self.cursor
        })

        try:
            await self._delete_all()
        except Exception as error:
            self.session_log.error(f"Error during processing: {error}")
            self.print_summary()
            raise

        self.print_summary()
        await self._report_progress("deletion_completed", self.build_stats())
        return self.stats

    async def _delete_all(self) -> None:
        while not self.interrupted:
            result = await self.api.search_messages(self.config.author_id, self.cursor)

            if self.stats.latch_total(result.total_results):
                self.session_log.info(f"Total messages found: {self.stats.grand_total}")

            if result.total_results == 0:
                break

            deleted_before = self.stats.deleted
            oldest_failed = None
            for message in result.iter_messages():
                if self.interrupted:
                    break
                if not self._should_delete(message):
                    continue
                if not await self._process_message(message):
                    oldest_failed = message.id

            if self.interrupted:
                break

            await self._sleep(self.config.search_delay_ms / 1000)

            if self.stats.deleted >= self.stats.grand_total:
                break

            # The cursor only moves on a successful delete, so the next search would repeat this page
            if self.stats.deleted == deleted_before:
                self._stop_on_stalled_page(oldest_failed)
                break

    def _stop_on_stalled_page(self, oldest_failed: Optional[str]) -> None:
        if oldest_failed is None:
            self.session_log.info("No deletable messages on the last page, stopping")
            return

        remaining = self.stats.grand_total - self.stats.deleted
        self.stats.resume_before_id = oldest_failed
        self.session_log.error(
            f"Every delete on the last page failed, stopping with {remaining} message(s) remaining. "
            f"Resume with --before-id {oldest_failed} to skip the failed messages"
        )

    # === Message Processing ===

    def _should_delete(self, message: Message) -> bool:
        """Only the author's own, matching, non-system messages"""
        if message.is_system:
            logger.debug(f"Skipping system message {message.id}")
            return False
        return message.author.id == self.config.author_id and message.hit

    async def _process_message(self, message: Message) -> bool:
        """Back up and delete one message; False when the delete failed"""
        position = self.stats.deleted + 1
        progress = position / self.stats.grand_total * 100
        self.session_log.info(f"{progress:.2f}% ({position}/{self.stats.grand_total}) Deleting ID:{message.id}")

        self.session_log.backup(message)

        try:
            await self.api.delete_message(message.id)
        except (DiscordApiError, httpx.HTTPError) as error:
            self.session_log.error(f"Error deleting message {message.id}: {error}")
            self.stats.failed += 1
            await self._report_progress("delete_error", {
                "message_id": message.id,
                "error": str(error)
            })
            return False

        self.stats.deleted += 1
        self.cursor = message.id
        self.session_log.info(f"Message {message.id} successfully deleted!")
        await self._report_progress("message_deleted", {
            "message_id": message.id,
            "deleted": self.stats.deleted,
            "grand_total": self.stats.grand_total
        })
        await self._sleep(self.config.delete_delay_ms / 1000)
        return True

    # === Rate Limits ===

    def _handle_retry(self, status: int, retry_after_ms: float, notice: str) -> None:
        if status == STATUS_RATE_LIMITED:
            self.stats.record_throttle(retry_after_ms)
        self.session_log.info(notice)

    # === Progress ===

    async def _report_progress(self, event: str, data: Dict) -> None:
        """Send progress update if callback is set"""
        if self.progress_callback:
            await self.progress_callback(event, data)

    # === Results ===

    def build_stats(self) -> Dict[str, int]:
        return {
            "deleted": self.stats.deleted,
            "failed": self.stats.failed,
            "throttled": self.stats.throttled,
            "throttled_ms": int(self.stats.throttled_ms),
            "grand_total": self.stats.grand_total
        }

    def print_summary(self) -> None:
        """Write the end-of-run summary; also used by the interrupt hook"""
        end_time = datetime.now()
        elapsed_ms = (end_time - self.stats.start_time).total_seconds() * 1000

        summary = '\n'.join([
            '\n---- Completed! ----',
            f'End at {local_time(end_time)}',
            f'Total time: {ms_to_hms(elapsed_ms)}',
            f'Rate limits: {self.stats.throttled} times. Total wait time: {ms_to_hms(self.stats.throttled_ms)}',
            f'Your messages deleted: {self.stats.deleted}',
            f'Deletion failures: {self.stats.failed}',
            f'Message backup saved at: {self.session_log.backup_file}',
            '-------------------'
        ])
        self.session_log.info(summary)
