"""
Session Log - Operation log, error log and message backup for one run
"""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from discord_cleaner.models import Message


SESSION_LOGGER = 'discord_cleaner.session'
SEPARATOR = '====================================='


def ms_to_hms(ms: float) -> str:
    """Format a millisecond duration as 'Hh Mm Ss'"""
    ms = int(ms)
    return f"{ms // 3_600_000}h {(ms % 3_600_000) // 60_000}m {(ms % 60_000) // 1000}s"


def local_time(moment: Optional[datetime] = None) -> str:
    return (moment or datetime.now()).strftime('%Y-%m-%d %H:%M:%S')


def format_message_date(timestamp: Optional[str]) -> str:
    """Render an API timestamp in local time, or 'Unknown date'"""
    if not timestamp:
        return 'Unknown date'
    try:
        parsed = datetime.fromisoformat(timestamp.replace('Z', '+00:00'))
    except ValueError:
        return timestamp
    return local_time(parsed.astimezone())


class IsoFormatter(logging.Formatter):
    """Prefixes each line with an ISO-8601 UTC timestamp in brackets"""

    def __init__(self):
        super().__init__('[%(asctime)s] %(message)s')

    def formatTime(self, record, datefmt=None):
        created = datetime.fromtimestamp(record.created, timezone.utc)
        return created.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


class SessionLog:
    """Owns the three append-only text files written during a session"""

    def __init__(
        self,
        log_dir: Union[str, Path],
        channel_id: str,
        author_id: str,
        before_id: Optional[str] = None
    ):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        run_stamp = datetime.now(timezone.utc).isoformat(timespec='milliseconds')
        run_stamp = run_stamp.replace('+00:00', 'Z').replace(':', '-').replace('.', '-')
        self.log_file = self.log_dir / f'deletion_log_{run_stamp}.txt'
        self.error_log_file = self.log_dir / f'error_log_{run_stamp}.txt'
        self.backup_file = self.log_dir / f'messages_backup_{run_stamp}.txt'

        self.logger = logging.getLogger(SESSION_LOGGER)
        self.logger.setLevel(logging.INFO)
        # Console echo is the bare message, not the root format
        self.logger.propagate = False
        self._handlers = [
            self._file_handler(self.log_file, logging.INFO),
            self._file_handler(self.error_log_file, logging.ERROR),
            self._console_handler(),
        ]
        for handler in self._handlers:
            self.logger.addHandler(handler)

        self.info('=== Deletion Session Start ===')
        self.info(f'Date/Time: {local_time()}')
        self.info(f'Channel: {channel_id}')
        self.info(f'Author: {author_id}')
        if before_id:
            self.info(f'Deleting messages before ID: {before_id}')
        self.info(SEPARATOR + '\n')

        self.backup_file.write_text(
            f'=== Message Backup - {local_time()} ===\n'
            f'Channel: {channel_id}\n'
            f'Author: {author_id}\n'
            f'{SEPARATOR}\n\n',
            encoding='utf-8'
        )

    @staticmethod
    def _file_handler(path: Path, level: int) -> logging.FileHandler:
        # delay=True leaves the error log absent until the first error
        handler = logging.FileHandler(path, encoding='utf-8', delay=True)
        handler.setLevel(level)
        handler.setFormatter(IsoFormatter())
        return handler

    @staticmethod
    def _console_handler() -> logging.StreamHandler:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(logging.INFO)
        handler.setFormatter(logging.Formatter("%(message)s"))
        return handler

    # === Logging ===

    def info(self, message: str) -> None:
        self.logger.info(message)

    def error(self, message: str) -> None:
        self.logger.error(message)

    # === Backup ===

    def backup(self, message: Message) -> None:
        """Append a full record of a message before it is deleted"""
        lines = [
            f'\n=== Message ID: {message.id} ===',
            f'Date: {format_message_date(message.timestamp)}',
            f'Author: {message.author.display_name}',
            f"Content: {message.content or '[no content]'}",
        ]
        if message.attachments:
            lines.append('Attachments:')
            for index, attachment in enumerate(message.attachments, 1):
                lines.append(f'  {index}. {attachment.link}')
        lines.append('-------------------')

        with self.backup_file.open('a', encoding='utf-8') as f:
            f.write('\n'.join(lines) + '\n')

    # === Cleanup ===

    def close(self) -> None:
        """Detach and close the file and console handlers"""
        for handler in self._handlers:
            self.logger.removeHandler(handler)
            handler.close()
        self._handlers = []
