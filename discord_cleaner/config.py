"""
Settings loaded from the environment (and .env) with CLI overrides
"""

import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv

from discord_cleaner.discord_api import DEFAULT_API_BASE
from discord_cleaner.models import CleanupConfig


REQUIRED = {
    'auth_token': 'DISCORD_AUTH_TOKEN',
    'author_id': 'DISCORD_AUTHOR_ID',
    'channel_id': 'DISCORD_CHANNEL_ID',
}


class ConfigError(Exception):
    """Missing or malformed setting"""


@dataclass
class Settings:
    """Everything needed to start a deletion session"""
    auth_token: str
    author_id: str
    channel_id: str
    before_id: Optional[str] = None
    api_base: str = DEFAULT_API_BASE
    delete_delay_ms: int = 1000
    search_delay_ms: int = 1500
    rate_limit_ms: int = 1000
    max_retries: Optional[int] = None
    log_dir: str = 'logs'

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        overrides: Optional[Dict[str, object]] = None
    ) -> 'Settings':
        """Build settings from environment variables, then apply non-None overrides"""
        if environ is None:
            load_dotenv()
            environ = os.environ

        values = {
            'auth_token': environ.get('DISCORD_AUTH_TOKEN'),
            'author_id': environ.get('DISCORD_AUTHOR_ID'),
            'channel_id': environ.get('DISCORD_CHANNEL_ID'),
            'before_id': environ.get('DISCORD_BEFORE_MESSAGE_ID') or None,
            'api_base': environ.get('DISCORD_API_BASE') or DEFAULT_API_BASE,
            'delete_delay_ms': _int_setting(environ, 'DELETE_DELAY_MS', 1000),
            'search_delay_ms': _int_setting(environ, 'SEARCH_DELAY_MS', 1500),
            'rate_limit_ms': _int_setting(environ, 'RATE_LIMIT_MS', 1000),
            'max_retries': _int_setting(environ, 'MAX_RETRIES', None),
            'log_dir': environ.get('LOG_DIR') or 'logs',
        }
        values.update({k: v for k, v in (overrides or {}).items() if v is not None})

        missing = [env for key, env in REQUIRED.items() if not values.get(key)]
        if missing:
            raise ConfigError(f"Missing required setting(s): {', '.join(missing)}")

        return cls(**values)

    def cleanup_config(self) -> CleanupConfig:
        return CleanupConfig(
            channel_id=self.channel_id,
            author_id=self.author_id,
            before_id=self.before_id,
            delete_delay_ms=self.delete_delay_ms,
            search_delay_ms=self.search_delay_ms
        )


def _int_setting(environ: Mapping[str, str], name: str, default: Optional[int]) -> Optional[int]:
    raw = environ.get(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
