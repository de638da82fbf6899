"""
Discord API - Search and delete calls over one shared transport
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

import httpx

from discord_cleaner.models import SearchResult
from discord_cleaner.rate_limit import RateLimitGate


logger = logging.getLogger(__name__)

DEFAULT_API_BASE = 'https://discordapp.com/api/v6'

STATUS_NOT_INDEXED = 202
STATUS_RATE_LIMITED = 429


class DiscordApiError(Exception):
    """Non-retryable API response"""

    def __init__(self, status: int, message_id: Optional[str] = None, text: Optional[str] = None):
        self.status = status
        self.message_id = message_id
        if text is None:
            if message_id:
                text = f"Failed to delete message {message_id}: {status}"
            else:
                text = f"API responded with status {status}"
        super().__init__(text)


class RetryLimitExceeded(DiscordApiError):
    """Raised when max_retries is set and the server keeps asking us to wait"""

    def __init__(self, status: int, retries: int, message_id: Optional[str] = None):
        super().__init__(status, message_id, text=f"Gave up after {retries} retries (last status {status})")
        self.retries = retries


# Called with (status, retry_after_ms, notice) before each server-signaled wait
RetryCallback = Callable[[int, float, str], None]


class DiscordApi:
    """Search and delete operations for one channel"""

    def __init__(
        self,
        client: httpx.AsyncClient,
        channel_id: str,
        gate: Optional[RateLimitGate] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        max_retries: Optional[int] = None
    ):
        self.client = client
        self.channel_id = channel_id
        self.gate = gate or RateLimitGate(sleep=sleep)
        self.max_retries = max_retries
        self.on_retry: Optional[RetryCallback] = None
        self._sleep = sleep

    @staticmethod
    def create_client(token: str, base_url: str = DEFAULT_API_BASE, timeout: float = 30.0) -> httpx.AsyncClient:
        """Build the shared HTTP client carrying the credential header"""
        return httpx.AsyncClient(
            base_url=base_url,
            headers={'Authorization': token},
            timeout=timeout
        )

    # === Operations ===

    async def search_messages(self, author_id: str, before_id: Optional[str] = None) -> SearchResult:
        """Fetch one page of messages by author, optionally older than before_id"""
        params = {'author_id': author_id}
        if before_id:
            params['max_id'] = before_id

        response = await self._request(
            'GET',
            f'/channels/{self.channel_id}/messages/search',
            params=params,
            wait_statuses={
                STATUS_NOT_INDEXED: 'Channel not indexed, waiting {}ms...',
                STATUS_RATE_LIMITED: 'Rate limit reached! Waiting {}ms...',
            }
        )
        return SearchResult.from_api(response.json())

    async def delete_message(self, message_id: str) -> None:
        """Delete a single message by ID"""
        await self._request(
            'DELETE',
            f'/channels/{self.channel_id}/messages/{message_id}',
            message_id=message_id,
            wait_statuses={
                STATUS_RATE_LIMITED: 'Rate limit on deletion! Waiting {}ms...',
            }
        )

    # === Retry Loop ===

    async def _request(
        self,
        method: str,
        url: str,
        wait_statuses: Dict[int, str],
        params: Optional[Dict] = None,
        message_id: Optional[str] = None
    ) -> httpx.Response:
        """Issue a request, waiting out 202/429 responses until a final answer"""
        retries = 0
        while True:
            await self.gate.wait()
            response = await self.client.request(method, url, params=params)

            status = response.status_code
            if status in wait_statuses:
                if self.max_retries is not None and retries >= self.max_retries:
                    raise RetryLimitExceeded(status, retries, message_id)
                retries += 1

                retry_after = self._retry_after(response)
                notice = wait_statuses[status].format(self._format_ms(retry_after))
                logger.debug(f"{method} {url} returned {status}, retry {retries}")
                if self.on_retry:
                    self.on_retry(status, retry_after, notice)
                await self._sleep(retry_after / 1000)
                continue

            if not response.is_success:
                raise DiscordApiError(status, message_id)

            return response

    def _retry_after(self, response: httpx.Response) -> float:
        """Read retry_after (milliseconds) from the body, falling back to the gate interval"""
        try:
            body = response.json()
        except ValueError:
            body = {}
        value = body.get('retry_after') if isinstance(body, dict) else None
        if value is None:
            logger.warning(f"No retry_after in {response.status_code} response, using {self.gate.min_interval_ms}ms")
            return float(self.gate.min_interval_ms)
        return float(value)

    @staticmethod
    def _format_ms(value: float) -> str:
        return str(int(value)) if float(value).is_integer() else str(value)
