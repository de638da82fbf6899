"""
Shared test fixtures for Discord Cleaner tests
"""

from typing import Dict, List, Optional, Tuple

import httpx
import pytest
import pytest_asyncio

from discord_cleaner.cleaner import DeletionRunner
from discord_cleaner.discord_api import DiscordApi
from discord_cleaner.models import CleanupConfig
from discord_cleaner.rate_limit import RateLimitGate
from discord_cleaner.session_log import SessionLog


API_BASE = 'https://discord.test/api/v6'
CHANNEL_ID = '111'
AUTHOR_ID = '222'
OTHER_AUTHOR_ID = '999'
TOKEN = 'test-token'


# === Recorded Waits ===

class RecordingSleep:
    """Async sleep replacement that records durations instead of waiting"""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# === Mock Discord API ===

class FakeDiscord:
    """Mock Discord channel served through httpx.MockTransport

    Records are kept newest first. Search returns every remaining record older
    than max_id, one record per group, with total_results equal to that count.
    Scripted responses are consumed before the default behavior.
    """

    def __init__(self, records: Optional[List[Dict]] = None, forbidden: Optional[set] = None):
        self.records = list(records or [])
        self.forbidden = forbidden or set()
        self.deleted: List[str] = []
        self.requests: List[httpx.Request] = []
        self.events: List[Tuple[str, str]] = []
        self._scripted: Dict[str, List[Tuple[int, Dict]]] = {}

    def script(self, key: str, responses: List[Tuple[int, Dict]]) -> None:
        """Queue responses for 'search' or for the delete of a message ID"""
        self._scripted.setdefault(key, []).extend(responses)

    @property
    def search_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == 'GET']

    @property
    def delete_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == 'DELETE']

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == 'GET':
            self.events.append(('search', request.url.params.get('max_id')))
            return self._search(request)
        message_id = request.url.path.rsplit('/', 1)[-1]
        self.events.append(('delete', message_id))
        return self._delete(message_id)

    def _scripted_response(self, key: str) -> Optional[httpx.Response]:
        queue = self._scripted.get(key)
        if queue:
            status, body = queue.pop(0)
            return httpx.Response(status, json=body)
        return None

    def _search(self, request: httpx.Request) -> httpx.Response:
        scripted = self._scripted_response('search')
        if scripted is not None:
            return scripted

        visible = self.records
        max_id = request.url.params.get('max_id')
        if max_id is not None:
            ids = [r['id'] for r in self.records]
            visible = self.records[ids.index(max_id) + 1:] if max_id in ids else []
        visible = [r for r in visible if r['id'] not in self.deleted]

        return httpx.Response(200, json={
            'total_results': len(visible),
            'messages': [[r] for r in visible]
        })

    def _delete(self, message_id: str) -> httpx.Response:
        scripted = self._scripted_response(message_id)
        if scripted is not None:
            return scripted
        if message_id in self.forbidden:
            return httpx.Response(403, json={'message': 'Missing Permissions', 'code': 50013})
        self.deleted.append(message_id)
        return httpx.Response(204)


# === Helpers to create message data ===

def make_message(
    message_id: str,
    author_id: str = AUTHOR_ID,
    hit: bool = True,
    type: int = 0,
    content: Optional[str] = 'hello',
    timestamp: Optional[str] = '2020-05-01T12:00:00.000000+00:00',
    username: Optional[str] = 'someone',
    attachments: Optional[List[Dict]] = None
) -> dict:
    """Helper to create a message dict matching the search API structure"""
    return {
        'id': message_id,
        'type': type,
        'hit': hit,
        'author': {'id': author_id, 'username': username},
        'content': content,
        'timestamp': timestamp,
        'attachments': attachments or [],
    }


# === Fixtures ===

@pytest.fixture
def sleep() -> RecordingSleep:
    """Sleep used for retry waits and loop delays"""
    return RecordingSleep()


@pytest.fixture
def gate_sleep() -> RecordingSleep:
    """Sleep used only by the rate-limit gate"""
    return RecordingSleep()


@pytest.fixture
def fake_discord() -> FakeDiscord:
    """Empty channel; tests add records as needed"""
    return FakeDiscord()


@pytest_asyncio.fixture
async def http_client(fake_discord):
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(fake_discord.handler),
        base_url=API_BASE,
        headers={'Authorization': TOKEN}
    ) as client:
        yield client


@pytest.fixture
def api(http_client, sleep, gate_sleep) -> DiscordApi:
    gate = RateLimitGate(min_interval_ms=1000, sleep=gate_sleep)
    return DiscordApi(http_client, CHANNEL_ID, gate=gate, sleep=sleep)


@pytest.fixture
def session_log(tmp_path):
    log = SessionLog(tmp_path / 'logs', channel_id=CHANNEL_ID, author_id=AUTHOR_ID)
    yield log
    log.close()


@pytest.fixture
def cleanup_config() -> CleanupConfig:
    return CleanupConfig(channel_id=CHANNEL_ID, author_id=AUTHOR_ID)


@pytest.fixture
def runner(api, cleanup_config, session_log, sleep) -> DeletionRunner:
    return DeletionRunner(api, cleanup_config, session_log, sleep=sleep)
