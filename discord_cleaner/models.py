"""
Shared data models for Discord Cleaner
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterator, Optional, Tuple


SYSTEM_MESSAGE_TYPE = 3


@dataclass(frozen=True)
class MessageAuthor:
    """Author of a message as returned by search"""
    id: str
    username: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.username or self.id


@dataclass(frozen=True)
class Attachment:
    """Attachment reference on a message"""
    url: Optional[str] = None
    proxy_url: Optional[str] = None

    @property
    def link(self) -> str:
        return self.url or self.proxy_url or '[URL not available]'


@dataclass(frozen=True)
class Message:
    """A single message record from a search page"""
    id: str
    author: MessageAuthor
    type: int = 0
    hit: bool = False
    timestamp: Optional[str] = None
    content: Optional[str] = None
    attachments: Tuple[Attachment, ...] = ()

    @classmethod
    def from_api(cls, data: Dict) -> 'Message':
        """Build a Message from the search API JSON, ignoring unknown keys"""
        author = data.get('author') or {}
        return cls(
            id=str(data['id']),
            author=MessageAuthor(id=str(author.get('id', '')), username=author.get('username')),
            type=int(data.get('type', 0)),
            hit=bool(data.get('hit', False)),
            timestamp=data.get('timestamp'),
            content=data.get('content'),
            attachments=tuple(
                Attachment(url=a.get('url'), proxy_url=a.get('proxy_url'))
                for a in data.get('attachments') or []
            )
        )

    @property
    def is_system(self) -> bool:
        return self.type == SYSTEM_MESSAGE_TYPE


@dataclass(frozen=True)
class SearchResult:
    """One page of search results"""
    total_results: int
    messages: Tuple[Tuple[Message, ...], ...] = ()

    @classmethod
    def from_api(cls, data: Dict) -> 'SearchResult':
        return cls(
            total_results=int(data.get('total_results', 0)),
            messages=tuple(
                tuple(Message.from_api(m) for m in group)
                for group in data.get('messages') or []
            )
        )

    def iter_messages(self) -> Iterator[Message]:
        """Yield messages in page-then-within-group order"""
        for group in self.messages:
            yield from group


@dataclass
class RunStats:
    """Counters for a deletion session, owned by DeletionRunner"""
    deleted: int = 0
    failed: int = 0
    throttled: int = 0
    throttled_ms: float = 0
    grand_total: int = 0
    start_time: datetime = field(default_factory=datetime.now)
    # Set when the run stopped on a page where every delete failed
    resume_before_id: Optional[str] = None

    @property
    def complete(self) -> bool:
        return self.resume_before_id is None

    def latch_total(self, total: int) -> bool:
        """Take total as grand_total while none is set yet; True when it was taken"""
        if self.grand_total:
            return False
        self.grand_total = total
        return True

    def record_throttle(self, retry_after_ms: float) -> None:
        self.throttled += 1
        self.throttled_ms += retry_after_ms


@dataclass
class CleanupConfig:
    """Configuration for a deletion session"""
    channel_id: str
    author_id: str
    before_id: Optional[str] = None
    delete_delay_ms: int = 1000
    search_delay_ms: int = 1500
