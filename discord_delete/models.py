"""
Data models for discord-delete.

Typed views over the JSON the Discord API returns, plus the per-run
bookkeeping objects (counters and the search seek cursor).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

# Only plain user messages can be deleted. Anything else (call requests,
# pins, joins) is a system entry.
USER_MESSAGE = 0


class ChannelKind(Enum):
    """Discord channel type discriminator, reduced to what we care about."""

    PRIVATE = 1
    GROUP = 3
    OTHER = -1

    @classmethod
    def from_code(cls, code: Optional[int]) -> 'ChannelKind':
        for kind in (cls.PRIVATE, cls.GROUP):
            if kind.value == code:
                return kind
        return cls.OTHER


@dataclass(frozen=True)
class Identity:
    """The account the token belongs to."""

    id: str
    username: str = ''

    @classmethod
    def from_dict(cls, data: Dict) -> 'Identity':
        return cls(id=str(data['id']), username=data.get('username') or '')


@dataclass(frozen=True)
class Recipient:
    id: str
    username: str = ''

    @classmethod
    def from_dict(cls, data: Dict) -> 'Recipient':
        return cls(id=str(data['id']), username=data.get('username') or '')


@dataclass
class Channel:
    """A DM or group DM conversation."""

    id: str
    kind: ChannelKind = ChannelKind.OTHER
    recipients: List[Recipient] = field(default_factory=list)
    name: str = ''

    @classmethod
    def from_dict(cls, data: Dict) -> 'Channel':
        return cls(
            id=str(data['id']),
            kind=ChannelKind.from_code(data.get('type')),
            recipients=[Recipient.from_dict(r) for r in data.get('recipients') or []],
            name=data.get('name') or '',
        )

    @property
    def is_private(self) -> bool:
        """One-to-one DM with exactly one counterpart."""
        return self.kind is ChannelKind.PRIVATE and len(self.recipients) == 1

    @property
    def label(self) -> str:
        if self.name:
            return self.name
        if self.recipients:
            return ', '.join(f"@{r.username or r.id}" for r in self.recipients)
        return self.id


@dataclass(frozen=True)
class Relationship:
    """Friend/contact entry; only used to find DMs that aren't open."""

    id: str
    kind: int = 0
    recipient: Optional[Recipient] = None

    @classmethod
    def from_dict(cls, data: Dict) -> 'Relationship':
        user = data.get('user')
        return cls(
            id=str(data['id']),
            kind=data.get('type') or 0,
            recipient=Recipient.from_dict(user) if user else None,
        )

    @property
    def counterpart_id(self) -> str:
        return self.recipient.id if self.recipient else self.id

    @property
    def label(self) -> str:
        if self.recipient and self.recipient.username:
            return self.recipient.username
        return self.counterpart_id


@dataclass(frozen=True)
class Guild:
    id: str
    name: str = ''

    @classmethod
    def from_dict(cls, data: Dict) -> 'Guild':
        return cls(id=str(data['id']), name=data.get('name') or '')


@dataclass(frozen=True)
class Message:
    id: str
    channel_id: str
    hit: bool = False
    type: int = USER_MESSAGE

    @classmethod
    def from_dict(cls, data: Dict) -> 'Message':
        return cls(
            id=str(data['id']),
            channel_id=str(data['channel_id']),
            hit=bool(data.get('hit', False)),
            type=data.get('type') or USER_MESSAGE,
        )

    @property
    def is_deletable(self) -> bool:
        return self.type == USER_MESSAGE


@dataclass
class MessagePage:
    """One page of search results.

    Each context group is a short window of messages around a single hit.
    """

    total_results: int = 0
    context_groups: List[List[Message]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict) -> 'MessagePage':
        return cls(
            total_results=data.get('total_results') or 0,
            context_groups=[
                [Message.from_dict(m) for m in group]
                for group in data.get('messages') or []
            ],
        )

    @property
    def is_empty(self) -> bool:
        return not self.context_groups

    def first_hit(self) -> Optional[Message]:
        for group in self.context_groups:
            for message in group:
                if message.hit:
                    return message
        return None


@dataclass(frozen=True)
class BackoffDirective:
    """Server-requested wait before retrying, in milliseconds."""

    retry_after_ms: float = 0

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> 'BackoffDirective':
        value = (data or {}).get('retry_after') or 0
        try:
            value = float(value)
        except (TypeError, ValueError):
            value = 0
        return cls(retry_after_ms=max(value, 0))

    @property
    def seconds(self) -> float:
        return self.retry_after_ms / 1000.0


@dataclass
class RunCounters:
    """Running totals for one run. Created fresh by every Enumerator.run()."""

    deleted: int = 0
    requests: int = 0
    skipped: int = 0
    throttled: int = 0
    failed_contexts: List[str] = field(default_factory=list)
    cancelled: bool = False

    def summary(self) -> str:
        return f"{self.deleted} deleted in {self.requests} total requests"


class SeekCursor:
    """Search offset for one channel or guild.

    Only moves forward. A real deletion shifts the server's index by one, so
    the cursor is advanced only for hits that stay in the index.
    """

    def __init__(self, value: int = 0):
        if value < 0:
            raise ValueError("seek cannot be negative")
        self._value = value

    @property
    def value(self) -> int:
        return self._value

    def advance(self, step: int = 1) -> int:
        if step < 1:
            raise ValueError("seek can only advance by a positive step")
        self._value += step
        return self._value

    def __repr__(self) -> str:
        return f"SeekCursor({self._value})"
