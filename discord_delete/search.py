"""Message search: pages through a channel's or guild's hits for one author."""

import logging
from dataclasses import dataclass

from . import endpoints
from .errors import DecodeError
from .models import MessagePage, SeekCursor
from .transport import Dispatcher, Status

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchContext:
    """What to search: a single channel, or a whole guild."""

    kind: str
    id: str
    label: str = ''

    CHANNEL = 'channel'
    GUILD = 'guild'

    @classmethod
    def channel(cls, channel_id: str, label: str = '') -> 'SearchContext':
        return cls(cls.CHANNEL, channel_id, label)

    @classmethod
    def guild(cls, guild_id: str, label: str = '') -> 'SearchContext':
        return cls(cls.GUILD, guild_id, label)

    def endpoint(self, author_id: str, offset: int) -> str:
        if self.kind == self.GUILD:
            return endpoints.guild_messages(self.id, author_id, offset)
        return endpoints.channel_messages(self.id, author_id, offset)

    def __str__(self) -> str:
        if self.label:
            return f"{self.kind} {self.id} ('{self.label}')"
        return f"{self.kind} {self.id}"


class MessageSearch:
    def __init__(self, dispatcher: Dispatcher):
        self.dispatcher = dispatcher

    def fetch_page(self, context: SearchContext, author_id: str, seek: SeekCursor) -> MessagePage:
        """Fetch the page of hits at ``seek``, in server order.

        A Forbidden reply comes back as an empty page, which ends the
        caller's loop for this context.
        """
        reply = self.dispatcher.send('GET', context.endpoint(author_id, seek.value))
        if reply.status is not Status.OK or not reply.body:
            if reply.status is Status.FORBIDDEN:
                logger.info(f"Search forbidden for {context}, nothing to delete there")
            return MessagePage()
        try:
            page = MessagePage.from_dict(reply.body)
        except (AttributeError, KeyError, TypeError) as e:
            raise DecodeError(f"Unexpected search response for {context}", original_error=e)
        logger.debug(f"Fetched {len(page.context_groups)} context groups at offset {seek.value} "
                     f"for {context} (~{page.total_results} total)")
        return page
