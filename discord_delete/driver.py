"""
Deletion driver.

Consumes search pages for one channel or guild, decides what to do with the
page's hit and keeps the seek cursor in step with the server's index:

    outcome             seek      deleted   delete call
    ADVANCE_AND_SKIP    +1        -         no
    ADVANCE_AND_COUNT   +1        +1        no (dry run)
    DELETE_NO_ADVANCE   -         +1        yes
    NO_HIT              -         -         no

A deleted message leaves the index, so the next page at the same offset
already holds the next candidate. Anything that stays in the index has to be
stepped over by advancing the cursor.
"""

import logging
import threading
import time
from enum import Enum
from typing import Callable, FrozenSet, Optional

from . import endpoints
from .errors import DeleteError, wrap
from .models import Message, MessagePage, RunCounters, SeekCursor
from .search import MessageSearch, SearchContext
from .transport import Dispatcher, Status

# Milliseconds to wait after each deletion. Staying just under the server's
# limit costs fewer round trips than running into 429s.
MIN_DELETE_INTERVAL_MS = 200

# Non-empty pages without any hit tolerated in a row before giving up on a context
MAX_HITLESS_PAGES = 3

logger = logging.getLogger(__name__)


class Outcome(Enum):
    NO_HIT = "no_hit"
    ADVANCE_AND_SKIP = "advance_and_skip"
    ADVANCE_AND_COUNT = "advance_and_count"
    DELETE_NO_ADVANCE = "delete_no_advance"


def classify(message: Optional[Message], skip_channels: FrozenSet[str], dry_run: bool) -> Outcome:
    """Decide what to do with a page's hit."""
    if message is None:
        return Outcome.NO_HIT
    # Actions such as call requests can't be deleted
    if not message.is_deletable:
        return Outcome.ADVANCE_AND_SKIP
    # Guild searches mix messages from every channel, so the skip-set is
    # checked per message as well as per context
    if message.channel_id in skip_channels:
        return Outcome.ADVANCE_AND_SKIP
    if dry_run:
        return Outcome.ADVANCE_AND_COUNT
    return Outcome.DELETE_NO_ADVANCE


class DeletionDriver:
    def __init__(self, dispatcher: Dispatcher, search: MessageSearch, counters: RunCounters,
                 skip_channels: FrozenSet[str] = frozenset(), dry_run: bool = False,
                 sleep: Callable[[float], None] = time.sleep):
        self.dispatcher = dispatcher
        self.search = search
        self.counters = counters
        self.skip_channels = frozenset(skip_channels)
        self.dry_run = dry_run
        self.sleep = sleep

    def process_page(self, page: MessagePage, seek: SeekCursor) -> Outcome:
        """Act on the first hit of ``page``; every context group holds at most one."""
        hit = page.first_hit()
        outcome = classify(hit, self.skip_channels, self.dry_run)

        if outcome is Outcome.NO_HIT:
            logger.debug("Page has no hit, seek index unchanged")

        elif outcome is Outcome.ADVANCE_AND_SKIP:
            if not hit.is_deletable:
                logger.debug(f"Found message of non-zero type {hit.type}, incrementing seek index")
            else:
                logger.info(f"Skipping message deletion for channel {hit.channel_id}")
            seek.advance()
            self.counters.skipped += 1

        elif outcome is Outcome.ADVANCE_AND_COUNT:
            logger.info(f"[DRY RUN] Would delete message {hit.id} from channel {hit.channel_id}")
            # Simulate the index shift a real deletion would cause
            seek.advance()
            self.counters.deleted += 1

        else:
            logger.info(f"Deleting message {hit.id} from channel {hit.channel_id}")
            try:
                reply = self.dispatcher.send('DELETE', endpoints.delete_message(hit.channel_id, hit.id))
            except DeleteError as e:
                raise wrap("Error deleting message", e)
            if reply.status is Status.FORBIDDEN:
                # It will never leave the index, so step over it
                logger.warning(f"Not allowed to delete message {hit.id} in channel {hit.channel_id}, skipping")
                seek.advance()
                self.counters.skipped += 1
                return Outcome.ADVANCE_AND_SKIP
            self.counters.deleted += 1
            self.sleep(MIN_DELETE_INTERVAL_MS / 1000.0)

        return outcome

    def drain(self, context: SearchContext, author_id: str,
              cancel: Optional[threading.Event] = None) -> None:
        """Delete every hit in ``context`` until search comes back empty."""
        logger.info(f"Deleting messages from {context}")
        seek = SeekCursor()
        hitless = 0

        while not (cancel and cancel.is_set()):
            try:
                page = self.search.fetch_page(context, author_id, seek)
            except DeleteError as e:
                raise wrap(f"Error fetching messages for {context.kind}", e)

            if page.is_empty:
                logger.info(f"No more messages to delete for {context}")
                return

            outcome = self.process_page(page, seek)
            if outcome is not Outcome.NO_HIT:
                hitless = 0
                continue

            hitless += 1
            if hitless >= MAX_HITLESS_PAGES:
                logger.warning(f"Search keeps returning pages without hits for {context}, "
                               f"treating it as exhausted")
                return

        logger.info(f"Cancelled while deleting from {context}")

