"""
Target enumeration: the top-level deletion run.

Finds everything the account can have written in (open DMs, relationships
whose DM isn't open, guilds) and drains each one in turn, strictly one after
another. Discord rate-limits per account, so there is nothing to gain from
running contexts in parallel.
"""

import logging
import threading
import time
from typing import Callable, List, Optional

import requests

from . import endpoints
from .config import Settings
from .driver import DeletionDriver
from .errors import AuthenticationError, DecodeError, DeleteError, wrap
from .models import Channel, Guild, Identity, Relationship, RunCounters
from .search import MessageSearch, SearchContext
from .transport import Dispatcher, Status

logger = logging.getLogger(__name__)


class Enumerator:
    """Runs a full deletion pass for one account.

    Every call to :meth:`run` starts from zeroed counters and returns them,
    so one instance can be run more than once.
    """

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None,
                 cancel: Optional[threading.Event] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.settings = settings
        self.session = session
        self.cancel = cancel or threading.Event()
        self.sleep = sleep

    def run(self) -> RunCounters:
        counters = RunCounters()
        dispatcher = Dispatcher(self.settings.token, counters, session=self.session,
                                api_base=self.settings.api_base, timeout=self.settings.timeout,
                                sleep=self.sleep)
        driver = DeletionDriver(dispatcher, MessageSearch(dispatcher), counters,
                                skip_channels=self.settings.skip_channels,
                                dry_run=self.settings.dry_run, sleep=self.sleep)
        skip = self.settings.skip_channels

        if self.settings.dry_run:
            logger.info("Dry run: nothing will be deleted")

        me = self._identity(dispatcher)
        logger.info(f"Deleting messages authored by {me.username or me.id} ({me.id})")

        channels = self._fetch_list(dispatcher, endpoints.channels(), Channel, "channels")
        for channel in channels:
            if self._stopped(counters):
                return counters
            if channel.id in skip:
                logger.info(f"Skipping message deletion for channel {channel.id}")
                continue
            self._drain(driver, SearchContext.channel(channel.id, channel.label), me, counters)

        if self._stopped(counters):
            return counters
        relationships = self._fetch_list(dispatcher, endpoints.relationships(), Relationship,
                                         "relationships")
        # Sole recipients of DMs we already drained above
        open_dms = {c.recipients[0].id for c in channels if c.is_private}
        for relation in relationships:
            if self._stopped(counters):
                return counters
            if relation.counterpart_id in open_dms:
                logger.debug(f"Skipping resolving relation {relation.id} because the user already "
                             f"has the channel open")
                continue

            channel = self._resolve(dispatcher, relation, counters)
            if channel is None:
                continue
            logger.info(f"Resolved relationship with '{relation.label}' to channel {channel.id}")
            if channel.id in skip:
                logger.info(f"Skipping message deletion for channel {channel.id}")
                continue
            self._drain(driver, SearchContext.channel(channel.id, relation.label), me, counters)

        if self._stopped(counters):
            return counters
        guilds = self._fetch_list(dispatcher, endpoints.guilds(), Guild, "guilds")
        for guild in guilds:
            if self._stopped(counters):
                return counters
            self._drain(driver, SearchContext.guild(guild.id, guild.name), me, counters)

        if self._stopped(counters):
            return counters
        logger.info(f"Finished deleting messages: {counters.summary()}")
        return counters

    def _stopped(self, counters: RunCounters) -> bool:
        if self.cancel.is_set():
            counters.cancelled = True
            logger.warning(f"Run cancelled: {counters.summary()}")
        return counters.cancelled

    def _drain(self, driver: DeletionDriver, context: SearchContext, me: Identity,
               counters: RunCounters):
        try:
            driver.drain(context, me.id, self.cancel)
        except AuthenticationError:
            raise
        except DeleteError as e:
            if not self.settings.keep_going:
                raise
            logger.error(f"Giving up on {context}: {e}")
            counters.failed_contexts.append(str(context))

    def _identity(self, dispatcher: Dispatcher) -> Identity:
        try:
            reply = dispatcher.send('GET', endpoints.me())
            if reply.status is not Status.OK:
                raise AuthenticationError("Server did not return the current user",
                                          details=reply.status.value)
            return Identity.from_dict(reply.body)
        except (AttributeError, KeyError, TypeError) as e:
            raise DecodeError("Error fetching profile information", original_error=e)
        except DeleteError as e:
            raise wrap("Error fetching profile information", e)

    def _fetch_list(self, dispatcher: Dispatcher, endpoint: str, model, what: str) -> List:
        try:
            reply = dispatcher.send('GET', endpoint)
            if reply.status is not Status.OK:
                logger.info(f"Server returned no {what}")
                return []
            return [model.from_dict(item) for item in reply.body or []]
        except (AttributeError, KeyError, TypeError) as e:
            raise DecodeError(f"Error fetching {what}", original_error=e)
        except DeleteError as e:
            raise wrap(f"Error fetching {what}", e)

    def _resolve(self, dispatcher: Dispatcher, relation: Relationship,
                 counters: RunCounters) -> Optional[Channel]:
        try:
            reply = dispatcher.send('POST', endpoints.open_channel(),
                                    {'recipient_id': relation.counterpart_id})
            if reply.status is not Status.OK:
                logger.warning(f"Could not open a DM with '{relation.label}', skipping")
                return None
            return Channel.from_dict(reply.body)
        except (AttributeError, KeyError, TypeError) as e:
            error = DecodeError("Error resolving relationship to channel", original_error=e)
        except AuthenticationError as e:
            raise wrap("Error resolving relationship to channel", e)
        except DeleteError as e:
            error = wrap("Error resolving relationship to channel", e)

        if not self.settings.keep_going:
            raise error
        logger.error(f"Giving up on relationship {relation.id}: {error}")
        counters.failed_contexts.append(f"relationship {relation.id}")
        return None
