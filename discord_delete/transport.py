"""
Authenticated request dispatcher.

Sends requests to the Discord API, classifies the response status and
follows the server's backoff protocol: on 429 (rate limited) or 202 (search
index not built yet) it sleeps for the ``retry_after`` the server asked for
and re-sends the identical request until it gets a real answer.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

import requests

from .errors import (
    AuthenticationError,
    BadRequestError,
    DecodeError,
    ServerError,
    TransportError,
    UnhandledStatusError,
)
from .models import BackoffDirective, RunCounters

DEFAULT_API_BASE = "https://discord.com/api/v6"
USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"

logger = logging.getLogger(__name__)


class Status(Enum):
    """Successful outcomes of a dispatch. Failures raise instead."""

    OK = "ok"
    NO_CONTENT = "no_content"
    FORBIDDEN = "forbidden"


@dataclass
class Reply:
    status: Status
    body: Any = None


@dataclass
class Backoff:
    """Retry state for one logical request."""

    attempts: int = 0
    waited_ms: float = 0

    def record(self, directive: BackoffDirective):
        self.attempts += 1
        self.waited_ms += directive.retry_after_ms


class Dispatcher:
    """Issues requests for one run and counts every one that hits the network."""

    def __init__(self, token: str, counters: RunCounters,
                 session: Optional[requests.Session] = None,
                 api_base: str = DEFAULT_API_BASE, timeout: float = 30,
                 sleep: Callable[[float], None] = time.sleep):
        self.counters = counters
        self.api_base = api_base.rstrip('/')
        self.timeout = timeout
        self.sleep = sleep
        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': token,
            'Content-Type': 'application/json',
            'User-Agent': USER_AGENT,
        })

    def send(self, method: str, endpoint: str, body: Optional[Any] = None) -> Reply:
        url = self.api_base + endpoint
        # Prepared once so every retry is byte-identical to the first attempt
        prepared = self.session.prepare_request(requests.Request(method, url, json=body))
        settings = self.session.merge_environment_settings(prepared.url, {}, None, None, None)
        backoff = Backoff()

        while True:
            logger.debug(f"{method} {url}")
            try:
                response = self.session.send(prepared, timeout=self.timeout, **settings)
            except requests.exceptions.RequestException as e:
                raise TransportError(f"Error sending request {method} {endpoint}", original_error=e)

            self.counters.requests += 1
            status = response.status_code
            logger.debug(f"Server returned status {status} for {method} {endpoint}")

            if status >= 500:
                raise ServerError(f"Server returned status {status}", status=status,
                                  details=f"{method} {endpoint}")

            if status in (429, 202):
                directive = BackoffDirective.from_dict(self._decode(response, method, endpoint))
                backoff.record(directive)
                self.counters.throttled += 1
                if status == 202:
                    logger.info(f"Search index not ready, server asked us to sleep for "
                                f"{directive.retry_after_ms:g} milliseconds")
                else:
                    logger.info(f"Server asked us to sleep for {directive.retry_after_ms:g} milliseconds")
                logger.debug(f"Backoff for {method} {endpoint}: attempt {backoff.attempts}, "
                             f"{backoff.waited_ms:g}ms waited in total")
                # A zero directive still yields before retrying
                self.sleep(directive.seconds)
                continue

            if status == 403:
                logger.debug(f"Server returned status Forbidden for {method} {endpoint}")
                return Reply(Status.FORBIDDEN)

            if status == 401:
                raise AuthenticationError("Server returned status Unauthorized, is your token correct?",
                                          details=f"{method} {endpoint}")

            if status == 400:
                raise BadRequestError("Server returned status Bad Request",
                                      details=f"{method} {endpoint}")

            if status == 204:
                return Reply(Status.NO_CONTENT)

            if status == 200:
                return Reply(Status.OK, self._decode(response, method, endpoint))

            raise UnhandledStatusError(f"Status code {status} is unhandled", status=status,
                                       details=f"{method} {endpoint}")

    @staticmethod
    def _decode(response: requests.Response, method: str, endpoint: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(f"Error decoding response to {method} {endpoint}", original_error=e)
