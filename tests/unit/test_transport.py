"""
Unit tests for the request dispatcher: status classification and the
server-directed backoff protocol.
"""
import json
import time
from unittest.mock import Mock

import pytest
import requests

from discord_delete.errors import (
    AuthenticationError,
    BadRequestError,
    DecodeError,
    ServerError,
    TransportError,
    UnhandledStatusError,
)
from discord_delete.models import BackoffDirective, RunCounters
from discord_delete.transport import Backoff, Dispatcher, Status
from tests.fixtures.fake_discord import API_BASE, make_response


def scripted_dispatcher(responses, sleeps=None, counters=None):
    session = requests.Session()
    session.send = Mock(side_effect=responses)
    dispatcher = Dispatcher("secret-token", counters or RunCounters(), session=session,
                            api_base=API_BASE,
                            sleep=sleeps.append if sleeps is not None else lambda s: None)
    return dispatcher, session.send


class TestStatusClassification:
    """Each status code maps to one outcome."""

    def test_ok_decodes_body(self):
        dispatcher, _ = scripted_dispatcher([make_response(200, {'id': '1'})])
        reply = dispatcher.send('GET', '/users/@me')
        assert reply.status is Status.OK
        assert reply.body == {'id': '1'}

    def test_no_content_has_no_body(self):
        dispatcher, _ = scripted_dispatcher([make_response(204)])
        reply = dispatcher.send('DELETE', '/channels/1/messages/2')
        assert reply.status is Status.NO_CONTENT
        assert reply.body is None

    def test_forbidden_is_soft(self):
        dispatcher, send = scripted_dispatcher([make_response(403, {'message': 'Missing Access'})])
        reply = dispatcher.send('GET', '/guilds/1/messages/search')
        assert reply.status is Status.FORBIDDEN
        assert send.call_count == 1

    def test_bad_request_is_fatal(self):
        dispatcher, send = scripted_dispatcher([make_response(400, {})])
        with pytest.raises(BadRequestError):
            dispatcher.send('GET', '/users/@me')
        assert send.call_count == 1

    def test_unauthorized_mentions_token(self):
        dispatcher, _ = scripted_dispatcher([make_response(401, {})])
        with pytest.raises(AuthenticationError) as exc_info:
            dispatcher.send('GET', '/users/@me')
        assert "token" in str(exc_info.value)

    @pytest.mark.parametrize("status", [500, 502, 503])
    def test_server_errors_are_not_retried(self, status):
        dispatcher, send = scripted_dispatcher([make_response(status)])
        with pytest.raises(ServerError) as exc_info:
            dispatcher.send('GET', '/users/@me/guilds')
        assert exc_info.value.status == status
        assert send.call_count == 1

    def test_unknown_status_keeps_raw_code(self):
        dispatcher, _ = scripted_dispatcher([make_response(404, {'message': 'Unknown Message'})])
        with pytest.raises(UnhandledStatusError) as exc_info:
            dispatcher.send('DELETE', '/channels/1/messages/2')
        assert exc_info.value.status == 404
        assert "404" in str(exc_info.value)

    def test_malformed_json_is_decode_error(self):
        response = make_response(200)
        response._content = b'{not json'
        dispatcher, _ = scripted_dispatcher([response])
        with pytest.raises(DecodeError):
            dispatcher.send('GET', '/users/@me')

    def test_connection_failure_is_transport_error(self):
        counters = RunCounters()
        dispatcher, _ = scripted_dispatcher([requests.exceptions.ConnectionError("refused")],
                                            counters=counters)
        with pytest.raises(TransportError) as exc_info:
            dispatcher.send('GET', '/users/@me')
        assert "GET /users/@me" in str(exc_info.value)
        assert counters.requests == 0


class TestRequests:
    """Headers, bodies and request counting."""

    def test_headers_attached(self):
        dispatcher, send = scripted_dispatcher([make_response(200, {})])
        dispatcher.send('GET', '/users/@me')
        prepared = send.call_args[0][0]
        assert prepared.headers['Authorization'] == "secret-token"
        assert prepared.headers['Content-Type'] == "application/json"
        assert prepared.url == API_BASE + "/users/@me"

    def test_body_encoded_as_json(self):
        dispatcher, send = scripted_dispatcher([make_response(200, {'id': '5'})])
        dispatcher.send('POST', '/users/@me/channels', {'recipient_id': '42'})
        prepared = send.call_args[0][0]
        assert prepared.method == 'POST'
        assert json.loads(prepared.body) == {'recipient_id': '42'}

    def test_no_body_without_payload(self):
        dispatcher, send = scripted_dispatcher([make_response(204)])
        dispatcher.send('DELETE', '/channels/1/messages/2')
        assert send.call_args[0][0].body is None

    def test_every_attempt_is_counted(self):
        counters = RunCounters()
        dispatcher, _ = scripted_dispatcher([
            make_response(429, {'retry_after': 10}),
            make_response(200, {}),
            make_response(204),
        ], counters=counters)
        dispatcher.send('GET', '/users/@me')
        dispatcher.send('DELETE', '/channels/1/messages/2')
        assert counters.requests == 3
        assert counters.throttled == 1


class TestBackoff:
    """Throttled and index-not-ready responses are retried after the directed wait."""

    def test_waits_for_directive_then_retries_identical_request(self):
        sleeps = []
        dispatcher, send = scripted_dispatcher([
            make_response(429, {'retry_after': 1500, 'global': False}),
            make_response(200, {'ok': True}),
        ], sleeps=sleeps)

        reply = dispatcher.send('POST', '/users/@me/channels', {'recipient_id': '7'})

        assert reply.body == {'ok': True}
        assert sleeps == [1.5]
        first, second = (call[0][0] for call in send.call_args_list)
        assert first.method == second.method
        assert first.url == second.url
        assert first.body == second.body
        assert dict(first.headers) == dict(second.headers)

    def test_index_not_ready_is_retried(self):
        sleeps = []
        dispatcher, send = scripted_dispatcher([
            make_response(202, {'retry_after': 2000}),
            make_response(202, {'retry_after': 1000}),
            make_response(200, {'messages': []}),
        ], sleeps=sleeps)

        reply = dispatcher.send('GET', '/channels/1/messages/search?author_id=1')

        assert reply.status is Status.OK
        assert sleeps == [2.0, 1.0]
        assert send.call_count == 3

    @pytest.mark.parametrize("retry_after", [0, -250, None])
    def test_non_positive_directive_retries_immediately(self, retry_after):
        sleeps = []
        dispatcher, _ = scripted_dispatcher([
            make_response(429, {'retry_after': retry_after}),
            make_response(200, {}),
        ], sleeps=sleeps)
        dispatcher.send('GET', '/users/@me')
        assert sleeps == [0]

    def test_retries_until_server_relents(self):
        sleeps = []
        responses = [make_response(429, {'retry_after': 5}) for _ in range(50)]
        dispatcher, _ = scripted_dispatcher(responses + [make_response(200, {})], sleeps=sleeps)
        assert dispatcher.send('GET', '/users/@me').status is Status.OK
        assert len(sleeps) == 50

    def test_undecodable_directive_is_decode_error(self):
        response = make_response(429)
        response._content = b'slow down'
        dispatcher, _ = scripted_dispatcher([response])
        with pytest.raises(DecodeError):
            dispatcher.send('GET', '/users/@me')

    def test_real_wait_is_at_least_the_directive(self):
        session = requests.Session()
        session.send = Mock(side_effect=[
            make_response(429, {'retry_after': 500}),
            make_response(200, {'id': '1'}),
        ])
        dispatcher = Dispatcher("t", RunCounters(), session=session, api_base=API_BASE)

        started = time.monotonic()
        reply = dispatcher.send('GET', '/users/@me')

        assert time.monotonic() - started >= 0.5
        assert reply.body == {'id': '1'}

    def test_backoff_state_accumulates(self):
        backoff = Backoff()
        backoff.record(BackoffDirective(300))
        backoff.record(BackoffDirective(200))
        assert backoff.attempts == 2
        assert backoff.waited_ms == 500
