"""Tests for ChatStreamClient configuration and streaming entry points."""

import json
from unittest.mock import patch

import pytest
import responses

from chatstream import ChatSession, ChatStreamClient, ConfigurationError, Message
from chatstream.lifecycle import RunPhase
from chatstream.streaming import EventType
from tests.utils.sse import sse


class TestClientConfiguration:
    def test_explicit_endpoint(self, endpoint):
        client = ChatStreamClient(endpoint=endpoint + "/")
        assert client.endpoint == endpoint

    def test_env_fallback(self, endpoint, monkeypatch):
        monkeypatch.setenv("CHATSTREAM_ENDPOINT", endpoint)
        monkeypatch.setenv("CHATSTREAM_API_KEY", "env-key")
        client = ChatStreamClient()
        assert client.endpoint == endpoint
        assert client.http._session.headers["Authorization"] == "Bearer env-key"

    def test_argument_wins_over_env(self, endpoint, monkeypatch):
        monkeypatch.setenv("CHATSTREAM_ENDPOINT", "http://other.local")
        assert ChatStreamClient(endpoint=endpoint).endpoint == endpoint

    def test_no_endpoint_raises(self):
        with pytest.raises(ConfigurationError, match="CHATSTREAM_ENDPOINT"):
            ChatStreamClient()

    def test_profile_fallback(self, endpoint):
        with patch("chatstream.auth.credentials.CredentialManager") as mock_cm:
            mock_cm.return_value.get_endpoint.return_value = endpoint
            mock_cm.return_value.get_token.return_value = "saved-token"
            client = ChatStreamClient(profile="work")

        mock_cm.assert_called_once_with(profile="work")
        assert client.endpoint == endpoint
        assert client.http._session.headers["Authorization"] == "Bearer saved-token"

    def test_profile_not_read_without_profile_argument(self, endpoint):
        with patch("chatstream.auth.credentials.CredentialManager") as mock_cm:
            ChatStreamClient(endpoint=endpoint)
        mock_cm.assert_not_called()

    def test_custom_headers(self, endpoint):
        client = ChatStreamClient(endpoint=endpoint, headers={"X-Tenant": "acme"})
        assert client.http._session.headers["X-Tenant"] == "acme"

    def test_context_manager_closes(self, endpoint):
        with patch("chatstream.client.HTTPClient") as mock_http:
            with ChatStreamClient(endpoint=endpoint):
                pass
        mock_http.return_value.close.assert_called_once()


class TestClientSession:
    def test_session_bound_to_client(self, endpoint):
        client = ChatStreamClient(endpoint=endpoint)
        received = []
        session = client.session(on_message=received.append)
        assert isinstance(session, ChatSession)

        session.add_message(Message(id="u1", role="user", content="hi"))
        assert [m.content for m in received] == ["hi"]

    @responses.activate
    def test_session_send(self, endpoint, hello_events):
        responses.add(responses.POST, endpoint, body=sse(*hello_events), status=200)
        session = ChatStreamClient(endpoint=endpoint).session()

        assert session.send("Hi") is True
        assert session.state.messages[-1].content == "Hello, world!"


class TestClientStream:
    @responses.activate
    def test_stream_posts_history_and_ids(self, endpoint, hello_events):
        responses.add(responses.POST, endpoint, body=sse(*hello_events), status=200)
        client = ChatStreamClient(endpoint=endpoint)

        history = [Message(id="u1", role="user", content="Hi"), {"id": "u2", "role": "user"}]
        with client.stream(history, thread_id="thread-1", run_id="run-0") as stream:
            types = [event.type for event in stream]

        body = json.loads(responses.calls[0].request.body)
        assert [m["id"] for m in body["messages"]] == ["u1", "u2"]
        assert body["messages"][0]["content"] == "Hi"
        assert body["threadId"] == "thread-1"
        assert body["runId"] == "run-0"
        assert types[-1] == EventType.RUN_FINISHED
        assert stream.phase == RunPhase.FINISHED

    def test_stream_omits_missing_ids(self, endpoint, mock_requests):
        mock_requests.add(
            responses.POST, endpoint, body=sse({"type": "RUN_FINISHED"}), status=200
        )
        list(ChatStreamClient(endpoint=endpoint).stream([]))
        body = json.loads(mock_requests.calls[0].request.body)
        assert body == {"messages": []}
