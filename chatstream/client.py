"""
ChatStreamClient: configuration entry point for talking to an agent chat endpoint.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
import os
from typing import Any

from ._exceptions import ChatStreamError, ConfigurationError
from ._http import HTTPClient
from ._streaming import RunStream
from ._types import Message
from .chat import ChatSession
from .streaming import StreamEvent

ENDPOINT_ENV = "CHATSTREAM_ENDPOINT"
API_KEY_ENV = "CHATSTREAM_API_KEY"


class ChatStreamClient:
    """Client for an AG-UI style chat endpoint.

    Usage:
        client = ChatStreamClient(endpoint="http://localhost:8000/api/chat")
        session = client.session(on_message=print)
        session.send("Hello")
        print(session.state.messages[-1].content)
    """

    def __init__(
        self,
        endpoint: str | None = None,
        api_key: str | None = None,
        headers: dict[str, str] | None = None,
        timeout: int = 300,
        max_retries: int = 3,
        profile: str | None = None,
    ):
        """
        Initialize ChatStreamClient.

        Args:
            endpoint: URL of the chat endpoint. Falls back to CHATSTREAM_ENDPOINT,
                then to the saved profile
            api_key: Bearer token. Falls back to CHATSTREAM_API_KEY, then to the
                saved profile. Optional; endpoints without auth need none
            headers: Extra headers sent with every request
            timeout: Request timeout in seconds
            max_retries: Attempts per request for connection errors and 429/5xx
            profile: Saved credential profile to read when neither argument nor
                environment supplies a value

        Raises:
            ConfigurationError: If no endpoint can be determined
        """
        endpoint = endpoint or os.environ.get(ENDPOINT_ENV)
        api_key = api_key or os.environ.get(API_KEY_ENV)

        if profile is not None and (endpoint is None or api_key is None):
            from .auth.credentials import CredentialManager

            credentials = CredentialManager(profile=profile)
            endpoint = endpoint or credentials.get_endpoint()
            api_key = api_key or credentials.get_token()

        if not endpoint:
            raise ConfigurationError(
                f"No chat endpoint provided. Pass endpoint= or set {ENDPOINT_ENV} env var."
            )

        self._http = HTTPClient(
            base_url=endpoint,
            api_key=api_key,
            headers=headers,
            timeout=timeout,
            max_retries=max_retries,
        )

    @property
    def endpoint(self) -> str:
        return self._http.base_url

    @property
    def http(self) -> HTTPClient:
        return self._http

    def session(
        self,
        on_message: Callable[[Message], None] | None = None,
        on_error: Callable[[ChatStreamError], None] | None = None,
        on_event: Callable[[StreamEvent], None] | None = None,
    ) -> ChatSession:
        """Create a conversation bound to this client's endpoint."""
        return ChatSession(
            self._http, on_message=on_message, on_error=on_error, on_event=on_event
        )

    def stream(
        self,
        messages: Iterable[Message | dict[str, Any]],
        thread_id: str | None = None,
        run_id: str | None = None,
    ) -> RunStream:
        """
        Post a message history and return the raw event stream of one run.

        Unlike ``session()``, nothing is accumulated: the caller iterates the
        typed events directly.

        Raises:
            ChatStreamError: If the request fails before streaming starts
        """
        body: dict[str, Any] = {
            "messages": [m.to_dict() if isinstance(m, Message) else m for m in messages]
        }
        if thread_id is not None:
            body["threadId"] = thread_id
        if run_id is not None:
            body["runId"] = run_id
        return RunStream(self._http.stream("POST", json=body))

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> ChatStreamClient:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
