"""
Root pytest configuration and fixtures for chatstream.

Provides event sequences and common fixtures for the test suite.
"""

import os
from pathlib import Path
import sys

import pytest
import responses

# Make the `tests` package importable for shared helpers (tests.utils)
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

ENDPOINT = "https://agent.test.local/api/chat"


@pytest.fixture
def endpoint():
    """Test chat endpoint URL."""
    return ENDPOINT


@pytest.fixture
def hello_events():
    """A complete run streaming the assistant message "Hello, world!"."""
    return [
        {"type": "RUN_STARTED", "threadId": "thread-1", "runId": "run-1"},
        {"type": "TEXT_MESSAGE_START", "messageId": "msg-1", "role": "assistant"},
        {"type": "TEXT_MESSAGE_CONTENT", "messageId": "msg-1", "delta": "Hello"},
        {"type": "TEXT_MESSAGE_CONTENT", "messageId": "msg-1", "delta": ", "},
        {"type": "TEXT_MESSAGE_CONTENT", "messageId": "msg-1", "delta": "world!"},
        {"type": "TEXT_MESSAGE_END", "messageId": "msg-1"},
        {"type": "RUN_FINISHED", "threadId": "thread-1", "runId": "run-1"},
    ]


@pytest.fixture
def tool_events():
    """A run where the assistant calls a weather tool."""
    return [
        {"type": "RUN_STARTED", "threadId": "thread-1", "runId": "run-2"},
        {"type": "TEXT_MESSAGE_START", "messageId": "msg-2", "role": "assistant"},
        {"type": "TEXT_MESSAGE_CONTENT", "messageId": "msg-2", "delta": "Checking..."},
        {
            "type": "TOOL_CALL_START",
            "toolCallId": "tool-1",
            "toolCallName": "get_weather",
            "parentMessageId": "msg-2",
        },
        {"type": "TOOL_CALL_ARGS", "toolCallId": "tool-1", "args": '{"location": "Paris"}'},
        {"type": "TOOL_CALL_END", "toolCallId": "tool-1"},
        {
            "type": "TOOL_CALL_RESULT",
            "toolCallId": "tool-1",
            "result": {"temperature": 21, "conditions": "sunny"},
            "status": "success",
        },
        {"type": "TEXT_MESSAGE_END", "messageId": "msg-2"},
        {"type": "RUN_FINISHED", "threadId": "thread-1", "runId": "run-2"},
    ]


@pytest.fixture(autouse=True)
def clean_environment():
    """Remove chatstream environment variables before each test."""
    original_env = os.environ.copy()

    for key in list(os.environ.keys()):
        if key.startswith("CHATSTREAM_"):
            del os.environ[key]

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def mock_requests():
    """Mock HTTP requests using responses library."""
    with responses.RequestsMock() as rsps:
        yield rsps
