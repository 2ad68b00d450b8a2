"""Tests for CLI prompt utilities."""

import builtins

import pytest

from chatstream.cli import prompt as prompt_module
from chatstream.cli.util import CANCELLED_EXIT


def test_secure_prompt_strips_token(monkeypatch):
    """Pasted tokens often carry a trailing newline or space."""

    def fake_getpass(label):
        assert label == "Bearer token: "
        return " tok_abc \n"

    monkeypatch.setattr(prompt_module, "getpass", fake_getpass)

    assert prompt_module.secure_prompt("Bearer token: ") == "tok_abc"


def test_prompt_strips_whitespace(monkeypatch):
    monkeypatch.setattr(builtins, "input", lambda label: "  value  ")

    assert prompt_module.prompt("Label: ") == "value"


def test_prompt_repeats_on_empty_input(monkeypatch):
    inputs = iter(["", "   ", "hello"])
    monkeypatch.setattr(builtins, "input", lambda _: next(inputs))

    assert prompt_module.prompt("You: ") == "hello"


def test_prompt_allow_empty(monkeypatch):
    monkeypatch.setattr(builtins, "input", lambda _: "")

    assert prompt_module.prompt("Optional: ", allow_empty=True) == ""


@pytest.mark.parametrize("error", [KeyboardInterrupt, EOFError])
def test_prompt_cancel_exits(monkeypatch, capsys, error):
    def cancel(_label):
        raise error

    monkeypatch.setattr(builtins, "input", cancel)

    with pytest.raises(SystemExit) as exc_info:
        prompt_module.prompt("You: ")

    assert exc_info.value.code == CANCELLED_EXIT
    assert "Cancelled by user" in capsys.readouterr().err
