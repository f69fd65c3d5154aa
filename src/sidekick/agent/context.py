"""Request-scoped identity for tool invocations.

The host runtime installs the active session id and the id of the assistant
message that triggered the current tool calls. Tools read them back without
the model having to pass them as arguments.
"""

from __future__ import annotations

import contextlib
import contextvars
from typing import Iterator

_session_id: contextvars.ContextVar[str] = contextvars.ContextVar("sidekick_session_id", default="")
_message_id: contextvars.ContextVar[str] = contextvars.ContextVar("sidekick_message_id", default="")


def get_session_from_context() -> str:
    return _session_id.get()


def get_message_from_context() -> str:
    return _message_id.get()


@contextlib.contextmanager
def invocation_context(*, session_id: str, message_id: str) -> Iterator[None]:
    """Install session and message identity for the duration of the block."""

    session_token = _session_id.set(session_id)
    message_token = _message_id.set(message_id)
    try:
        yield
    finally:
        _message_id.reset(message_token)
        _session_id.reset(session_token)


def response_message_id(run_message_id: str, run_step: int) -> str:
    """Identity of one model response within a run."""

    return f"{run_message_id}:{run_step}"
