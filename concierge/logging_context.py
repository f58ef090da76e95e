"""Per-call log correlation.

A turn, an inbound event, or an audio round trip runs inside
``bound_call_id(call_id)``. Every record emitted by a logger from
``get_call_logger`` while the block runs carries ``record.call_id``. The id
lives in a ContextVar, so concurrent calls on one event loop keep their own.

Usage:
    from concierge.logging_context import bound_call_id, get_call_logger

    logger = get_call_logger(__name__)
    with bound_call_id("call-abc123"):
        logger.info("Routing turn")  # record.call_id == "call-abc123"
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

NO_CALL_ID = "-"

_current_call: ContextVar[str] = ContextVar("current_call", default=NO_CALL_ID)


@contextmanager
def bound_call_id(call_id: str) -> Iterator[str]:
    """Tag log records with ``call_id`` until the block exits."""
    token = _current_call.set(call_id)
    try:
        yield call_id
    finally:
        _current_call.reset(token)


def current_call_id() -> str:
    return _current_call.get()


class CallIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.call_id = _current_call.get()  # type: ignore[attr-defined]
        return True


def get_call_logger(name: str) -> logging.Logger:
    """Module logger whose records carry ``call_id`` for ``%(call_id)s`` formats."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, CallIdFilter) for f in logger.filters):
        logger.addFilter(CallIdFilter())
    return logger
