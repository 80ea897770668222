"""Tracing of the profile currently being resolved."""

import contextvars
from contextlib import contextmanager
import logging
from time import perf_counter
from typing import Generator


_LOGGER = logging.getLogger(__name__)

# No public API
__all__: list[str] = []


profile_stack: contextvars.ContextVar[tuple[str, ...]] = contextvars.ContextVar(
    "profile_stack", default=()
)


@contextmanager
def profile_trace(name: str) -> Generator[None, None, None]:
    """Record that a profile is being resolved for debug logging."""
    token = profile_stack.set(profile_stack.get() + (name,))
    label = " > ".join(profile_stack.get())
    t1 = perf_counter()
    _LOGGER.debug("[Trace] > %s", label)
    try:
        yield
    finally:
        t2 = perf_counter()
        profile_stack.reset(token)
        _LOGGER.debug("[Trace] < %s (%0.2fs)", label, (t2 - t1))
