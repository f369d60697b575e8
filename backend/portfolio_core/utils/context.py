# backend/portfolio_core/utils/context.py
"""
Request-scoped context (correlation ID) backed by contextvars.

The value follows async/await automatically. Work handed to a thread pool
does not inherit it; submit such work through `run_in_context` so that
provider logs emitted from worker threads keep the request's correlation ID.

Usage:
    from portfolio_core.utils.context import get_correlation_id, set_correlation_id

    set_correlation_id("abc-123")
    get_correlation_id()  # "abc-123"
"""

import contextvars
from contextvars import ContextVar
from typing import Any, Callable, TypeVar

T = TypeVar("T")

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    """Return the current request's correlation ID, or None outside a request."""
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    _correlation_id_var.set(None)


def run_in_context(func: Callable[..., T]) -> Callable[..., T]:
    """
    Bind `func` to a snapshot of the caller's context.

    Example:
        executor.submit(run_in_context(fetch_series), asset)
    """
    ctx = contextvars.copy_context()

    def bound(*args: Any, **kwargs: Any) -> T:
        return ctx.copy().run(func, *args, **kwargs)

    return bound
