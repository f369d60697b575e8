# backend/portfolio_core/utils/__init__.py
"""
Cross-cutting utilities: logging setup and request context.

Usage:
    from portfolio_core.utils import setup_logging
    from portfolio_core.utils import get_correlation_id, set_correlation_id
"""

from portfolio_core.utils.context import (
    get_correlation_id,
    set_correlation_id,
    clear_correlation_id,
    run_in_context,
)
from portfolio_core.utils.logging import setup_logging

__all__ = [
    "setup_logging",
    "get_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
    "run_in_context",
]
