# backend/portfolio_core/services/history/__init__.py
"""
Portfolio value history reconstructed from provider daily series.

Usage:
    from portfolio_core.services.history import HistoryReconstructor, HistoryAsset
"""

from portfolio_core.services.history.forward_fill import calendar_window, forward_fill
from portfolio_core.services.history.reconstructor import (
    HistoryReconstructor,
    history_assets_from_valuation,
)
from portfolio_core.services.history.types import HistoryAsset, HistoryPoint, PortfolioHistory

__all__ = [
    "HistoryReconstructor",
    "history_assets_from_valuation",
    "calendar_window",
    "forward_fill",
    "HistoryAsset",
    "HistoryPoint",
    "PortfolioHistory",
]
