# backend/portfolio_core/__init__.py
"""Price resolution, caching and portfolio valuation core."""

__version__ = "0.1.0"
