"""Caching strategies."""

from .executor import Strategy, StrategyExecutor

__all__ = ["Strategy", "StrategyExecutor"]
