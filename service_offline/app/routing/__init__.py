"""Route classification."""

from .classifier import RouteCategory, classify, is_bypassed, is_cacheable_method, is_mutating_method

__all__ = ["RouteCategory", "classify", "is_bypassed", "is_cacheable_method", "is_mutating_method"]
