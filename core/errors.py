"""
Exception hierarchy shared by every package.

ValidationError and CurrencyMismatchError subclass ValueError so callers that
already catch ValueError keep working.
"""

from __future__ import annotations


class RunwayError(Exception):
    """Base class for all runway engine errors."""


class ValidationError(RunwayError, ValueError):
    """An input violates a documented invariant (month, period, amount, rate...)."""


class NotFoundError(RunwayError, LookupError):
    """A record id or cashflow month does not exist in the owning collection."""


class CurrencyMismatchError(ValidationError):
    """Monetary values in different currencies were combined."""
