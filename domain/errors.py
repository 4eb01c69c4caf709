"""
Domain: error kinds raised by the sale aggregate.

Every rule breach aborts the triggering operation before any state is
mutated or any event is recorded.
"""

from __future__ import annotations

from typing import List, Sequence


class DomainRuleViolation(ValueError):
    """A sale or sale item business rule was broken by a command."""


class ItemNotFoundError(DomainRuleViolation):
    """The referenced sale item does not exist (or is no longer active)."""


class SaleValidationError(DomainRuleViolation):
    """
    Aggregate-level validation failed.

    Carries every accumulated error; the message joins them with "; ".
    """

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors: List[str] = list(errors)
        super().__init__("; ".join(self.errors))


__all__ = [
    "DomainRuleViolation",
    "ItemNotFoundError",
    "SaleValidationError",
]
