"""
Domain: notifications emitted by the Sale aggregate.

The set is closed: a sale only ever records these four kinds. Events are
immutable and live outside the persisted record; callers drain them after
each use case.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Union
from uuid import UUID

from .time import require_utc_timestamp, utc_now


@dataclass(frozen=True, slots=True)
class SaleCreated:
    sale_id: UUID
    sale_number: str
    customer: str
    branch: str
    total_amount: Decimal
    occurred_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        require_utc_timestamp("occurred_at", self.occurred_at)

    @property
    def event_type(self) -> str:
        return "SaleCreated"


@dataclass(frozen=True, slots=True)
class SaleModified:
    sale_id: UUID
    sale_number: str
    total_amount: Decimal
    occurred_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        require_utc_timestamp("occurred_at", self.occurred_at)

    @property
    def event_type(self) -> str:
        return "SaleModified"


@dataclass(frozen=True, slots=True)
class SaleCancelled:
    sale_id: UUID
    sale_number: str
    occurred_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        require_utc_timestamp("occurred_at", self.occurred_at)

    @property
    def event_type(self) -> str:
        return "SaleCancelled"


@dataclass(frozen=True, slots=True)
class ItemCancelled:
    sale_id: UUID
    sale_item_id: UUID
    product_name: str
    quantity: int
    occurred_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        require_utc_timestamp("occurred_at", self.occurred_at)

    @property
    def event_type(self) -> str:
        return "ItemCancelled"


DomainEvent = Union[SaleCreated, SaleModified, SaleCancelled, ItemCancelled]


def event_to_dict(event: DomainEvent) -> Dict[str, Any]:
    """
    Render an event as a JSON-safe dict (UUIDs, decimals and timestamps as
    strings) with its type under "event_type".
    """

    payload: Dict[str, Any] = {"event_type": event.event_type}
    for f in fields(event):
        value = getattr(event, f.name)
        if isinstance(value, datetime):
            payload[f.name] = value.isoformat()
        elif isinstance(value, (UUID, Decimal)):
            payload[f.name] = str(value)
        else:
            payload[f.name] = value
    return payload


__all__ = [
    "DomainEvent",
    "ItemCancelled",
    "SaleCancelled",
    "SaleCreated",
    "SaleModified",
    "event_to_dict",
]
