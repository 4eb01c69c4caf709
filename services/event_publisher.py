"""
Domain event publishing.

After each use case the caller drains the sale's pending notifications,
forwards them to the application log in emission order, and clears them.

Delivery is best-effort: events are logged, not stored in an outbox.
"""

from __future__ import annotations

import logging
from typing import List

from domain.events import DomainEvent, event_to_dict
from domain.sale import Sale

logger = logging.getLogger(__name__)


def publish_domain_events(sale: Sale) -> List[DomainEvent]:
    """
    Log and clear every pending domain event on a sale.

    Args:
        sale: Aggregate whose notifications should be forwarded

    Returns:
        The events that were published, in emission order

    Example:
        sale = Sale.create("S-1", "Customer", "Branch")
        published = publish_domain_events(sale)
        # published == [SaleCreated(...)] and sale.domain_events == ()
    """
    events = list(sale.domain_events)

    for event in events:
        payload = event_to_dict(event)
        logger.info(
            f"Domain event: {event.event_type}",
            extra={"domain_event": payload, "sale_id": str(sale.sale_id)},
        )

    sale.clear_domain_events()
    return events


__all__ = ["publish_domain_events"]
