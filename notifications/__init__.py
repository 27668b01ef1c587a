"""Order notifications.

Delivery is not implemented; the notifier records what would be sent to the
buyer. Callers treat any failure here as non-fatal.
"""
import logging
from typing import Dict, Any

from auth import Identity

logger = logging.getLogger(__name__)


class OrderNotifier:
    """Tells buyers about changes to their orders."""

    async def order_status_changed(
        self,
        order: Dict[str, Any],
        buyer: Dict[str, Any],
        actor: Identity
    ) -> None:
        """Notify the buyer that an order moved to a new status.

        Args:
            order: Order with at least id and status
            buyer: Buyer projection with id, name and email
            actor: Identity that changed the status
        """
        logger.info(
            f"Notify {buyer['email']} ({buyer['id']}): order {order['id']} "
            f"is now {order['status']} (changed by {actor.id})"
        )


# Create global instance
notifier = OrderNotifier()

__all__ = ['OrderNotifier', 'notifier']
