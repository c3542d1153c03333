"""
Post-commit customer notifications.

Confirmation emails are scheduled as background tasks after the order is
committed. Failures are logged and never reach the checkout response.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Set

from app.services.email_service import EmailService, get_email_service

logger = logging.getLogger(__name__)

# Strong references to in-flight notification tasks until they finish
_pending_notifications: Set[asyncio.Task] = set()


@dataclass
class OrderConfirmation:
    customer_email: str
    customer_name: str
    order_id: str
    order_number: str
    total: Decimal
    items: List[Dict] = field(default_factory=list)
    shipping_address: Dict = field(default_factory=dict)


class NotificationDispatcher:
    """Fire-and-forget order notifications."""

    def __init__(self, email_service: Optional[EmailService] = None):
        self.email_service = email_service or get_email_service()

    def dispatch_order_confirmation(self, confirmation: OrderConfirmation) -> asyncio.Task:
        """Schedule the confirmation email and return immediately."""
        task = asyncio.create_task(self.send_order_confirmation(confirmation))
        _pending_notifications.add(task)
        task.add_done_callback(_pending_notifications.discard)
        return task

    async def send_order_confirmation(self, confirmation: OrderConfirmation) -> bool:
        try:
            # smtplib blocks, keep it off the event loop
            sent = await asyncio.to_thread(
                self.email_service.send_order_confirmation_email,
                to_email=confirmation.customer_email,
                customer_name=confirmation.customer_name,
                order_number=confirmation.order_number,
                total_amount=confirmation.total,
                items=confirmation.items,
                shipping_address=confirmation.shipping_address,
            )
        except Exception as e:
            logger.warning(f"Order confirmation for {confirmation.order_number} failed: {e}")
            return False

        if not sent:
            logger.warning(f"Order confirmation for {confirmation.order_number} was not sent")
        return sent

    @staticmethod
    async def drain() -> None:
        """Wait for outstanding notifications (used on shutdown and in tests)."""
        if _pending_notifications:
            await asyncio.gather(*list(_pending_notifications), return_exceptions=True)
