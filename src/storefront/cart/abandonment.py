"""Cart abandonment detection: flags carts idle beyond a threshold.

Triggered periodically by an external scheduler through the maintenance API
endpoint. Active carts with lines that have not changed within the threshold
are abandoned one by one with ``AbandonCart``.
"""

from datetime import UTC, datetime, timedelta

import structlog
from protean import handle
from protean.exceptions import InvalidOperationError, ValidationError
from protean.fields import DateTime, Integer
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.cart.management import AbandonCart
from storefront.domain import storefront
from storefront.errors import StorefrontError
from storefront.settings import cart_idle_hours

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Cart")
class DetectAbandonedCarts:
    """Flag active carts idle beyond the specified threshold."""

    idle_threshold_hours = Integer(min_value=1)
    as_of = DateTime()  # Optional: defaults to now


@storefront.command_handler(part_of=Cart)
class DetectAbandonedCartsHandler:
    @handle(DetectAbandonedCarts)
    def detect_abandoned_carts(self, command):
        as_of = command.as_of or datetime.now(UTC)
        threshold_hours = command.idle_threshold_hours or cart_idle_hours()
        cutoff = as_of - timedelta(hours=threshold_hours)

        logger.info(
            "Checking for abandoned carts",
            cutoff=cutoff.isoformat(),
            threshold_hours=threshold_hours,
        )

        idle_carts = current_domain.repository_for(Cart).find_idle(cutoff)
        if not idle_carts:
            logger.info("No abandoned carts found")
            return 0

        abandoned_count = 0
        for cart in idle_carts:
            try:
                current_domain.process(AbandonCart(cart_id=str(cart.id)), asynchronous=False)
                abandoned_count += 1
                logger.info(
                    "Marked cart as abandoned",
                    cart_id=str(cart.id),
                    user_id=str(cart.user_id),
                    line_count=len(cart.lines),
                    last_updated=str(cart.updated_at),
                )
            except (StorefrontError, ValidationError, InvalidOperationError) as exc:
                logger.warning(
                    "Failed to abandon cart",
                    cart_id=str(cart.id),
                    error=str(exc),
                )

        logger.info("Cart abandonment detection complete", abandoned_count=abandoned_count)
        return abandoned_count
