"""Checkout use case: turns the caller's active cart into a pending order.

Steps:
    1. Load the caller's active cart; it must have lines.
    2. Pick a stock record for every line and check it can cover the line.
       Every line is checked before anything is written.
    3. Snapshot the lines, totals and coupons into a pending order and save it.
    4. Reserve stock for each line against the order number.
    5. Retire the cart.

The availability check in step 2 is a pre-check only. If another checkout
takes the stock between steps 2 and 4, the reservations already made are
released, the order is cancelled and ``ReservationFailed`` is raised. The
cart stays active so the customer can adjust it and retry.
"""

import structlog

from storefront.errors import (
    AuthenticationRequired,
    EmptyCart,
    InsufficientStock,
    ReservationFailed,
    StorageFailure,
    StorefrontError,
)
from storefront.order.order import Address, Order, OrderFinancials, OrderStatus, generate_order_number
from storefront.settings import default_currency

logger = structlog.get_logger(__name__)

ORDER_NUMBER_ATTEMPTS = 5


def _same(left, right):
    return (str(left) if left else None) == (str(right) if right else None)


class CheckoutOrchestrator:
    def __init__(self, carts, orders, records, ledger, currency=None):
        self.carts = carts
        self.orders = orders
        self.records = records
        self.ledger = ledger
        self.currency = currency or default_currency()

    def place_order(
        self,
        principal,
        billing_address,
        shipping_address,
        payment_method=None,
        shipping_method=None,
        special_instructions=None,
        gift_wrapping=False,
        gift_message=None,
    ) -> Order:
        if principal is None:
            raise AuthenticationRequired()

        cart = self.carts.find_active_for(principal.user_id)
        if cart is None or not cart.lines:
            raise EmptyCart()

        lines = cart.ordered_lines()
        sources = {str(line.id): self._pick_record(line) for line in lines}

        snapshots = [
            {
                "product_id": line.product_id,
                "variant_id": line.variant_id,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
                "product_name": line.product_name,
                "product_image": line.product_image,
                "product_sku": line.product_sku,
                "stock_id": str(sources[str(line.id)].id),
            }
            for line in lines
        ]
        order = Order.place(
            user_id=principal.user_id,
            order_number=self._unique_order_number(),
            lines=snapshots,
            financials=OrderFinancials(
                subtotal=cart.subtotal,
                discount=cart.discount,
                tax=cart.tax,
                shipping=cart.shipping,
                total=cart.total,
                currency=self.currency,
            ),
            billing_address=Address(**billing_address),
            shipping_address=Address(**shipping_address),
            payment_method=payment_method,
            applied_coupons=[
                {"code": c.code, "discount_type": c.discount_type, "discount_amount": c.discount_amount}
                for c in cart.ordered_coupons()
            ],
            cart_id=cart.id,
            shipping_method=shipping_method,
            special_instructions=special_instructions,
            gift_wrapping=gift_wrapping,
            gift_message=gift_message,
        )
        self.orders.save(order)

        self._reserve(order, principal)

        cart.convert(order_id=order.id)
        self.carts.save(cart)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            user_id=str(principal.user_id),
            line_count=len(snapshots),
            total=order.financials.total,
        )
        return order

    def _pick_record(self, line):
        """The active record for the line's product and variant with the most available stock."""
        candidates = [
            record
            for record in self.records.find_for_product(line.product_id, active_only=True)
            if _same(record.variant_id, line.variant_id)
        ]
        best = max(candidates, key=lambda record: record.available_stock, default=None)
        available = best.available_stock if best else 0
        if available < line.quantity:
            raise InsufficientStock(line.quantity, available, line.product_id, line.variant_id)
        return best

    def _unique_order_number(self):
        for _ in range(ORDER_NUMBER_ATTEMPTS):
            number = generate_order_number()
            if self.orders.find_by_number(number) is None:
                return number
        raise StorageFailure("generate_order_number")

    def _reserve(self, order, principal):
        reserved = []
        for line in order.ordered_lines():
            try:
                self.ledger.reserve_stock(
                    line.stock_id,
                    line.quantity,
                    reference_id=order.order_number,
                    notes=f"Reserved for order {order.order_number}",
                    actor=principal.user_id,
                )
                reserved.append(line)
            except StorefrontError as exc:
                failures = [
                    {
                        **exc.to_dict(),
                        "product_id": str(line.product_id),
                        "variant_id": str(line.variant_id) if line.variant_id else None,
                    }
                ]
                self._compensate(order, reserved, principal)
                logger.warning(
                    "Stock reservation failed at checkout",
                    order_id=str(order.id),
                    order_number=order.order_number,
                    product_id=str(line.product_id),
                    error=exc.kind,
                )
                raise ReservationFailed(order.id, failures) from exc

    def _compensate(self, order, reserved, principal):
        for line in reserved:
            try:
                self.ledger.release_stock(
                    line.stock_id,
                    line.quantity,
                    reference_id=order.order_number,
                    notes="Checkout rolled back",
                    actor=principal.user_id,
                )
            except StorefrontError as exc:
                logger.warning(
                    "Failed to release stock during checkout rollback",
                    order_id=str(order.id),
                    stock_id=str(line.stock_id),
                    error=exc.kind,
                )

        order.update_status(OrderStatus.CANCELLED.value, note="Stock reservation failed", actor=principal.user_id)
        self.orders.save(order)
