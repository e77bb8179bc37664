"""Order aggregate: an immutable snapshot of a checked-out cart plus its lifecycle.

Lines, prices and addresses are captured at checkout and never change. What
does change is the order status, the payment status and the shipping details,
each recorded in the status history.

State Machine:
    pending -> confirmed -> processing -> shipped -> delivered
    pending/confirmed/processing -> cancelled
    shipped/delivered -> returned -> refunded
    cancelled, refunded: terminal

Payment status moves independently, except that a payment arriving on a
pending order confirms it.
"""

import json
import secrets
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from storefront.domain import storefront
from storefront.errors import InvalidTransition
from storefront.order.events import (
    OrderPaymentUpdated,
    OrderPlaced,
    OrderStatusChanged,
    OrderTrackingUpdated,
)
from storefront.settings import return_window_days
from storefront.utils.money import round_money
from storefront.utils.timestamps import as_utc


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"
    REFUNDED = "refunded"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIAL = "partial"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.RETURNED},
    OrderStatus.DELIVERED: {OrderStatus.RETURNED},
    OrderStatus.RETURNED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.REFUNDED: set(),  # Terminal
}

_CANCELLABLE_STATES = {
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
}


def generate_order_number(now=None):
    """``ORD`` + year + month + five random digits, e.g. ORD20250300042."""
    now = now or datetime.now(UTC)
    return f"ORD{now:%Y%m}{secrets.randbelow(100_000):05d}"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="Order")
class Address:
    """A billing or delivery address captured at checkout time."""

    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    country = String(required=True, max_length=100)
    postal_code = String(required=True, max_length=20)
    landmark = String(max_length=255)
    contact_name = String(max_length=100)
    contact_phone = String(max_length=20)


@storefront.value_object(part_of="Order")
class OrderFinancials:
    """Amounts copied from the cart at checkout. Never recalculated."""

    subtotal = Float(default=0.0, min_value=0.0)
    discount = Float(default=0.0, min_value=0.0)
    tax = Float(default=0.0, min_value=0.0)
    shipping = Float(default=0.0, min_value=0.0)
    total = Float(default=0.0, min_value=0.0)
    currency = String(max_length=3, default="USD")


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class OrderLine:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    total_price = Float(required=True, min_value=0.0)
    product_name = String(max_length=255)
    product_image = String(max_length=500)
    product_sku = String(max_length=50)
    stock_id = Identifier()  # Stock record the line was reserved against
    position = Integer(default=0)


@storefront.entity(part_of="Order")
class StatusChange:
    status = String(required=True, max_length=50)
    note = String(max_length=500)
    changed_by = Identifier()
    changed_at = DateTime(required=True)
    sequence = Integer(required=True, min_value=1)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class Order:
    order_number = String(required=True, max_length=20)
    user_id = Identifier(required=True)
    cart_id = Identifier()
    lines = HasMany(OrderLine)
    financials = ValueObject(OrderFinancials)
    billing_address = ValueObject(Address)
    shipping_address = ValueObject(Address)
    applied_coupons = Text()  # JSON array of {code, discount_type, discount_amount}
    order_status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_method = String(max_length=50)
    payment_transaction_id = String(max_length=255)
    status_history = HasMany(StatusChange)
    shipping_method = String(max_length=50)
    shipping_provider = String(max_length=100)
    tracking_number = String(max_length=255)
    estimated_delivery_time = String(max_length=100)
    expected_delivery_date = DateTime()
    actual_delivery_date = DateTime()
    special_instructions = String(max_length=1000)
    gift_wrapping = Boolean(default=False)
    gift_message = String(max_length=500)
    placed_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        user_id,
        order_number,
        lines,
        financials,
        billing_address,
        shipping_address,
        payment_method=None,
        applied_coupons=None,
        cart_id=None,
        shipping_method=None,
        special_instructions=None,
        gift_wrapping=False,
        gift_message=None,
    ):
        """Create a pending order from line snapshots.

        Args:
            lines: List of dicts with product_id, variant_id, quantity, unit_price,
                product_name, product_image, product_sku and stock_id.
        """
        if not lines:
            raise ValidationError({"lines": ["An order must have at least one line"]})

        now = datetime.now(UTC)
        order = cls(
            order_number=order_number,
            user_id=user_id,
            cart_id=cart_id,
            lines=[
                OrderLine(
                    product_id=line["product_id"],
                    variant_id=line.get("variant_id"),
                    quantity=line["quantity"],
                    unit_price=line["unit_price"],
                    total_price=round_money(line["quantity"] * line["unit_price"]),
                    product_name=line.get("product_name"),
                    product_image=line.get("product_image"),
                    product_sku=line.get("product_sku"),
                    stock_id=line.get("stock_id"),
                    position=index,
                )
                for index, line in enumerate(lines, start=1)
            ],
            financials=financials,
            billing_address=billing_address,
            shipping_address=shipping_address,
            applied_coupons=json.dumps(applied_coupons or []),
            order_status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            payment_method=payment_method,
            shipping_method=shipping_method,
            special_instructions=special_instructions,
            gift_wrapping=gift_wrapping,
            gift_message=gift_message,
            placed_at=now,
            created_at=now,
            updated_at=now,
        )
        order._append_history(OrderStatus.PENDING.value, "Order placed", user_id, now)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                user_id=str(user_id),
                line_count=len(order.lines),
                total=order.financials.total,
                currency=order.financials.currency,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def ordered_lines(self):
        return sorted(self.lines, key=lambda line: line.position)

    def history(self):
        """Status history, oldest first."""
        return sorted(self.status_history, key=lambda entry: entry.sequence)

    def coupons(self):
        return json.loads(self.applied_coupons) if self.applied_coupons else []

    def total_items(self):
        return sum(line.quantity for line in self.lines)

    def can_transition_to(self, new_status):
        return OrderStatus(new_status) in _VALID_TRANSITIONS[OrderStatus(self.order_status)]

    def can_cancel(self):
        return OrderStatus(self.order_status) in _CANCELLABLE_STATES

    def return_refusal(self, now=None, window_days=None):
        """Why the order cannot be returned right now, or None if it can."""
        if self.order_status != OrderStatus.DELIVERED.value:
            return "order has not been delivered"
        if self.actual_delivery_date is None:
            return "delivery date is unknown"

        window_days = return_window_days() if window_days is None else window_days
        now = as_utc(now) if now else datetime.now(UTC)
        if now - as_utc(self.actual_delivery_date) > timedelta(days=window_days):
            return f"return window of {window_days} days has expired"
        return None

    def can_return(self, now=None, window_days=None):
        return self.return_refusal(now, window_days) is None

    def delivery_days(self):
        """Whole days between placement and delivery, or None if not delivered."""
        if self.actual_delivery_date is None or self.placed_at is None:
            return None
        return (as_utc(self.actual_delivery_date) - as_utc(self.placed_at)).days

    def summary(self):
        return {
            "order_id": str(self.id),
            "order_number": self.order_number,
            "order_status": self.order_status,
            "payment_status": self.payment_status,
            "total_items": self.total_items(),
            "total": self.financials.total if self.financials else 0.0,
            "currency": self.financials.currency if self.financials else None,
            "placed_at": self.placed_at.isoformat() if self.placed_at else None,
            "delivery_days": self.delivery_days(),
        }

    # -------------------------------------------------------------------
    # Status history
    # -------------------------------------------------------------------
    def _append_history(self, status, note=None, changed_by=None, changed_at=None):
        changed_at = changed_at or datetime.now(UTC)
        self.add_status_history(
            StatusChange(
                status=status,
                note=note,
                changed_by=changed_by,
                changed_at=changed_at,
                sequence=max((entry.sequence for entry in self.status_history), default=0) + 1,
            )
        )
        self.updated_at = changed_at

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def update_status(self, new_status, note=None, actor=None):
        """Move the order along the state machine, recording the change in the history."""
        current = OrderStatus(self.order_status)
        try:
            target = OrderStatus(new_status)
        except ValueError as exc:
            raise InvalidTransition(current.value, str(new_status)) from exc

        if target not in _VALID_TRANSITIONS[current]:
            raise InvalidTransition(current.value, target.value)

        now = datetime.now(UTC)
        self.order_status = target.value
        if target == OrderStatus.DELIVERED and self.actual_delivery_date is None:
            self.actual_delivery_date = now
        self._append_history(target.value, note, actor, now)

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=current.value,
                new_status=target.value,
                note=note,
                changed_by=str(actor) if actor else None,
                changed_at=now,
            )
        )

    def update_payment_status(self, payment_status, transaction_id=None, actor=None):
        """Record a payment status change. A payment on a pending order confirms it."""
        try:
            target = PaymentStatus(payment_status)
        except ValueError as exc:
            raise ValidationError({"payment_status": [f"Unknown payment status {payment_status}"]}) from exc
        previous = self.payment_status
        now = datetime.now(UTC)

        self.payment_status = target.value
        if transaction_id:
            self.payment_transaction_id = transaction_id
        note = f"Transaction ID: {transaction_id}" if transaction_id else None
        self._append_history(f"Payment: {target.value}", note, actor, now)

        self.raise_(
            OrderPaymentUpdated(
                order_id=str(self.id),
                previous_status=previous,
                new_status=target.value,
                transaction_id=transaction_id,
                changed_at=now,
            )
        )

        if target == PaymentStatus.PAID and self.order_status == OrderStatus.PENDING.value:
            self.update_status(OrderStatus.CONFIRMED.value, "Payment received", actor)

    def update_tracking(
        self,
        tracking_number=None,
        shipping_provider=None,
        estimated_delivery_time=None,
        expected_delivery_date=None,
        actor=None,
    ):
        if tracking_number is not None:
            self.tracking_number = tracking_number
        if shipping_provider is not None:
            self.shipping_provider = shipping_provider
        if estimated_delivery_time is not None:
            self.estimated_delivery_time = estimated_delivery_time
        if expected_delivery_date is not None:
            self.expected_delivery_date = expected_delivery_date

        now = datetime.now(UTC)
        note = f"Tracking number: {self.tracking_number}" if self.tracking_number else None
        self._append_history("tracking_updated", note, actor, now)

        self.raise_(
            OrderTrackingUpdated(
                order_id=str(self.id),
                tracking_number=self.tracking_number,
                shipping_provider=self.shipping_provider,
                estimated_delivery_time=self.estimated_delivery_time,
                updated_at=now,
            )
        )
