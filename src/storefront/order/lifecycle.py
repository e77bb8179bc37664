"""Order lifecycle use case: status, payment and tracking changes after checkout.

Stock side effects are bound to two transitions:

    -> cancelled: release each line's reservation
    -> shipped:   release each line's reservation, then remove the units

They run after the transition is saved and are best effort. A line whose
stock cannot be updated is logged and reported back; it never blocks or undoes
the transition.
"""

from dataclasses import dataclass, field

import structlog
from protean.exceptions import ValidationError

from storefront.collaborators import Principal
from storefront.errors import (
    AccessDenied,
    AuthenticationRequired,
    InvalidTransition,
    NotFound,
    ReturnNotAllowed,
    StorefrontError,
)
from storefront.order.order import Order, OrderStatus
from storefront.stock.ledger import StockLedger

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StockSideEffectError:
    line_id: str
    product_id: str
    stock_id: str | None
    error: str
    message: str


@dataclass
class TransitionResult:
    order: Order
    stock_errors: list[StockSideEffectError] = field(default_factory=list)


def _require_principal(principal):
    if principal is None:
        raise AuthenticationRequired()
    return principal


def _require_admin(principal):
    if not _require_principal(principal).is_admin:
        raise AccessDenied("Administrator role required")


def _require_access(principal: Principal, order: Order):
    if not _require_principal(principal).can_access(order.user_id):
        raise AccessDenied("Order belongs to another user")


class OrderLifecycle:
    def __init__(self, orders, ledger: StockLedger):
        self.orders = orders
        self.ledger = ledger

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def get(self, principal, order_id) -> Order:
        _require_principal(principal)
        order = self.orders.load(order_id)
        _require_access(principal, order)
        return order

    def get_by_number(self, principal, order_number) -> Order:
        _require_principal(principal)
        order = self.orders.load_by_number(order_number)
        _require_access(principal, order)
        return order

    def list_for(self, principal, status=None) -> list[Order]:
        """The caller's orders, newest first. Administrators see every order."""
        _require_principal(principal)
        if status is not None and status not in {s.value for s in OrderStatus}:
            raise ValidationError({"status": [f"Unknown order status {status}"]})
        user_id = None if principal.is_admin else principal.user_id
        return self.orders.list_for_user(user_id, status)

    # -------------------------------------------------------------------
    # Status transitions
    # -------------------------------------------------------------------
    def update_status(self, principal, order_id, status, note=None) -> TransitionResult:
        _require_admin(principal)
        order = self.orders.load(order_id)
        return self._transition(order, status, note, principal.user_id)

    def cancel(self, principal, order_id, reason=None) -> TransitionResult:
        _require_principal(principal)
        order = self.orders.load(order_id)
        _require_access(principal, order)

        if not order.can_cancel():
            raise InvalidTransition(order.order_status, OrderStatus.CANCELLED.value)

        note = f"Cancelled: {reason}" if reason else "Order cancelled"
        return self._transition(order, OrderStatus.CANCELLED.value, note, principal.user_id)

    def request_return(self, principal, order_id, reason=None) -> TransitionResult:
        _require_principal(principal)
        order = self.orders.load(order_id)
        if str(order.user_id) != str(principal.user_id):
            raise AccessDenied("Only the customer who placed the order can return it")

        refusal = order.return_refusal()
        if refusal is not None:
            raise ReturnNotAllowed(refusal, order.order_status)

        note = f"Return requested: {reason}" if reason else "Return requested"
        return self._transition(order, OrderStatus.RETURNED.value, note, principal.user_id)

    def _transition(self, order, status, note, actor) -> TransitionResult:
        previous = order.order_status
        order.update_status(status, note=note, actor=actor)
        self.orders.save(order)

        logger.info(
            "Order status updated",
            order_id=str(order.id),
            order_number=order.order_number,
            previous_status=previous,
            new_status=order.order_status,
        )

        if order.order_status == OrderStatus.CANCELLED.value:
            errors = self._apply_to_lines(order, release=True, remove=False)
        elif order.order_status == OrderStatus.SHIPPED.value:
            errors = self._apply_to_lines(order, release=True, remove=True)
        else:
            errors = []
        return TransitionResult(order=order, stock_errors=errors)

    def _apply_to_lines(self, order, release, remove) -> list[StockSideEffectError]:
        errors = []
        reference = order.order_number
        for line in order.ordered_lines():
            try:
                if line.stock_id is None:
                    raise NotFound("StockRecord", f"for line {line.id}")
                if release:
                    self.ledger.release_stock(
                        line.stock_id, line.quantity, reference_id=reference, notes=f"Order {order.order_status}"
                    )
                if remove:
                    self.ledger.remove_stock(
                        line.stock_id, line.quantity, reason="Order shipped", reference_id=reference
                    )
            except StorefrontError as exc:
                logger.warning(
                    "Stock side effect failed",
                    order_id=str(order.id),
                    line_id=str(line.id),
                    stock_id=str(line.stock_id) if line.stock_id else None,
                    error=exc.kind,
                    message=exc.message,
                )
                errors.append(
                    StockSideEffectError(
                        line_id=str(line.id),
                        product_id=str(line.product_id),
                        stock_id=str(line.stock_id) if line.stock_id else None,
                        error=exc.kind,
                        message=exc.message,
                    )
                )
        return errors

    # -------------------------------------------------------------------
    # Payment and tracking
    # -------------------------------------------------------------------
    def update_payment(self, principal, order_id, payment_status, transaction_id=None) -> Order:
        _require_admin(principal)
        order = self.orders.load(order_id)
        order.update_payment_status(payment_status, transaction_id=transaction_id, actor=principal.user_id)
        self.orders.save(order)

        logger.info(
            "Order payment updated",
            order_id=str(order.id),
            payment_status=order.payment_status,
            order_status=order.order_status,
        )
        return order

    def update_tracking(
        self,
        principal,
        order_id,
        tracking_number=None,
        shipping_provider=None,
        estimated_delivery_time=None,
        expected_delivery_date=None,
    ) -> Order:
        _require_admin(principal)
        order = self.orders.load(order_id)
        order.update_tracking(
            tracking_number=tracking_number,
            shipping_provider=shipping_provider,
            estimated_delivery_time=estimated_delivery_time,
            expected_delivery_date=expected_delivery_date,
            actor=principal.user_id,
        )
        self.orders.save(order)
        return order
