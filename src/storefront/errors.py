"""Typed failures raised by the storefront use cases.

Every failure carries a stable ``kind`` tag, a human-readable message, and an
HTTP-equivalent status code. Quantity failures also carry the numbers a client
needs to render messages like "only 3 left".

Business failures are expected and map to 4xx responses. ``StorageFailure``
wraps anything the persistence layer raises and maps to a 5xx response.
"""

from contextlib import contextmanager

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError

logger = structlog.get_logger(__name__)


class StorefrontError(Exception):
    """Base class for all storefront failures."""

    kind = "storefront_error"
    status_code = 400

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        return {"error": self.kind, "message": self.message, **self.details}


# ---------------------------------------------------------------------------
# Stock
# ---------------------------------------------------------------------------
class InvalidQuantity(StorefrontError):
    kind = "invalid_quantity"

    def __init__(self, quantity, message=None):
        super().__init__(message or f"Quantity must be positive, got {quantity}", quantity=quantity)
        self.quantity = quantity


class InsufficientStock(StorefrontError):
    kind = "insufficient_stock"
    status_code = 409

    def __init__(self, requested, available, product_id=None, variant_id=None):
        super().__init__(
            f"Insufficient stock: {available} available, {requested} requested",
            requested=requested,
            available=available,
            shortfall=max(0, requested - available),
            product_id=product_id,
            variant_id=variant_id,
        )
        self.requested = requested
        self.available = available
        self.product_id = product_id
        self.variant_id = variant_id

    @property
    def shortfall(self):
        return max(0, self.requested - self.available)


class OverRelease(StorefrontError):
    kind = "over_release"
    status_code = 409

    def __init__(self, requested, reserved):
        super().__init__(
            f"Cannot release {requested} units, only {reserved} reserved",
            requested=requested,
            reserved=reserved,
        )
        self.requested = requested
        self.reserved = reserved


class DuplicateStockRecord(StorefrontError):
    kind = "duplicate_stock_record"
    status_code = 409

    def __init__(self, product_id, variant_id=None, location_id=None):
        super().__init__(
            "Stock record already exists for this product/variant/location combination",
            product_id=product_id,
            variant_id=variant_id,
            location_id=location_id,
        )


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class LineNotFound(StorefrontError):
    kind = "line_not_found"
    status_code = 404

    def __init__(self, line_id):
        super().__init__(f"Cart line {line_id} not found", line_id=str(line_id))


class DuplicateCoupon(StorefrontError):
    kind = "duplicate_coupon"
    status_code = 409

    def __init__(self, code):
        super().__init__(f"Coupon {code} already applied", code=code)


class CouponNotFound(StorefrontError):
    kind = "coupon_not_found"
    status_code = 404

    def __init__(self, code):
        super().__init__(f"Coupon {code} is not applied to this cart", code=code)


class InvalidCartState(StorefrontError):
    kind = "invalid_cart_state"
    status_code = 409

    def __init__(self, status, action):
        super().__init__(f"Cannot {action} a cart in {status} state", status=status)


class EmptyCart(StorefrontError):
    kind = "empty_cart"

    def __init__(self, message="Cart is empty"):
        super().__init__(message)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class InvalidTransition(StorefrontError):
    kind = "invalid_transition"
    status_code = 409

    def __init__(self, current, requested):
        super().__init__(
            f"Cannot transition from {current} to {requested}",
            current=current,
            requested=requested,
        )
        self.current = current
        self.requested = requested


class ReturnNotAllowed(StorefrontError):
    kind = "return_not_allowed"
    status_code = 409

    def __init__(self, reason, status):
        super().__init__(f"Order cannot be returned: {reason}", reason=reason, status=status)


class ReservationFailed(StorefrontError):
    kind = "reservation_failed"
    status_code = 409

    def __init__(self, order_id, failures):
        super().__init__(
            "Stock could not be reserved for every line; the order was not placed",
            order_id=str(order_id),
            failures=failures,
        )
        self.order_id = order_id
        self.failures = failures


# ---------------------------------------------------------------------------
# Access and lookup
# ---------------------------------------------------------------------------
class AuthenticationRequired(StorefrontError):
    kind = "authentication_required"
    status_code = 401

    def __init__(self, message="Valid bearer token required"):
        super().__init__(message)


class AccessDenied(StorefrontError):
    kind = "access_denied"
    status_code = 403

    def __init__(self, message="Access denied"):
        super().__init__(message)


class NotFound(StorefrontError):
    kind = "not_found"
    status_code = 404

    def __init__(self, entity, identifier):
        super().__init__(f"{entity} {identifier} not found", entity=entity, id=str(identifier))


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------
class StorageFailure(StorefrontError):
    kind = "storage_failure"
    status_code = 503

    def __init__(self, operation, cause=None):
        super().__init__(f"Storage failure during {operation}", operation=operation)
        self.operation = operation
        self.cause = cause


class StaleRecord(Exception):
    """A compare-and-swap write lost against a concurrent writer.

    Internal to the repository/ledger boundary; never surfaces to callers.
    """

    def __init__(self, identifier, expected, actual):
        super().__init__(f"Record {identifier} is at revision {actual}, expected {expected}")
        self.identifier = identifier
        self.expected = expected
        self.actual = actual


@contextmanager
def storage_guard(operation, entity=None, identifier=None):
    """Translate store-level exceptions into storefront failures.

    Business failures and field validation errors pass through untouched.
    A missing record becomes ``NotFound``; anything else the adapter raises
    becomes ``StorageFailure``.
    """
    try:
        yield
    except (StorefrontError, StaleRecord, ValidationError):
        raise
    except ObjectNotFoundError as exc:
        raise NotFound(entity or "Record", identifier) from exc
    except Exception as exc:
        logger.exception("Storage operation failed", operation=operation, entity=entity, identifier=identifier)
        raise StorageFailure(operation, cause=exc) from exc
