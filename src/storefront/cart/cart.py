"""Cart aggregate: the lines and coupons a customer intends to check out.

A user has at most one active cart. Lines are unique per (product, variant);
adding the same product again merges quantities. Money fields are derived by
``recompute_totals()``, the last step of every mutator:

    line.total_price = quantity * unit_price
    subtotal         = sum of line totals
    discount         = sum of coupon discounts (percentage coupons are
                       evaluated against the current subtotal)
    total            = max(0, subtotal - discount) + tax + shipping

Every amount is rounded half-up to two decimal places.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String

from storefront.cart.events import (
    CartAbandoned,
    CartCleared,
    CartConverted,
    CartCouponApplied,
    CartCouponRemoved,
    CartItemAdded,
    CartItemQuantityUpdated,
    CartItemRemoved,
)
from storefront.domain import storefront
from storefront.errors import (
    CouponNotFound,
    DuplicateCoupon,
    EmptyCart,
    InvalidCartState,
    InvalidQuantity,
    LineNotFound,
)
from storefront.utils.money import round_money


class CartStatus(Enum):
    ACTIVE = "active"
    ABANDONED = "abandoned"
    CONVERTED = "converted"


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


def _same(left, right):
    return (str(left) if left else None) == (str(right) if right else None)


@storefront.entity(part_of="Cart")
class CartLine:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    total_price = Float(default=0.0)
    product_name = String(max_length=255)
    product_image = String(max_length=500)
    product_sku = String(max_length=50)
    added_at = DateTime()
    position = Integer(default=0)


@storefront.entity(part_of="Cart")
class AppliedCoupon:
    """A coupon on the cart.

    ``value`` is a rate (0-100) for percentage coupons and an amount for
    fixed coupons. ``discount_amount`` is what the coupon is currently worth.
    """

    code = String(required=True, max_length=50)
    discount_type = String(required=True, choices=DiscountType)
    value = Float(required=True, min_value=0.0)
    discount_amount = Float(default=0.0)
    position = Integer(default=0)

    def evaluate(self, subtotal):
        if self.discount_type == DiscountType.PERCENTAGE.value:
            return round_money(subtotal * self.value / 100)
        return round_money(self.value)


@storefront.aggregate
class Cart:
    user_id = Identifier(required=True)
    lines = HasMany(CartLine)
    coupons = HasMany(AppliedCoupon)
    subtotal = Float(default=0.0)
    discount = Float(default=0.0)
    tax = Float(default=0.0, min_value=0.0)
    shipping = Float(default=0.0, min_value=0.0)
    total = Float(default=0.0)
    status = String(choices=CartStatus, default=CartStatus.ACTIVE.value)
    is_active = Boolean(default=True)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def only_active_carts_are_flagged_active(self):
        if self.is_active and self.status != CartStatus.ACTIVE.value:
            raise ValidationError({"is_active": ["Only an active cart can be flagged active"]})

    @invariant.post
    def converted_cart_must_have_lines(self):
        if self.status == CartStatus.CONVERTED.value and not self.lines:
            raise ValidationError({"cart": ["Cannot convert an empty cart"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, user_id):
        now = datetime.now(UTC)
        return cls(
            user_id=user_id,
            status=CartStatus.ACTIVE.value,
            is_active=True,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def ordered_lines(self):
        return sorted(self.lines, key=lambda line: line.position)

    def ordered_coupons(self):
        return sorted(self.coupons, key=lambda coupon: coupon.position)

    def find_line(self, line_id):
        line = next((line for line in self.lines if str(line.id) == str(line_id)), None)
        if line is None:
            raise LineNotFound(line_id)
        return line

    def _line_for(self, product_id, variant_id=None):
        return next(
            (
                line
                for line in self.lines
                if str(line.product_id) == str(product_id) and _same(line.variant_id, variant_id)
            ),
            None,
        )

    def has_product(self, product_id, variant_id=None):
        return self._line_for(product_id, variant_id) is not None

    def quantity_of(self, product_id, variant_id=None):
        """Units of a product/variant in the cart, 0 when absent."""
        line = self._line_for(product_id, variant_id)
        return line.quantity if line is not None else 0

    def item_count(self):
        return sum(line.quantity for line in self.lines)

    def summary(self):
        return {
            "item_count": self.item_count(),
            "subtotal": self.subtotal,
            "discount": self.discount,
            "tax": self.tax,
            "shipping": self.shipping,
            "total": self.total,
        }

    # -------------------------------------------------------------------
    # Derived totals
    # -------------------------------------------------------------------
    def recompute_totals(self):
        """Derive line totals, discounts and cart totals from the raw inputs."""
        for line in self.lines:
            line_total = round_money(line.quantity * line.unit_price)
            if line.total_price != line_total:
                line.total_price = line_total

        subtotal = round_money(sum(line.total_price for line in self.lines))

        for coupon in self.coupons:
            amount = coupon.evaluate(subtotal)
            if coupon.discount_amount != amount:
                coupon.discount_amount = amount
        discount = round_money(sum(coupon.discount_amount for coupon in self.coupons))

        self.subtotal = subtotal
        self.discount = discount
        self.total = round_money(max(0.0, subtotal - discount) + (self.tax or 0.0) + (self.shipping or 0.0))

    def _ensure_active(self, action):
        if self.status != CartStatus.ACTIVE.value:
            raise InvalidCartState(self.status, action)

    def _touch(self):
        self.updated_at = datetime.now(UTC)
        self.recompute_totals()

    # -------------------------------------------------------------------
    # Line management
    # -------------------------------------------------------------------
    def add_item(
        self,
        product_id,
        quantity,
        unit_price,
        variant_id=None,
        product_name=None,
        product_image=None,
        product_sku=None,
    ):
        """Add a product to the cart, merging into an existing line for the same product and variant.

        A merged line takes the latest unit price.
        """
        self._ensure_active("add items to")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidQuantity(quantity)
        if unit_price is None or unit_price < 0:
            raise ValidationError({"unit_price": ["Unit price cannot be negative"]})

        existing = self._line_for(product_id, variant_id)
        if existing:
            existing.quantity += quantity
            existing.unit_price = unit_price
            line = existing
        else:
            line = CartLine(
                product_id=product_id,
                variant_id=variant_id,
                quantity=quantity,
                unit_price=unit_price,
                product_name=product_name,
                product_image=product_image,
                product_sku=product_sku,
                added_at=datetime.now(UTC),
                position=max((entry.position for entry in self.lines), default=0) + 1,
            )
            self.add_lines(line)

        self._touch()

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                line_id=str(line.id),
                product_id=str(product_id),
                variant_id=str(variant_id) if variant_id else None,
                quantity=quantity,
                unit_price=unit_price,
            )
        )
        return line

    def update_item_quantity(self, line_id, quantity):
        self._ensure_active("update items in")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidQuantity(quantity, f"Quantity must be at least 1, got {quantity}")

        line = self.find_line(line_id)
        previous_quantity = line.quantity
        line.quantity = quantity
        self._touch()

        self.raise_(
            CartItemQuantityUpdated(
                cart_id=str(self.id),
                line_id=str(line_id),
                previous_quantity=previous_quantity,
                new_quantity=quantity,
            )
        )
        return line

    def remove_item(self, line_id):
        self._ensure_active("remove items from")
        line = self.find_line(line_id)
        self.remove_lines(line)
        self._touch()

        self.raise_(CartItemRemoved(cart_id=str(self.id), line_id=str(line_id)))

    def clear(self):
        """Remove every line and coupon and zero the charges."""
        self._ensure_active("clear")
        for line in list(self.lines):
            self.remove_lines(line)
        for coupon in list(self.coupons):
            self.remove_coupons(coupon)
        self.tax = 0.0
        self.shipping = 0.0
        self._touch()

        self.raise_(CartCleared(cart_id=str(self.id)))

    # -------------------------------------------------------------------
    # Coupons and charges
    # -------------------------------------------------------------------
    def apply_coupon(self, code, discount_type, value):
        self._ensure_active("apply coupons to")
        code = (code or "").strip().upper()
        if not code:
            raise ValidationError({"code": ["Coupon code is required"]})

        discount_type = DiscountType(discount_type)
        if discount_type == DiscountType.PERCENTAGE and not 0 < value <= 100:
            raise ValidationError({"value": ["Percentage must be greater than 0 and at most 100"]})
        if discount_type == DiscountType.FIXED and value < 0:
            raise ValidationError({"value": ["Fixed discount cannot be negative"]})

        if any(coupon.code == code for coupon in self.coupons):
            raise DuplicateCoupon(code)

        coupon = AppliedCoupon(
            code=code,
            discount_type=discount_type.value,
            value=value,
            position=max((entry.position for entry in self.coupons), default=0) + 1,
        )
        self.add_coupons(coupon)
        self._touch()

        self.raise_(
            CartCouponApplied(
                cart_id=str(self.id),
                code=code,
                discount_type=discount_type.value,
                value=value,
            )
        )
        return coupon

    def remove_coupon(self, code):
        self._ensure_active("remove coupons from")
        code = (code or "").strip().upper()
        coupon = next((coupon for coupon in self.coupons if coupon.code == code), None)
        if coupon is None:
            raise CouponNotFound(code)

        self.remove_coupons(coupon)
        self._touch()

        self.raise_(CartCouponRemoved(cart_id=str(self.id), code=code))

    def set_charges(self, tax=None, shipping=None):
        """Set caller-computed tax and shipping amounts."""
        self._ensure_active("set charges on")
        if tax is not None and tax < 0:
            raise ValidationError({"tax": ["Tax cannot be negative"]})
        if shipping is not None and shipping < 0:
            raise ValidationError({"shipping": ["Shipping cannot be negative"]})

        if tax is not None:
            self.tax = round_money(tax)
        if shipping is not None:
            self.shipping = round_money(shipping)
        self._touch()

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def convert(self, order_id=None):
        """Retire the cart after a successful checkout."""
        self._ensure_active("convert")
        if not self.lines:
            raise EmptyCart()

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = CartStatus.CONVERTED.value
            self.is_active = False
            self.updated_at = now

        self.raise_(
            CartConverted(
                cart_id=str(self.id),
                user_id=str(self.user_id),
                order_id=str(order_id) if order_id else None,
                converted_at=now,
            )
        )

    def abandon(self):
        self._ensure_active("abandon")

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = CartStatus.ABANDONED.value
            self.is_active = False
            self.updated_at = now

        self.raise_(
            CartAbandoned(
                cart_id=str(self.id),
                user_id=str(self.user_id),
                line_count=len(self.lines),
                abandoned_at=now,
            )
        )
