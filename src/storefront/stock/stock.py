"""StockRecord aggregate: counters and movement log for one stock-bearing key.

A stock record is keyed by (product, variant, location). It keeps three
counters and a derived status, plus an append-only log of every movement.

Stock Level Model:
    current_stock:   Physical units on hand
    reserved_stock:  Units held for placed orders (not yet shipped)
    available_stock: max(0, current - reserved), what can still be sold

Status bands (derived from available stock):
    0                  -> out_of_stock (or backordered, if marked so)
    <= minimum_stock   -> low_stock
    otherwise          -> in_stock

Every mutator validates first, changes the counters, appends exactly one
movement and finishes with ``recompute_derived()``. The aggregate knows
nothing about concurrency; the ledger persists it with compare-and-swap on
``revision``.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String, Text

from storefront.domain import storefront
from storefront.errors import InsufficientStock, InvalidQuantity, OverRelease
from storefront.settings import default_minimum_stock
from storefront.stock.events import (
    StockAdded,
    StockAdjusted,
    StockRecordCreated,
    StockReleased,
    StockRemoved,
    StockReserved,
    StockStatusChanged,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class StockStatus(Enum):
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    BACKORDERED = "backordered"


class MovementType(Enum):
    IN = "in"
    OUT = "out"
    ADJUSTMENT = "adjustment"
    RESERVED = "reserved"
    RELEASED = "released"


def _require_positive(quantity):
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantity(quantity)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="StockRecord")
class StockMovement:
    """One immutable line of the movement log.

    ``quantity`` is always the absolute amount moved; ``delta`` is its signed
    effect on the counter the movement touched.
    """

    movement_type = String(required=True, choices=MovementType)
    quantity = Integer(required=True, min_value=0)
    delta = Integer(required=True)
    reason = String(max_length=255)
    reference_id = String(max_length=100)
    performed_by = Identifier()
    notes = Text()
    occurred_at = DateTime(required=True)
    sequence = Integer(required=True, min_value=1)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class StockRecord:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    location_id = Identifier()
    sku = String(max_length=50)
    current_stock = Integer(default=0, min_value=0)
    reserved_stock = Integer(default=0, min_value=0)
    available_stock = Integer(default=0, min_value=0)
    minimum_stock = Integer(default=5, min_value=0)
    maximum_stock = Integer(min_value=0)
    average_cost = Float(default=0.0, min_value=0.0)
    last_cost = Float(default=0.0, min_value=0.0)
    status = String(choices=StockStatus, default=StockStatus.OUT_OF_STOCK.value)
    is_active = Boolean(default=True)
    revision = Integer(default=0, min_value=0)
    movements = HasMany(StockMovement)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def available_stock_tracks_counters(self):
        expected = max(0, (self.current_stock or 0) - (self.reserved_stock or 0))
        if self.available_stock != expected:
            raise ValidationError({"available_stock": [f"Available stock must be {expected}"]})

    @invariant.post
    def maximum_stock_not_below_minimum(self):
        if self.maximum_stock is not None and self.maximum_stock < self.minimum_stock:
            raise ValidationError({"maximum_stock": ["Maximum stock cannot be below minimum stock"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        product_id,
        variant_id=None,
        location_id=None,
        sku=None,
        initial_stock=0,
        minimum_stock=None,
        maximum_stock=None,
        unit_cost=None,
        actor=None,
    ):
        if initial_stock is None or initial_stock < 0:
            raise InvalidQuantity(initial_stock, "Initial stock cannot be negative")

        now = datetime.now(UTC)
        record = cls(
            product_id=product_id,
            variant_id=variant_id,
            location_id=location_id,
            sku=sku,
            minimum_stock=default_minimum_stock() if minimum_stock is None else minimum_stock,
            maximum_stock=maximum_stock,
            created_at=now,
            updated_at=now,
        )
        if initial_stock > 0:
            record.add_stock(initial_stock, reason="Initial stock", unit_cost=unit_cost, actor=actor)
        else:
            record.recompute_derived()

        record.raise_(
            StockRecordCreated(
                stock_id=str(record.id),
                product_id=str(product_id),
                variant_id=str(variant_id) if variant_id else None,
                location_id=str(location_id) if location_id else None,
                current_stock=record.current_stock,
                created_at=now,
            )
        )
        return record

    # -------------------------------------------------------------------
    # Derived state
    # -------------------------------------------------------------------
    def derive_status(self, available):
        if available == 0:
            if self.status == StockStatus.BACKORDERED.value:
                return StockStatus.BACKORDERED
            return StockStatus.OUT_OF_STOCK
        if available <= self.minimum_stock:
            return StockStatus.LOW_STOCK
        return StockStatus.IN_STOCK

    def recompute_derived(self):
        """Recompute available stock and status from the counters. Idempotent."""
        available = max(0, self.current_stock - self.reserved_stock)
        new_status = self.derive_status(available)
        previous_status = self.status

        if self.available_stock != available:
            self.available_stock = available
        if previous_status != new_status.value:
            self.status = new_status.value

        if previous_status and previous_status != new_status.value:
            self.raise_(
                StockStatusChanged(
                    stock_id=str(self.id),
                    previous_status=previous_status,
                    new_status=new_status.value,
                    available_stock=available,
                    occurred_at=datetime.now(UTC),
                )
            )

    def _next_sequence(self):
        return max((m.sequence for m in self.movements), default=0) + 1

    def _record_movement(self, movement_type, quantity, delta, reason=None, reference_id=None, notes=None, actor=None):
        now = datetime.now(UTC)
        self.add_movements(
            StockMovement(
                movement_type=movement_type.value,
                quantity=quantity,
                delta=delta,
                reason=reason,
                reference_id=str(reference_id) if reference_id is not None else None,
                performed_by=actor,
                notes=notes,
                occurred_at=now,
                sequence=self._next_sequence(),
            )
        )
        self.updated_at = now
        return now

    def ordered_movements(self):
        """The movement log in the order it was written."""
        return sorted(self.movements, key=lambda m: m.sequence)

    # -------------------------------------------------------------------
    # Stock operations
    # -------------------------------------------------------------------
    def add_stock(self, quantity, reason=None, reference_id=None, notes=None, actor=None, unit_cost=None):
        """Receive units into stock, optionally at a known unit cost."""
        _require_positive(quantity)
        if unit_cost is not None and unit_cost < 0:
            raise ValidationError({"unit_cost": ["Unit cost cannot be negative"]})

        with atomic_change(self):
            if unit_cost is not None:
                on_hand = self.current_stock
                self.average_cost = round(
                    (on_hand * (self.average_cost or 0.0) + quantity * unit_cost) / (on_hand + quantity), 4
                )
                self.last_cost = unit_cost
            self.current_stock += quantity
            occurred_at = self._record_movement(
                MovementType.IN, quantity, quantity, reason or "Stock received", reference_id, notes, actor
            )
            self.recompute_derived()

        self.raise_(
            StockAdded(
                stock_id=str(self.id),
                quantity=quantity,
                current_stock=self.current_stock,
                available_stock=self.available_stock,
                reference_id=str(reference_id) if reference_id is not None else None,
                occurred_at=occurred_at,
            )
        )

    def remove_stock(self, quantity, reason=None, reference_id=None, notes=None, actor=None):
        """Take units out of stock. Only unreserved units may be removed."""
        _require_positive(quantity)
        if quantity > self.available_stock:
            raise InsufficientStock(quantity, self.available_stock, self.product_id, self.variant_id)

        with atomic_change(self):
            self.current_stock -= quantity
            occurred_at = self._record_movement(
                MovementType.OUT, quantity, -quantity, reason or "Stock removed", reference_id, notes, actor
            )
            self.recompute_derived()

        self.raise_(
            StockRemoved(
                stock_id=str(self.id),
                quantity=quantity,
                current_stock=self.current_stock,
                available_stock=self.available_stock,
                reference_id=str(reference_id) if reference_id is not None else None,
                occurred_at=occurred_at,
            )
        )

    def reserve_stock(self, quantity, reference_id, notes=None, actor=None):
        """Hold units against an order reference."""
        _require_positive(quantity)
        if not reference_id:
            raise ValidationError({"reference_id": ["A reference is required to reserve stock"]})
        if quantity > self.available_stock:
            raise InsufficientStock(quantity, self.available_stock, self.product_id, self.variant_id)

        with atomic_change(self):
            self.reserved_stock += quantity
            occurred_at = self._record_movement(
                MovementType.RESERVED, quantity, quantity, "Stock reserved", reference_id, notes, actor
            )
            self.recompute_derived()

        self.raise_(
            StockReserved(
                stock_id=str(self.id),
                quantity=quantity,
                reserved_stock=self.reserved_stock,
                available_stock=self.available_stock,
                reference_id=str(reference_id),
                occurred_at=occurred_at,
            )
        )

    def release_stock(self, quantity, reference_id=None, notes=None, actor=None):
        """Return previously reserved units to available stock."""
        _require_positive(quantity)
        if quantity > self.reserved_stock:
            raise OverRelease(quantity, self.reserved_stock)

        with atomic_change(self):
            self.reserved_stock -= quantity
            occurred_at = self._record_movement(
                MovementType.RELEASED, quantity, -quantity, "Stock released", reference_id, notes, actor
            )
            self.recompute_derived()

        self.raise_(
            StockReleased(
                stock_id=str(self.id),
                quantity=quantity,
                reserved_stock=self.reserved_stock,
                available_stock=self.available_stock,
                reference_id=str(reference_id) if reference_id is not None else None,
                occurred_at=occurred_at,
            )
        )

    def adjust_stock(self, new_quantity, reason, notes=None, actor=None):
        """Set on-hand stock to a counted value. Reserved stock is untouched."""
        if isinstance(new_quantity, bool) or not isinstance(new_quantity, int) or new_quantity < 0:
            raise InvalidQuantity(new_quantity, f"Adjusted quantity cannot be negative, got {new_quantity}")
        if not reason:
            raise ValidationError({"reason": ["Reason is required for stock adjustments"]})

        previous = self.current_stock
        delta = new_quantity - previous
        with atomic_change(self):
            self.current_stock = new_quantity
            occurred_at = self._record_movement(MovementType.ADJUSTMENT, abs(delta), delta, reason, None, notes, actor)
            self.recompute_derived()

        self.raise_(
            StockAdjusted(
                stock_id=str(self.id),
                previous_stock=previous,
                current_stock=new_quantity,
                delta=delta,
                reason=reason,
                occurred_at=occurred_at,
            )
        )

    # -------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------
    def update_settings(self, minimum_stock=None, maximum_stock=None):
        if minimum_stock is not None and minimum_stock < 0:
            raise ValidationError({"minimum_stock": ["Minimum stock cannot be negative"]})

        with atomic_change(self):
            if minimum_stock is not None:
                self.minimum_stock = minimum_stock
            if maximum_stock is not None:
                self.maximum_stock = maximum_stock
            self.updated_at = datetime.now(UTC)
            self.recompute_derived()

    def mark_backordered(self):
        """Flag an empty record as backordered. Cleared by the next restock."""
        if self.available_stock != 0:
            raise ValidationError({"status": ["Only records with no available stock can be backordered"]})

        previous_status = self.status
        self.status = StockStatus.BACKORDERED.value
        self.updated_at = datetime.now(UTC)
        if previous_status != self.status:
            self.raise_(
                StockStatusChanged(
                    stock_id=str(self.id),
                    previous_status=previous_status,
                    new_status=self.status,
                    available_stock=0,
                    occurred_at=self.updated_at,
                )
            )

    def deactivate(self):
        self.is_active = False
        self.updated_at = datetime.now(UTC)

    def matches(self, product_id, variant_id=None, location_id=None):
        """True if this record is the one stored under the given natural key."""
        return (
            str(self.product_id) == str(product_id)
            and _optional(self.variant_id) == _optional(variant_id)
            and _optional(self.location_id) == _optional(location_id)
        )


def _optional(value):
    return str(value) if value not in (None, "") else None
