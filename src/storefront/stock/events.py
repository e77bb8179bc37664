"""Domain events for the StockRecord aggregate.

Each event is an immutable fact about one stock record. Quantity events carry
the counters after the change so consumers never need to re-read the record.
"""

from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="StockRecord")
class StockRecordCreated:
    """A stock record was opened for a product (variant) at a location."""

    __version__ = 1

    stock_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    location_id = Identifier()
    current_stock = Integer(required=True)
    created_at = DateTime(required=True)


@storefront.event(part_of="StockRecord")
class StockAdded:
    """Units were received into stock."""

    __version__ = 1

    stock_id = Identifier(required=True)
    quantity = Integer(required=True)
    current_stock = Integer(required=True)
    available_stock = Integer(required=True)
    reference_id = String()
    occurred_at = DateTime(required=True)


@storefront.event(part_of="StockRecord")
class StockRemoved:
    """Units left stock (sale, shipment, write-off)."""

    __version__ = 1

    stock_id = Identifier(required=True)
    quantity = Integer(required=True)
    current_stock = Integer(required=True)
    available_stock = Integer(required=True)
    reference_id = String()
    occurred_at = DateTime(required=True)


@storefront.event(part_of="StockRecord")
class StockReserved:
    """Units were held against an order."""

    __version__ = 1

    stock_id = Identifier(required=True)
    quantity = Integer(required=True)
    reserved_stock = Integer(required=True)
    available_stock = Integer(required=True)
    reference_id = String(required=True)
    occurred_at = DateTime(required=True)


@storefront.event(part_of="StockRecord")
class StockReleased:
    """A hold on units was released."""

    __version__ = 1

    stock_id = Identifier(required=True)
    quantity = Integer(required=True)
    reserved_stock = Integer(required=True)
    available_stock = Integer(required=True)
    reference_id = String()
    occurred_at = DateTime(required=True)


@storefront.event(part_of="StockRecord")
class StockAdjusted:
    """On-hand stock was set to a counted value."""

    __version__ = 1

    stock_id = Identifier(required=True)
    previous_stock = Integer(required=True)
    current_stock = Integer(required=True)
    delta = Integer(required=True)
    reason = String(required=True)
    occurred_at = DateTime(required=True)


@storefront.event(part_of="StockRecord")
class StockStatusChanged:
    """The derived stock status moved to a different band."""

    __version__ = 1

    stock_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    available_stock = Integer(required=True)
    occurred_at = DateTime(required=True)
