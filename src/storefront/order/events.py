"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderPlaced:
    """A cart was checked out into a new order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    user_id = Identifier(required=True)
    line_count = Integer(required=True)
    total = Float(required=True)
    currency = String(required=True)
    placed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderStatusChanged:
    """The order moved along its status state machine."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    note = String()
    changed_by = Identifier()
    changed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderPaymentUpdated:
    """The payment status of the order changed."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    transaction_id = String()
    changed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderTrackingUpdated:
    """Shipment tracking details were recorded on the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    tracking_number = String()
    shipping_provider = String()
    estimated_delivery_time = String()
    updated_at = DateTime(required=True)
