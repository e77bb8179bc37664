"""Pydantic request/response schemas for the storefront API.

These are external contracts, kept separate from the aggregates and commands.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Stock
# ---------------------------------------------------------------------------
class CreateStockRecordRequest(BaseModel):
    product_id: str
    variant_id: str | None = None
    location_id: str | None = None
    sku: str | None = None
    initial_stock: int = Field(default=0, ge=0)
    minimum_stock: int | None = Field(default=None, ge=0)
    maximum_stock: int | None = Field(default=None, ge=0)
    unit_cost: float | None = Field(default=None, ge=0)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product_id": "prod-001",
                    "variant_id": "var-001",
                    "location_id": "wh-east",
                    "sku": "TSHIRT-BLK-M",
                    "initial_stock": 100,
                    "minimum_stock": 10,
                    "unit_cost": 4.5,
                }
            ]
        }
    }


class AddStockRequest(BaseModel):
    quantity: int
    reason: str | None = None
    reference_id: str | None = None
    notes: str | None = None
    unit_cost: float | None = Field(default=None, ge=0)


class RemoveStockRequest(BaseModel):
    quantity: int
    reason: str | None = None
    reference_id: str | None = None
    notes: str | None = None


class ReserveStockRequest(BaseModel):
    quantity: int
    reference_id: str
    notes: str | None = None


class ReleaseStockRequest(BaseModel):
    quantity: int
    reference_id: str | None = None
    notes: str | None = None


class AdjustStockRequest(BaseModel):
    new_quantity: int
    reason: str
    notes: str | None = None


class StockSettingsRequest(BaseModel):
    minimum_stock: int | None = Field(default=None, ge=0)
    maximum_stock: int | None = Field(default=None, ge=0)


class StockMovementResponse(BaseModel):
    movement_type: str
    quantity: int
    delta: int
    reason: str | None = None
    reference_id: str | None = None
    performed_by: str | None = None
    notes: str | None = None
    occurred_at: datetime
    sequence: int


class StockRecordResponse(BaseModel):
    stock_id: str
    product_id: str
    variant_id: str | None = None
    location_id: str | None = None
    sku: str | None = None
    current_stock: int
    reserved_stock: int
    available_stock: int
    minimum_stock: int
    maximum_stock: int | None = None
    average_cost: float
    last_cost: float
    status: str
    is_active: bool
    revision: int


class LocationAvailabilityResponse(BaseModel):
    stock_id: str
    location_id: str | None = None
    variant_id: str | None = None
    current_stock: int
    reserved_stock: int
    available_stock: int
    status: str


class ProductAvailabilityResponse(BaseModel):
    product_id: str
    total_stock: int
    total_reserved: int
    total_available: int
    location_count: int
    locations: list[LocationAvailabilityResponse]


class StockValuationResponse(BaseModel):
    total_value: float
    total_items: int
    total_quantity: int


class BulkStockOperation(str, Enum):
    ADD = "add"
    REMOVE = "remove"
    RESERVE = "reserve"
    RELEASE = "release"
    ADJUST = "adjust"


class BulkStockUpdateItem(BaseModel):
    stock_id: str
    operation: BulkStockOperation
    quantity: int | None = None
    new_quantity: int | None = None
    reason: str | None = None
    reference_id: str | None = None
    notes: str | None = None
    unit_cost: float | None = Field(default=None, ge=0)


class BulkStockUpdateRequest(BaseModel):
    updates: list[BulkStockUpdateItem] = Field(min_length=1)


class BulkStockResult(BaseModel):
    stock_id: str
    operation: str
    current_stock: int
    reserved_stock: int
    available_stock: int


class BulkStockUpdateResponse(BaseModel):
    successful: int
    failed: int
    results: list[BulkStockResult]
    errors: list[dict]


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddCartItemRequest(BaseModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = 1


class UpdateCartItemRequest(BaseModel):
    quantity: int


class ApplyCouponRequest(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    discount_type: str = "percentage"
    value: float = Field(default=10.0, ge=0)


class SetChargesRequest(BaseModel):
    tax: float | None = Field(default=None, ge=0)
    shipping: float | None = Field(default=None, ge=0)


class DetectAbandonedCartsRequest(BaseModel):
    idle_threshold_hours: int | None = Field(default=None, ge=1)


class DetectAbandonedCartsResponse(BaseModel):
    abandoned_count: int


class CartLineResponse(BaseModel):
    line_id: str
    product_id: str
    variant_id: str | None = None
    quantity: int
    unit_price: float
    total_price: float
    product_name: str | None = None
    product_image: str | None = None
    product_sku: str | None = None


class CartCouponResponse(BaseModel):
    code: str
    discount_type: str
    value: float
    discount_amount: float


class CartSummaryResponse(BaseModel):
    item_count: int
    subtotal: float
    discount: float
    tax: float
    shipping: float
    total: float


class CartContainsResponse(BaseModel):
    in_cart: bool
    quantity: int


class CartResponse(BaseModel):
    cart_id: str
    user_id: str
    status: str
    is_active: bool
    lines: list[CartLineResponse]
    coupons: list[CartCouponResponse]
    totals: CartSummaryResponse
    updated_at: datetime | None = None


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    street: str
    city: str
    state: str | None = None
    country: str
    postal_code: str
    landmark: str | None = None
    contact_name: str | None = None
    contact_phone: str | None = None


class PlaceOrderRequest(BaseModel):
    billing_address: AddressSchema
    shipping_address: AddressSchema | None = None  # Defaults to the billing address
    payment_method: str | None = None
    shipping_method: str | None = None
    special_instructions: str | None = Field(default=None, max_length=1000)
    gift_wrapping: bool = False
    gift_message: str | None = Field(default=None, max_length=500)


class ReasonRequest(BaseModel):
    reason: str | None = None


class UpdateOrderStatusRequest(BaseModel):
    status: str
    note: str | None = None


class UpdatePaymentRequest(BaseModel):
    payment_status: str
    transaction_id: str | None = None


class UpdateTrackingRequest(BaseModel):
    tracking_number: str | None = None
    shipping_provider: str | None = None
    estimated_delivery_time: str | None = None
    expected_delivery_date: datetime | None = None


class OrderLineResponse(BaseModel):
    line_id: str
    product_id: str
    variant_id: str | None = None
    quantity: int
    unit_price: float
    total_price: float
    product_name: str | None = None
    product_image: str | None = None
    product_sku: str | None = None


class StatusChangeResponse(BaseModel):
    status: str
    note: str | None = None
    changed_by: str | None = None
    changed_at: datetime


class FinancialsResponse(BaseModel):
    subtotal: float
    discount: float
    tax: float
    shipping: float
    total: float
    currency: str


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    user_id: str
    order_status: str
    payment_status: str
    payment_method: str | None = None
    lines: list[OrderLineResponse]
    financials: FinancialsResponse
    billing_address: AddressSchema
    shipping_address: AddressSchema
    applied_coupons: list[dict]
    status_history: list[StatusChangeResponse]
    tracking_number: str | None = None
    shipping_provider: str | None = None
    estimated_delivery_time: str | None = None
    actual_delivery_date: datetime | None = None
    total_items: int
    placed_at: datetime | None = None


class StockErrorResponse(BaseModel):
    line_id: str
    product_id: str
    stock_id: str | None = None
    error: str
    message: str


class TransitionResponse(BaseModel):
    order: OrderResponse
    stock_errors: list[StockErrorResponse]
