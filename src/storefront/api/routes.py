"""FastAPI routes for the storefront: stock, cart and orders."""

from fastapi import APIRouter, Depends
from protean.utils.globals import current_domain

from storefront.api.dependencies import (
    checkout,
    get_current_admin,
    get_current_principal,
    order_lifecycle,
    stock_ledger,
    stock_queries,
)
from storefront.api.schemas import (
    AddCartItemRequest,
    AddressSchema,
    AddStockRequest,
    AdjustStockRequest,
    ApplyCouponRequest,
    BulkStockUpdateRequest,
    BulkStockUpdateResponse,
    CartContainsResponse,
    CartCouponResponse,
    CartLineResponse,
    CartResponse,
    CartSummaryResponse,
    CreateStockRecordRequest,
    DetectAbandonedCartsRequest,
    DetectAbandonedCartsResponse,
    FinancialsResponse,
    LocationAvailabilityResponse,
    OrderLineResponse,
    OrderResponse,
    PlaceOrderRequest,
    ProductAvailabilityResponse,
    ReasonRequest,
    ReleaseStockRequest,
    RemoveStockRequest,
    ReserveStockRequest,
    SetChargesRequest,
    StatusChangeResponse,
    StockErrorResponse,
    StockMovementResponse,
    StockRecordResponse,
    StockSettingsRequest,
    StockValuationResponse,
    TransitionResponse,
    UpdateCartItemRequest,
    UpdateOrderStatusRequest,
    UpdatePaymentRequest,
    UpdateTrackingRequest,
)
from storefront.cart.abandonment import DetectAbandonedCarts
from storefront.cart.cart import Cart
from storefront.cart.coupons import ApplyCartCoupon, RemoveCartCoupon
from storefront.cart.items import AddCartItem, ClearCart, RemoveCartItem, UpdateCartItemQuantity
from storefront.cart.management import CreateCart, SetCartCharges
from storefront.collaborators import Principal, get_catalog
from storefront.errors import NotFound


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------
def _stock_view(record) -> StockRecordResponse:
    return StockRecordResponse(
        stock_id=str(record.id),
        product_id=str(record.product_id),
        variant_id=record.variant_id,
        location_id=record.location_id,
        sku=record.sku,
        current_stock=record.current_stock,
        reserved_stock=record.reserved_stock,
        available_stock=record.available_stock,
        minimum_stock=record.minimum_stock,
        maximum_stock=record.maximum_stock,
        average_cost=record.average_cost or 0.0,
        last_cost=record.last_cost or 0.0,
        status=record.status,
        is_active=record.is_active,
        revision=record.revision,
    )


def _cart_view(cart) -> CartResponse:
    return CartResponse(
        cart_id=str(cart.id),
        user_id=str(cart.user_id),
        status=cart.status,
        is_active=cart.is_active,
        lines=[
            CartLineResponse(
                line_id=str(line.id),
                product_id=str(line.product_id),
                variant_id=line.variant_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total_price=line.total_price,
                product_name=line.product_name,
                product_image=line.product_image,
                product_sku=line.product_sku,
            )
            for line in cart.ordered_lines()
        ],
        coupons=[
            CartCouponResponse(
                code=coupon.code,
                discount_type=coupon.discount_type,
                value=coupon.value,
                discount_amount=coupon.discount_amount,
            )
            for coupon in cart.ordered_coupons()
        ],
        totals=CartSummaryResponse(**cart.summary()),
        updated_at=cart.updated_at,
    )


def _address_view(address) -> AddressSchema:
    return AddressSchema(
        street=address.street,
        city=address.city,
        state=address.state,
        country=address.country,
        postal_code=address.postal_code,
        landmark=address.landmark,
        contact_name=address.contact_name,
        contact_phone=address.contact_phone,
    )


def _order_view(order) -> OrderResponse:
    financials = order.financials
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        user_id=str(order.user_id),
        order_status=order.order_status,
        payment_status=order.payment_status,
        payment_method=order.payment_method,
        lines=[
            OrderLineResponse(
                line_id=str(line.id),
                product_id=str(line.product_id),
                variant_id=line.variant_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total_price=line.total_price,
                product_name=line.product_name,
                product_image=line.product_image,
                product_sku=line.product_sku,
            )
            for line in order.ordered_lines()
        ],
        financials=FinancialsResponse(
            subtotal=financials.subtotal,
            discount=financials.discount,
            tax=financials.tax,
            shipping=financials.shipping,
            total=financials.total,
            currency=financials.currency,
        ),
        billing_address=_address_view(order.billing_address),
        shipping_address=_address_view(order.shipping_address),
        applied_coupons=order.coupons(),
        status_history=[
            StatusChangeResponse(
                status=entry.status,
                note=entry.note,
                changed_by=entry.changed_by,
                changed_at=entry.changed_at,
            )
            for entry in order.history()
        ],
        tracking_number=order.tracking_number,
        shipping_provider=order.shipping_provider,
        estimated_delivery_time=order.estimated_delivery_time,
        actual_delivery_date=order.actual_delivery_date,
        total_items=order.total_items(),
        placed_at=order.placed_at,
    )


def _transition_view(result) -> TransitionResponse:
    return TransitionResponse(
        order=_order_view(result.order),
        stock_errors=[StockErrorResponse(**vars(error)) for error in result.stock_errors],
    )


# ---------------------------------------------------------------------------
# Stock Router (administrators only)
# ---------------------------------------------------------------------------
stock_router = APIRouter(prefix="/stock", tags=["stock"], dependencies=[Depends(get_current_admin)])


@stock_router.post("", status_code=201, response_model=StockRecordResponse)
async def create_stock_record(
    body: CreateStockRecordRequest, admin: Principal = Depends(get_current_admin)
) -> StockRecordResponse:
    record = stock_ledger().create_record(
        product_id=body.product_id,
        variant_id=body.variant_id,
        location_id=body.location_id,
        sku=body.sku,
        initial_stock=body.initial_stock,
        minimum_stock=body.minimum_stock,
        maximum_stock=body.maximum_stock,
        unit_cost=body.unit_cost,
        actor=admin.user_id,
    )
    return _stock_view(record)


@stock_router.get("/low-stock", response_model=list[StockRecordResponse])
async def list_low_stock(location_id: str | None = None) -> list[StockRecordResponse]:
    return [_stock_view(record) for record in stock_queries().low_stock(location_id)]


@stock_router.get("/out-of-stock", response_model=list[StockRecordResponse])
async def list_out_of_stock(location_id: str | None = None) -> list[StockRecordResponse]:
    return [_stock_view(record) for record in stock_queries().out_of_stock(location_id)]


@stock_router.get("/valuation", response_model=StockValuationResponse)
async def stock_valuation(location_id: str | None = None) -> StockValuationResponse:
    valuation = stock_queries().valuation(location_id)
    return StockValuationResponse(
        total_value=valuation.total_value,
        total_items=valuation.total_items,
        total_quantity=valuation.total_quantity,
    )


@stock_router.post("/bulk", response_model=BulkStockUpdateResponse)
async def bulk_update_stock(
    body: BulkStockUpdateRequest, admin: Principal = Depends(get_current_admin)
) -> BulkStockUpdateResponse:
    outcome = stock_ledger().bulk_apply(
        [update.model_dump(mode="json") for update in body.updates], actor=admin.user_id
    )
    return BulkStockUpdateResponse(
        successful=outcome.successful,
        failed=outcome.failed,
        results=outcome.results,
        errors=outcome.errors,
    )


@stock_router.get("/product/{product_id}", response_model=ProductAvailabilityResponse)
async def product_availability(
    product_id: str, variant_id: str | None = None, location_id: str | None = None
) -> ProductAvailabilityResponse:
    availability = stock_queries().availability(product_id, variant_id, location_id)
    return ProductAvailabilityResponse(
        product_id=availability.product_id,
        total_stock=availability.total_stock,
        total_reserved=availability.total_reserved,
        total_available=availability.total_available,
        location_count=availability.location_count,
        locations=[LocationAvailabilityResponse(**vars(entry)) for entry in availability.locations],
    )


@stock_router.get("/{stock_id}", response_model=StockRecordResponse)
async def get_stock_record(stock_id: str) -> StockRecordResponse:
    return _stock_view(stock_ledger().get(stock_id))


@stock_router.get("/{stock_id}/movements", response_model=list[StockMovementResponse])
async def list_movements(stock_id: str, limit: int = 50) -> list[StockMovementResponse]:
    return [
        StockMovementResponse(
            movement_type=movement.movement_type,
            quantity=movement.quantity,
            delta=movement.delta,
            reason=movement.reason,
            reference_id=movement.reference_id,
            performed_by=movement.performed_by,
            notes=movement.notes,
            occurred_at=movement.occurred_at,
            sequence=movement.sequence,
        )
        for movement in stock_queries().movements(stock_id, limit=limit)
    ]


@stock_router.post("/{stock_id}/add", response_model=StockRecordResponse)
async def add_stock(
    stock_id: str, body: AddStockRequest, admin: Principal = Depends(get_current_admin)
) -> StockRecordResponse:
    record = stock_ledger().add_stock(
        stock_id,
        body.quantity,
        reason=body.reason,
        reference_id=body.reference_id,
        notes=body.notes,
        actor=admin.user_id,
        unit_cost=body.unit_cost,
    )
    return _stock_view(record)


@stock_router.post("/{stock_id}/remove", response_model=StockRecordResponse)
async def remove_stock(
    stock_id: str, body: RemoveStockRequest, admin: Principal = Depends(get_current_admin)
) -> StockRecordResponse:
    record = stock_ledger().remove_stock(
        stock_id,
        body.quantity,
        reason=body.reason,
        reference_id=body.reference_id,
        notes=body.notes,
        actor=admin.user_id,
    )
    return _stock_view(record)


@stock_router.post("/{stock_id}/reserve", response_model=StockRecordResponse)
async def reserve_stock(
    stock_id: str, body: ReserveStockRequest, admin: Principal = Depends(get_current_admin)
) -> StockRecordResponse:
    record = stock_ledger().reserve_stock(
        stock_id, body.quantity, reference_id=body.reference_id, notes=body.notes, actor=admin.user_id
    )
    return _stock_view(record)


@stock_router.post("/{stock_id}/release", response_model=StockRecordResponse)
async def release_stock(
    stock_id: str, body: ReleaseStockRequest, admin: Principal = Depends(get_current_admin)
) -> StockRecordResponse:
    record = stock_ledger().release_stock(
        stock_id, body.quantity, reference_id=body.reference_id, notes=body.notes, actor=admin.user_id
    )
    return _stock_view(record)


@stock_router.post("/{stock_id}/adjust", response_model=StockRecordResponse)
async def adjust_stock(
    stock_id: str, body: AdjustStockRequest, admin: Principal = Depends(get_current_admin)
) -> StockRecordResponse:
    record = stock_ledger().adjust_stock(
        stock_id, body.new_quantity, reason=body.reason, notes=body.notes, actor=admin.user_id
    )
    return _stock_view(record)


@stock_router.patch("/{stock_id}/settings", response_model=StockRecordResponse)
async def update_stock_settings(stock_id: str, body: StockSettingsRequest) -> StockRecordResponse:
    record = stock_ledger().update_settings(
        stock_id, minimum_stock=body.minimum_stock, maximum_stock=body.maximum_stock
    )
    return _stock_view(record)


@stock_router.post("/{stock_id}/backorder", response_model=StockRecordResponse)
async def mark_backordered(stock_id: str) -> StockRecordResponse:
    return _stock_view(stock_ledger().mark_backordered(stock_id))


@stock_router.post("/{stock_id}/deactivate", response_model=StockRecordResponse)
async def deactivate_stock_record(stock_id: str) -> StockRecordResponse:
    return _stock_view(stock_ledger().deactivate(stock_id))


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


def _active_cart_id(principal: Principal) -> str:
    """The caller's active cart, created on first use."""
    return current_domain.process(CreateCart(user_id=principal.user_id), asynchronous=False)


def _load_cart(cart_id, principal: Principal):
    return current_domain.repository_for(Cart).get_owned(cart_id, principal.user_id)


@cart_router.get("", response_model=CartResponse)
async def get_cart(principal: Principal = Depends(get_current_principal)) -> CartResponse:
    return _cart_view(_load_cart(_active_cart_id(principal), principal))


@cart_router.get("/summary", response_model=CartSummaryResponse)
async def get_cart_summary(principal: Principal = Depends(get_current_principal)) -> CartSummaryResponse:
    cart = _load_cart(_active_cart_id(principal), principal)
    return CartSummaryResponse(**cart.summary())


@cart_router.get("/contains", response_model=CartContainsResponse)
async def cart_contains(
    product_id: str, variant_id: str | None = None, principal: Principal = Depends(get_current_principal)
) -> CartContainsResponse:
    cart = current_domain.repository_for(Cart).find_active_for(principal.user_id)
    if cart is None or not cart.has_product(product_id, variant_id):
        return CartContainsResponse(in_cart=False, quantity=0)
    return CartContainsResponse(in_cart=True, quantity=cart.quantity_of(product_id, variant_id))


@cart_router.post("/items", response_model=CartResponse)
async def add_cart_item(
    body: AddCartItemRequest, principal: Principal = Depends(get_current_principal)
) -> CartResponse:
    snapshot = get_catalog().lookup(body.product_id, body.variant_id)
    if snapshot is None:
        raise NotFound("Product", body.product_id)

    cart_id = _active_cart_id(principal)
    command = AddCartItem(
        cart_id=cart_id,
        user_id=principal.user_id,
        product_id=body.product_id,
        variant_id=body.variant_id,
        quantity=body.quantity,
        unit_price=snapshot.unit_price,
        product_name=snapshot.name,
        product_image=snapshot.image,
        product_sku=snapshot.sku,
    )
    current_domain.process(command, asynchronous=False)
    return _cart_view(_load_cart(cart_id, principal))


@cart_router.patch("/items/{line_id}", response_model=CartResponse)
async def update_cart_item(
    line_id: str, body: UpdateCartItemRequest, principal: Principal = Depends(get_current_principal)
) -> CartResponse:
    cart_id = _active_cart_id(principal)
    command = UpdateCartItemQuantity(
        cart_id=cart_id,
        user_id=principal.user_id,
        line_id=line_id,
        quantity=body.quantity,
    )
    current_domain.process(command, asynchronous=False)
    return _cart_view(_load_cart(cart_id, principal))


@cart_router.delete("/items/{line_id}", response_model=CartResponse)
async def remove_cart_item(line_id: str, principal: Principal = Depends(get_current_principal)) -> CartResponse:
    cart_id = _active_cart_id(principal)
    current_domain.process(
        RemoveCartItem(cart_id=cart_id, user_id=principal.user_id, line_id=line_id),
        asynchronous=False,
    )
    return _cart_view(_load_cart(cart_id, principal))


@cart_router.delete("", response_model=CartResponse)
async def clear_cart(principal: Principal = Depends(get_current_principal)) -> CartResponse:
    cart_id = _active_cart_id(principal)
    current_domain.process(ClearCart(cart_id=cart_id, user_id=principal.user_id), asynchronous=False)
    return _cart_view(_load_cart(cart_id, principal))


@cart_router.post("/coupons", response_model=CartResponse)
async def apply_coupon(body: ApplyCouponRequest, principal: Principal = Depends(get_current_principal)) -> CartResponse:
    cart_id = _active_cart_id(principal)
    command = ApplyCartCoupon(
        cart_id=cart_id,
        user_id=principal.user_id,
        code=body.code,
        discount_type=body.discount_type,
        value=body.value,
    )
    current_domain.process(command, asynchronous=False)
    return _cart_view(_load_cart(cart_id, principal))


@cart_router.delete("/coupons/{code}", response_model=CartResponse)
async def remove_coupon(code: str, principal: Principal = Depends(get_current_principal)) -> CartResponse:
    cart_id = _active_cart_id(principal)
    current_domain.process(
        RemoveCartCoupon(cart_id=cart_id, user_id=principal.user_id, code=code),
        asynchronous=False,
    )
    return _cart_view(_load_cart(cart_id, principal))


@cart_router.put("/charges", response_model=CartResponse)
async def set_charges(body: SetChargesRequest, principal: Principal = Depends(get_current_principal)) -> CartResponse:
    cart_id = _active_cart_id(principal)
    command = SetCartCharges(
        cart_id=cart_id,
        user_id=principal.user_id,
        tax=body.tax,
        shipping=body.shipping,
    )
    current_domain.process(command, asynchronous=False)
    return _cart_view(_load_cart(cart_id, principal))


@cart_router.get("/abandoned", response_model=list[CartResponse], dependencies=[Depends(get_current_admin)])
async def list_abandoned_carts() -> list[CartResponse]:
    return [_cart_view(cart) for cart in current_domain.repository_for(Cart).find_abandoned()]


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderResponse)
async def place_order(body: PlaceOrderRequest, principal: Principal = Depends(get_current_principal)) -> OrderResponse:
    shipping_address = body.shipping_address or body.billing_address
    order = checkout().place_order(
        principal,
        billing_address=body.billing_address.model_dump(),
        shipping_address=shipping_address.model_dump(),
        payment_method=body.payment_method,
        shipping_method=body.shipping_method,
        special_instructions=body.special_instructions,
        gift_wrapping=body.gift_wrapping,
        gift_message=body.gift_message,
    )
    return _order_view(order)


@order_router.get("", response_model=list[OrderResponse])
async def list_orders(
    status: str | None = None, principal: Principal = Depends(get_current_principal)
) -> list[OrderResponse]:
    return [_order_view(order) for order in order_lifecycle().list_for(principal, status)]


@order_router.get("/number/{order_number}", response_model=OrderResponse)
async def get_order_by_number(
    order_number: str, principal: Principal = Depends(get_current_principal)
) -> OrderResponse:
    return _order_view(order_lifecycle().get_by_number(principal, order_number))


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, principal: Principal = Depends(get_current_principal)) -> OrderResponse:
    return _order_view(order_lifecycle().get(principal, order_id))


@order_router.post("/{order_id}/cancel", response_model=TransitionResponse)
async def cancel_order(
    order_id: str, body: ReasonRequest, principal: Principal = Depends(get_current_principal)
) -> TransitionResponse:
    return _transition_view(order_lifecycle().cancel(principal, order_id, reason=body.reason))


@order_router.post("/{order_id}/return", response_model=TransitionResponse)
async def request_return(
    order_id: str, body: ReasonRequest, principal: Principal = Depends(get_current_principal)
) -> TransitionResponse:
    return _transition_view(order_lifecycle().request_return(principal, order_id, reason=body.reason))


@order_router.put("/{order_id}/status", response_model=TransitionResponse)
async def update_order_status(
    order_id: str, body: UpdateOrderStatusRequest, admin: Principal = Depends(get_current_admin)
) -> TransitionResponse:
    return _transition_view(order_lifecycle().update_status(admin, order_id, body.status, note=body.note))


@order_router.put("/{order_id}/payment", response_model=OrderResponse)
async def update_payment(
    order_id: str, body: UpdatePaymentRequest, admin: Principal = Depends(get_current_admin)
) -> OrderResponse:
    order = order_lifecycle().update_payment(
        admin, order_id, body.payment_status, transaction_id=body.transaction_id
    )
    return _order_view(order)


@order_router.put("/{order_id}/tracking", response_model=OrderResponse)
async def update_tracking(
    order_id: str, body: UpdateTrackingRequest, admin: Principal = Depends(get_current_admin)
) -> OrderResponse:
    order = order_lifecycle().update_tracking(
        admin,
        order_id,
        tracking_number=body.tracking_number,
        shipping_provider=body.shipping_provider,
        estimated_delivery_time=body.estimated_delivery_time,
        expected_delivery_date=body.expected_delivery_date,
    )
    return _order_view(order)


# ---------------------------------------------------------------------------
# Maintenance Router (triggered by an external scheduler)
# ---------------------------------------------------------------------------
maintenance_router = APIRouter(
    prefix="/maintenance", tags=["maintenance"], dependencies=[Depends(get_current_admin)]
)


@maintenance_router.post("/detect-abandoned-carts", response_model=DetectAbandonedCartsResponse)
async def detect_abandoned_carts(body: DetectAbandonedCartsRequest) -> DetectAbandonedCartsResponse:
    command = DetectAbandonedCarts(idle_threshold_hours=body.idle_threshold_hours)
    abandoned_count = current_domain.process(command, asynchronous=False)
    return DetectAbandonedCartsResponse(abandoned_count=abandoned_count or 0)
