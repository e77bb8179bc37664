"""BDD tests for cancelling, shipping and returning orders."""

from pytest_bdd import given, parsers, scenarios, when

from storefront.errors import StorefrontError

scenarios("features/order_fulfilment.feature")


@given("the customer has placed an order", target_fixture="order")
def placed_order(checkout, customer, address):
    return checkout.place_order(customer, address, address, payment_method="card")


@given(parsers.cfparse('the order moves through "{statuses}"'))
@when(parsers.cfparse('the order moves through "{statuses}"'))
def order_moves_through(lifecycle, admin, order, statuses):
    for status in statuses.split(","):
        lifecycle.update_status(admin, order.id, status.strip())


@when("the customer cancels the order")
def customer_cancels(lifecycle, customer, order, error):
    try:
        lifecycle.cancel(customer, order.id, reason="No longer needed")
    except StorefrontError as exc:
        error["exc"] = exc


@when("the customer requests a return")
def customer_returns(lifecycle, customer, order, error):
    try:
        lifecycle.request_return(customer, order.id, reason="Wrong size")
    except StorefrontError as exc:
        error["exc"] = exc
