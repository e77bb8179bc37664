"""Request dependencies: authentication and use-case wiring.

Bearer tokens are resolved through the identity collaborator. Use cases are
built per request from the current domain's repositories and the active
collaborator adapters.
"""

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.checkout.checkout import CheckoutOrchestrator
from storefront.collaborators import Principal, get_locations, get_token_resolver
from storefront.errors import AccessDenied, AuthenticationRequired
from storefront.order.lifecycle import OrderLifecycle
from storefront.order.order import Order
from storefront.stock.ledger import StockLedger
from storefront.stock.queries import StockQueries
from storefront.stock.stock import StockRecord

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal:
    if credentials is None or not credentials.credentials:
        raise AuthenticationRequired()

    principal = get_token_resolver().resolve(credentials.credentials)
    if principal is None:
        raise AuthenticationRequired("Invalid or expired token")

    structlog.contextvars.bind_contextvars(user_id=principal.user_id)
    return principal


async def get_current_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_admin:
        raise AccessDenied("Administrator role required")
    return principal


def stock_ledger() -> StockLedger:
    return StockLedger(current_domain.repository_for(StockRecord), get_locations())


def stock_queries() -> StockQueries:
    return StockQueries(current_domain.repository_for(StockRecord))


def order_lifecycle() -> OrderLifecycle:
    return OrderLifecycle(current_domain.repository_for(Order), stock_ledger())


def checkout() -> CheckoutOrchestrator:
    return CheckoutOrchestrator(
        carts=current_domain.repository_for(Cart),
        orders=current_domain.repository_for(Order),
        records=current_domain.repository_for(StockRecord),
        ledger=stock_ledger(),
    )
