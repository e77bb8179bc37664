from storefront.api.errors import register_storefront_exception_handlers
from storefront.api.routes import cart_router, maintenance_router, order_router, stock_router

__all__ = [
    "cart_router",
    "maintenance_router",
    "order_router",
    "register_storefront_exception_handlers",
    "stock_router",
]
