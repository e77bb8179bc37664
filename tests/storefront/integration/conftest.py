import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from storefront.api import (
    cart_router,
    maintenance_router,
    order_router,
    register_storefront_exception_handlers,
    stock_router,
)


@pytest.fixture()
def client(tokens, catalog, locations):
    app = FastAPI()
    app.include_router(stock_router)
    app.include_router(cart_router)
    app.include_router(order_router)
    app.include_router(maintenance_router)
    register_storefront_exception_handlers(app)
    return TestClient(app)
