import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from logistics.api.errors import register_error_handlers
from logistics.api.routes import order_router, return_router, sub_order_router, webhook_router


@pytest.fixture()
def client(services):
    app = FastAPI()
    app.state.services = services
    for router in (webhook_router, order_router, sub_order_router, return_router):
        app.include_router(router)
    register_error_handlers(app)
    return TestClient(app)
