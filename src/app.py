"""Hubship FastAPI application.

Commerce and courier webhooks, the return/refund API and the internal order
API, all processed synchronously inside the logistics domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from logistics.api.errors import register_error_handlers
from logistics.api.lifespan import lifespan
from logistics.api.routes import order_router, return_router, sub_order_router, webhook_router
from logistics.config import Settings
from logistics.domain import logistics
from logistics.services import Services
from logistics.utils.logging import configure_logging

# PROTEAN_ENV selects the domain config overlay (e.g. "test", "production")
logistics.init()


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    settings = settings or (services.settings if services else Settings())
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Hubship API",
        description="Multi-hub order fulfillment, courier tracking and returns",
        lifespan=lifespan,
    )
    app.state.services = services or Services.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the logistics domain context for each request."""
        with logistics.domain_context():
            return await call_next(request)

    for router in (webhook_router, order_router, sub_order_router, return_router):
        app.include_router(router)
    register_error_handlers(app)

    @app.get("/health")
    async def health():
        return JSONResponse(content={"status": "ok", "domain": logistics.name, "courier_env": settings.courier_env.value})

    return app


app = create_app()
