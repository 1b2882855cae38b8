"""Top level API router registration."""
from fastapi import APIRouter, FastAPI

from street_payments.api.routes import health, payments


def register_routes(application: FastAPI) -> None:
    """Register all API routers with the FastAPI application."""
    api_router = APIRouter(prefix="/api")

    api_router.include_router(health.router, tags=["health"])
    api_router.include_router(payments.router, tags=["payments"])

    application.include_router(api_router)


__all__ = ["register_routes"]
