# order_service/api/__init__.py
from fastapi import FastAPI

from order_service.api.errors import register_exception_handlers
from order_service.api.routers import admin_orders, carts, health, orders, stats


def include_routers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.include_router(health.router)
    app.include_router(carts.router)
    app.include_router(orders.router)
    app.include_router(admin_orders.router)
    app.include_router(stats.router)
