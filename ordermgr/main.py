# ordermgr/main.py
"""
Arranque: `uvicorn ordermgr.main:create_app --factory` o `python -m ordermgr.main`.
Importar este modulo no lee el entorno ni configura logging.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ordermgr.config import Settings
from ordermgr.core.errors import OrderServiceError, ValidationError
from ordermgr.routers import customers, health, orders, products
from ordermgr.storage.db import Database
from ordermgr.utils.logger import setup_logging

log = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """
    Construye la app. `database` permite inyectar otro handle (tests); si no,
    se crea uno a partir de la configuracion. El engine se crea en el primer uso.
    """
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level, settings.log_file)
    database = database or Database.from_settings(settings)

    # --- Lifespan ---
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.create_schema:
            database.create_schema()
            log.info("[startup] Tablas creadas (si no existian).")
        yield
        database.dispose()
        log.info("[shutdown] Pool de conexiones cerrado.")

    app = FastAPI(
        title="Order Management API",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.database = database
    app.state.settings = settings

    @app.exception_handler(OrderServiceError)
    async def order_service_error_handler(request: Request, exc: OrderServiceError):
        if exc.status_code >= 500:
            log.error(f"{request.method} {request.url.path} -> {exc.kind}: {exc.__cause__!r}")
        else:
            log.info(f"{request.method} {request.url.path} -> {exc.kind}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        # cuerpo que no es JSON o no es un objeto, o parametro de query invalido
        first = exc.errors()[0] if exc.errors() else {}
        loc = [str(part) for part in first.get("loc", ("body",))]
        field = "body" if not loc or loc[0] == "body" else ".".join(loc[1:]) or loc[0]
        error = ValidationError(field, first.get("msg", "invalid request"))
        log.info(f"{request.method} {request.url.path} -> {error.kind}: {error.message}")
        return JSONResponse(status_code=error.status_code, content={"error": error.to_dict()})

    # --- Routers ---
    app.include_router(health.router)
    app.include_router(orders.router)
    app.include_router(customers.router)
    app.include_router(products.router)

    @app.get("/")
    async def root():
        return {"message": "Order Management API en linea"}

    return app


if __name__ == "__main__":
    uvicorn.run(create_app, factory=True, host="0.0.0.0", port=8000)
