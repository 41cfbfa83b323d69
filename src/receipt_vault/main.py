from __future__ import annotations

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from receipt_vault.api.router import router as api_router
from receipt_vault.bootstrap import bootstrap
from receipt_vault.core.config import settings
from receipt_vault.core.errors import register_error_handlers
from receipt_vault.core.logging import RequestContextMiddleware


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(_: FastAPI):
        bootstrap()
        yield

    app = FastAPI(title="Receipt Vault", version="0.1.0", lifespan=lifespan)
    app.add_middleware(RequestContextMiddleware)
    register_error_handlers(app)
    app.include_router(api_router)
    return app


app = create_app()


def serve() -> None:
    uvicorn.run("receipt_vault.main:app", host=settings.host, port=settings.port)
