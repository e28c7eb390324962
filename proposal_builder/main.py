from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from sqlalchemy.exc import SQLAlchemyError

from proposal_builder.answers import DEFAULT_STEPS
from proposal_builder.config import settings
from proposal_builder.db import StoreConfigurationError, init_db
from proposal_builder.routers import clients, proposals, share
from proposal_builder.schemas import StepResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _app_lifespan(_app: FastAPI) -> AsyncIterator[None]:
    try:
        init_db()
    except StoreConfigurationError as exc:
        # Public share links still answer with a 500 body instead of the app failing to boot.
        logger.error("Database is not configured", extra={"error": str(exc)})
    yield


def create_app() -> FastAPI:
    logging.getLogger("proposal_builder").setLevel(settings.LOG_LEVEL.upper())

    app = FastAPI(
        title="Proposal Builder API",
        default_response_class=ORJSONResponse,
        lifespan=_app_lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=sorted(set(settings.BACKEND_CORS_ORIGINS)),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StoreConfigurationError)
    async def store_configuration_error_handler(
        _request: Request, exc: StoreConfigurationError
    ) -> ORJSONResponse:
        return ORJSONResponse(status_code=500, content={"detail": str(exc)})

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(_request: Request, exc: SQLAlchemyError) -> ORJSONResponse:
        logger.exception("Database error", exc_info=exc)
        return ORJSONResponse(status_code=500, content={"detail": "Database query failed."})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("Unhandled server exception", exc_info=exc)
        return ORJSONResponse(status_code=500, content={"detail": "Internal server error."})

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/steps", response_model=list[StepResponse])
    async def list_steps() -> list[StepResponse]:
        return [StepResponse.from_step(step) for step in DEFAULT_STEPS]

    app.include_router(clients.router)
    app.include_router(proposals.router)
    app.include_router(share.router)

    return app


app = create_app()
