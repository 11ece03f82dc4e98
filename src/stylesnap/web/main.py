"""
FastAPI application exposing style extraction over HTTP.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

import structlog
from fastapi import FastAPI, HTTPException, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from stylesnap import __version__
from stylesnap.container import DependencyContainer
from stylesnap.errors import (
    AuthenticationError,
    ExtractionError,
    ExtractionTimeoutError,
    InvalidInputError,
    NavigationError,
)
from stylesnap.observability import export_prometheus
from stylesnap.orchestrator import StyleExtractor

logger = structlog.get_logger(__name__)

ERROR_STATUS = (
    (InvalidInputError, status.HTTP_400_BAD_REQUEST),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (NavigationError, status.HTTP_502_BAD_GATEWAY),
    (ExtractionTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT),
)


class ExtractBody(BaseModel):
    url: str
    options: Dict[str, Any] = Field(default_factory=dict)


def status_for(error: ExtractionError) -> int:
    for error_type, code in ERROR_STATUS:
        if isinstance(error, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_app(
    extractor: Optional[StyleExtractor] = None,
    container: Optional[DependencyContainer] = None,
) -> FastAPI:
    """
    Build the API. With an explicit ``extractor`` the app never owns a
    browser; otherwise a container is started for the app's lifetime.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        app.state.start_time = time.time()
        app.state.container = None
        if extractor is not None:
            app.state.extractor = extractor
            yield
            return
        owned = container or DependencyContainer()
        async with owned.lifecycle():
            app.state.container = owned
            app.state.extractor = await owned.get_extractor()
            logger.info("Extraction API started")
            yield
        logger.info("Extraction API stopped")

    app = FastAPI(title="stylesnap", version=__version__, lifespan=lifespan)

    @app.post("/extract")
    async def extract(body: ExtractBody) -> Dict[str, Any]:
        try:
            snapshot = await app.state.extractor.extract(body.url, body.options)
        except ExtractionError as e:
            raise HTTPException(status_code=status_for(e), detail=e.to_dict()) from e
        return snapshot.to_dict()

    @app.get("/extractions")
    async def list_extractions() -> Dict[str, Any]:
        active = app.state.extractor.active_extractions()
        return {"count": len(active), "extractions": active}

    @app.delete("/extractions/{extraction_id}")
    async def cancel_extraction(extraction_id: str) -> Dict[str, Any]:
        if not await app.state.extractor.cancel_extraction(extraction_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown extraction id")
        return {"cancelled": extraction_id}

    @app.get("/health")
    async def health_check() -> Dict[str, Any]:
        health: Dict[str, Any] = {
            "status": "healthy",
            "timestamp": time.time(),
            "version": __version__,
            "active_extractions": len(app.state.extractor.active_extractions()),
        }
        if app.state.container is not None:
            health["container"] = app.state.container.get_health_status()
        return health

    @app.get("/metrics")
    async def get_prometheus_metrics() -> PlainTextResponse:
        return PlainTextResponse(export_prometheus())

    return app
