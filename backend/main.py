"""
Storyline FastAPI application.

Entry point for the API server.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from backend import db
from backend.config import settings
from backend.routes import projects as project_routes
from backend.routes import responses as response_routes
from backend.routes import tree as tree_routes
from engine.tree.errors import (
    DuplicateName,
    InvalidLink,
    InvalidMove,
    LinkedNodeError,
    NotFound,
    ResponseCollectionError,
    StorageError,
    TreeError,
)

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[TreeError], int] = {
    DuplicateName: status.HTTP_400_BAD_REQUEST,
    InvalidMove: status.HTTP_400_BAD_REQUEST,
    InvalidLink: status.HTTP_400_BAD_REQUEST,
    NotFound: status.HTTP_404_NOT_FOUND,
    LinkedNodeError: status.HTTP_409_CONFLICT,
    StorageError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ResponseCollectionError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Handles startup and shutdown logic:
    - Initialize database pool
    - Close database pool on shutdown
    """
    await db.init_pool()
    logger.info("Database pool initialized")

    yield

    await db.close_pool()
    logger.info("Database pool closed")


app = FastAPI(
    title="Storyline",
    docs_url=None,
    redoc_url=None,
    lifespan=lifespan,
)

# Register routes
app.include_router(project_routes.router)
app.include_router(tree_routes.router)
app.include_router(response_routes.router)


@app.exception_handler(TreeError)
async def tree_error_handler(request: Request, exc: TreeError) -> JSONResponse:
    """Translate tree command failures into HTTP errors. Never retried here."""
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    if status_code >= 500:
        logger.error("tree: %s %s failed: %r", request.method, request.url.path, exc.__cause__ or exc)
    content: dict[str, object] = {"detail": str(exc), "code": exc.code}
    if isinstance(exc, LinkedNodeError):
        content["reason"] = exc.reason.value
    if isinstance(exc, ResponseCollectionError):
        content["orphan_events"] = sorted(exc.orphan_events)
    return JSONResponse(status_code=status_code, content=content)


@app.get("/health")
async def health():
    """Health check endpoint for uptime monitoring."""
    return {"status": "ok"}
