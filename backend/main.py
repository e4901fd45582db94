"""
Preview compile authority — FastAPI application.

Entry point for the API server:
    python -m backend
    uvicorn backend.main:app
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from backend.routes import preview as preview_routes
from backend.routes import ws as ws_routes

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Preview Compile Authority",
    docs_url=None,
    redoc_url=None,
)

# Register routes
app.include_router(preview_routes.router)
app.include_router(ws_routes.router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies and path params are a 400, not a 422."""
    logger.info("main: bad request %s %s: %s", request.method, request.url.path, exc.errors()[:1])
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid request."},
    )


@app.get("/health")
async def health():
    """Health check endpoint for uptime monitoring."""
    return {"status": "ok"}
