"""
GHOST Executor API Server - FastAPI

Endpoints:
- GET  /health             Heartbeat
- GET  /status             Watch loop + executor status
- POST /api/upload-image   Relay a multipart upload to Pinata (IPFS)

The relay keeps PINATA_JWT server-side; the frontend only ever talks to us.
It has no lifecycle logic and never touches the watcher.
"""

import os
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger("ghost.api")


# ============================================================
# MODELS
# ============================================================

class HealthResponse(BaseModel):
    status: str = "ok"
    watcher: bool = False


class StatusResponse(BaseModel):
    scheduler: Optional[dict] = None
    executor: Optional[dict] = None


class UploadResponse(BaseModel):
    url: str
    hash: str


def _error(status_code: int, error: str, detail: Optional[str] = None) -> JSONResponse:
    body = {"error": error}
    if detail is not None:
        body["detail"] = detail
    return JSONResponse(status_code=status_code, content=body)


# ============================================================
# APP FACTORY
# ============================================================

def create_app(
    scheduler=None,
    executor=None,
    pinning_client=None,
    lifespan=None,
) -> FastAPI:
    """
    Create the FastAPI app.

    scheduler: ScanScheduler (optional, None for relay-only deployments)
    executor:  ChainExecutor, for /status
    pinning_client: PinataClient; None or unconfigured -> relay answers 500
    lifespan: async context manager that starts/stops the watch loop
    """
    app = FastAPI(
        title="GHOST executor",
        description="Dead-man's switch watcher for the GHOST protocol.",
        version="0.1.0",
        lifespan=lifespan,
    )

    cors_origins = os.getenv("CORS_ORIGINS", "*").split(",")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_methods=["POST", "OPTIONS", "GET"],
        allow_headers=["Content-Type"],
    )

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(watcher=scheduler is not None)

    @app.get("/status", response_model=StatusResponse)
    async def status():
        return StatusResponse(
            scheduler=scheduler.get_status() if scheduler else None,
            executor=executor.get_status() if executor else None,
        )

    @app.post("/api/upload-image", response_model=UploadResponse)
    async def upload_image(request: Request):
        if pinning_client is None or not pinning_client.configured:
            return _error(500, "Pinata JWT not configured")

        content_type = request.headers.get("content-type", "")
        if "multipart/form-data" not in content_type:
            return _error(400, "Expected multipart/form-data")

        try:
            body = await request.body()
            result = await pinning_client.pin_file(body, content_type)
        except Exception as e:
            logger.error(f"Upload error: {e}")
            return _error(500, str(e))

        if not result.success:
            return _error(502, "Pinata upload failed", result.error)

        return UploadResponse(url=result.url, hash=result.ipfs_hash)

    return app
