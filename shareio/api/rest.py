"""
REST API for the Share Service

Endpoints:
- POST /upload            multipart/form-data with "file" and optional "password"
- GET  /download/{code}   optional ?pass=<password>
- GET  /health            liveness check

Uploads are parsed with our own multipart parser from the raw body, not
FastAPI's form handling, so binary payloads are kept byte-exact.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional
from urllib.parse import quote

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel

from ..config import Config
from ..multipart import (
    parse_multipart, boundary_from_content_type,
    extract_field_as_text, extract_required_file, MissingFileFieldError,
)
from ..registry import RegistryFullError
from ..service import ShareService, ShareUnavailableError
from ..transfer import TransferError, UnauthorizedError, PasswordRequiredError

logger = logging.getLogger(__name__)

FILE_FIELD = 'file'
PASSWORD_FIELD = 'password'


# === Pydantic Models ===

class UploadResponse(BaseModel):
    """Share code for an uploaded file."""
    port: int


class HealthResponse(BaseModel):
    status: str
    message: str


def content_disposition(filename: str) -> str:
    """Attachment header value, RFC 5987 encoded for non-ASCII names."""
    if filename.isascii() and '"' not in filename:
        return f'attachment; filename="{filename}"'
    return f"attachment; filename*=UTF-8''{quote(filename)}"


# === API Creation ===

def create_app(service: Optional[ShareService] = None,
               config: Optional[Config] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        service: ShareService to expose (created from config if omitted)
        config: Configuration used when creating the service

    Returns:
        FastAPI application
    """
    config = config or (service.config if service is not None else Config())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle startup and shutdown."""
        logger.info("API server starting...")
        yield
        logger.info("API server stopping...")
        await app.state.service.close()

    app = FastAPI(
        title="ShareIO API",
        description="One-time file sharing over direct TCP transfer",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.service = service if service is not None else ShareService(config)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        expose_headers=["Content-Disposition"],
    )

    def get_service(request: Request) -> ShareService:
        return request.app.state.service

    # === Endpoints ===

    @app.get("/health", response_model=HealthResponse, tags=["General"])
    async def health():
        """Service liveness check."""
        return HealthResponse(status="ok", message="ShareIO service is running")

    @app.get("/stats", tags=["General"])
    async def stats(request: Request):
        """Active shares and listener counters."""
        return get_service(request).get_stats()

    @app.post("/upload", response_model=UploadResponse, tags=["Files"])
    async def upload(request: Request):
        """Upload a file and get its share code."""
        service = get_service(request)

        content_type = request.headers.get('content-type', '')
        if not content_type.startswith('multipart/form-data'):
            raise HTTPException(
                status_code=400,
                detail="Bad Request: Content-Type must be multipart/form-data",
            )

        boundary = boundary_from_content_type(content_type)
        if not boundary:
            raise HTTPException(status_code=400, detail="Bad Request: Missing multipart boundary")

        body = await request.body()
        parts = parse_multipart(body, boundary)

        try:
            file_part = extract_required_file(parts, FILE_FIELD)
        except MissingFileFieldError as e:
            raise HTTPException(status_code=400, detail=f"Bad Request: {e}")

        password = extract_field_as_text(parts, PASSWORD_FIELD)

        try:
            result = await service.offer_upload(file_part.filename, file_part.content, password)
        except (ShareUnavailableError, RegistryFullError) as e:
            logger.error(f"Error offering upload: {e}")
            raise HTTPException(status_code=503, detail=str(e))
        except OSError as e:
            logger.error(f"Error processing file upload: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Server error: {e}")

        logger.info(f"File offered {'with' if result.password_protected else 'without'} "
                    f"password protection on port: {result.code}")
        return UploadResponse(port=result.code)

    @app.get("/download/{code}", tags=["Files"])
    async def download(request: Request, code: str,
                       password: Optional[str] = Query(None, alias="pass")):
        """Download a shared file by its code."""
        service = get_service(request)

        try:
            port = int(code)
        except ValueError:
            raise HTTPException(status_code=400, detail="Bad Request: Invalid port number")

        entry = service.lookup(port)
        if entry is None:
            raise HTTPException(status_code=404, detail="Not Found: File not available on this port")

        if entry.requires_password and (password is None or password != entry.password):
            raise HTTPException(status_code=401, detail="Unauthorized: Invalid or missing password")

        try:
            result = await service.download(port, password if entry.requires_password else None)
        except (UnauthorizedError, PasswordRequiredError) as e:
            raise HTTPException(status_code=401, detail=f"Unauthorized: {e}")
        except TransferError as e:
            logger.error(f"Error downloading file from peer: {e}")
            raise HTTPException(status_code=500, detail=f"Error downloading file: {e}")

        return Response(
            content=result.content,
            media_type="application/octet-stream",
            headers={"Content-Disposition": content_disposition(result.filename)},
        )

    return app


async def run_api_server(config: Config):
    """
    Run the API server.

    Args:
        config: Service configuration (host, api_port, ...)
    """
    import uvicorn

    app = create_app(config=config)

    server_config = uvicorn.Config(
        app,
        host=config.host,
        port=config.api_port,
        log_level=config.log_level.lower(),
    )
    server = uvicorn.Server(server_config)
    await server.serve()
