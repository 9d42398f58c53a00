"""
FastAPI GLB to OBJ Conversion Backend
Converts GLB models to zipped OBJ/MTL/texture bundles for download
"""
import os
import logging
from typing import List, Optional

from fastapi import FastAPI, File, Form, HTTPException, Query, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from . import __version__, config
from .converter import convert
from .errors import ConversionError
from .loader import draco_available
from .models import (
    CompressionTierInfo,
    ConvertObjRequest,
    ErrorResponse,
    EstimateResponse,
    ServiceInfo,
)
from .packager import archive_filename, content_disposition, package_obj_zip
from .sources import download_model, read_model, validate_model_url
from .tiers import COMPRESSION_LEVELS, COMPRESSION_TIERS, estimate_obj_size, get_tier
from .utils import base_name, format_bytes, is_safe_asset_id

# Configure logging
logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="GLB to OBJ Conversion API",
    description="Convert GLB models to OBJ/MTL archives with PBR-derived materials",
    version=__version__
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

SUPPORTED_EXTENSIONS = {'.glb'}

# HTTP status per conversion error type
ERROR_STATUS = {
    "load": 422,
    "export": 500,
    "zip": 500,
}


@app.get("/", response_model=ServiceInfo)
async def root():
    """Service information"""
    return ServiceInfo(
        status="ok",
        service="GLB to OBJ Conversion API",
        version=__version__,
        compression_levels=list(COMPRESSION_LEVELS),
        draco_available=draco_available(),
    )


@app.get("/health")
async def health_check():
    """Health check for deployment platforms"""
    return {"status": "healthy"}


@app.get("/api/compression-tiers", response_model=List[CompressionTierInfo])
async def list_compression_tiers():
    return [
        CompressionTierInfo(
            level=tier.level,
            label=tier.label,
            keepRatio=tier.keep_ratio,
            estimatedRatio=tier.estimated_ratio,
            badge=tier.badge,
            premiumRequired=tier.premium_required,
        )
        for tier in COMPRESSION_TIERS.values()
    ]


@app.get("/api/estimate", response_model=EstimateResponse)
async def estimate(size: int = Query(..., ge=0), compressionLevel: str = "full"):
    """Estimate the OBJ zip size for a GLB of ``size`` bytes"""
    _validate_level(compressionLevel)
    estimated = estimate_obj_size(size, compressionLevel)
    return EstimateResponse(
        originalSize=size,
        compressionLevel=compressionLevel,
        estimatedSize=estimated,
        estimatedSizeLabel=format_bytes(estimated),
    )


@app.post("/api/convert-obj")
async def convert_obj(request: ConvertObjRequest):
    """
    Convert a stored or remote GLB model to a zipped OBJ bundle

    Provide either ``modelId`` (a file in the models directory) or
    ``modelUrl``. Returns ``<name>.obj.zip`` as an attachment.
    """
    if bool(request.modelId) == bool(request.modelUrl):
        raise HTTPException(status_code=400, detail="Exactly one of modelId or modelUrl is required")

    # Reject path traversal before any file access
    if request.modelId and not is_safe_asset_id(request.modelId):
        logger.warning(f"Rejected modelId: {request.modelId!r}")
        raise HTTPException(status_code=400, detail="Invalid modelId: path traversal not allowed")

    _validate_level(request.compressionLevel)

    if request.modelId:
        model_name = request.modelId
        try:
            content = await run_in_threadpool(read_model, request.modelId)
        except FileNotFoundError:
            raise HTTPException(status_code=404, detail=f"Model not found: {request.modelId}")
    else:
        try:
            validate_model_url(request.modelUrl)
        except ValueError as e:
            logger.warning(f"Rejected modelUrl: {request.modelUrl!r}")
            raise HTTPException(status_code=400, detail=str(e))
        model_name = _name_from_url(request.modelUrl)
        content = await run_in_threadpool(download_model, request.modelUrl)

    return await _convert_to_zip(content, model_name, request.compressionLevel)


@app.post("/api/convert-obj/upload")
async def convert_obj_upload(file: UploadFile = File(...), compressionLevel: str = Form("full")):
    """
    Convert an uploaded GLB file to a zipped OBJ bundle
    """
    # Validate file extension
    file_name = file.filename or "model.glb"
    ext = os.path.splitext(file_name.lower())[1]

    if ext not in SUPPORTED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file format: {ext}. Supported: {', '.join(SUPPORTED_EXTENSIONS)}"
        )

    _validate_level(compressionLevel)

    try:
        content = await file.read()
    except OSError as e:
        logger.error(f"Failed to read file: {e}")
        raise HTTPException(status_code=400, detail=f"Failed to read file: {str(e)}")

    if len(content) > config.MAX_FILE_SIZE:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size: {config.MAX_FILE_SIZE // (1024*1024)} MB"
        )

    if len(content) == 0:
        raise HTTPException(status_code=400, detail="Empty file received")

    return await _convert_to_zip(content, os.path.basename(file_name), compressionLevel)


async def _convert_to_zip(content: bytes, model_name: str, compression_level: str) -> Response:
    tier = get_tier(compression_level)
    if tier.premium_required:
        # Premium check placeholder, allowed for now
        logger.info(f"Premium tier requested: {compression_level}")

    stem = base_name(model_name)
    logger.info(f"Converting {model_name} ({len(content)} bytes, {compression_level})")

    model = await run_in_threadpool(convert, content, compression_level, stem)
    archive = await run_in_threadpool(package_obj_zip, model, stem)

    return Response(
        content=archive,
        media_type="application/zip",
        headers={
            "Content-Disposition": content_disposition(archive_filename(model_name)),
            "X-Vertex-Count": str(model.vertex_count),
            "X-Face-Count": str(model.face_count),
        },
    )


def _validate_level(level: str) -> None:
    try:
        get_tier(level)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _name_from_url(url: str) -> str:
    path = url.split("?", 1)[0].rstrip("/")
    name = path.rsplit("/", 1)[-1]
    return name if is_safe_asset_id(name) else "model.glb"


@app.exception_handler(ConversionError)
async def conversion_error_handler(request, exc: ConversionError):
    """Structured payload for failed conversions"""
    if exc.type == "load":
        logger.warning(f"Conversion load error: {exc}")
    else:
        logger.error(f"Conversion {exc.type} error: {exc}")

    return JSONResponse(
        status_code=ERROR_STATUS.get(exc.type, 500),
        content=ErrorResponse(
            success=False,
            type=exc.type,
            error=exc.message,
            detail=exc.details
        ).model_dump()
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Custom error response format"""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            success=False,
            error=str(exc.detail),
            detail=str(exc.detail)
        ).model_dump()
    )


def run(host: str = "0.0.0.0", port: Optional[int] = None):
    import uvicorn
    uvicorn.run(app, host=host, port=port or config.PORT)


if __name__ == "__main__":
    run()
