"""
Pydantic models for API request/response
"""
from pydantic import BaseModel
from typing import List, Optional


class ConvertObjRequest(BaseModel):
    """Body of /api/convert-obj"""
    modelId: Optional[str] = None    # GLB filename in the models directory
    modelUrl: Optional[str] = None   # or a URL to download it from
    compressionLevel: str = "full"


class CompressionTierInfo(BaseModel):
    level: str
    label: str
    keepRatio: float
    estimatedRatio: float
    badge: Optional[str] = None
    premiumRequired: bool


class EstimateResponse(BaseModel):
    """Estimated OBJ zip size for a GLB"""
    originalSize: int
    compressionLevel: str
    estimatedSize: int
    estimatedSizeLabel: str


class ErrorResponse(BaseModel):
    """Error response"""
    success: bool = False
    type: Optional[str] = None   # load | export | zip for conversion failures
    error: str
    detail: Optional[str] = None


class ServiceInfo(BaseModel):
    status: str
    service: str
    version: str
    compression_levels: List[str]
    draco_available: bool
