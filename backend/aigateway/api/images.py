"""
Image API endpoints. Binary inputs travel as base64 strings.
"""
import base64
import binascii
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from aigateway.api.deps import get_identity, get_registry
from aigateway.core.logging import get_logger
from aigateway.services.gateway import Capability, ImageClient, ProviderRegistry

logger = get_logger(__name__)
router = APIRouter()


class GenerateImageRequest(BaseModel):
    provider: str = Field(default="openai")
    prompt: str
    parameters: dict[str, Any] = Field(default_factory=dict)


class ImageVariationRequest(BaseModel):
    provider: str = Field(default="openai")
    image: str = Field(..., description="Base64-encoded PNG")
    parameters: dict[str, Any] = Field(default_factory=dict)


class ImageEditRequest(BaseModel):
    provider: str = Field(default="openai")
    image: str = Field(..., description="Base64-encoded PNG")
    mask: Optional[str] = Field(default=None, description="Base64-encoded PNG mask")
    prompt: str
    parameters: dict[str, Any] = Field(default_factory=dict)


def _decode(data: str, field: str) -> bytes:
    # accept data URLs as well as bare base64
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail=f"{field} is not valid base64")


@router.post("/generate")
async def generate_image(
    request: GenerateImageRequest,
    registry: ProviderRegistry = Depends(get_registry),
    identity: str = Depends(get_identity),
):
    client: ImageClient = registry.create(Capability.IMAGE, request.provider)
    logger.info("Image generation request", provider=request.provider, identity=identity)
    response = await client.generate_image(request.prompt, request.parameters, identity=identity)
    return {"success": True, "data": response}


@router.post("/variation")
async def create_variation(
    request: ImageVariationRequest,
    registry: ProviderRegistry = Depends(get_registry),
    identity: str = Depends(get_identity),
):
    image = _decode(request.image, "image")
    client: ImageClient = registry.create(Capability.IMAGE, request.provider)
    response = await client.create_variation(image, request.parameters, identity=identity)
    return {"success": True, "data": response}


@router.post("/edit")
async def edit_image(
    request: ImageEditRequest,
    registry: ProviderRegistry = Depends(get_registry),
    identity: str = Depends(get_identity),
):
    image = _decode(request.image, "image")
    mask = _decode(request.mask, "mask") if request.mask else None
    client: ImageClient = registry.create(Capability.IMAGE, request.provider)
    response = await client.edit_image(image, mask, request.prompt, request.parameters, identity=identity)
    return {"success": True, "data": response}
