"""
Parameter API endpoints: definitions, validation and presets.
"""
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from aigateway.api.deps import get_parameter_service
from aigateway.services.gateway import Capability
from aigateway.services.parameters import ParameterService, ValidationOptions, schema_id

router = APIRouter()


class ValidateParametersRequest(BaseModel):
    parameters: dict[str, Any] = Field(default_factory=dict)
    capability: Capability = Capability.CHAT
    strict: bool = False


class ApplyPresetRequest(BaseModel):
    overrides: dict[str, Any] = Field(default_factory=dict)
    capability: Capability = Capability.CHAT


def _schema(service: ParameterService, provider: str, capability: Capability) -> str:
    schema = schema_id(provider, capability)
    if not service.has_schema(schema):
        raise HTTPException(status_code=404, detail=f'No parameters registered for "{schema}"')
    return schema


@router.get("")
async def get_parameter_stats(service: ParameterService = Depends(get_parameter_service)):
    return {"success": True, "data": service.get_parameter_stats()}


@router.get("/{provider}")
async def get_definitions(
    provider: str,
    capability: Capability = Query(default=Capability.CHAT),
    service: ParameterService = Depends(get_parameter_service),
):
    schema = _schema(service, provider, capability)
    return {
        "success": True,
        "data": {
            "schema": schema,
            "definitions": service.get_provider_definitions(schema),
            "defaults": service.merge_with_defaults(schema, {}),
            "summary": service.get_parameter_summary(schema),
        },
    }


@router.post("/{provider}/validate")
async def validate_parameters(
    provider: str,
    request: ValidateParametersRequest,
    service: ParameterService = Depends(get_parameter_service),
):
    """Run the full parameter pipeline without calling the provider."""
    schema = _schema(service, provider, request.capability)
    processed = service.process_parameters(schema, request.parameters, ValidationOptions(strict=request.strict))
    return {
        "success": True,
        "data": {
            "parameters": processed.parameters,
            "validation": processed.validation,
        },
    }


@router.get("/{provider}/presets")
async def list_presets(
    provider: str,
    capability: Capability = Query(default=Capability.CHAT),
    tag: str | None = None,
    service: ParameterService = Depends(get_parameter_service),
):
    schema = _schema(service, provider, capability)
    presets = service.presets.get_presets_by_tag(schema, tag) if tag else service.get_presets(schema)
    return {"success": True, "data": presets}


@router.post("/{provider}/presets/{preset_id}/apply")
async def apply_preset(
    provider: str,
    preset_id: str,
    request: ApplyPresetRequest,
    service: ParameterService = Depends(get_parameter_service),
):
    schema = _schema(service, provider, request.capability)
    processed = service.apply_preset(schema, preset_id, request.overrides)
    if processed is None:
        raise HTTPException(status_code=404, detail=f'Preset "{preset_id}" not found')
    return {
        "success": True,
        "data": {
            "parameters": processed.parameters,
            "validation": processed.validation,
        },
    }
