"""
Named parameter presets per schema.
"""
import secrets
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from aigateway.services.gateway.types import GatewayModel, utc_now


class ParameterPreset(GatewayModel):
    id: str
    name: str
    description: str = ""
    schema_id: str
    parameters: Dict[str, Any]
    tags: List[str] = Field(default_factory=list)
    is_default: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = None


def _preset(schema_id: str, id: str, name: str, description: str, parameters: dict, tags: list, is_default=False):
    return ParameterPreset(
        id=id, name=name, description=description, schema_id=schema_id,
        parameters=parameters, tags=tags, is_default=is_default,
    )


def builtin_presets() -> List[ParameterPreset]:
    return [
        # OpenAI chat
        _preset("openai:chat", "creative", "Creative",
                "Higher temperature for varied, imaginative replies",
                {"temperature": 1.2, "topP": 0.9, "presencePenalty": 0.6}, ["creative", "writing"]),
        _preset("openai:chat", "analytical", "Analytical",
                "Low temperature for precise, focused answers",
                {"temperature": 0.2, "topP": 0.8, "frequencyPenalty": 0.2}, ["analysis", "precise"]),
        _preset("openai:chat", "balanced", "Balanced",
                "General purpose settings",
                {"temperature": 0.7, "topP": 1, "maxTokens": 1000}, ["general"], is_default=True),
        _preset("openai:chat", "concise", "Concise",
                "Short, direct replies",
                {"temperature": 0.5, "maxTokens": 300, "frequencyPenalty": 0.5}, ["short"]),
        # Gemini chat
        _preset("gemini:chat", "creative", "Creative",
                "Higher temperature with wide sampling",
                {"temperature": 1.0, "topP": 0.95, "topK": 40}, ["creative", "writing"]),
        _preset("gemini:chat", "precise", "Precise",
                "Narrow sampling for factual answers",
                {"temperature": 0.2, "topP": 0.8, "topK": 10}, ["analysis", "precise"]),
        _preset("gemini:chat", "balanced", "Balanced",
                "General purpose settings",
                {"temperature": 0.7, "topP": 0.9, "topK": 20}, ["general"], is_default=True),
        # OpenAI images
        _preset("openai:image", "hd_square", "HD square",
                "High definition square image",
                {"model": "dall-e-3", "size": "1024x1024", "quality": "hd", "style": "vivid"}, ["hd", "square"]),
        _preset("openai:image", "natural_landscape", "Natural landscape",
                "Wide natural-style image",
                {"model": "dall-e-3", "size": "1792x1024", "quality": "standard", "style": "natural"}, ["landscape", "natural"]),
        _preset("openai:image", "standard", "Standard",
                "Default image settings",
                {"model": "dall-e-3", "size": "1024x1024", "quality": "standard"}, ["general"], is_default=True),
        _preset("openai:image", "multiple_v2", "Multiple (DALL-E 2)",
                "Several smaller images in one request",
                {"model": "dall-e-2", "size": "512x512", "n": 4}, ["batch"]),
    ]


class ParameterPresetsManager:
    def __init__(self, presets: Optional[List[ParameterPreset]] = None):
        self._presets: Dict[str, List[ParameterPreset]] = {}
        for preset in builtin_presets() if presets is None else presets:
            self.add_preset(preset)

    def add_preset(self, preset: ParameterPreset) -> None:
        self._presets.setdefault(preset.schema_id, []).append(preset)

    def get_provider_presets(self, schema_id: str) -> List[ParameterPreset]:
        return list(self._presets.get(schema_id, []))

    def get_preset_by_id(self, schema_id: str, preset_id: str) -> Optional[ParameterPreset]:
        return next((p for p in self._presets.get(schema_id, []) if p.id == preset_id), None)

    def get_presets_by_tag(self, schema_id: str, tag: str) -> List[ParameterPreset]:
        return [p for p in self._presets.get(schema_id, []) if tag in p.tags]

    def get_default_preset(self, schema_id: str) -> Optional[ParameterPreset]:
        return next((p for p in self._presets.get(schema_id, []) if p.is_default), None)

    def update_preset(self, schema_id: str, preset_id: str, **changes: Any) -> Optional[ParameterPreset]:
        presets = self._presets.get(schema_id, [])
        for index, preset in enumerate(presets):
            if preset.id == preset_id:
                updated = preset.model_copy(update={**changes, "updated_at": utc_now()})
                presets[index] = updated
                return updated
        return None

    def remove_preset(self, schema_id: str, preset_id: str) -> bool:
        presets = self._presets.get(schema_id, [])
        remaining = [p for p in presets if p.id != preset_id]
        if len(remaining) == len(presets):
            return False
        self._presets[schema_id] = remaining
        return True

    def create_custom_preset(
        self,
        schema_id: str,
        name: str,
        parameters: Dict[str, Any],
        description: str = "",
        tags: Optional[List[str]] = None,
    ) -> ParameterPreset:
        preset = ParameterPreset(
            id=f"custom_{int(time.time() * 1000)}_{secrets.token_hex(4)}",
            name=name,
            description=description,
            schema_id=schema_id,
            parameters=dict(parameters),
            tags=tags or ["custom"],
        )
        self.add_preset(preset)
        return preset

    def get_presets_stats(self) -> Dict[str, Any]:
        by_schema = {schema: len(presets) for schema, presets in self._presets.items()}
        tags: Dict[str, int] = {}
        for presets in self._presets.values():
            for preset in presets:
                for tag in preset.tags:
                    tags[tag] = tags.get(tag, 0) + 1
        return {"total": sum(by_schema.values()), "bySchema": by_schema, "byTag": tags}
