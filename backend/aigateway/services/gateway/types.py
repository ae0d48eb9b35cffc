"""
Type definitions shared by the gateway, the parameter pipeline and the adapters.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Capability(str, Enum):
    """Request categories a provider client can serve."""
    CHAT = "chat"
    STREAMING_CHAT = "streaming_chat"
    IMAGE = "image"
    VIDEO = "video"


# Capabilities a provider can be registered under
REGISTRY_CAPABILITIES = (Capability.CHAT, Capability.IMAGE, Capability.VIDEO)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class GatewayModel(BaseModel):
    """Base model serialising with camelCase field names on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ParameterDefinition(GatewayModel):
    """Legal shape of one tunable request parameter."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    key: str
    type: Literal["number", "string", "boolean", "select"]
    default_value: Any = None
    min: Optional[float] = None
    max: Optional[float] = None
    options: Optional[List[Any]] = None
    description: str = ""

    @property
    def required(self) -> bool:
        """A parameter without a default must be supplied by the caller."""
        return self.default_value is None


class ChatMessage(GatewayModel):
    """A message in the conversation history."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    role: Literal["user", "assistant", "system"] = Field(..., description="Message role")
    content: str = Field(..., description="Message content")
    timestamp: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


class Usage(GatewayModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatResponse(GatewayModel):
    """Uniform chat output returned regardless of provider."""

    id: str
    content: str
    role: Literal["assistant"] = "assistant"
    timestamp: datetime = Field(default_factory=utc_now)
    usage: Optional[Usage] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ChatChunk(GatewayModel):
    """One incremental piece of a streamed chat response."""

    id: str
    content: str
    role: Literal["assistant"] = "assistant"
    timestamp: datetime = Field(default_factory=utc_now)
    metadata: dict[str, Any] = Field(default_factory=dict)


class ImageResponse(GatewayModel):
    """Uniform image output returned regardless of provider."""

    id: str
    image_url: str
    prompt: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)
    status: Literal["completed", "failed"] = "completed"
    created_at: datetime = Field(default_factory=utc_now)
    metadata: dict[str, Any] = Field(default_factory=dict)
