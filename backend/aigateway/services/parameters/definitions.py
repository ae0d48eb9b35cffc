"""
Builtin parameter definitions, keyed by schema id.
"""
from typing import Dict, List

from aigateway.services.gateway.types import ParameterDefinition as P


OPENAI_CHAT = [
    P(key="model", type="select", default_value="gpt-3.5-turbo",
      options=["gpt-3.5-turbo", "gpt-4", "gpt-4-turbo", "gpt-4o"], description="Model to use"),
    P(key="temperature", type="number", default_value=0.7, min=0, max=2,
      description="Sampling temperature; higher is more random"),
    P(key="maxTokens", type="number", default_value=1000, min=1, max=4000,
      description="Maximum tokens to generate"),
    P(key="topP", type="number", default_value=1, min=0, max=1, description="Nucleus sampling"),
    P(key="frequencyPenalty", type="number", default_value=0, min=-2, max=2,
      description="Penalise tokens by how often they already appeared"),
    P(key="presencePenalty", type="number", default_value=0, min=-2, max=2,
      description="Penalise tokens that already appeared"),
]

DEEPSEEK_CHAT = [
    P(key="model", type="select", default_value="deepseek-chat",
      options=["deepseek-chat", "deepseek-reasoner"], description="Model to use"),
    *OPENAI_CHAT[1:],
]

CLAUDE_CHAT = [
    P(key="model", type="select", default_value="claude-3-5-sonnet-20240620",
      options=["claude-3-5-sonnet-20240620", "claude-3-opus-20240229", "claude-3-haiku-20240307"],
      description="Model to use"),
    P(key="temperature", type="number", default_value=0.7, min=0, max=1, description="Sampling temperature"),
    P(key="maxTokens", type="number", default_value=1024, min=1, max=4096, description="Maximum tokens to generate"),
    P(key="topP", type="number", default_value=1, min=0, max=1, description="Nucleus sampling"),
]

GEMINI_CHAT = [
    P(key="model", type="select", default_value="gemini-pro",
      options=["gemini-pro", "gemini-pro-vision"], description="Model to use"),
    P(key="temperature", type="number", default_value=0.9, min=0, max=1, description="Sampling temperature"),
    P(key="maxOutputTokens", type="number", default_value=2048, min=1, max=8192,
      description="Maximum tokens to generate"),
    P(key="topP", type="number", default_value=1, min=0, max=1, description="Nucleus sampling"),
    P(key="topK", type="number", default_value=1, min=1, max=40, description="Top-k sampling"),
]

OPENAI_IMAGE = [
    P(key="model", type="select", default_value="dall-e-3", options=["dall-e-2", "dall-e-3"],
      description="Image model"),
    P(key="size", type="select", default_value="1024x1024",
      options=["256x256", "512x512", "1024x1024", "1792x1024", "1024x1792"], description="Image size"),
    P(key="quality", type="select", default_value="standard", options=["standard", "hd"],
      description="Image quality"),
    P(key="style", type="select", default_value="vivid", options=["vivid", "natural"], description="Image style"),
    P(key="n", type="number", default_value=1, min=1, max=10, description="Number of images"),
    P(key="response_format", type="select", default_value="url", options=["url", "b64_json"],
      description="Response format"),
]

BUILTIN_DEFINITIONS: Dict[str, List[P]] = {
    "openai:chat": OPENAI_CHAT,
    "deepseek:chat": DEEPSEEK_CHAT,
    "claude:chat": CLAUDE_CHAT,
    "gemini:chat": GEMINI_CHAT,
    "openai:image": OPENAI_IMAGE,
    "dall-e:image": OPENAI_IMAGE,
}
