"""
OpenAI image adapter (DALL-E): generation, variations and edits.
"""
from typing import Any

import httpx

from aigateway.core.logging import ProviderCallLogger, get_logger
from aigateway.services.adapter.base import (
    GeneratedImage,
    ImageAdapter,
    api_error,
    fail,
    transport_error,
)
from aigateway.services.gateway.errors import AIServiceError, ErrorCode

logger = get_logger(__name__)
call_logger = ProviderCallLogger(logger)

DEFAULT_BASE_URL = "https://api.openai.com/v1"


class OpenAIImageAdapter(ImageAdapter):
    provider_name = "openai"

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        model: str = "dall-e-3",
        provider_name: str = "openai",
        **kwargs: Any,
    ):
        super().__init__(api_key, base_url or DEFAULT_BASE_URL, model, **kwargs)
        self.provider_name = provider_name

    def _auth(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}"}

    def _generation_fields(self, parameters: dict[str, Any]) -> dict:
        model = self.resolve_model(parameters)
        fields = {"model": model}
        for key in ("size", "n", "response_format"):
            if parameters.get(key) is not None:
                fields[key] = parameters[key]
        # quality and style are rejected by dall-e-2
        if model == "dall-e-3":
            for key in ("quality", "style"):
                if parameters.get(key) is not None:
                    fields[key] = parameters[key]
        return fields

    async def _request(self, endpoint: str, model: str, **request: Any) -> list[GeneratedImage]:
        with call_logger.track_call(provider=self.provider_name, model=model, endpoint=endpoint) as call:
            params = {**request.get("data", {}), **request.get("json", {})}
            params.pop("prompt", None)
            call.set_request_params(**params)

            try:
                async with self.http_client() as client:
                    response = await client.post(f"{self.base_url}/{endpoint}", headers=self._auth(), **request)
            except httpx.HTTPError as e:
                raise fail(call, transport_error(self.provider_name, e)) from e

            if response.status_code != 200:
                error = api_error(self.provider_name, response.status_code, response.content)
                if "content_policy_violation" in response.text:
                    error.code = ErrorCode.CONTENT_BLOCKED
                raise fail(call, error)

            try:
                data = response.json()
            except ValueError:
                raise fail(call, AIServiceError(self.provider_name, ErrorCode.UNKNOWN_ERROR, "Provider returned invalid JSON"))

            images = [
                GeneratedImage(
                    url=item.get("url"),
                    b64_json=item.get("b64_json"),
                    revised_prompt=item.get("revised_prompt"),
                )
                for item in data.get("data", [])
            ]
            if not images:
                raise fail(call, AIServiceError(self.provider_name, ErrorCode.UNKNOWN_ERROR, "Provider returned no images"))

            call.set_response(content="", total_tokens=None)
            return images

    async def generate(self, prompt: str, parameters: dict[str, Any]) -> list[GeneratedImage]:
        fields = {**self._generation_fields(parameters), "prompt": prompt}
        return await self._request("images/generations", fields["model"], json=fields)

    async def create_variation(self, image: bytes, parameters: dict[str, Any]) -> list[GeneratedImage]:
        # variations and edits are only offered by dall-e-2
        fields = {**self._generation_fields({**parameters, "model": "dall-e-2"})}
        return await self._request(
            "images/variations",
            "dall-e-2",
            data={k: str(v) for k, v in fields.items()},
            files={"image": ("image.png", image, "image/png")},
        )

    async def edit(self, image: bytes, mask: bytes | None, prompt: str, parameters: dict[str, Any]) -> list[GeneratedImage]:
        fields = {**self._generation_fields({**parameters, "model": "dall-e-2"}), "prompt": prompt}
        files = {"image": ("image.png", image, "image/png")}
        if mask is not None:
            files["mask"] = ("mask.png", mask, "image/png")
        return await self._request(
            "images/edits",
            "dall-e-2",
            data={k: str(v) for k, v in fields.items()},
            files=files,
        )
