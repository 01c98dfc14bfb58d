"""Google Gemini image adapter (inline-image provider).

Gemini returns generated images inline, base64-encoded, inside the JSON
``generateContent`` response.

Gemini Specifics
----------------
- **Text-to-image**: the prompt is sent as a single text part to
  ``config.gemini_image_model``.
- **Image-to-image**: when an input image is supplied the edit-capable
  ``config.gemini_edit_model`` is selected and the reference image travels
  as an ``inline_data`` part next to the instruction text.
- **Weights**: Gemini has no weighting syntax.  Callers that want emphasis
  must run the prompt through
  :func:`voidweaver.core.weights.compile_weights` first.
- **Credential**: sent in the ``x-goog-api-key`` header, never in the URL.

Request shape::

    {"contents": [{"role": "user",
                   "parts": [{"text": "..."},
                             {"inline_data": {"mime_type": "image/png", "data": "..."}}]}],
     "generationConfig": {"responseModalities": ["IMAGE"]}}

Response shape::

    {"candidates": [{"content": {"parts": [{"text": "..."},
                                           {"inlineData": {"mimeType": "image/png", "data": "..."}}]}}]}
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from voidweaver.core.adapters.base import ProviderAdapterBase, adapter_registry
from voidweaver.core.config import VoidWeaverConfig
from voidweaver.core.errors import (
    InternalError,
    ProviderEmptyResponseError,
    ProviderNoImageDataError,
)
from voidweaver.core.transport import make_timeout, post_json
from voidweaver.core.types import EngineType, GenerationSettings, ImageResult

logger = logging.getLogger(__name__)

PROVIDER_NAME = "Google Gemini"


def gemini_endpoint(config: VoidWeaverConfig, model: str) -> str:
    return f"{config.gemini_api_base.rstrip('/')}/{model}:generateContent"


def gemini_headers(credential: str) -> dict[str, str]:
    return {"x-goog-api-key": credential, "Content-Type": "application/json"}


def parse_candidate_parts(response: httpx.Response, provider: str) -> list[dict[str, Any]]:
    """Return the parts of the first candidate of a ``generateContent`` response.

    Raises:
        InternalError: The body, ``candidates`` or the first candidate does
            not have the expected JSON shape.
        ProviderEmptyResponseError: The response has no candidates.
    """
    try:
        body = response.json()
    except ValueError as exc:
        raise InternalError(f"{provider} returned malformed JSON: {exc}") from exc
    if not isinstance(body, dict):
        raise InternalError(f"{provider} returned an unexpected response shape")

    candidates = body.get("candidates") or []
    if not isinstance(candidates, list):
        raise InternalError(f"{provider} returned candidates that are not a list")
    if not candidates:
        raise ProviderEmptyResponseError(f"{provider} returned no candidates")
    if not isinstance(candidates[0], dict):
        raise InternalError(f"{provider} returned a candidate that is not an object")

    content = candidates[0].get("content") or {}
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return []
    return [part for part in parts if isinstance(part, dict)]


@adapter_registry.register
class GeminiImageAdapter(ProviderAdapterBase):
    """Adapter for Gemini image generation and multiturn image editing."""

    name = PROVIDER_NAME
    engine = EngineType.GOOGLE_IMAGEN
    response_type = "inline"

    def build_request(
        self,
        prompt: str,
        input_image: str | None = None,
        input_mime_type: str = "image/png",
    ) -> tuple[str, dict[str, Any]]:
        """Return ``(model, body)`` for a text-to-image or image-to-image call."""
        parts: list[dict[str, Any]] = [{"text": prompt}]
        if input_image:
            model = self.config.gemini_edit_model
            parts.append({"inline_data": {"mime_type": input_mime_type, "data": input_image}})
        else:
            model = self.config.gemini_image_model

        body = {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {"responseModalities": ["IMAGE"]},
        }
        return model, body

    def parse_response(self, response: httpx.Response) -> ImageResult:
        """Extract the first inline image from a successful response.

        Raises:
            ProviderEmptyResponseError: No candidates.
            ProviderNoImageDataError: No part carries image bytes.
        """
        for part in parse_candidate_parts(response, self.name):
            inline = part.get("inlineData") or part.get("inline_data")
            if isinstance(inline, dict) and inline.get("data"):
                mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
                return ImageResult(image_data=inline["data"], mime_type=mime_type)

        raise ProviderNoImageDataError(f"No image data found in {self.name} response")

    async def generate(
        self,
        prompt: str,
        *,
        credential: str,
        input_image: str | None = None,
        input_mime_type: str = "image/png",
        settings: GenerationSettings | None = None,
    ) -> ImageResult:
        model, body = self.build_request(prompt, input_image, input_mime_type)
        mode = "img2img" if input_image else "txt2img"
        logger.info(f"Generating with {self.name} ({mode}, model={model})")

        response = await post_json(
            self.client,
            gemini_endpoint(self.config, model),
            payload=body,
            headers=gemini_headers(credential),
            timeout=make_timeout(self.config, self.config.image_timeout),
            provider=self.name,
        )
        return self.parse_response(response)
