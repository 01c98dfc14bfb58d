"""NovelAI V3 adapter (archive-response provider).

NovelAI answers a successful ``generate-image`` call with a ZIP archive
rather than JSON.  The adapter unpacks the first PNG entry and re-encodes it
as base64 so callers see the same :class:`ImageResult` as for Gemini.

NovelAI Specifics
-----------------
- **Weights**: the ``weight::text::`` syntax is native, so prompts are sent
  uncompiled.
- **Resolution**: requests carry a ``WIDTHxHEIGHT`` string which is split into
  integer ``width``/``height`` parameters.  A malformed string is an
  :class:`~voidweaver.core.errors.InternalError`.
- **Image-to-image**: always ``action: "generate"``; the reference image,
  ``strength`` and ``noise`` are added to the parameter bag.
- **Credential**: ``Authorization: Bearer <key>``.
"""

from __future__ import annotations

import base64
import io
import logging
import zipfile
from typing import Any

import httpx

from voidweaver.core.adapters.base import ProviderAdapterBase, adapter_registry
from voidweaver.core.errors import InternalError, ProviderNoImageDataError
from voidweaver.core.transport import make_timeout, post_json
from voidweaver.core.types import EngineType, GenerationSettings, ImageResult

logger = logging.getLogger(__name__)

PROVIDER_NAME = "NovelAI"
IMAGE_EXTENSION = ".png"


def parse_resolution(resolution: str) -> tuple[int, int]:
    """Split a ``WIDTHxHEIGHT`` string into integers.

    Raises:
        InternalError: The string is not two positive integers joined by ``x``.
    """
    try:
        width_text, height_text = resolution.lower().split("x")
        width, height = int(width_text), int(height_text)
    except (AttributeError, ValueError) as exc:
        raise InternalError(f"Invalid resolution '{resolution}': expected WIDTHxHEIGHT") from exc
    if width <= 0 or height <= 0:
        raise InternalError(f"Invalid resolution '{resolution}': dimensions must be positive")
    return width, height


def extract_first_image(archive: bytes) -> bytes:
    """Return the bytes of the first ``.png`` entry in a ZIP archive.

    Raises:
        ProviderNoImageDataError: The archive holds no PNG entry.
        InternalError: The payload is not a readable ZIP archive.
    """
    try:
        with zipfile.ZipFile(io.BytesIO(archive)) as zf:
            for info in zf.infolist():
                if not info.is_dir() and info.filename.lower().endswith(IMAGE_EXTENSION):
                    return zf.read(info)
    except zipfile.BadZipFile as exc:
        raise InternalError(f"{PROVIDER_NAME} returned a malformed archive: {exc}") from exc

    raise ProviderNoImageDataError(f"No image found in {PROVIDER_NAME} response")


@adapter_registry.register
class NovelAIAdapter(ProviderAdapterBase):
    """Adapter for NovelAI Diffusion V3 text-to-image and image-to-image."""

    name = PROVIDER_NAME
    engine = EngineType.NOVELAI
    response_type = "archive"

    def build_parameters(
        self,
        settings: GenerationSettings | None,
        input_image: str | None = None,
    ) -> dict[str, Any]:
        """Build the flat parameter bag, filling unset fields from config."""
        settings = settings or GenerationSettings()
        width, height = parse_resolution(settings.resolution or self.config.default_resolution)

        parameters: dict[str, Any] = {
            "width": width,
            "height": height,
            "scale": settings.scale if settings.scale is not None else self.config.default_scale,
            "sampler": self.config.novelai_sampler,
            "steps": settings.steps if settings.steps is not None else self.config.default_steps,
            "n_samples": 1,
            "ucPreset": 0,
            "qualityToggle": True,
            "sm": False,
            "sm_dyn": False,
            "dynamic_thresholding": False,
            "controlnet_strength": 1.0,
            "legacy": False,
            "add_original_image": False,
            "cfg_rescale": 0.0,
            "noise_schedule": "native",
        }

        if input_image:
            parameters["image"] = input_image
            parameters["strength"] = (
                settings.strength if settings.strength is not None else self.config.default_strength
            )
            parameters["noise"] = 0.0

        return parameters

    def build_request(
        self,
        prompt: str,
        settings: GenerationSettings | None = None,
        input_image: str | None = None,
    ) -> dict[str, Any]:
        return {
            "input": prompt,
            "model": self.config.novelai_model,
            "action": "generate",
            "parameters": self.build_parameters(settings, input_image),
        }

    def parse_response(self, response: httpx.Response) -> ImageResult:
        image_bytes = extract_first_image(response.content)
        return ImageResult(image_data=base64.b64encode(image_bytes).decode("ascii"))

    async def generate(
        self,
        prompt: str,
        *,
        credential: str,
        input_image: str | None = None,
        input_mime_type: str = "image/png",
        settings: GenerationSettings | None = None,
    ) -> ImageResult:
        body = self.build_request(prompt, settings, input_image)
        params = body["parameters"]
        logger.info(
            f"Generating with {self.name} (model={body['model']}, "
            f"{params['width']}x{params['height']}, steps={params['steps']}, "
            f"img2img={bool(input_image)})"
        )

        response = await post_json(
            self.client,
            self.config.novelai_url,
            payload=body,
            headers={"Authorization": f"Bearer {credential}", "Content-Type": "application/json"},
            timeout=make_timeout(self.config, self.config.image_timeout),
            provider=self.name,
        )
        return self.parse_response(response)
