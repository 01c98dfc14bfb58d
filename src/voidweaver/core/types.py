"""Request-scoped value types shared across the core package.

These are plain dataclasses rather than Pydantic models: the API layer
validates the wire payload (see :mod:`voidweaver.api.models`) and converts it
into a :class:`GenerationRequest`, so nothing below the API layer depends on
FastAPI or on the camelCase wire names.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from voidweaver.core.errors import InvalidCredentialError, UnsupportedEngineError


class EngineType(str, Enum):
    """The two supported image generation providers."""

    NOVELAI = "novelai"
    GOOGLE_IMAGEN = "google-imagen"

    @property
    def display_name(self) -> str:
        return _ENGINE_DISPLAY_NAMES[self]

    @classmethod
    def parse(cls, value: str | EngineType | None) -> EngineType:
        """Resolve an engine from either wire spelling.

        Accepts the lowercase form (``"google-imagen"``) as well as the
        enum-constant form (``"GOOGLE_IMAGEN"``).

        Raises:
            UnsupportedEngineError: If *value* names neither provider.
        """
        if isinstance(value, EngineType):
            return value
        if value:
            normalized = value.strip()
            for engine in cls:
                if normalized == engine.value or normalized.upper() == engine.name:
                    return engine
        raise UnsupportedEngineError(f"Unsupported engine type: {value}")


_ENGINE_DISPLAY_NAMES = {
    EngineType.NOVELAI: "NovelAI V3",
    EngineType.GOOGLE_IMAGEN: "Google Imagen",
}


@dataclass(frozen=True, slots=True)
class GenerationSettings:
    """Sampler knobs.  ``None`` means "use the configured default"."""

    resolution: str | None = None
    steps: int | None = None
    scale: float | None = None
    strength: float | None = None


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    """A validated generation request.

    Only the credential field matching ``engine`` is ever read; see
    :attr:`credential`.
    """

    prompt: str
    engine: EngineType
    settings: GenerationSettings = GenerationSettings()
    input_image: str | None = None
    deep_thinking: bool = False
    novelai_api_key: str | None = None
    google_credentials: str | None = None

    @property
    def credential(self) -> str:
        """Return the bearer credential for the selected engine.

        Raises:
            InvalidCredentialError: If the engine's credential field is empty.
        """
        if self.engine is EngineType.NOVELAI:
            key, label = self.novelai_api_key, "NovelAI API Key"
        else:
            key, label = self.google_credentials, "Google API Key/Credentials"
        if not key or not key.strip():
            raise InvalidCredentialError(f"{label} is required")
        return key.strip()

    def __repr__(self) -> str:
        # No credentials: requests are logged.
        return (
            f"GenerationRequest(engine={self.engine.value!r}, "
            f"deep_thinking={self.deep_thinking}, "
            f"img2img={self.input_image is not None}, "
            f"prompt_chars={len(self.prompt)})"
        )


@dataclass(frozen=True, slots=True)
class ImageResult:
    """A generated image, base64-encoded."""

    image_data: str
    mime_type: str = "image/png"


def mask_credential(credential: str | None) -> str:
    """Return a log-safe rendering of a credential (first/last four chars)."""
    if not credential:
        return "<none>"
    if len(credential) <= 8:
        return "****"
    return f"{credential[:4]}…{credential[-4:]}"
