"""Base class and registry for image provider adapters.

Each external image provider has its own adapter implementing a common
interface, so the direct generation path and the Deep Thinking orchestrator
can drive either provider without knowing its wire format.

Adapter Pattern
---------------
An adapter encapsulates:
- Request construction (text-to-image vs image-to-image)
- Credential placement (header name and scheme)
- Response parsing into an :class:`~voidweaver.core.types.ImageResult`
- Classification of provider failures into the error taxonomy

Adapters are stateless apart from the injected configuration and HTTP
client, so one instance per engine is shared by all requests.

Usage Example
-------------
    >>> from voidweaver.core.adapters import adapter_registry
    >>> from voidweaver.core.types import EngineType
    >>>
    >>> adapter = adapter_registry.instantiate(EngineType.NOVELAI, config, client)
    >>> result = await adapter.generate("1girl, silver hair", credential=key)

See Also
--------
- GeminiImageAdapter: inline-image provider (adapter A)
- NovelAIAdapter: archive-response provider (adapter B)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Literal

import httpx

from voidweaver.core.config import VoidWeaverConfig
from voidweaver.core.errors import UnsupportedEngineError
from voidweaver.core.types import EngineType, GenerationSettings, ImageResult

logger = logging.getLogger(__name__)


class ProviderAdapterBase(ABC):
    """Abstract base class for all provider adapters.

    Attributes
    ----------
    name : str
        Human-readable provider name, used in logs and error messages
    engine : EngineType
        Engine variant this adapter serves
    response_type : str
        How the provider returns image bytes ("inline" JSON or "archive")
    config : VoidWeaverConfig
        Configuration holding model identifiers, defaults and timeouts
    client : httpx.AsyncClient
        Shared HTTP client
    """

    name: str = "Base Provider Adapter"
    engine: EngineType
    response_type: Literal["inline", "archive"] = "inline"

    def __init__(self, config: VoidWeaverConfig, client: httpx.AsyncClient) -> None:
        self.config = config
        self.client = client

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        *,
        credential: str,
        input_image: str | None = None,
        input_mime_type: str = "image/png",
        settings: GenerationSettings | None = None,
    ) -> ImageResult:
        """Generate an image, or transform *input_image* when it is given.

        Args:
            prompt: Prompt text in the provider's own syntax.
            credential: Provider API key.  Never logged.
            input_image: Base64 reference image; switches to image-to-image.
            input_mime_type: MIME type of *input_image*.
            settings: Optional sampler overrides.

        Returns:
            The generated image.

        Raises:
            VoidWeaverError: Any classified provider or parsing failure.
        """

    def get_adapter_info(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "engine": self.engine.value,
            "response_type": self.response_type,
        }


class AdapterRegistry:
    """Registry mapping each :class:`EngineType` to its adapter class."""

    def __init__(self) -> None:
        self._adapters: dict[EngineType, type[ProviderAdapterBase]] = {}

    def register(self, adapter_class: type[ProviderAdapterBase]) -> type[ProviderAdapterBase]:
        """Register *adapter_class* for its engine.  Usable as a class decorator."""
        engine = adapter_class.engine
        if engine in self._adapters:
            logger.warning(f"Adapter for engine '{engine.value}' is already registered, overwriting")
        self._adapters[engine] = adapter_class
        logger.debug(f"Registered provider adapter: {adapter_class.name} ({engine.value})")
        return adapter_class

    def get_adapter_class(self, engine: EngineType) -> type[ProviderAdapterBase]:
        try:
            return self._adapters[engine]
        except KeyError:
            raise UnsupportedEngineError(f"Unsupported engine type: {engine}") from None

    def instantiate(
        self,
        engine: EngineType,
        config: VoidWeaverConfig,
        client: httpx.AsyncClient,
    ) -> ProviderAdapterBase:
        return self.get_adapter_class(engine)(config, client)

    def list_available(self) -> list[str]:
        return [engine.value for engine in self._adapters]


# Global adapter registry instance
adapter_registry = AdapterRegistry()
