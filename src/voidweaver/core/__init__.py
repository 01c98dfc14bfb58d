"""Core functionality for image generation.

This package holds everything below the HTTP layer:

- **Configuration** (config.py): environment-based settings, VOIDWEAVER_ prefix
- **Errors** (errors.py): the classified failure taxonomy
- **Weight compiler** (weights.py): ``weight::text::`` -> emphasis phrases
- **Prompt assembly** (prompt_builder.py): module/tag structure -> prompt
- **Provider adapters** (adapters/): Gemini (inline image) and NovelAI (ZIP)
- **Analysis** (analysis.py): critique, style tags, image analysis, refinement
- **Deep Thinking** (deep_thinking.py, streaming.py): the five-phase pipeline
  and its server-push event channel
- **ImageService** (service.py): dispatch used by the API routes

Usage Example
-------------
    from voidweaver.core import ImageService, config
    from voidweaver.core.transport import create_http_client

    async with create_http_client(config) as client:
        service = ImageService(config, client)
        result = await service.generate_image(request)

See Also
--------
- ProviderAdapterBase: Base class for provider adapters
- DeepThinkingOrchestrator: The five-phase pipeline
"""

# Import adapters to ensure they're registered
from voidweaver.core.adapters import GeminiImageAdapter, NovelAIAdapter  # noqa: F401
from voidweaver.core.adapters import ProviderAdapterBase, adapter_registry
from voidweaver.core.config import VoidWeaverConfig, config
from voidweaver.core.deep_thinking import DeepThinkingOrchestrator
from voidweaver.core.service import ImageService

__all__ = [
    "DeepThinkingOrchestrator",
    "ImageService",
    "ProviderAdapterBase",
    "adapter_registry",
    "VoidWeaverConfig",
    "config",
]
