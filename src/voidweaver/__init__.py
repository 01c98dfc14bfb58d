"""VoidWeaver - prompt-weighted image generation with Deep Thinking refinement."""

__version__ = "0.3.0"

from voidweaver.core.config import VoidWeaverConfig, config

# Import adapters to ensure they're registered
from voidweaver.core.adapters import GeminiImageAdapter, NovelAIAdapter  # noqa: F401
from voidweaver.core.adapters import ProviderAdapterBase, adapter_registry

__all__ = [
    "ProviderAdapterBase",
    "adapter_registry",
    "VoidWeaverConfig",
    "config",
    "GeminiImageAdapter",
    "NovelAIAdapter",
]
