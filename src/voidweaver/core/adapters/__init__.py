"""Provider adapters.

Importing this package registers both adapters with :data:`adapter_registry`.
"""

from voidweaver.core.adapters.base import AdapterRegistry, ProviderAdapterBase, adapter_registry
from voidweaver.core.adapters.gemini_image import GeminiImageAdapter
from voidweaver.core.adapters.novelai import NovelAIAdapter

__all__ = [
    "AdapterRegistry",
    "ProviderAdapterBase",
    "adapter_registry",
    "GeminiImageAdapter",
    "NovelAIAdapter",
]
