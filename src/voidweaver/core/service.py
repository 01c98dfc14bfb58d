"""Request dispatch shared by the synchronous and streaming endpoints.

:class:`ImageService` owns one adapter per engine, the analysis client and
the Deep Thinking orchestrator, all bound to the same HTTP client.  The API
layer creates a single instance at startup.

Generation Paths
----------------
- **Direct** (``deepThinking`` false): one adapter call.  Gemini prompts are
  passed through the weight compiler first; NovelAI prompts are sent as-is.
- **Deep Thinking** (``deepThinking`` true, Gemini only): the five-phase
  pipeline in :mod:`voidweaver.core.deep_thinking`.  Only available on the
  streaming path, since its value is the intermediate output.

Streaming requests are validated up front by :meth:`ImageService.start_stream`
(engine, credential) so bad requests fail with an HTTP status instead of an
opened stream.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from voidweaver.core.adapters import adapter_registry
from voidweaver.core.adapters.base import ProviderAdapterBase
from voidweaver.core.analysis import AnalysisClient
from voidweaver.core.config import VoidWeaverConfig
from voidweaver.core.deep_thinking import DeepThinkingOrchestrator
from voidweaver.core.errors import UnsupportedEngineError, as_voidweaver_error
from voidweaver.core.streaming import EventSink
from voidweaver.core.types import EngineType, GenerationRequest, ImageResult, mask_credential
from voidweaver.core.weights import compile_weights

logger = logging.getLogger(__name__)


class ImageService:
    """Entry point for every generation and analysis operation.

    Args:
        config: Application configuration.
        client: Shared async HTTP client (a mock-transport client in tests).
    """

    def __init__(self, config: VoidWeaverConfig, client: httpx.AsyncClient) -> None:
        self.config = config
        self.client = client
        self.adapters: dict[EngineType, ProviderAdapterBase] = {
            engine: adapter_registry.instantiate(engine, config, client) for engine in EngineType
        }
        self.analysis = AnalysisClient(config, client)
        self.orchestrator = DeepThinkingOrchestrator(
            self.adapters[EngineType.GOOGLE_IMAGEN], self.analysis
        )
        # Strong references to in-flight stream tasks.
        self._tasks: set[asyncio.Task[Any]] = set()

    def adapter_for(self, engine: EngineType) -> ProviderAdapterBase:
        try:
            return self.adapters[engine]
        except KeyError:
            raise UnsupportedEngineError(f"Unsupported engine type: {engine}") from None

    async def generate_image(self, request: GenerationRequest) -> ImageResult:
        """Run a single direct generation call."""
        adapter = self.adapter_for(request.engine)
        credential = request.credential
        prompt = request.prompt
        if request.engine is EngineType.GOOGLE_IMAGEN:
            prompt = compile_weights(prompt)

        logger.info(f"Direct generation: {request!r} key={mask_credential(credential)}")
        return await adapter.generate(
            prompt,
            credential=credential,
            input_image=request.input_image,
            settings=request.settings,
        )

    async def _run_direct(self, request: GenerationRequest, sink: EventSink) -> None:
        try:
            result = await self.generate_image(request)
        except Exception as exc:
            error = as_voidweaver_error(exc)
            logger.error(f"Streamed generation failed: {error.kind.value} - {error.message}")
            sink.fail(error)
            return
        sink.complete({"imageData": result.image_data, "sketchImage": None, "thinkingLog": []})

    def start_stream(self, request: GenerationRequest) -> tuple[EventSink, asyncio.Task[Any]]:
        """Validate *request* and spawn its producer task.

        Returns:
            The sink the task writes to, and the task itself.

        Raises:
            InvalidCredentialError: The engine's credential is missing.
            UnsupportedEngineError: Deep Thinking was requested for NovelAI.
        """
        credential = request.credential
        if request.deep_thinking and request.engine is not EngineType.GOOGLE_IMAGEN:
            raise UnsupportedEngineError(
                f"Deep Thinking is only available for the {EngineType.GOOGLE_IMAGEN.value} engine"
            )

        logger.info(f"Opening stream: {request!r} key={mask_credential(credential)}")
        sink = EventSink()
        if request.deep_thinking:
            coro = self.orchestrator.run(request, sink)
        else:
            coro = self._run_direct(request, sink)

        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return sink, task

    async def shutdown(self) -> None:
        """Cancel any stream task still running."""
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
