"""VoidWeaver — FastAPI Application.

This module is the single entry point for the backend.  It defines the
FastAPI ``app`` instance, all REST API routes, the exception handlers that
render the error taxonomy, and the ``main()`` CLI function that launches the
uvicorn server.

Architecture
------------
The application is stateless between requests:

- **Provider calls** go through one shared :class:`httpx.AsyncClient`
  created in the lifespan and owned by an
  :class:`~voidweaver.core.service.ImageService` stored on ``app.state``.
- **Credentials** arrive with every request and are never stored.
- **Streaming** uses ``text/event-stream``.  The generation runs as its own
  :class:`asyncio.Task`; the response body drains its event sink (see
  :mod:`voidweaver.core.streaming`).

Endpoints
---------
========  ===========================  ======================================
Method    Path                         Purpose
========  ===========================  ======================================
GET       ``/api/healthz``             Liveness and version
POST      ``/api/generate``            Generate one image (synchronous)
POST      ``/api/generate/stream``     Generate with SSE progress/Deep Thinking
POST      ``/api/prompt/compile``      Preview the prompt built from modules
POST      ``/api/analyze``             Decompose an image into modules
POST      ``/api/refine``              Rewrite unlocked modules by instruction
========  ===========================  ======================================

Errors
------
Every failure is returned as ``{"error": true, "message", "code",
"timestamp"}`` with the status code of its
:class:`~voidweaver.core.errors.VoidWeaverError` class; anything unclassified
is rendered as ``INTERNAL_ERROR`` with status 500.  Once a stream has
been opened, failures are delivered as an ``error`` event instead.

Usage
-----
CLI (installed entry point)::

    voidweaver

Direct invocation::

    python -m voidweaver.api.main
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from voidweaver import __version__
from voidweaver.api.models import (
    AnalyzeRequest,
    AnalyzeResponse,
    GenerateRequest,
    GenerateResponse,
    ModuleModel,
    PromptCompileRequest,
    PromptCompileResponse,
    RefineRequest,
    RefineResponse,
)
from voidweaver.core.config import config
from voidweaver.core.errors import InvalidRequestError, VoidWeaverError, as_voidweaver_error
from voidweaver.core.prompt_builder import build_raw_prompt, build_weighted_prompt
from voidweaver.core.service import ImageService
from voidweaver.core.streaming import stream_events
from voidweaver.core.transport import create_http_client
from voidweaver.core.weights import compile_weights

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Application lifecycle: shared HTTP client and service.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    On startup:
        Creates the shared HTTP client and an :class:`ImageService` and
        stores the service on ``app.state``.

    On shutdown:
        Cancels in-flight stream tasks and closes the HTTP client.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    # --- Startup -----------------------------------------------------------
    client = create_http_client(config)
    app.state.service = ImageService(config, client)
    logger.info(f"ImageService ready (engines: {', '.join(e.value for e in app.state.service.adapters)})")

    yield  # Application runs here.

    # --- Shutdown ----------------------------------------------------------
    await app.state.service.shutdown()
    await client.aclose()
    logger.info("ImageService shut down.")


# ---------------------------------------------------------------------------
# FastAPI application instance.
# ---------------------------------------------------------------------------
app = FastAPI(
    title="VoidWeaver",
    description="Weighted-prompt image generation with Deep Thinking refinement.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_service(request: Request) -> ImageService:
    """Dependency returning the service created by :func:`lifespan`."""
    return request.app.state.service


# ---------------------------------------------------------------------------
# Exception handlers.
# ---------------------------------------------------------------------------


@app.exception_handler(VoidWeaverError)
async def voidweaver_error_handler(request: Request, exc: VoidWeaverError) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path} -> {exc.status_code} {exc.kind.value}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_error())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
        for err in exc.errors()
    )
    error = InvalidRequestError(f"Invalid request: {details}")
    return JSONResponse(status_code=error.status_code, content=error.to_error())


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"{request.method} {request.url.path} -> unexpected error: {exc}")
    error = as_voidweaver_error(exc)
    return JSONResponse(status_code=error.status_code, content=error.to_error())


# ---------------------------------------------------------------------------
# API routes.
# ---------------------------------------------------------------------------


@app.get("/api/healthz")
async def healthz() -> dict:
    return {"status": "ok", "version": __version__}


@app.post("/api/generate")
async def generate_image(
    req: GenerateRequest,
    service: ImageService = Depends(get_service),
) -> GenerateResponse:
    """Generate a single image and return it once finished.

    Deep Thinking is a streaming-only feature; the flag is ignored here.

    Returns:
        ``{"imageData": "<base64>"}``.

    Raises:
        VoidWeaverError: Any classified failure, rendered by
            :func:`voidweaver_error_handler`.
    """
    request = req.to_generation_request()
    if request.deep_thinking:
        logger.info("deepThinking ignored on the synchronous endpoint")
    result = await service.generate_image(request)
    return GenerateResponse(image_data=result.image_data)


@app.post("/api/generate/stream")
async def generate_image_stream(
    req: GenerateRequest,
    service: ImageService = Depends(get_service),
) -> StreamingResponse:
    """Generate an image, streaming progress as Server-Sent Events.

    Emits ``log`` and ``sketch`` events while Deep Thinking runs, and ends
    with exactly one ``result`` or ``error`` event.  The connection is
    closed with an ``error`` event if the generation has not finished within
    ``stream_deadline`` seconds of the request being accepted.
    """
    expires_at = time.monotonic() + service.config.stream_deadline
    request = req.to_generation_request()
    sink, task = service.start_stream(request)

    return StreamingResponse(
        stream_events(sink, task, expires_at=expires_at),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@app.post("/api/prompt/compile")
async def compile_prompt(req: PromptCompileRequest) -> PromptCompileResponse:
    """Preview the prompt that the editor's modules would produce.

    Returns the NovelAI-style weighted prompt, the plain tag list, and the
    weight-compiled form sent to Gemini.
    """
    modules = [m.to_module() for m in req.modules]
    prompt = build_weighted_prompt(modules)
    return PromptCompileResponse(
        prompt=prompt,
        raw_prompt=build_raw_prompt(modules),
        compiled_prompt=compile_weights(prompt),
    )


@app.post("/api/analyze")
async def analyze_image(
    req: AnalyzeRequest,
    service: ImageService = Depends(get_service),
) -> AnalyzeResponse:
    """Decompose an uploaded image into the eight prompt modules."""
    result = await service.analysis.analyze_image(req.image_data, req.gemini_api_key)
    return AnalyzeResponse(
        modules=[ModuleModel.from_module(m) for m in result.modules],
        raw_prompt=result.raw_prompt,
    )


@app.post("/api/refine")
async def refine_modules(
    req: RefineRequest,
    service: ImageService = Depends(get_service),
) -> RefineResponse:
    """Apply a natural-language instruction to the unlocked modules.

    Locked modules are left out of the response; the client keeps its own
    copy of them.
    """
    refined = await service.analysis.refine_modules(
        [m.to_module() for m in req.modules],
        req.instruction,
        req.gemini_api_key,
    )
    return RefineResponse(modules=[ModuleModel.from_module(m) for m in refined])


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from :data:`~voidweaver.core.config.config`
    (``VOIDWEAVER_SERVER_HOST``, ``VOIDWEAVER_SERVER_PORT``,
    ``VOIDWEAVER_LOG_LEVEL``).  Defaults to ``0.0.0.0:8080``.

    This function is registered as the ``voidweaver`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "voidweaver.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
