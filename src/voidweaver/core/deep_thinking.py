"""Deep Thinking: five-phase iterative refinement of a generated image.

The pipeline turns one prompt into two images.  A quick sketch is drawn
first, critiqued by the vision model, and then used as the reference image
for a final render whose prompt has been enriched with the critique and with
suggested style tags.

Phases
------
::

    IDLE -> SKETCHING -> CRITIQUING -> STYLE_SUGGESTING -> REFINING
         -> FINAL_GENERATING -> COMPLETED
                     (any phase) -> FAILED

1. **Sketching** — Gemini text-to-image on the raw prompt.  The sketch is
   streamed to the client as soon as it exists.
2. **Critiquing** — the vision model lists three fixes for the sketch.
3. **Style suggesting** — the text model proposes five style tags.
4. **Refining** — a new prompt is composed from the original prompt, fixed
   quality/avoid fragments, the critique at weight 1.5 and the style tags at
   weight 1.2, then passed through the weight compiler.
5. **Final generating** — Gemini image-to-image with the *sketch* as the
   reference, so the final image keeps the sketch's composition even when the
   caller supplied a reference image of their own.

Phases run strictly in order; each consumes the previous phase's output.
Steps 2 and 3 are advisory and cannot fail (see
:mod:`voidweaver.core.analysis`).  Any failure in steps 1 or 5 halts the
pipeline: the sink receives one ``error`` event and nothing else.

The phase is tracked explicitly by :class:`DeepThinkingSession`.  The
thinking log is an append-only, human-readable record of phase changes
streamed line by line.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any

from voidweaver.core.adapters.base import ProviderAdapterBase
from voidweaver.core.analysis import AnalysisClient
from voidweaver.core.errors import as_voidweaver_error
from voidweaver.core.streaming import EventSink
from voidweaver.core.types import GenerationRequest
from voidweaver.core.weights import compile_weights

logger = logging.getLogger(__name__)

POSITIVE_STYLE_FRAGMENT = (
    "masterpiece, best quality, highly detailed, sharp focus, cinematic lighting"
)
NEGATIVE_STYLE_FRAGMENT = (
    "blurry, low quality, jpeg artifacts, distorted anatomy, extra limbs, watermark, text"
)
CRITIQUE_WEIGHT = 1.5
STYLE_TAG_WEIGHT = 1.2


class ThinkingPhase(str, Enum):
    IDLE = "idle"
    SKETCHING = "sketching"
    CRITIQUING = "critiquing"
    STYLE_SUGGESTING = "style_suggesting"
    REFINING = "refining"
    FINAL_GENERATING = "final_generating"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ThinkingPhase.COMPLETED, ThinkingPhase.FAILED)


_NEXT_PHASE: dict[ThinkingPhase, ThinkingPhase] = {
    ThinkingPhase.IDLE: ThinkingPhase.SKETCHING,
    ThinkingPhase.SKETCHING: ThinkingPhase.CRITIQUING,
    ThinkingPhase.CRITIQUING: ThinkingPhase.STYLE_SUGGESTING,
    ThinkingPhase.STYLE_SUGGESTING: ThinkingPhase.REFINING,
    ThinkingPhase.REFINING: ThinkingPhase.FINAL_GENERATING,
    ThinkingPhase.FINAL_GENERATING: ThinkingPhase.COMPLETED,
}


class PipelineCancelled(Exception):
    """Raised between phases once the stream consumer has gone away."""


@dataclass(frozen=True, slots=True)
class DeepThinkingResult:
    image_data: str
    sketch_image: str
    thinking_log: tuple[str, ...]

    def to_payload(self) -> dict[str, Any]:
        return {
            "imageData": self.image_data,
            "sketchImage": self.sketch_image,
            "thinkingLog": list(self.thinking_log),
        }


def _strip_weight_delimiters(text: str) -> str:
    # A stray "::" in model output would split the weight token it is wrapped in.
    return text.replace("::", ":").strip()


def compose_refined_prompt(original_prompt: str, critique: str, style_tags: str) -> str:
    """Build the phase-4 prompt before weight compilation.

    >>> compose_refined_prompt("a fox", "fix the tail", "ukiyo-e")  # doctest: +ELLIPSIS
    'a fox, masterpiece, ..., avoid blurry, ..., 1.5::fix the tail::, 1.2::ukiyo-e::'
    """
    return ", ".join(
        [
            original_prompt.strip(),
            POSITIVE_STYLE_FRAGMENT,
            f"avoid {NEGATIVE_STYLE_FRAGMENT}",
            f"{CRITIQUE_WEIGHT}::{_strip_weight_delimiters(critique)}::",
            f"{STYLE_TAG_WEIGHT}::{_strip_weight_delimiters(style_tags)}::",
        ]
    )


class DeepThinkingSession:
    """Per-request pipeline state: current phase, thinking log, sketch."""

    def __init__(self, sink: EventSink, request_id: str | None = None) -> None:
        self.sink = sink
        self.request_id = request_id or uuid.uuid4().hex[:8]
        self.phase = ThinkingPhase.IDLE
        self.thinking_log: list[str] = []
        self.sketch_image: str | None = None

    def advance(self, phase: ThinkingPhase) -> None:
        """Move to *phase*, which must be the successor of the current phase."""
        if _NEXT_PHASE.get(self.phase) is not phase:
            raise RuntimeError(f"Illegal Deep Thinking transition {self.phase.value} -> {phase.value}")
        logger.info(f"[{self.request_id}] {self.phase.value} -> {phase.value}")
        self.phase = phase

    def fail(self) -> None:
        logger.info(f"[{self.request_id}] {self.phase.value} -> {ThinkingPhase.FAILED.value}")
        self.phase = ThinkingPhase.FAILED

    def record(self, line: str) -> None:
        self.thinking_log.append(line)
        self.sink.log(line)

    def checkpoint(self) -> None:
        if self.sink.closed:
            raise PipelineCancelled(f"consumer disconnected during {self.phase.value}")


class DeepThinkingOrchestrator:
    """Runs the Deep Thinking pipeline against an inline-image adapter.

    Args:
        image_adapter: Adapter used for both the sketch and the final render.
        analysis: Client for the critique and style-suggestion calls.
    """

    def __init__(self, image_adapter: ProviderAdapterBase, analysis: AnalysisClient) -> None:
        self.image_adapter = image_adapter
        self.analysis = analysis

    async def think(self, request: GenerationRequest, session: DeepThinkingSession) -> DeepThinkingResult:
        """Execute all five phases, recording progress on *session*.

        Raises:
            VoidWeaverError: A generation phase failed.
            PipelineCancelled: The consumer disconnected between phases.
        """
        credential = request.credential
        prompt = request.prompt

        # Phase 1: sketch
        session.advance(ThinkingPhase.SKETCHING)
        session.record("Phase 1: Drafting a quick sketch of the scene...")
        sketch = await self.image_adapter.generate(prompt, credential=credential)
        session.sketch_image = sketch.image_data
        session.sink.sketch(sketch.image_data)
        session.record("Phase 1 complete: sketch drafted.")
        session.checkpoint()

        # Phase 2: critique
        session.advance(ThinkingPhase.CRITIQUING)
        critique = await self.analysis.critique(
            sketch.image_data, prompt, credential, mime_type=sketch.mime_type
        )
        session.record(f"Critique: {critique}")
        session.checkpoint()

        # Phase 3: style suggestion
        session.advance(ThinkingPhase.STYLE_SUGGESTING)
        style_tags = await self.analysis.suggest_style_tags(prompt, credential)
        session.record(f"Style Tags: {style_tags}")
        session.checkpoint()

        # Phase 4: refine
        session.advance(ThinkingPhase.REFINING)
        session.record("Phase 4: Refining the prompt with critique and style tags...")
        refined_prompt = compile_weights(compose_refined_prompt(prompt, critique, style_tags))
        logger.debug(f"[{session.request_id}] refined prompt: {refined_prompt}")

        # Phase 5: final render anchored to the sketch
        session.advance(ThinkingPhase.FINAL_GENERATING)
        session.record("Phase 5: Rendering the final image from the sketch...")
        final = await self.image_adapter.generate(
            refined_prompt,
            credential=credential,
            input_image=sketch.image_data,
            input_mime_type=sketch.mime_type,
        )
        session.record("Deep Thinking complete.")
        session.advance(ThinkingPhase.COMPLETED)

        return DeepThinkingResult(
            image_data=final.image_data,
            sketch_image=sketch.image_data,
            thinking_log=tuple(session.thinking_log),
        )

    async def run(self, request: GenerationRequest, sink: EventSink) -> DeepThinkingSession:
        """Task entry point: run the pipeline and emit exactly one terminal event.

        Returns the finished session so callers awaiting the task can inspect it.
        """
        session = DeepThinkingSession(sink)
        logger.info(f"[{session.request_id}] Deep Thinking started: {request!r}")

        try:
            result = await self.think(request, session)
        except PipelineCancelled as exc:
            session.fail()
            logger.info(f"[{session.request_id}] Deep Thinking abandoned: {exc}")
            return session
        except Exception as exc:
            error = as_voidweaver_error(exc)
            session.fail()
            logger.error(
                f"[{session.request_id}] Deep Thinking failed: {error.kind.value} - {error.message}",
                exc_info=error is not exc,
            )
            sink.fail(error)
            return session

        sink.complete(result.to_payload())
        logger.info(f"[{session.request_id}] Deep Thinking finished with {len(result.thinking_log)} log entries")
        return session
