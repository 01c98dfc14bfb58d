"""Text/vision analysis client backed by the Gemini text model.

Four operations share one ``generateContent`` endpoint:

=====================  ===========================================  ==========
Operation              Purpose                                      On failure
=====================  ===========================================  ==========
``critique``           Three imperative fixes for a sketch          fallback
``suggest_style_tags`` Five complementary style/artist tags         fallback
``analyze_image``      Split an image into the eight prompt modules raises
``refine_modules``     Apply an instruction to the unlocked modules raises
=====================  ===========================================  ==========

Critique and style suggestion are advisory steps of the Deep Thinking
pipeline: any failure, including a classified provider error, is logged and
replaced by a fixed fallback string so the pipeline always proceeds.  Analysis
and refinement back their own endpoints and propagate classified errors.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from voidweaver.core.adapters.gemini_image import (
    gemini_endpoint,
    gemini_headers,
    parse_candidate_parts,
)
from voidweaver.core.config import VoidWeaverConfig
from voidweaver.core.errors import InternalError, ProviderEmptyResponseError
from voidweaver.core.prompt_builder import MODULE_NAMES, PromptModule, build_raw_prompt
from voidweaver.core.transport import make_timeout, post_json

logger = logging.getLogger(__name__)

PROVIDER_NAME = "Gemini Analysis"

CRITIQUE_FALLBACK = "enhance fine details, improve lighting, refine composition"
STYLE_TAGS_FALLBACK = "basic quality tags"

_CRITIQUE_PROMPT = (
    "You are a strict art director reviewing a rough sketch.\n"
    "Original prompt: {prompt}\n"
    "Compare the sketch against the prompt and reply with exactly three short "
    "imperative commands that would fix its biggest problems, as a single "
    "comma-separated list. No numbering, no explanations."
)

_STYLE_PROMPT = (
    "Suggest exactly five style or artist tags that would complement this image "
    "prompt: {prompt}\n"
    "Reply with the five tags as a single comma-separated list and nothing else."
)

_ANALYZE_PROMPT = """\
You are an expert image analyst. Analyze the given image and extract descriptive tags into 8 categories.

Return a JSON object with this exact structure:
{{
  "modules": [
    {{
      "name": "style",
      "displayName": "Style",
      "locked": false,
      "tags": [{{"id": "uuid", "text": "tag text", "weight": 1.0}}]
    }}
  ],
  "rawPrompt": "all tags joined as comma-separated string"
}}

The 8 modules, in this order, are: {module_names}.
- style: art style, artistic references
- subject: main character or object
- pose: action, posture, viewing angle
- costume: clothing, accessories
- background: scene, location
- composition: camera angle, framing
- atmosphere: lighting, mood
- extra: additional details

Generate unique UUIDs for each tag ID.
Return ONLY valid JSON, no markdown."""

_REFINE_PROMPT = """\
You are an AI prompt editor. Update the following modules according to the user instruction.

User instruction: {instruction}

Current modules: {modules_json}

Return a JSON object with:
{{
  "modules": [updated modules with same structure]
}}

Keep the same structure: name, displayName, locked, tags.
Generate new UUIDs for modified tags.
Return ONLY valid JSON."""


@dataclass(frozen=True, slots=True)
class AnalysisResult:
    modules: tuple[PromptModule, ...]
    raw_prompt: str


def _single_line(text: str) -> str:
    return " ".join(text.split()).strip().rstrip(".")


def _strip_code_fence(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.split("\n", 1)[1] if "\n" in stripped else ""
        if stripped.rstrip().endswith("```"):
            stripped = stripped.rstrip()[:-3]
    return stripped.strip()


class AnalysisClient:
    """Client for the Gemini text/vision model.

    Args:
        config: Supplies the model name, endpoint base and text timeout.
        client: Shared async HTTP client.
    """

    def __init__(self, config: VoidWeaverConfig, client: httpx.AsyncClient) -> None:
        self.config = config
        self.client = client

    async def _generate_text(
        self,
        parts: list[dict[str, Any]],
        credential: str,
        *,
        json_output: bool = False,
    ) -> str:
        body: dict[str, Any] = {"contents": [{"role": "user", "parts": parts}]}
        if json_output:
            body["generationConfig"] = {"responseMimeType": "application/json"}

        response = await post_json(
            self.client,
            gemini_endpoint(self.config, self.config.gemini_text_model),
            payload=body,
            headers=gemini_headers(credential),
            timeout=make_timeout(self.config, self.config.text_timeout),
            provider=PROVIDER_NAME,
        )
        texts = [p["text"] for p in parse_candidate_parts(response, PROVIDER_NAME) if p.get("text")]
        if not texts:
            raise ProviderEmptyResponseError(f"{PROVIDER_NAME} returned no text")
        return "".join(texts)

    # -- Advisory operations (never raise) ---------------------------------

    async def critique(
        self,
        image: str,
        original_prompt: str,
        credential: str,
        mime_type: str = "image/png",
    ) -> str:
        """Return three comma-separated fix commands for *image*.

        Falls back to :data:`CRITIQUE_FALLBACK` on any failure.
        """
        parts = [
            {"text": _CRITIQUE_PROMPT.format(prompt=original_prompt)},
            {"inline_data": {"mime_type": mime_type, "data": image}},
        ]
        try:
            text = _single_line(await self._generate_text(parts, credential))
        except Exception as exc:
            logger.warning(f"Critique failed, using fallback: {exc}")
            return CRITIQUE_FALLBACK
        return text or CRITIQUE_FALLBACK

    async def suggest_style_tags(self, prompt: str, credential: str) -> str:
        """Return five comma-separated style tags complementing *prompt*.

        Falls back to :data:`STYLE_TAGS_FALLBACK` on any failure.
        """
        parts = [{"text": _STYLE_PROMPT.format(prompt=prompt)}]
        try:
            text = _single_line(await self._generate_text(parts, credential))
        except Exception as exc:
            logger.warning(f"Style suggestion failed, using fallback: {exc}")
            return STYLE_TAGS_FALLBACK
        return text or STYLE_TAGS_FALLBACK

    # -- Module operations (raise on failure) ------------------------------

    def _parse_json(self, text: str) -> dict[str, Any]:
        try:
            data = json.loads(_strip_code_fence(text))
        except json.JSONDecodeError as exc:
            raise InternalError(f"{PROVIDER_NAME} returned invalid JSON: {exc}") from exc
        if not isinstance(data, dict) or not isinstance(data.get("modules"), list):
            raise InternalError(f"{PROVIDER_NAME} response is missing a 'modules' list")
        return data

    def _parse_modules(self, items: list[Any]) -> list[PromptModule]:
        try:
            return [PromptModule.from_dict(m) for m in items if isinstance(m, dict)]
        except (AttributeError, TypeError, ValueError) as exc:
            raise InternalError(f"{PROVIDER_NAME} returned malformed modules: {exc}") from exc

    async def analyze_image(self, image_data: str, credential: str) -> AnalysisResult:
        """Decompose an image into prompt modules."""
        logger.info("Analyzing image into prompt modules")
        parts = [
            {"text": _ANALYZE_PROMPT.format(module_names=", ".join(MODULE_NAMES))},
            {"inline_data": {"mime_type": "image/png", "data": image_data}},
        ]
        data = self._parse_json(await self._generate_text(parts, credential, json_output=True))

        modules = tuple(self._parse_modules(data["modules"]))
        raw_prompt = data.get("rawPrompt")
        if not isinstance(raw_prompt, str) or not raw_prompt.strip():
            raw_prompt = build_raw_prompt(modules)
        logger.info(f"Analysis produced {len(modules)} modules")
        return AnalysisResult(modules=modules, raw_prompt=raw_prompt)

    async def refine_modules(
        self,
        modules: list[PromptModule],
        instruction: str,
        credential: str,
    ) -> list[PromptModule]:
        """Rewrite the unlocked *modules* according to *instruction*.

        Locked modules are neither sent nor accepted back.
        """
        unlocked = [m for m in modules if not m.locked]
        locked_names = {m.name for m in modules if m.locked}
        logger.info(f"Refining {len(unlocked)} unlocked modules")

        prompt = _REFINE_PROMPT.format(
            instruction=instruction,
            modules_json=json.dumps([m.to_dict() for m in unlocked], ensure_ascii=False),
        )
        data = self._parse_json(
            await self._generate_text([{"text": prompt}], credential, json_output=True)
        )
        refined = self._parse_modules(data["modules"])
        return [m for m in refined if m.name not in locked_names]
