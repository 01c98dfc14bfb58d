"""Pydantic request and response models for the VoidWeaver API.

These models define the JSON schema for every API endpoint.  FastAPI uses
them for automatic request validation, serialisation, and OpenAPI
documentation generation.

Field names are snake_case in Python and camelCase on the wire
(``novelaiApiKey``, ``deepThinking``, ``imageData`` ...); both spellings are
accepted on input.

Models
------
GenerateRequest
    Payload for ``POST /api/generate`` and ``POST /api/generate/stream``.
GenerateResponse
    Result of a generation; ``sketchImage``/``thinkingLog`` are only set by
    Deep Thinking.
TagModel / ModuleModel
    The editor's weighted-tag structure.
AnalyzeRequest / AnalyzeResponse
    ``POST /api/analyze``: image -> prompt modules.
RefineRequest / RefineResponse
    ``POST /api/refine``: instruction applied to the unlocked modules.
PromptCompileRequest / PromptCompileResponse
    ``POST /api/prompt/compile``: preview of the assembled prompt."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from voidweaver.core.errors import InvalidRequestError
from voidweaver.core.prompt_builder import WEIGHT_MAX, WEIGHT_MIN, PromptModule, WeightedTag
from voidweaver.core.types import EngineType, GenerationRequest, GenerationSettings


class CamelModel(BaseModel):
    """Base model serialising to camelCase and accepting either case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerateRequest(CamelModel):
    """Request body for the generation endpoints.

    Attributes:
        prompt: Prompt text, possibly containing ``weight::text::`` tokens.
        engine: ``"novelai"`` or ``"google-imagen"`` (``NOVELAI`` /
            ``GOOGLE_IMAGEN`` also accepted).
        novelai_api_key: NovelAI key, read only when ``engine`` is NovelAI.
        google_credentials: Gemini API key, read only when ``engine`` is
            Google.
        resolution: ``WIDTHxHEIGHT``; NovelAI only.
        steps: Sampling steps; NovelAI only.
        scale: Guidance scale; NovelAI only.
        image: Base64 reference image; switches to image-to-image.
        strength: Image-to-image strength; NovelAI only.
        deep_thinking: Run the five-phase refinement (streaming, Google only).
    """

    prompt: str = Field(..., min_length=1, description="Prompt text (weight syntax allowed).")
    engine: str = Field(..., description="Provider: 'novelai' or 'google-imagen'.")
    novelai_api_key: str | None = Field(default=None, description="NovelAI API key.")
    google_credentials: str | None = Field(default=None, description="Google Gemini API key.")
    resolution: str | None = Field(default=None, description="Output size as WIDTHxHEIGHT.")
    steps: int | None = Field(default=None, ge=1, le=50)
    scale: float | None = Field(default=None, ge=1.0, le=20.0)
    image: str | None = Field(default=None, description="Base64 reference image (img2img).")
    strength: float | None = Field(default=None, ge=0.0, le=0.99)
    deep_thinking: bool = Field(default=False, description="Enable Deep Thinking refinement.")

    def to_generation_request(self) -> GenerationRequest:
        """Convert to the core request type.

        Raises:
            UnsupportedEngineError: Unknown engine.
            InvalidRequestError: Prompt is blank after trimming.
        """
        engine = EngineType.parse(self.engine)
        prompt = self.prompt.strip()
        if not prompt:
            raise InvalidRequestError("Prompt must not be empty")
        return GenerationRequest(
            prompt=prompt,
            engine=engine,
            settings=GenerationSettings(
                resolution=self.resolution,
                steps=self.steps,
                scale=self.scale,
                strength=self.strength,
            ),
            input_image=self.image or None,
            deep_thinking=self.deep_thinking,
            novelai_api_key=self.novelai_api_key,
            google_credentials=self.google_credentials,
        )


class GenerateResponse(CamelModel):
    image_data: str
    sketch_image: str | None = None
    thinking_log: list[str] | None = None


class TagModel(CamelModel):
    id: str | None = None
    text: str
    weight: float = Field(default=1.0, ge=WEIGHT_MIN, le=WEIGHT_MAX)
    hidden: bool = False

    def to_tag(self) -> WeightedTag:
        return WeightedTag(text=self.text, weight=self.weight, id=self.id, hidden=self.hidden)

    @classmethod
    def from_tag(cls, tag: WeightedTag) -> TagModel:
        return cls(id=tag.id, text=tag.text, weight=tag.weight, hidden=tag.hidden)


class ModuleModel(CamelModel):
    name: str
    display_name: str = ""
    locked: bool = False
    tags: list[TagModel] = Field(default_factory=list)

    def to_module(self) -> PromptModule:
        return PromptModule(
            name=self.name,
            display_name=self.display_name or self.name.capitalize(),
            locked=self.locked,
            tags=tuple(t.to_tag() for t in self.tags),
        )

    @classmethod
    def from_module(cls, module: PromptModule) -> ModuleModel:
        return cls(
            name=module.name,
            display_name=module.display_name,
            locked=module.locked,
            tags=[TagModel.from_tag(t) for t in module.tags],
        )


class AnalyzeRequest(CamelModel):
    image_data: str = Field(..., min_length=1, description="Base64 image to decompose.")
    gemini_api_key: str = Field(..., min_length=1, description="Google Gemini API key.")


class AnalyzeResponse(CamelModel):
    modules: list[ModuleModel]
    raw_prompt: str


class RefineRequest(CamelModel):
    modules: list[ModuleModel]
    instruction: str = Field(..., min_length=1, description="Natural-language edit instruction.")
    gemini_api_key: str = Field(..., min_length=1, description="Google Gemini API key.")


class RefineResponse(CamelModel):
    modules: list[ModuleModel]


class PromptCompileRequest(CamelModel):
    modules: list[ModuleModel]


class PromptCompileResponse(CamelModel):
    prompt: str = Field(description="Weight-annotated prompt (NovelAI syntax).")
    raw_prompt: str = Field(description="Tag texts only, no weights.")
    compiled_prompt: str = Field(description="Prompt with weights rewritten as phrases (Gemini).")

