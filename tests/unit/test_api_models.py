"""Tests for voidweaver.api.models — wire schemas and conversion."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from voidweaver.api.models import GenerateRequest, GenerateResponse, ModuleModel
from voidweaver.core.errors import InvalidRequestError, UnsupportedEngineError
from voidweaver.core.types import EngineType


class TestGenerateRequest:
    """camelCase payloads convert into the core request type."""

    def test_camel_case_payload(self):
        req = GenerateRequest.model_validate(
            {
                "prompt": "  a fox  ",
                "engine": "google-imagen",
                "googleCredentials": "key",
                "deepThinking": True,
                "image": "cmVm",
            }
        )
        request = req.to_generation_request()
        assert request.engine is EngineType.GOOGLE_IMAGEN
        assert request.prompt == "a fox"
        assert request.deep_thinking is True
        assert request.input_image == "cmVm"

    def test_snake_case_accepted(self):
        req = GenerateRequest(prompt="1girl", engine="novelai", novelai_api_key="nai", steps=20)
        request = req.to_generation_request()
        assert request.settings.steps == 20
        assert request.credential == "nai"

    def test_empty_image_is_text_to_image(self):
        req = GenerateRequest(prompt="1girl", engine="novelai", image="")
        assert req.to_generation_request().input_image is None

    def test_unknown_engine(self):
        with pytest.raises(UnsupportedEngineError):
            GenerateRequest(prompt="x", engine="dall-e").to_generation_request()

    def test_blank_prompt(self):
        with pytest.raises(InvalidRequestError):
            GenerateRequest(prompt="   ", engine="novelai").to_generation_request()

    @pytest.mark.parametrize("field, value", [("steps", 0), ("steps", 51), ("scale", 25.0), ("strength", 1.0)])
    def test_ranges(self, field, value):
        with pytest.raises(ValidationError):
            GenerateRequest(prompt="x", engine="novelai", **{field: value})


class TestSerialisation:
    """Responses use camelCase field names."""

    def test_generate_response(self):
        data = GenerateResponse(image_data="abc", sketch_image="def").model_dump(by_alias=True)
        assert data == {"imageData": "abc", "sketchImage": "def", "thinkingLog": None}

    def test_module_round_trip(self):
        module = ModuleModel.model_validate(
            {"name": "pose", "tags": [{"text": "sitting", "weight": 1.2}]}
        ).to_module()
        assert module.display_name == "Pose"
        dumped = ModuleModel.from_module(module).model_dump(by_alias=True)
        assert dumped["displayName"] == "Pose"
        assert dumped["tags"][0]["weight"] == 1.2
