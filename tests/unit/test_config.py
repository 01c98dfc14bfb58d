"""Tests for voidweaver.core.config — configuration management.

Tests cover:
- Default values for model identifiers, generation defaults and timeouts.
- Environment variable overrides via the VOIDWEAVER_ prefix.
- Pydantic validation constraints.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from voidweaver.core.config import VoidWeaverConfig


class TestConfigDefaults:
    """Verify that VoidWeaverConfig provides the documented defaults."""

    def test_gemini_models(self, test_config: VoidWeaverConfig):
        assert test_config.gemini_image_model == "gemini-2.5-flash-image"
        assert test_config.gemini_edit_model == "gemini-3-pro-image-preview"
        assert test_config.gemini_text_model == "gemini-2.0-flash-exp"

    def test_novelai_defaults(self, test_config: VoidWeaverConfig):
        assert test_config.novelai_url == "https://image.novelai.net/ai/generate-image"
        assert test_config.novelai_model == "nai-diffusion-3"
        assert test_config.novelai_sampler == "k_euler"

    def test_generation_defaults(self, test_config: VoidWeaverConfig):
        assert test_config.default_steps == 28
        assert test_config.default_scale == 6.0
        assert test_config.default_strength == 0.7
        assert test_config.default_resolution == "1024x1024"

    def test_stream_deadline_default(self, monkeypatch):
        monkeypatch.delenv("VOIDWEAVER_STREAM_DEADLINE", raising=False)
        assert VoidWeaverConfig(_env_file=None).stream_deadline == 300.0

    def test_server_defaults(self, test_config: VoidWeaverConfig):
        assert test_config.server_port == 8080
        assert test_config.log_level == "INFO"


class TestEnvironmentOverrides:
    """VOIDWEAVER_* environment variables override defaults."""

    def test_model_override(self, monkeypatch):
        monkeypatch.setenv("VOIDWEAVER_GEMINI_IMAGE_MODEL", "gemini-next-image")
        assert VoidWeaverConfig(_env_file=None).gemini_image_model == "gemini-next-image"

    def test_timeout_override(self, monkeypatch):
        monkeypatch.setenv("VOIDWEAVER_IMAGE_TIMEOUT", "45")
        assert VoidWeaverConfig(_env_file=None).image_timeout == 45.0

    def test_case_insensitive(self, monkeypatch):
        monkeypatch.setenv("voidweaver_novelai_model", "nai-diffusion-4")
        assert VoidWeaverConfig(_env_file=None).novelai_model == "nai-diffusion-4"


class TestValidation:
    """Pydantic constraints reject out-of-range values."""

    def test_steps_range(self):
        with pytest.raises(ValidationError):
            VoidWeaverConfig(_env_file=None, default_steps=0)

    def test_strength_below_one(self):
        with pytest.raises(ValidationError):
            VoidWeaverConfig(_env_file=None, default_strength=1.0)

    def test_port_range(self):
        with pytest.raises(ValidationError):
            VoidWeaverConfig(_env_file=None, server_port=80)

    def test_log_level_literal(self):
        with pytest.raises(ValidationError):
            VoidWeaverConfig(_env_file=None, log_level="TRACE")
