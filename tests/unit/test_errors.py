"""Tests for the error taxonomy and the core request types.

Tests cover:
- HTTP status classification (401/403/429/other).
- The wire error shape.
- Engine parsing in both spellings.
- Credential selection and log-safe rendering of requests.
"""

from __future__ import annotations

import pytest

from voidweaver.core.errors import (
    ErrorKind,
    InternalError,
    InvalidCredentialError,
    ProviderError,
    RateLimitedError,
    UnsupportedEngineError,
    as_voidweaver_error,
    classify_status,
)
from voidweaver.core.types import EngineType, GenerationRequest, mask_credential


class TestClassifyStatus:
    """Provider status codes map onto the taxonomy."""

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_failures(self, status):
        error = classify_status(status, "bad key", "NovelAI")
        assert isinstance(error, InvalidCredentialError)
        assert error.status_code == 401
        assert error.provider_status == status

    def test_rate_limited(self):
        error = classify_status(429, "slow down", "Google Gemini")
        assert isinstance(error, RateLimitedError)
        assert error.kind is ErrorKind.RATE_LIMITED

    @pytest.mark.parametrize("status", [400, 404, 500, 503])
    def test_other_statuses_forward_body(self, status):
        error = classify_status(status, '{"error": "model overloaded"}', "NovelAI")
        assert isinstance(error, ProviderError)
        assert error.message == f'NovelAI Error ({status}): {{"error": "model overloaded"}}'
        assert error.provider_body == '{"error": "model overloaded"}'


class TestErrorShape:
    """The JSON body sent for every failure."""

    def test_to_error(self):
        body = RateLimitedError("too many").to_error()
        assert body["error"] is True
        assert body["message"] == "too many"
        assert body["code"] == "RATE_LIMITED"
        assert body["timestamp"]

    def test_invalid_credential_code(self):
        assert InvalidCredentialError("x").to_error()["code"] == "INVALID_API_KEY"

    def test_wrap_unclassified(self):
        wrapped = as_voidweaver_error(KeyError("candidates"))
        assert isinstance(wrapped, InternalError)
        assert wrapped.status_code == 500

    def test_classified_passthrough(self):
        error = ProviderError("boom")
        assert as_voidweaver_error(error) is error


class TestEngineType:
    """Engine parsing accepts both wire spellings."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("novelai", EngineType.NOVELAI),
            ("NOVELAI", EngineType.NOVELAI),
            ("google-imagen", EngineType.GOOGLE_IMAGEN),
            ("GOOGLE_IMAGEN", EngineType.GOOGLE_IMAGEN),
            (" google-imagen ", EngineType.GOOGLE_IMAGEN),
        ],
    )
    def test_parse(self, value, expected):
        assert EngineType.parse(value) is expected

    @pytest.mark.parametrize("value", ["", None, "stable-diffusion", "dall-e"])
    def test_unsupported(self, value):
        with pytest.raises(UnsupportedEngineError):
            EngineType.parse(value)


class TestGenerationRequest:
    """Credential selection follows the engine."""

    def test_novelai_key_selected(self):
        request = GenerationRequest(
            prompt="a fox",
            engine=EngineType.NOVELAI,
            novelai_api_key="nai",
            google_credentials="goog",
        )
        assert request.credential == "nai"

    def test_google_key_selected(self):
        request = GenerationRequest(
            prompt="a fox",
            engine=EngineType.GOOGLE_IMAGEN,
            novelai_api_key="nai",
            google_credentials=" goog ",
        )
        assert request.credential == "goog"

    def test_missing_key_for_engine(self):
        request = GenerationRequest(
            prompt="a fox", engine=EngineType.GOOGLE_IMAGEN, novelai_api_key="nai"
        )
        with pytest.raises(InvalidCredentialError, match="Google API Key"):
            request.credential

    def test_repr_hides_credentials(self):
        request = GenerationRequest(
            prompt="a fox",
            engine=EngineType.NOVELAI,
            novelai_api_key="secret-novelai-key",
        )
        assert "secret" not in repr(request)

    def test_mask_credential(self):
        assert mask_credential("abcd1234wxyz") == "abcd…wxyz"
        assert mask_credential("short") == "****"
        assert mask_credential(None) == "<none>"
