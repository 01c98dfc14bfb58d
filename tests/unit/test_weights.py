"""Tests for voidweaver.core.weights — the weight compiler.

Tests cover:
- Identity on prompts without weight tokens.
- Every row of the descriptor table, including the thresholds.
- Malformed weights left verbatim.
- Text outside tokens left untouched.
"""

from __future__ import annotations

import pytest

from voidweaver.core.weights import compile_weights, describe_weight


class TestCompileWeightsIdentity:
    """Prompts without a well-formed token come back unchanged."""

    @pytest.mark.parametrize(
        "prompt",
        [
            "",
            "a fox in the snow",
            "masterpiece, best quality, 1girl",
            "ratio 16:9, time 12:30",
            "trailing :: delimiters ::",
        ],
    )
    def test_no_tokens_is_identity(self, prompt):
        """compile(p) == p when p holds no weight token."""
        assert compile_weights(prompt) == prompt


class TestDescriptorTable:
    """Each weight band maps to its emphasis phrase."""

    def test_one_point_five(self):
        assert "highly detailed, cat" in compile_weights("1.5::cat::")

    def test_above_two(self):
        assert compile_weights("2.5::dragon::") == "extremely detailed, emphasized dragon"

    def test_neutral_band(self):
        assert compile_weights("0.95::leaf::") == "leaf"

    def test_below_point_eight(self):
        assert compile_weights("0.3::shadow::") == "faint, slightly visible shadow"

    @pytest.mark.parametrize(
        "weight, expected",
        [
            (2.0, "extremely detailed, emphasized moon"),
            (1.99, "highly detailed, moon"),
            (1.2, "detailed, moon"),
            (1.19, "moon"),
            (0.9, "moon"),
            (0.85, "subtle moon"),
            (0.8, "subtle moon"),
            (0.79, "faint, slightly visible moon"),
            (-1.0, "faint, slightly visible moon"),
        ],
    )
    def test_thresholds(self, weight, expected):
        """Thresholds are inclusive lower bounds, first match wins."""
        assert describe_weight(weight, "moon") == expected

    def test_integer_weight(self):
        assert compile_weights("2::wings::") == "extremely detailed, emphasized wings"


class TestMalformedWeights:
    """Tokens whose weight is not a finite number are inert."""

    def test_non_numeric_weight_kept_verbatim(self):
        assert compile_weights("abc::thing::") == "abc::thing::"

    def test_surrounding_text_untouched(self):
        prompt = "a castle, abc::thing::, at night"
        assert compile_weights(prompt) == prompt

    @pytest.mark.parametrize("raw", ["nan", "inf", "-inf"])
    def test_non_finite_weight_kept_verbatim(self, raw):
        assert compile_weights(f"{raw}::glow::") == f"{raw}::glow::"

    def test_malformed_next_to_valid(self):
        """A bad token does not stop later tokens from compiling."""
        result = compile_weights("abc::thing::, 1.5::fur::")
        assert result == "abc::thing::, highly detailed, fur"


class TestMixedPrompts:
    """Realistic prompts mixing plain text and tokens."""

    def test_multiple_tokens(self):
        result = compile_weights("a fox, 1.5::red fur::, 0.5::fog::")
        assert result == "a fox, highly detailed, red fur, faint, slightly visible fog"

    def test_multi_word_text(self):
        result = compile_weights("1.2::silver hair, long::")
        assert result == "detailed, silver hair, long"

    def test_plain_text_outside_tokens_preserved(self):
        result = compile_weights("  spaced  prompt ,1.20::eyes::,  tail")
        assert result == "  spaced  prompt ,detailed, eyes,  tail"
