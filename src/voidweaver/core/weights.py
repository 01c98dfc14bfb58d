"""Weight compiler: rewrite ``weight::text::`` tokens into emphasis phrases.

The tag editor annotates emphasis with the NovelAI-style weight syntax
(``1.5::silver hair::``).  Gemini has no weighting primitive, so before a
prompt is sent there the annotations are rewritten into natural-language
descriptors.

Descriptor Table
----------------
Evaluated top-down, first match wins:

=========  ==========================================
weight >=  output
=========  ==========================================
2.0        ``extremely detailed, emphasized {text}``
1.5        ``highly detailed, {text}``
1.2        ``detailed, {text}``
0.9        ``{text}``
0.8        ``subtle {text}``
(else)     ``faint, slightly visible {text}``
=========  ==========================================

A token whose weight does not parse as a finite number is left exactly as
written, delimiters included.  Text outside tokens is never touched.

Usage
-----
::

    >>> compile_weights("a fox, 1.5::red fur::, 0.5::fog::")
    'a fox, highly detailed, red fur, faint, slightly visible fog'
"""

from __future__ import annotations

import math
import re

# Weight: a run of characters that cannot start a new token or cross a tag
# boundary.  Parsing happens afterwards so malformed weights still match and
# can be echoed back verbatim.
WEIGHT_TOKEN = re.compile(r"([^\s:,{}()\[\]]+)::(.*?)::")

_DESCRIPTOR_TABLE: tuple[tuple[float, str], ...] = (
    (2.0, "extremely detailed, emphasized {text}"),
    (1.5, "highly detailed, {text}"),
    (1.2, "detailed, {text}"),
    (0.9, "{text}"),
    (0.8, "subtle {text}"),
)
_FALLBACK_DESCRIPTOR = "faint, slightly visible {text}"


def describe_weight(weight: float, text: str) -> str:
    """Return the emphasis phrase for a single weighted tag."""
    for threshold, template in _DESCRIPTOR_TABLE:
        if weight >= threshold:
            return template.format(text=text)
    return _FALLBACK_DESCRIPTOR.format(text=text)


def _replace(match: re.Match[str]) -> str:
    raw_weight, text = match.group(1), match.group(2)
    try:
        weight = float(raw_weight)
    except ValueError:
        return match.group(0)
    if not math.isfinite(weight):
        return match.group(0)
    return describe_weight(weight, text)


def compile_weights(prompt: str) -> str:
    """Rewrite every weight token in *prompt* into its emphasis phrase.

    Args:
        prompt: Free text, possibly containing ``weight::text::`` tokens.

    Returns:
        The rewritten prompt.  Identical to *prompt* when it holds no
        well-formed token.
    """
    if "::" not in prompt:
        return prompt
    return WEIGHT_TOKEN.sub(_replace, prompt)
