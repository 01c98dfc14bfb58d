"""Assemble a prompt string from the editor's module/tag structure.

The editor organises a prompt into eight named modules (style, subject, pose,
costume, background, composition, atmosphere, extra), each holding an
ordered list of weighted tags.  This module flattens that structure into the
single comma-separated prompt the providers accept.

Weight Annotation
-----------------
A tag whose weight is 1.0 (within :data:`WEIGHT_EPSILON`) is emitted as its
bare text.  Any other weight is emitted in the ``weight::text::`` syntax,
which NovelAI understands natively and which
:func:`voidweaver.core.weights.compile_weights` rewrites for Gemini::

    style:   [anime (1.0), watercolor (1.3)]
    subject: [girl (1.0), silver hair (0.8)]

    -> "anime, 1.30::watercolor::, girl, 0.80::silver hair::"

Hidden tags are included: ``hidden`` only controls whether the editor shows
the chip, not whether the tag participates in generation.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

WEIGHT_EPSILON = 0.01
WEIGHT_MIN = 0.0
WEIGHT_MAX = 5.0

MODULE_NAMES: tuple[str, ...] = (
    "style",
    "subject",
    "pose",
    "costume",
    "background",
    "composition",
    "atmosphere",
    "extra",
)


@dataclass(frozen=True, slots=True)
class WeightedTag:
    text: str
    weight: float = 1.0
    id: str | None = None
    hidden: bool = False

    @property
    def is_neutral(self) -> bool:
        return abs(self.weight - 1.0) < WEIGHT_EPSILON

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> WeightedTag:
        """Build a tag from its wire form.

        Raises:
            ValueError: The weight is not a number in
                [WEIGHT_MIN, WEIGHT_MAX].
        """
        weight = 1.0 if data.get("weight") is None else float(data["weight"])
        if not WEIGHT_MIN <= weight <= WEIGHT_MAX:
            raise ValueError(f"tag weight {weight} is outside [{WEIGHT_MIN}, {WEIGHT_MAX}]")
        return cls(
            text=str(data.get("text", "")),
            weight=weight,
            id=data.get("id"),
            hidden=bool(data.get("hidden", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.text, "weight": self.weight, "hidden": self.hidden}


@dataclass(frozen=True, slots=True)
class PromptModule:
    name: str
    display_name: str = ""
    locked: bool = False
    tags: tuple[WeightedTag, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PromptModule:
        name = str(data.get("name", ""))
        return cls(
            name=name,
            display_name=str(data.get("displayName") or name.capitalize()),
            locked=bool(data.get("locked", False)),
            tags=tuple(WeightedTag.from_dict(t) for t in data.get("tags") or ()),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "displayName": self.display_name,
            "locked": self.locked,
            "tags": [t.to_dict() for t in self.tags],
        }


def iter_tags(modules: Iterable[PromptModule]) -> Iterator[WeightedTag]:
    """Yield every tag in module order, then tag order."""
    for module in modules:
        yield from module.tags


def format_tag(tag: WeightedTag) -> str:
    """Render a tag, adding the ``weight::text::`` annotation when needed."""
    if tag.is_neutral:
        return tag.text
    return f"{tag.weight:.2f}::{tag.text}::"


def build_weighted_prompt(modules: Iterable[PromptModule]) -> str:
    """Flatten *modules* into a comma-separated, weight-annotated prompt."""
    return ", ".join(format_tag(tag) for tag in iter_tags(modules) if tag.text.strip())


def build_raw_prompt(modules: Iterable[PromptModule]) -> str:
    """Flatten *modules* into plain tag text, ignoring weights (for copying)."""
    return ", ".join(tag.text for tag in iter_tags(modules) if tag.text.strip())
