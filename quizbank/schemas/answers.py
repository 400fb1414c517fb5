"""Canonical answer shapes, one pair per question type.

These are the only forms ever persisted in ``questions.correct_answer`` and
``quiz_attempts.responses``. Keys are camelCase on the wire and in storage.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr
from pydantic.alias_generators import to_camel

Identifier = Annotated[StrictStr, Field(min_length=1)]
Number = Annotated[float, Field(strict=True, allow_inf_nan=False)]
NonNegative = Annotated[float, Field(strict=True, allow_inf_nan=False, ge=0)]


class CanonicalModel(BaseModel):
    """Strict camelCase model: unknown keys make a value malformed."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )


# ── Multiple choice (single) ─────────────────────────────────────────────────


class SingleChoiceAnswer(CanonicalModel):
    option_id: Identifier


# ── Multiple choice (multi) ──────────────────────────────────────────────────


class MultiChoiceCorrect(CanonicalModel):
    option_ids: Annotated[list[Identifier], Field(min_length=1)]


class MultiChoiceResponse(CanonicalModel):
    option_ids: list[Identifier]


# ── True / false ─────────────────────────────────────────────────────────────


class TrueFalseAnswer(CanonicalModel):
    value: StrictBool


# ── Drag order ───────────────────────────────────────────────────────────────


class DragOrderCorrect(CanonicalModel):
    ordered_ids: Annotated[list[Identifier], Field(min_length=1)]


class DragOrderResponse(CanonicalModel):
    ordered_ids: list[Identifier]


# ── Image map ────────────────────────────────────────────────────────────────


class ImageMapCorrect(CanonicalModel):
    region_id: Identifier


class ImageMapResponse(CanonicalModel):
    x: Number
    y: Number


class CircleRegion(BaseModel):
    """Hit area ``(x - cx)² + (y - cy)² <= r²``, pixel space."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    type: Literal["circle"]
    id: Identifier
    cx: Number
    cy: Number
    r: NonNegative


class RectRegion(BaseModel):
    """Hit area ``x ∈ [x, x + width]`` and ``y ∈ [y, y + height]``, pixel space."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    type: Literal["rect"]
    id: Identifier
    x: Number
    y: Number
    width: NonNegative
    height: NonNegative


Region = Annotated[Union[CircleRegion, RectRegion], Field(discriminator="type")]


class ImageMapOptions(BaseModel):
    """``options`` payload of an IMAGE_MAP question (image URL etc. ignored)."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    regions: list[Region]


# ── Slider ───────────────────────────────────────────────────────────────────


class SliderCorrect(CanonicalModel):
    value: Number
    tolerance: NonNegative = 0.0


class SliderResponse(CanonicalModel):
    value: Number
