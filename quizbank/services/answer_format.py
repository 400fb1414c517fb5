"""Answer format normaliser.

Validates deserialised ``correct_answer`` / response values against the
canonical shape for their question type. Anything that does not match is
treated as unanswered (``None``) and never raised, so corrupted or legacy
rows can not break scoring.

Dispatch is keyed on the question type, never on the value's structure: a
multi-select payload stored against a single-select question is malformed,
not silently reinterpreted.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from quizbank.db.models import QuestionTypeEnum
from quizbank.schemas.answers import (
    CircleRegion,
    DragOrderCorrect,
    DragOrderResponse,
    ImageMapCorrect,
    ImageMapOptions,
    ImageMapResponse,
    MultiChoiceCorrect,
    MultiChoiceResponse,
    RectRegion,
    SingleChoiceAnswer,
    SliderCorrect,
    SliderResponse,
    TrueFalseAnswer,
)

logger = logging.getLogger(__name__)

_CORRECT_ANSWER_MODELS: dict[QuestionTypeEnum, type[BaseModel]] = {
    QuestionTypeEnum.MULTIPLE_CHOICE_SINGLE: SingleChoiceAnswer,
    QuestionTypeEnum.MULTIPLE_CHOICE_MULTI: MultiChoiceCorrect,
    QuestionTypeEnum.TRUE_FALSE: TrueFalseAnswer,
    QuestionTypeEnum.DRAG_ORDER: DragOrderCorrect,
    QuestionTypeEnum.IMAGE_MAP: ImageMapCorrect,
    QuestionTypeEnum.SLIDER: SliderCorrect,
}

_RESPONSE_MODELS: dict[QuestionTypeEnum, type[BaseModel]] = {
    QuestionTypeEnum.MULTIPLE_CHOICE_SINGLE: SingleChoiceAnswer,
    QuestionTypeEnum.MULTIPLE_CHOICE_MULTI: MultiChoiceResponse,
    QuestionTypeEnum.TRUE_FALSE: TrueFalseAnswer,
    QuestionTypeEnum.DRAG_ORDER: DragOrderResponse,
    QuestionTypeEnum.IMAGE_MAP: ImageMapResponse,
    QuestionTypeEnum.SLIDER: SliderResponse,
}


def _coerce_type(question_type: QuestionTypeEnum | str) -> QuestionTypeEnum | None:
    try:
        return QuestionTypeEnum(question_type)
    except ValueError:
        return None


def _parse(
    models: dict[QuestionTypeEnum, type[BaseModel]],
    question_type: QuestionTypeEnum | str,
    raw: Any,
    what: str,
) -> BaseModel | None:
    qtype = _coerce_type(question_type)
    if qtype is None or not isinstance(raw, dict):
        if raw is not None:
            logger.debug("Dropping %s for type %s: not an object", what, question_type)
        return None
    try:
        return models[qtype].model_validate(raw)
    except PydanticValidationError as e:
        logger.debug(
            "Dropping malformed %s for type %s: %d error(s)",
            what, qtype.value, e.error_count(),
        )
        return None


def parse_correct_answer(question_type: QuestionTypeEnum | str, raw: Any) -> BaseModel | None:
    """Return the canonical correct answer for *question_type*, or None if malformed."""
    return _parse(_CORRECT_ANSWER_MODELS, question_type, raw, "correct answer")


def parse_response(question_type: QuestionTypeEnum | str, raw: Any) -> BaseModel | None:
    """Return the canonical learner response for *question_type*, or None if malformed."""
    return _parse(_RESPONSE_MODELS, question_type, raw, "response")


def is_valid_response(question_type: QuestionTypeEnum | str, raw: Any) -> bool:
    return parse_response(question_type, raw) is not None


def parse_image_regions(options: Any) -> dict[str, CircleRegion | RectRegion]:
    """Index the hit regions of an IMAGE_MAP question's ``options`` by id.

    Malformed options yield an empty mapping (every click misses).
    """
    if not isinstance(options, dict):
        return {}
    try:
        parsed = ImageMapOptions.model_validate(options)
    except PydanticValidationError:
        logger.debug("Dropping malformed image-map options")
        return {}
    return {region.id: region for region in parsed.regions}
