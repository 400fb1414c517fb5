"""Unit tests for the canonical answer normaliser."""

import pytest

from quizbank.db.models import QuestionTypeEnum
from quizbank.schemas.answers import CircleRegion, RectRegion, SingleChoiceAnswer
from quizbank.services.answer_format import (
    is_valid_response,
    parse_correct_answer,
    parse_image_regions,
    parse_response,
)


class TestParseResponse:
    def test_single_choice_canonical(self):
        parsed = parse_response(QuestionTypeEnum.MULTIPLE_CHOICE_SINGLE, {"optionId": "a"})
        assert isinstance(parsed, SingleChoiceAnswer)
        assert parsed.option_id == "a"

    def test_type_given_as_string(self):
        assert parse_response("TRUE_FALSE", {"value": False}) is not None

    def test_unknown_type_is_malformed(self):
        assert parse_response("ESSAY", {"text": "hi"}) is None

    @pytest.mark.parametrize("raw", [None, "a", ["a"], 3, {}])
    def test_non_object_or_empty_is_malformed(self, raw):
        assert parse_response(QuestionTypeEnum.MULTIPLE_CHOICE_SINGLE, raw) is None

    def test_multi_select_shape_on_single_select_question(self):
        """Dispatch is by declared type, never by the value's structure."""
        raw = {"optionIds": ["a", "b"]}
        assert parse_response(QuestionTypeEnum.MULTIPLE_CHOICE_SINGLE, raw) is None
        assert parse_response(QuestionTypeEnum.MULTIPLE_CHOICE_MULTI, raw) is not None

    def test_extra_keys_are_malformed(self):
        raw = {"optionId": "a", "confidence": 0.9}
        assert parse_response(QuestionTypeEnum.MULTIPLE_CHOICE_SINGLE, raw) is None

    def test_true_false_rejects_truthy_strings(self):
        assert parse_response(QuestionTypeEnum.TRUE_FALSE, {"value": "true"}) is None
        assert parse_response(QuestionTypeEnum.TRUE_FALSE, {"value": 1}) is None

    def test_slider_rejects_non_numbers(self):
        assert parse_response(QuestionTypeEnum.SLIDER, {"value": "50"}) is None
        assert parse_response(QuestionTypeEnum.SLIDER, {"value": True}) is None
        assert parse_response(QuestionTypeEnum.SLIDER, {"value": float("nan")}) is None

    def test_slider_accepts_int_and_float(self):
        assert parse_response(QuestionTypeEnum.SLIDER, {"value": 50}).value == 50
        assert parse_response(QuestionTypeEnum.SLIDER, {"value": 49.5}).value == 49.5

    def test_image_map_needs_both_coordinates(self):
        assert parse_response(QuestionTypeEnum.IMAGE_MAP, {"x": 1}) is None
        assert parse_response(QuestionTypeEnum.IMAGE_MAP, {"x": 1, "y": 2}) is not None

    def test_empty_multi_selection_is_a_valid_response(self):
        assert is_valid_response(QuestionTypeEnum.MULTIPLE_CHOICE_MULTI, {"optionIds": []})

    def test_option_ids_must_be_strings(self):
        assert not is_valid_response(QuestionTypeEnum.DRAG_ORDER, {"orderedIds": [1, 2]})


class TestParseCorrectAnswer:
    def test_multi_correct_must_not_be_empty(self):
        assert parse_correct_answer(QuestionTypeEnum.MULTIPLE_CHOICE_MULTI, {"optionIds": []}) is None

    def test_slider_tolerance_defaults_to_zero(self):
        parsed = parse_correct_answer(QuestionTypeEnum.SLIDER, {"value": 10})
        assert parsed.tolerance == 0.0

    def test_negative_tolerance_is_malformed(self):
        assert parse_correct_answer(QuestionTypeEnum.SLIDER, {"value": 10, "tolerance": -1}) is None


class TestParseImageRegions:
    def test_indexes_regions_by_id(self):
        regions = parse_image_regions(
            {
                "image": "/x.png",
                "regions": [
                    {"type": "circle", "id": "c", "cx": 1, "cy": 2, "r": 3},
                    {"type": "rect", "id": "r", "x": 0, "y": 0, "width": 5, "height": 5},
                ],
            }
        )
        assert isinstance(regions["c"], CircleRegion)
        assert isinstance(regions["r"], RectRegion)

    def test_malformed_options_give_no_regions(self):
        assert parse_image_regions(None) == {}
        assert parse_image_regions([]) == {}
        assert parse_image_regions({"regions": [{"type": "polygon", "id": "p"}]}) == {}
