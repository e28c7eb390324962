from __future__ import annotations

import pytest

from proposal_builder.answers import (
    DEFAULT_STEPS,
    AnswerDocument,
    AnswerValidationError,
    MultiSelectAnswer,
    TextAnswer,
    validate_against_steps,
)


def test_from_payload_builds_typed_answers():
    document = AnswerDocument.from_payload(
        {"businessName": "Acme", "services": ["SEO", "Design", "SEO"]}
    )

    assert document["businessName"] == TextAnswer(value="Acme")
    assert document.selections("services") == ("SEO", "Design")
    assert document.to_payload() == {"businessName": "Acme", "services": ["SEO", "Design"]}


def test_absent_keys_are_unanswered_not_errors():
    document = AnswerDocument.from_payload({})

    assert "timeline" not in document
    assert document.text("timeline") is None
    assert document.selections("services") == ()


def test_from_payload_rejects_non_string_values():
    with pytest.raises(AnswerValidationError):
        AnswerDocument.from_payload({"businessName": 42})
    with pytest.raises(AnswerValidationError):
        AnswerDocument.from_payload({"services": ["SEO", 3]})


def test_multi_select_equality_ignores_order():
    assert MultiSelectAnswer.of(["SEO", "Design"]) == MultiSelectAnswer.of(["Design", "SEO"])


def test_with_answer_leaves_original_untouched():
    original = AnswerDocument.from_payload({"businessName": "Acme"})
    updated = original.with_answer("timeline", TextAnswer(value="Q3"))

    assert original.to_payload() == {"businessName": "Acme"}
    assert updated.to_payload() == {"businessName": "Acme", "timeline": "Q3"}


def test_validate_against_steps_rejects_kind_mismatch_and_unknown_options():
    validate_against_steps(
        AnswerDocument.from_payload({"businessName": "Acme", "services": ["SEO"]}),
        DEFAULT_STEPS,
    )

    with pytest.raises(AnswerValidationError, match="must be a list of options"):
        validate_against_steps(AnswerDocument.from_payload({"services": "SEO"}), DEFAULT_STEPS)
    with pytest.raises(AnswerValidationError, match="must be a string"):
        validate_against_steps(AnswerDocument.from_payload({"timeline": ["Q3"]}), DEFAULT_STEPS)
    with pytest.raises(AnswerValidationError, match="Unknown options"):
        validate_against_steps(AnswerDocument.from_payload({"services": ["Printing"]}), DEFAULT_STEPS)
    with pytest.raises(AnswerValidationError, match="Unknown question key"):
        validate_against_steps(AnswerDocument.from_payload({"budget": "10k"}), DEFAULT_STEPS)
