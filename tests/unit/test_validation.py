from __future__ import annotations

import pytest

from formbuilder.typing.enums import FieldType, RuleKind
from formbuilder.typing.models import FormField, ValidationRule
from formbuilder.validation import is_blank, validate, validate_form


def _field(*rules: ValidationRule, required: bool = False, field_id: str = "f") -> FormField:
    return FormField(id=field_id, label="Field", required=required, rules=list(rules))


def _rule(kind: RuleKind, message: str, threshold: float | None = None) -> ValidationRule:
    return ValidationRule(kind=kind, message=message, threshold=threshold)


def test_required_rule_fires_on_empty_value() -> None:
    field = _field(_rule(RuleKind.REQUIRED, "req"), required=True)

    assert validate(field, "") == ["req"]
    assert validate(field, None) == ["req"]
    assert validate(field, "x") == []


def test_required_rule_is_inert_on_optional_field() -> None:
    field = _field(_rule(RuleKind.REQUIRED, "req"), required=False)
    assert validate(field, "") == []


def test_required_flag_without_rule_reports_nothing() -> None:
    assert validate(_field(required=True), "") == []


def test_min_length_threshold() -> None:
    field = _field(_rule(RuleKind.MIN_LENGTH, "min", threshold=5))

    assert validate(field, "abcd") == ["min"]
    assert validate(field, "abcde") == []


def test_max_length_threshold() -> None:
    field = _field(_rule(RuleKind.MAX_LENGTH, "max", threshold=3))

    assert validate(field, "abcd") == ["max"]
    assert validate(field, "abc") == []


def test_length_rules_ignore_blank_values() -> None:
    field = _field(_rule(RuleKind.MIN_LENGTH, "min", threshold=5), _rule(RuleKind.MAX_LENGTH, "max", threshold=0))

    assert validate(field, "") == []
    assert validate(field, None) == []


def test_length_rule_without_threshold_is_inert() -> None:
    field = _field(_rule(RuleKind.MIN_LENGTH, "min"))
    assert validate(field, "a") == []


def test_length_rules_measure_stringified_numbers() -> None:
    field = _field(_rule(RuleKind.MIN_LENGTH, "min", threshold=3))

    assert validate(field, 12) == ["min"]
    assert validate(field, 123) == []


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("jane@example.com", []),
        ("jane.doe+tag@mail.example.org", []),
        ("jane@example", ["bad email"]),
        ("jane example@example.com", ["bad email"]),
        ("jane@@example.com", ["bad email"]),
        ("jané@example.com", ["bad email"]),
        ("jane@example.com\n", ["bad email"]),
        ("", []),
    ],
)
def test_email_rule(value: str, expected: list[str]) -> None:
    field = _field(_rule(RuleKind.EMAIL, "bad email"))
    assert validate(field, value) == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("secret123", []),
        ("short1", ["weak"]),
        ("longpassword", ["weak"]),
        ("", []),
    ],
)
def test_password_rule(value: str, expected: list[str]) -> None:
    field = _field(_rule(RuleKind.PASSWORD, "weak"))
    assert validate(field, value) == expected


def test_custom_rule_passes_without_matcher() -> None:
    field = _field(_rule(RuleKind.CUSTOM, "custom"))
    assert validate(field, "anything") == []


def test_custom_rule_uses_matcher() -> None:
    field = _field(_rule(RuleKind.CUSTOM, "must be upper"))
    calls: list[str] = []

    def _upper_only(field, rule, value) -> bool:
        calls.append(rule.message)
        return str(value).isupper()

    assert validate(field, "abc", custom_matcher=_upper_only) == ["must be upper"]
    assert validate(field, "ABC", custom_matcher=_upper_only) == []
    assert calls == ["must be upper", "must be upper"]


def test_rules_are_evaluated_independently_in_order() -> None:
    field = _field(
        _rule(RuleKind.MIN_LENGTH, "min", threshold=10),
        _rule(RuleKind.EMAIL, "email"),
        _rule(RuleKind.PASSWORD, "password"),
        _rule(RuleKind.MIN_LENGTH, "min again", threshold=20),
    )

    assert validate(field, "abc") == ["min", "email", "password", "min again"]


def test_validate_form_only_reports_failing_fields() -> None:
    name = _field(_rule(RuleKind.REQUIRED, "name required"), required=True, field_id="name")
    email = _field(_rule(RuleKind.EMAIL, "bad email"), field_id="email")
    agree = FormField(id="agree", type=FieldType.CHECKBOX)

    report = validate_form([name, email, agree], {"email": "jane@example.com", "agree": False})

    assert report.errors == {"name": ["name required"]}
    assert report.is_valid is False


def test_is_blank() -> None:
    assert is_blank(None)
    assert is_blank("")
    assert not is_blank(0)
    assert not is_blank(False)
    assert not is_blank(" ")
