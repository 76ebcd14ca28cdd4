"""Per-field validation rule evaluation."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, cast

from formbuilder.typing.enums import RuleKind
from formbuilder.typing.models import ValidationReport

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from formbuilder.typing.models import FormField, ValidationRule
    from formbuilder.typing.protocol import CustomRuleMatcher

_EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
_DIGIT_PATTERN = re.compile(r"\d")
_PASSWORD_MIN_LENGTH = 8


def is_blank(value: Any) -> bool:
    """Return whether a value counts as absent (None or empty string)."""
    return value is None or value == ""


def validate(
    field: FormField,
    value: Any,
    *,
    custom_matcher: CustomRuleMatcher | None = None,
) -> list[str]:
    """Evaluate every rule of a field against a candidate value.

    Rules run in declared order and independently of each other; the message
    of each violated rule is collected.

    Args:
        field: Field definition holding the rules.
        value: Candidate value.
        custom_matcher: Optional host check for `custom` rules.

    Returns:
        list[str]: Messages of the violated rules, in rule order.
    """
    return [
        rule.message
        for rule in field.rules
        if _is_violated(field, rule, value, custom_matcher=custom_matcher)
    ]


def validate_form(
    fields: Iterable[FormField],
    values: Mapping[str, Any],
    *,
    custom_matcher: CustomRuleMatcher | None = None,
) -> ValidationReport:
    """Validate all fields of a form at once.

    Args:
        fields: Field definitions.
        values: Current value map keyed by field id.
        custom_matcher: Optional host check for `custom` rules.

    Returns:
        ValidationReport: Violations keyed by field id (only failing fields).
    """
    errors: dict[str, list[str]] = {}
    for field in fields:
        messages = validate(field, values.get(field.id), custom_matcher=custom_matcher)
        if messages:
            errors[field.id] = messages
    return ValidationReport(errors=errors)


def _is_violated(
    field: FormField,
    rule: ValidationRule,
    value: Any,
    *,
    custom_matcher: CustomRuleMatcher | None,
) -> bool:
    # `required` is gated by the field flag, not by the rule alone.
    if rule.kind == RuleKind.REQUIRED:
        return field.required and is_blank(value)

    if is_blank(value):
        return False

    if rule.kind.needs_threshold and rule.threshold is None:
        return False

    text = str(value)
    match rule.kind:
        case RuleKind.MIN_LENGTH:
            return len(text) < cast("float", rule.threshold)
        case RuleKind.MAX_LENGTH:
            return len(text) > cast("float", rule.threshold)
        case RuleKind.EMAIL:
            return not (text.isascii() and _EMAIL_PATTERN.fullmatch(text))
        case RuleKind.PASSWORD:
            return len(text) < _PASSWORD_MIN_LENGTH or not _DIGIT_PATTERN.search(text)
        case RuleKind.CUSTOM:
            return custom_matcher is not None and not custom_matcher(field, rule, value)

    return False
