"""Typing-centric domain modules."""

from formbuilder.typing.enums import FieldType, RuleKind
from formbuilder.typing.models import (
    DerivationResult,
    FormField,
    FormSchema,
    FormStats,
    SelectOption,
    ValidationReport,
    ValidationRule,
)
from formbuilder.typing.protocol import CustomRuleMatcher, KeyValueStorage

__all__ = [
    "CustomRuleMatcher",
    "DerivationResult",
    "FieldType",
    "FormField",
    "FormSchema",
    "FormStats",
    "KeyValueStorage",
    "RuleKind",
    "SelectOption",
    "ValidationReport",
    "ValidationRule",
]
