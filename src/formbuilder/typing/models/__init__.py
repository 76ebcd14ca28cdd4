"""Core domain model exports."""

from formbuilder.typing.models.field import FormField, SelectOption, ValidationRule, new_field_id
from formbuilder.typing.models.results import DerivationResult, ValidationReport
from formbuilder.typing.models.schema import FormSchema, FormStats, new_schema_id, utc_now

__all__ = [
    "DerivationResult",
    "FormField",
    "FormSchema",
    "FormStats",
    "SelectOption",
    "ValidationReport",
    "ValidationRule",
    "new_field_id",
    "new_schema_id",
    "utc_now",
]
