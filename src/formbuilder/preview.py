"""Live form state for previewing a schema."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from formbuilder.logging import get_logger
from formbuilder.derivation import recompute_derived_values
from formbuilder.typing.enums import FieldType
from formbuilder.validation import validate, validate_form

if TYPE_CHECKING:
    from formbuilder.formula import FormulaEvaluator
    from formbuilder.typing.models import FormField, FormSchema, ValidationReport
    from formbuilder.typing.protocol import CustomRuleMatcher


def initial_value(field: FormField) -> Any:
    """Return the value a field starts with in a fresh form.

    The field's default value wins; otherwise checkboxes start unchecked and
    every other type starts empty.
    """
    if field.default_value is not None:
        return field.default_value
    if field.type == FieldType.CHECKBOX:
        return False
    return ""


class FormPreview:
    """Value map, derived values and error lists for one schema.

    Derived fields start unset and are recomputed after every change. Their
    inputs are read-only for the end user (see `is_read_only`), but a value
    set for them is accepted and replaced by the next recomputation.

    Args:
        schema: Schema to render.
        custom_matcher: Optional host check for `custom` validation rules.
        evaluator: Formula evaluator used for derived fields.
        max_passes: Derivation pass cap (defaults to settings).
    """

    def __init__(
        self,
        schema: FormSchema,
        *,
        custom_matcher: CustomRuleMatcher | None = None,
        evaluator: FormulaEvaluator | None = None,
        max_passes: int | None = None,
    ) -> None:
        self.schema = schema
        self._logger = get_logger("formbuilder.preview", schema_id=schema.id)
        self._custom_matcher = custom_matcher
        self._evaluator = evaluator
        self._max_passes = max_passes
        self.values: dict[str, Any] = {
            field.id: initial_value(field) for field in schema.fields if not field.is_derived
        }
        self.errors: dict[str, list[str]] = {}
        self.derivation_errors: dict[str, str] = {}
        self.unresolved: list[str] = []
        self._recompute()

    def get_value(self, field_id: str) -> Any:
        """Return the live value of a field, or None when unset."""
        return self.values.get(field_id)

    def is_read_only(self, field_id: str) -> bool:
        """Return whether the field's input must be disabled (derived fields)."""
        field = self.schema.get_field(field_id)
        return field is not None and field.is_derived

    def set_value(self, field_id: str, value: Any) -> list[str]:
        """Store a value, refresh derived fields and validate the field.

        Args:
            field_id: Id of the edited field.
            value: New value.

        Returns:
            list[str]: The field's current violations (empty for unknown ids).
        """
        field = self.schema.get_field(field_id)
        if field is None:
            self._logger.debug("Value ignored for unknown field", extra={"field_id": field_id})
            return []

        self.values[field_id] = value
        self._recompute()
        field_errors = validate(field, self.values.get(field_id), custom_matcher=self._custom_matcher)
        self.errors[field_id] = field_errors
        return field_errors

    def submit(self) -> ValidationReport:
        """Validate every field; the report replaces the error map.

        Returns:
            ValidationReport: Violations keyed by field id.
        """
        report = validate_form(self.schema.fields, self.values, custom_matcher=self._custom_matcher)
        self.errors = dict(report.errors)
        if report.is_valid:
            self._logger.info("Form submitted", extra={"fields": len(self.schema.fields)})
        return report

    def _recompute(self) -> None:
        result = recompute_derived_values(
            self.schema.fields,
            self.values,
            max_passes=self._max_passes,
            evaluator=self._evaluator,
        )
        self.values = result.values
        self.derivation_errors = result.errors
        self.unresolved = result.unresolved
