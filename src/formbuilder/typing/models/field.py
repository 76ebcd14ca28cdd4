"""Field-centric domain models."""

from __future__ import annotations

from uuid import uuid4

from pydantic import Field, model_validator

from formbuilder.typing.enums import FieldType, RuleKind
from formbuilder.typing.models._base import CamelModel

Scalar = str | bool | int | float


class ValidationRule(CamelModel):
    """Single validation rule attached to a field."""

    kind: RuleKind
    threshold: int | float | None = None
    message: str = Field(min_length=1)


class SelectOption(CamelModel):
    """Choice offered by select and radio fields."""

    label: str
    value: str


class FormField(CamelModel):
    """Definition of a single form input.

    Derived fields compute their value from `parent_field_ids` through
    `formula`; they must declare both. Select and radio fields always carry
    an `options` list (possibly empty), other types never do.
    """

    id: str = Field(min_length=1)
    type: FieldType = FieldType.TEXT
    label: str = ""
    required: bool = False
    default_value: Scalar | None = None
    rules: list[ValidationRule] = Field(default_factory=list)
    is_derived: bool = False
    parent_field_ids: list[str] | None = None
    formula: str | None = None
    options: list[SelectOption] | None = None
    placeholder: str | None = None
    order: int = 0

    @model_validator(mode="after")
    def _check_derivation_and_options(self) -> FormField:
        """Enforce the derived-field and options invariants.

        Raises:
            ValueError: If a derived field misses parents or formula, or if a
                non-choice field carries options.

        Returns:
            FormField: The validated field.
        """
        if self.is_derived:
            if not self.parent_field_ids:
                raise ValueError(f"Derived field '{self.id}' must declare parent field ids")  # noqa: TRY003
            if not self.formula or not self.formula.strip():
                raise ValueError(f"Derived field '{self.id}' must declare a formula")  # noqa: TRY003

        if self.type.has_options:
            if self.options is None:
                self.options = []
        elif self.options:
            raise ValueError(  # noqa: TRY003
                f"Field '{self.id}' of type '{self.type.value}' should not have options",
            )
        else:
            self.options = None
        return self


def new_field_id() -> str:
    """Return a fresh, session-unique field identifier."""
    return str(uuid4())
