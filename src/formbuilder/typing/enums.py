"""Project enums."""

from __future__ import annotations

from enum import StrEnum


class _EnumMixin(StrEnum):
    """Shared conversion helpers for user-facing enums."""

    @classmethod
    def from_str(cls, value: str) -> _EnumMixin:
        """Parse enum from string.

        Args:
            value: Raw string value.

        Raises:
            ValueError: If the value is not supported.

        Returns:
            _EnumMixin: Parsed enum value.
        """
        try:
            return cls(value)
        except ValueError as exc:
            supported = ", ".join(member.value for member in cls)
            message = f"Unsupported {cls.__name__} value '{value}'. Expected one of: {supported}"
            raise ValueError(message) from exc

    def to_str(self) -> str:
        """Return string representation.

        Returns:
            str: Enum string value.
        """
        return self.value


class FieldType(_EnumMixin):
    """Supported form field input types."""

    TEXT = "text"
    NUMBER = "number"
    TEXTAREA = "textarea"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    DATE = "date"

    @property
    def has_options(self) -> bool:
        """Return whether the type is backed by a list of choices."""
        return self in {FieldType.SELECT, FieldType.RADIO}


class RuleKind(_EnumMixin):
    """Validation rule kinds."""

    REQUIRED = "required"
    MIN_LENGTH = "minLength"
    MAX_LENGTH = "maxLength"
    EMAIL = "email"
    PASSWORD = "password"  # noqa: S105
    CUSTOM = "custom"

    @property
    def needs_threshold(self) -> bool:
        """Return whether the rule compares against a numeric threshold."""
        return self in {RuleKind.MIN_LENGTH, RuleKind.MAX_LENGTH}
