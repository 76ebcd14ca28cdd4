"""Engine extension interfaces."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from formbuilder.typing.models import FormField, ValidationRule


class KeyValueStorage(Protocol):
    """Durable string slots addressed by key."""

    def get(self, key: str) -> str | None:
        """Read a slot.

        Args:
            key: Slot key.

        Returns:
            str | None: Stored payload, or None when the slot is empty.
        """

    def set(self, key: str, value: str) -> None:
        """Write a slot, replacing any previous payload.

        Args:
            key: Slot key.
            value: Payload to store.
        """


class CustomRuleMatcher(Protocol):
    """Host-supplied check for `custom` validation rules."""

    def __call__(self, field: FormField, rule: ValidationRule, value: Any) -> bool:
        """Return True when `value` satisfies the custom rule.

        Args:
            field: Field being validated.
            rule: The `custom` rule.
            value: Candidate value.
        """
