"""Shared pydantic configuration for wire-facing models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Model serialized with camelCase keys and populated by either naming."""

    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @classmethod
    def field_name_for(cls, key: str) -> str | None:
        """Resolve a snake_case name or a camelCase alias to the attribute name.

        Args:
            key: Attribute name or serialized alias.

        Returns:
            str | None: Attribute name, or None when the key is unknown.
        """
        if key in cls.model_fields:
            return key
        for name in cls.model_fields:
            if to_camel(name) == key:
                return name
        return None
