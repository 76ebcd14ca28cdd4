"""Schema-centric domain models."""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from formbuilder.typing.models._base import CamelModel
from formbuilder.typing.models.field import FormField


def utc_now() -> datetime:
    """Return the current timezone-aware UTC timestamp."""
    return datetime.now(tz=UTC)


def new_schema_id() -> str:
    """Return a fresh schema identifier."""
    return str(uuid4())


class FormSchema(CamelModel):
    """Ordered collection of fields plus metadata defining one form."""

    id: str = Field(default_factory=new_schema_id, min_length=1)
    name: str = ""
    fields: list[FormField] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def get_field(self, field_id: str) -> FormField | None:
        """Look up a field by its id."""
        for field in self.fields:
            if field.id == field_id:
                return field
        return None


class FormStats(BaseModel):
    """Summary counts displayed for a saved schema."""

    model_config = ConfigDict(extra="forbid")

    total_fields: int
    required_fields: int
    derived_fields: int
