"""Editing session for the current schema and the saved-schema collection."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from formbuilder import logger
from formbuilder.typing.models import FormField, FormSchema, FormStats, utc_now

if TYPE_CHECKING:
    from collections.abc import Mapping

    from formbuilder.persistence import PersistenceGateway

_IMMUTABLE_FIELD_KEYS = frozenset({"id"})


class SchemaStore(BaseModel):
    """Session state owning the schema being edited.

    Commands never raise on bad input (unknown ids, out-of-range indices,
    blank names): they leave the state untouched and report through their
    return value and the log.
    """

    model_config = ConfigDict(extra="forbid")

    current_schema: FormSchema | None = None
    saved_schemas: list[FormSchema] = Field(default_factory=list)
    is_modified: bool = False

    # -----------------------------------------------------------------
    # Current schema lifecycle
    # -----------------------------------------------------------------

    def initialize(self) -> FormSchema:
        """Create an empty current schema when none exists.

        Returns:
            FormSchema: The current schema (existing or newly created).
        """
        if self.current_schema is None:
            now = utc_now()
            self.current_schema = FormSchema(created_at=now, updated_at=now)
            logger.debug("Schema initialized", extra={"schema_id": self.current_schema.id})
        return self.current_schema

    def clear_current_schema(self) -> None:
        """Drop the current schema to start a new one."""
        self.current_schema = None
        self.is_modified = False

    # -----------------------------------------------------------------
    # Field mutations
    # -----------------------------------------------------------------

    def get_field(self, field_id: str) -> FormField | None:
        """Look up a field of the current schema by id."""
        if self.current_schema is None:
            return None
        return self.current_schema.get_field(field_id)

    def add_field(self, field: FormField) -> FormSchema:
        """Append a field to the current schema.

        The caller assigns the field id (see `new_field_id`) and its initial
        order. The current schema is created first when absent.

        Args:
            field: Field to append.

        Returns:
            FormSchema: The updated current schema.
        """
        schema = self.initialize()
        schema.fields.append(field)
        self.is_modified = True
        return schema

    def update_field(self, field_id: str, updates: Mapping[str, Any]) -> bool:
        """Shallow-merge `updates` onto a field.

        Keys may use attribute names or their camelCase aliases. Nested lists
        (rules, options, parent ids) are replaced, not merged. The field id
        cannot be changed.

        Args:
            field_id: Id of the field to update.
            updates: Partial field values.

        Returns:
            bool: False when the field is unknown or the merged field is invalid.
        """
        if self.current_schema is None:
            return False
        index = _index_of(self.current_schema.fields, field_id)
        if index is None:
            logger.debug("Update ignored for unknown field", extra={"field_id": field_id})
            return False

        existing = self.current_schema.fields[index]
        merged = existing.model_dump()
        for key, value in updates.items():
            name = FormField.field_name_for(key)
            if name is None:
                logger.warning("Update rejected: unknown attribute", extra={"field_id": field_id, "key": key})
                return False
            if name in _IMMUTABLE_FIELD_KEYS:
                continue
            merged[name] = value

        try:
            updated = FormField.model_validate(merged)
        except ValidationError as exc:
            logger.warning(
                "Update rejected: invalid field",
                extra={"field_id": field_id, "errors": exc.error_count()},
            )
            return False

        self.current_schema.fields[index] = updated
        self.is_modified = True
        return True

    def delete_field(self, field_id: str) -> bool:
        """Remove a field from the current schema.

        References to it in other fields' parent ids are left dangling.

        Args:
            field_id: Id of the field to remove.

        Returns:
            bool: False when the field is unknown.
        """
        if self.current_schema is None:
            return False
        index = _index_of(self.current_schema.fields, field_id)
        if index is None:
            return False

        del self.current_schema.fields[index]
        self.is_modified = True
        return True

    def reorder_fields(self, from_index: int, to_index: int) -> bool:
        """Move a field, then renumber every field's order to its position.

        Args:
            from_index: Current position of the field.
            to_index: Target position.

        Returns:
            bool: False when either index is out of range.
        """
        if self.current_schema is None:
            return False
        fields = list(self.current_schema.fields)
        if not (0 <= from_index < len(fields) and 0 <= to_index < len(fields)):
            logger.debug(
                "Reorder ignored: index out of range",
                extra={"from_index": from_index, "to_index": to_index, "count": len(fields)},
            )
            return False

        moved = fields.pop(from_index)
        fields.insert(to_index, moved)
        for position, field in enumerate(fields):
            field.order = position

        self.current_schema.fields = fields
        self.is_modified = True
        return True

    # -----------------------------------------------------------------
    # Saved schemas
    # -----------------------------------------------------------------

    def save_schema(self, name: str) -> list[FormSchema]:
        """Snapshot the current schema into the saved collection under `name`.

        A saved schema with the same id is replaced in place; otherwise the
        snapshot is appended.

        Args:
            name: Schema name (surrounding whitespace is dropped).

        Returns:
            list[FormSchema]: The saved collection (unchanged when rejected).
        """
        clean_name = name.strip()
        if self.current_schema is None or not clean_name:
            logger.warning("Save rejected", extra={"has_schema": self.current_schema is not None})
            return self.saved_schemas

        self.current_schema.name = clean_name
        self.current_schema.updated_at = utc_now()
        snapshot = self.current_schema.model_copy(deep=True)

        index = _index_of(self.saved_schemas, snapshot.id)
        if index is None:
            self.saved_schemas.append(snapshot)
        else:
            self.saved_schemas[index] = snapshot

        self.is_modified = False
        logger.info("Schema saved", extra={"schema_id": snapshot.id, "fields": len(snapshot.fields)})
        return self.saved_schemas

    def get_saved_schema(self, schema_id: str) -> FormSchema | None:
        """Look up a saved schema by id."""
        index = _index_of(self.saved_schemas, schema_id)
        return None if index is None else self.saved_schemas[index]

    def load_schema(self, schema_id: str) -> bool:
        """Make an independent copy of a saved schema the current schema.

        Args:
            schema_id: Id of the saved schema.

        Returns:
            bool: False when no saved schema has that id.
        """
        saved = self.get_saved_schema(schema_id)
        if saved is None:
            return False

        self.current_schema = saved.model_copy(deep=True)
        self.is_modified = False
        return True

    def delete_saved_schema(self, schema_id: str) -> bool:
        """Remove a schema from the saved collection.

        Args:
            schema_id: Id of the saved schema.

        Returns:
            bool: False when no saved schema has that id.
        """
        index = _index_of(self.saved_schemas, schema_id)
        if index is None:
            return False
        del self.saved_schemas[index]
        return True

    # -----------------------------------------------------------------
    # Persistence
    # -----------------------------------------------------------------

    def load_saved(self, gateway: PersistenceGateway) -> list[FormSchema]:
        """Replace the saved collection with the persisted one."""
        self.saved_schemas = gateway.load()
        return self.saved_schemas

    def persist(self, gateway: PersistenceGateway) -> bool:
        """Write the saved collection through the gateway.

        Returns:
            bool: False when the write failed; the session is unchanged either way.
        """
        return gateway.save(self.saved_schemas)


def form_stats(schema: FormSchema) -> FormStats:
    """Count total, required and derived fields of a schema."""
    return FormStats(
        total_fields=len(schema.fields),
        required_fields=sum(1 for field in schema.fields if field.required),
        derived_fields=sum(1 for field in schema.fields if field.is_derived),
    )


def _index_of(items: list[FormField] | list[FormSchema], item_id: str) -> int | None:
    for index, item in enumerate(items):
        if item.id == item_id:
            return index
    return None
