"""Saved-schema persistence over a durable key-value slot."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import TYPE_CHECKING, cast

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from formbuilder import logger
from formbuilder.exceptions import PersistenceError
from formbuilder.settings import DEFAULT_STORAGE_KEY, Settings, get_settings
from formbuilder.typing.models import FormSchema

if TYPE_CHECKING:
    from collections.abc import Sequence

    from formbuilder.typing.protocol import KeyValueStorage

_SCHEMA_LIST = TypeAdapter(list[FormSchema])

_LEGACY_FIELD_KEYS = {
    "validationRules": "rules",
    "parentFields": "parentFieldIds",
    "derivedFormula": "formula",
}
_LEGACY_RULE_KEYS = {
    "type": "kind",
    "value": "threshold",
}


class InMemoryStorage:
    """Process-local key-value storage."""

    def __init__(self, slots: dict[str, str] | None = None) -> None:
        self.slots: dict[str, str] = dict(slots or {})

    def get(self, key: str) -> str | None:
        """Return the payload stored under `key`, if any."""
        return self.slots.get(key)

    def set(self, key: str, value: str) -> None:
        """Store `value` under `key`."""
        self.slots[key] = value


class FileStorage(BaseModel):
    """Filesystem key-value storage: one JSON file per key."""

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    root: Path = Field(description="Storage directory root.")

    def model_post_init(self, __context: object, /) -> None:
        """Ensure the storage directory exists after model initialization.

        Args:
            __context (object): Pydantic model context.
        """
        self.root.mkdir(parents=True, exist_ok=True)

    def slot_path(self, key: str) -> Path:
        """Build the file path backing a key.

        Args:
            key (str): Slot key.

        Returns:
            Path: Slot file path.
        """
        safe_key = re.sub(r"[^A-Za-z0-9._-]+", "-", key).strip("-.")
        if not safe_key:
            safe_key = "slot"
        return self.root / f"{safe_key}.json"

    def get(self, key: str) -> str | None:
        """Read a slot.

        Args:
            key (str): Slot key.

        Raises:
            PersistenceError: If the slot file exists but cannot be read.

        Returns:
            str | None: Stored payload, or None when the slot is empty.
        """
        path = self.slot_path(key)
        if not path.is_file():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(message=f"Cannot read storage slot: {exc}", key=key) from exc

    def set(self, key: str, value: str) -> None:
        """Write a slot, replacing it atomically.

        Args:
            key (str): Slot key.
            value (str): Payload.

        Raises:
            PersistenceError: If the slot file cannot be written.
        """
        path = self.slot_path(key)
        staging = path.with_suffix(".json.tmp")
        try:
            staging.write_text(value, encoding="utf-8")
            staging.replace(path)
        except OSError as exc:
            raise PersistenceError(message=f"Cannot write storage slot: {exc}", key=key) from exc


class PersistenceGateway:
    """Load and save the saved-schema collection under a single key.

    Args:
        storage: Durable key-value backend.
        key: Slot key holding the serialized collection.
    """

    def __init__(self, storage: KeyValueStorage, *, key: str = DEFAULT_STORAGE_KEY) -> None:
        self.storage = storage
        self.key = key

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> PersistenceGateway:
        """Build a file-backed gateway from settings.

        Args:
            settings (Settings | None): Settings to use. Defaults to the cached settings.

        Returns:
            PersistenceGateway: Gateway writing under `STORAGE_DIR` / `STORAGE_KEY`.
        """
        config = settings or get_settings()
        return cls(FileStorage(root=config.storage_path), key=config.storage_key)

    def load(self) -> list[FormSchema]:
        """Load the saved schemas.

        Missing, unreadable or corrupt data degrades to an empty collection.

        Returns:
            list[FormSchema]: Saved schemas in stored order.
        """
        try:
            raw = self.storage.get(self.key)
        except PersistenceError:
            logger.exception("Saved schemas could not be read", extra={"key": self.key})
            return []
        if raw is None:
            return []

        try:
            payload = json.loads(raw)
            if not isinstance(payload, list):
                raise PersistenceError(message="Saved schemas payload must be a JSON array", key=self.key)
            schemas = _SCHEMA_LIST.validate_python([_migrate_schema_payload(item) for item in payload])
        except (json.JSONDecodeError, ValidationError, PersistenceError) as exc:
            logger.error("Saved schemas could not be parsed", extra={"key": self.key, "error": str(exc)})
            return []

        logger.debug("Saved schemas loaded", extra={"key": self.key, "count": len(schemas)})
        return schemas

    def save(self, schemas: Sequence[FormSchema]) -> bool:
        """Write the saved schemas.

        Args:
            schemas (Sequence[FormSchema]): Collection to persist, in order.

        Returns:
            bool: True when the write succeeded.
        """
        payload = json.dumps(
            [schema.model_dump(mode="json", by_alias=True) for schema in schemas],
            ensure_ascii=False,
        )
        try:
            self.storage.set(self.key, payload)
        except PersistenceError:
            logger.exception("Saved schemas could not be written", extra={"key": self.key})
            return False

        logger.info("Saved schemas persisted", extra={"key": self.key, "count": len(schemas)})
        return True


def _migrate_schema_payload(payload: object) -> dict[str, object]:
    """Rename legacy field and rule keys to the current names.

    Args:
        payload (object): Raw schema object.

    Raises:
        PersistenceError: If payload is not a JSON object.

    Returns:
        dict[str, object]: Schema payload using current key names.
    """
    if not isinstance(payload, dict):
        raise PersistenceError(message="Schema payload must be a JSON object")

    migrated = dict(cast("dict[str, object]", payload))
    fields = migrated.get("fields")
    if isinstance(fields, list):
        migrated["fields"] = [_migrate_field_payload(field) for field in fields]
    return migrated


def _migrate_field_payload(field: object) -> object:
    if not isinstance(field, dict):
        return field

    migrated = _rename_keys(cast("dict[str, object]", field), _LEGACY_FIELD_KEYS)
    rules = migrated.get("rules")
    if isinstance(rules, list):
        migrated["rules"] = [
            _rename_keys(cast("dict[str, object]", rule), _LEGACY_RULE_KEYS) if isinstance(rule, dict) else rule
            for rule in rules
        ]
    return migrated


def _rename_keys(payload: dict[str, object], renames: dict[str, str]) -> dict[str, object]:
    renamed = dict(payload)
    for legacy, current in renames.items():
        if legacy in renamed and current not in renamed:
            renamed[current] = renamed.pop(legacy)
    return renamed
