from __future__ import annotations

from formbuilder.persistence import InMemoryStorage, PersistenceGateway
from formbuilder.preview import FormPreview
from formbuilder.schema_store import SchemaStore, form_stats
from formbuilder.typing.enums import FieldType, RuleKind
from formbuilder.typing.models import FormField, ValidationRule, new_field_id


def _build_signup_schema(store: SchemaStore) -> dict[str, str]:
    ids = {"first": new_field_id(), "last": new_field_id(), "birth": new_field_id(), "age": new_field_id()}
    store.initialize()
    store.add_field(
        FormField(
            id=ids["first"],
            label="First name",
            required=True,
            rules=[
                ValidationRule(kind=RuleKind.REQUIRED, message="First name is required"),
                ValidationRule(kind=RuleKind.MIN_LENGTH, threshold=2, message="Too short"),
            ],
        ),
    )
    store.add_field(FormField(id=ids["last"], label="Last name", order=1))
    store.add_field(FormField(id=ids["birth"], type=FieldType.DATE, label="Birth date", order=2))
    store.add_field(
        FormField(
            id=ids["age"],
            type=FieldType.NUMBER,
            label="Age",
            order=3,
            is_derived=True,
            parent_field_ids=[ids["birth"]],
            formula=f"years_between(fields['{ids['birth']}'], '2026-10-19')",
        ),
    )
    return ids


def test_edit_save_reload_and_preview() -> None:
    gateway = PersistenceGateway(InMemoryStorage())
    store = SchemaStore()
    ids = _build_signup_schema(store)

    store.reorder_fields(1, 0)
    store.save_schema("Signup")
    assert store.persist(gateway) is True
    schema_id = store.current_schema.id

    session = SchemaStore()
    session.load_saved(gateway)
    assert session.load_schema(schema_id) is True
    schema = session.current_schema

    assert schema.name == "Signup"
    assert [field.id for field in schema.fields] == [ids["last"], ids["first"], ids["birth"], ids["age"]]
    assert [field.order for field in schema.fields] == [0, 1, 2, 3]
    assert form_stats(schema).derived_fields == 1

    preview = FormPreview(schema, max_passes=5)
    assert preview.set_value(ids["first"], "J") == ["Too short"]
    preview.set_value(ids["birth"], "1990-10-20")

    assert preview.get_value(ids["age"]) == 35
    assert preview.submit().errors == {ids["first"]: ["Too short"]}


def test_editing_after_save_marks_modified_until_next_save() -> None:
    gateway = PersistenceGateway(InMemoryStorage())
    store = SchemaStore()
    ids = _build_signup_schema(store)
    store.save_schema("Signup")

    store.update_field(ids["last"], {"required": True})
    assert store.is_modified is True
    assert gateway.load() == []

    store.save_schema("Signup")
    store.persist(gateway)

    reloaded = gateway.load()
    assert len(reloaded) == 1
    assert reloaded[0].get_field(ids["last"]).required is True
    assert store.is_modified is False


def test_deleted_parent_leaves_derived_field_unready() -> None:
    store = SchemaStore()
    ids = _build_signup_schema(store)

    store.delete_field(ids["birth"])
    preview = FormPreview(store.current_schema, max_passes=5)

    assert preview.unresolved == [ids["age"]]
    assert preview.get_value(ids["age"]) is None
