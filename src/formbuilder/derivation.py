"""Reactive recomputation of derived field values."""

from __future__ import annotations

import keyword
import math
from functools import lru_cache
from typing import TYPE_CHECKING, Any

from formbuilder import logger
from formbuilder.exceptions import FormulaError
from formbuilder.formula import FormulaEvaluator
from formbuilder.settings import get_settings
from formbuilder.typing.models import DerivationResult
from formbuilder.validation import is_blank

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from formbuilder.typing.models import FormField

FIELDS_BINDING = "fields"


@lru_cache(maxsize=1)
def default_evaluator() -> FormulaEvaluator:
    """Return the shared evaluator configured from settings."""
    return FormulaEvaluator(max_length=get_settings().formula_max_length)


def is_ready(field: FormField, values: Mapping[str, Any]) -> bool:
    """Return whether every parent of a derived field holds a non-blank value.

    Unknown parent ids count as not ready.
    """
    if not field.parent_field_ids:
        return False
    return all(not is_blank(values.get(parent_id)) for parent_id in field.parent_field_ids)


def build_bindings(parent_ids: Sequence[str], values: Mapping[str, Any]) -> dict[str, Any]:
    """Bind parent values by id for formula evaluation.

    Every parent is reachable through the ``fields`` mapping; parents whose id
    is a valid identifier are also bound directly by name.

    Args:
        parent_ids: Parent field ids in declared order.
        values: Current value map.

    Returns:
        dict[str, Any]: Formula bindings.
    """
    parents = {parent_id: values.get(parent_id) for parent_id in parent_ids}
    bindings: dict[str, Any] = {FIELDS_BINDING: parents}
    for parent_id, value in parents.items():
        if parent_id.isidentifier() and not keyword.iskeyword(parent_id):
            bindings[parent_id] = value
    return bindings


def recompute_derived_values(
    fields: Iterable[FormField],
    values: Mapping[str, Any],
    *,
    max_passes: int | None = None,
    evaluator: FormulaEvaluator | None = None,
) -> DerivationResult:
    """Recompute every derived field until values settle.

    Derived fields are visited in schema order on each pass, so a chain laid
    out parent-first settles in a single pass. Passes repeat until nothing
    changes or `max_passes` is reached. At the cap one more pass, not
    counted, checks the result: fields it still changes are unset and
    reported as unresolved, along with fields whose parents are not ready. A failing formula keeps the field's previous value
    and never stops the other fields.

    Args:
        fields: Schema fields (non-derived fields are ignored).
        values: Live value map keyed by field id. Not mutated.
        max_passes: Pass cap. Defaults to the `DERIVATION_MAX_PASSES` setting.
        evaluator: Formula evaluator. Defaults to the shared evaluator.

    Returns:
        DerivationResult: New value map, per-field errors and unresolved ids.
    """
    passes_cap = max_passes if max_passes is not None else get_settings().derivation_max_passes
    passes_cap = max(1, passes_cap)
    engine = evaluator or default_evaluator()

    derived = [field for field in fields if field.is_derived and field.parent_field_ids and field.formula]
    current = dict(values)
    errors: dict[str, str] = {}
    not_ready: set[str] = set()
    unstable: set[str] = set()
    passes = 0

    for passes in range(1, passes_cap + 1):  # noqa: B007
        changed, not_ready = _run_pass(derived, current, errors, engine)
        if not changed:
            break
    else:
        unstable, not_ready = _run_pass(derived, current, errors, engine)
        for field_id in unstable:
            current.pop(field_id, None)
        if unstable:
            logger.warning(
                "Derived fields did not settle",
                extra={"field_ids": sorted(unstable), "passes": passes},
            )

    unresolved = [field.id for field in derived if field.id in not_ready or field.id in unstable]
    return DerivationResult(values=current, errors=errors, unresolved=unresolved, passes=passes)


def _run_pass(
    derived: list[FormField],
    current: dict[str, Any],
    errors: dict[str, str],
    engine: FormulaEvaluator,
) -> tuple[set[str], set[str]]:
    """Evaluate each derived field once, writing results into `current`.

    Returns:
        tuple[set[str], set[str]]: Ids whose value changed, ids not ready.
    """
    changed: set[str] = set()
    not_ready: set[str] = set()
    for field in derived:
        if not is_ready(field, current):
            not_ready.add(field.id)
            continue

        parent_ids = field.parent_field_ids or []
        try:
            result = engine.evaluate(field.formula or "", build_bindings(parent_ids, current))
        except FormulaError as exc:
            message = str(exc)
            if errors.get(field.id) != message:
                logger.warning(
                    "Derived field evaluation failed",
                    extra={"field_id": field.id, "formula": field.formula, "error": exc.message},
                )
            errors[field.id] = message
            continue

        errors.pop(field.id, None)
        if field.id not in current or not _same_value(current[field.id], result):
            current[field.id] = result
            changed.add(field.id)
    return changed, not_ready


def _same_value(previous: Any, result: Any) -> bool:
    if type(previous) is not type(result):
        return False
    if isinstance(result, float) and math.isnan(result) and math.isnan(previous):
        return True
    return bool(previous == result)
