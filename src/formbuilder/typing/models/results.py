"""Evaluation outcome models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class DerivationResult(BaseModel):
    """Outcome of recomputing derived fields over a value map."""

    model_config = ConfigDict(extra="forbid")

    values: dict[str, Any]
    errors: dict[str, str] = Field(default_factory=dict)
    unresolved: list[str] = Field(default_factory=list)
    passes: int = 0


class ValidationReport(BaseModel):
    """Per-field violations for a whole form."""

    model_config = ConfigDict(extra="forbid")

    errors: dict[str, list[str]] = Field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        """Return whether no field reported a violation."""
        return not any(self.errors.values())
