"""Package exceptions."""

from __future__ import annotations

from dataclasses import dataclass


class PackageError(Exception):
    """Root exception for the package."""


@dataclass(frozen=True)
class SettingsError(PackageError):
    """Raised when settings cannot be loaded or validated."""

    message: str = "Failed to load settings"
    exc: BaseException | None = None

    def __str__(self) -> str:
        """Return error message payload."""
        return f"{self.message}: {self.exc}" if self.exc else self.message


@dataclass(frozen=True)
class FormulaError(PackageError):
    """Raised when a derived-field formula cannot be parsed or evaluated."""

    message: str
    formula: str | None = None

    def __str__(self) -> str:
        """Return error message payload."""
        return f"{self.message} (formula: {self.formula!r})" if self.formula is not None else self.message


@dataclass
class PersistenceError(PackageError):
    """Raised when the key-value storage cannot be read or written."""

    message: str
    key: str | None = None

    def __str__(self) -> str:
        """Return error message payload."""
        return f"{self.message} [key={self.key}]" if self.key else self.message
