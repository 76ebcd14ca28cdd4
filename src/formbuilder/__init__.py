"""FormBuilder package: form schema editing, validation and derived fields."""

from formbuilder.exceptions import (
    FormulaError,
    PackageError,
    PersistenceError,
    SettingsError,
)
from formbuilder.logging import configure_logging, get_logger
from formbuilder.settings import Settings, get_settings

__version__ = "0.1.0"

# Initialize package logger at import time via `get_logger`.
logger = get_logger("formbuilder")

__all__ = [
    "FormulaError",
    "PackageError",
    "PersistenceError",
    "Settings",
    "SettingsError",
    "__version__",
    "configure_logging",
    "get_logger",
    "get_settings",
    "logger",
]
