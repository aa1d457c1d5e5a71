"""Report definitions: storage, validation, and schedule synchronisation."""

from __future__ import annotations

from herald.definitions.errors import (
    DefinitionError,
    DefinitionNotFoundError,
    InvalidDefinitionError,
)
from herald.definitions.models import ReportSnapshot, normalize_terms
from herald.definitions.service import (
    DefinitionChanges,
    DefinitionFields,
    ReportDefinitionService,
)
from herald.definitions.storage import ReportDefinitionRow

__all__ = [
    "DefinitionChanges",
    "DefinitionError",
    "DefinitionFields",
    "DefinitionNotFoundError",
    "InvalidDefinitionError",
    "ReportDefinitionRow",
    "ReportDefinitionService",
    "ReportSnapshot",
    "normalize_terms",
]
