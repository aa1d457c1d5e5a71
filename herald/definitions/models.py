"""Value objects and normalisation for report definitions."""

from __future__ import annotations

import typing as typ

import msgspec

from herald.definitions.errors import InvalidDefinitionError

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from herald.definitions.storage import ReportDefinitionRow


def normalize_terms(values: cabc.Iterable[str]) -> list[str]:
    """Strip terms, drop blanks, and remove duplicates keeping first order.

    Duplicates are detected case-insensitively so ``"Acme"`` and ``"acme"``
    collapse to the first spelling seen.
    """
    seen: set[str] = set()
    terms: list[str] = []
    for value in values:
        term = value.strip()
        key = term.casefold()
        if not term or key in seen:
            continue
        seen.add(key)
        terms.append(term)
    return terms


def normalize_topics(values: cabc.Iterable[str]) -> list[str]:
    """Normalise topics, requiring at least one to survive."""
    topics = normalize_terms(values)
    if not topics:
        raise InvalidDefinitionError.empty_topics()
    return topics


def require_text(field: str, value: str) -> str:
    """Return ``value`` stripped, rejecting blank input."""
    stripped = value.strip()
    if not stripped:
        raise InvalidDefinitionError.blank(field)
    return stripped


def validate_recipient(value: str) -> str:
    """Return a trimmed recipient address after a structural check."""
    recipient = value.strip()
    local, at, domain = recipient.rpartition("@")
    if not at or not local or "." not in domain or " " in recipient:
        raise InvalidDefinitionError.invalid_recipient(value)
    return recipient


class ReportSnapshot(msgspec.Struct, frozen=True, kw_only=True):
    """Definition fields captured when an execution is admitted.

    The snapshot is stored on the execution record so retries keep
    researching the same topics even if the definition is edited or deleted
    mid-flight.
    """

    report_id: str
    owner_id: str
    title: str
    topics: tuple[str, ...]
    keywords: tuple[str, ...] = ()
    cadence: str
    delivery_time: str
    recipient: str

    @classmethod
    def from_row(cls, row: ReportDefinitionRow) -> ReportSnapshot:
        """Capture the current state of a definition row."""
        return cls(
            report_id=row.report_id,
            owner_id=row.owner_id,
            title=row.title,
            topics=tuple(row.topics),
            keywords=tuple(row.keywords or ()),
            cadence=row.cadence,
            delivery_time=row.delivery_time,
            recipient=row.recipient,
        )

    def to_payload(self) -> dict[str, typ.Any]:
        """Return a JSON-compatible mapping for storage."""
        return msgspec.to_builtins(self)

    @classmethod
    def from_payload(cls, payload: dict[str, typ.Any]) -> ReportSnapshot:
        """Rebuild a snapshot from its stored mapping."""
        return msgspec.convert(payload, type=cls)
