"""Identity cache used to collapse repeated entities into one record.

A record is registered under ``(kind, identifier system, identifier value)``.
If a practitioner with system ``http://hl7.org/fhir/sid/us-npi`` and value
``123456789`` has been converted, converting the same practitioner again from
another part of the document resolves to the first record.
"""

from __future__ import annotations

from ccdafold.models import Record, RecordKind

IdentityKey = tuple[RecordKind, str | None, str | None]


class IdentityCache:
    """Map of IdentityKey -> Record. The first record stored under a key wins."""

    def __init__(self):
        self._records: dict[IdentityKey, Record] = {}

    def add(self, record: Record, system: str | None, value: str | None) -> None:
        """Register ``record``; no-op when the key is already taken."""
        self._records.setdefault((record.kind, system, value), record)

    def try_get(self, kind: RecordKind, system: str | None, value: str | None) -> Record | None:
        return self._records.get((kind, system, value))

    def contains(self, kind: RecordKind, system: str | None, value: str | None) -> bool:
        return (kind, system, value) in self._records

    def __len__(self) -> int:
        return len(self._records)
