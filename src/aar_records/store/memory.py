"""In-memory storage for After Action Reports."""

from __future__ import annotations

import dataclasses
import logging
from collections import Counter
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType

from aar_records.domain.identifiers import utc_now
from aar_records.domain.models import Record
from aar_records.store.locks import ReadWriteLock

logger = logging.getLogger(__name__)


class RecordStoreError(Exception):
    """Base class for record store failures."""

    def __init__(self, message: str, record_id: str) -> None:
        super().__init__(message)
        self.record_id = record_id


class RecordNotFoundError(RecordStoreError):
    """Raised when a lookup or update targets an absent identifier."""

    def __init__(self, record_id: str) -> None:
        super().__init__(f"AAR not found: {record_id}", record_id)


class RecordAlreadyExistsError(RecordStoreError):
    """Raised when a create targets an identifier that is already stored."""

    def __init__(self, record_id: str) -> None:
        super().__init__(f"AAR already exists: {record_id}", record_id)


def _frozen_counts(counter: Counter[str]) -> Mapping[str, int]:
    return MappingProxyType(dict(counter))


@dataclass(frozen=True)
class RecordStats:
    """Aggregate counts over the stored reports.

    Only values that occur in the store appear as keys. Use the ``count_for_*``
    helpers when a missing key should read as zero.
    """

    total: int
    by_mission_type: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    by_status: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))

    def count_for_mission_type(self, mission_type: str) -> int:
        return self.by_mission_type.get(mission_type, 0)

    def count_for_status(self, status: str) -> int:
        return self.by_status.get(status, 0)

    def to_dict(self) -> dict[str, object]:
        return {
            "total": self.total,
            "by_mission_type": dict(self.by_mission_type),
            "by_status": dict(self.by_status),
        }


def _newest_first(records: Iterable[Record]) -> list[Record]:
    # Store-assigned submitted_date is never None for stored records.
    return sorted(records, key=lambda record: record.submitted_date, reverse=True)


def _timestamps(record: Record) -> dict[str, datetime | None]:
    return {
        "created_at": record.created_at,
        "updated_at": record.updated_at,
        "submitted_date": record.submitted_date,
    }


def _stamp_missing(record: Record, now: datetime) -> Record:
    missing = {name: now for name, value in _timestamps(record).items() if value is None}
    return dataclasses.replace(record, **missing)


def _require_aware(record: Record) -> None:
    # Seeded values are sorted against the clock's timezone-aware values.
    for name, value in _timestamps(record).items():
        if value is not None and value.utcoffset() is None:
            raise ValueError(f"Seed record {record.id} has a naive {name}: {value.isoformat()}")


def _contains_folded(haystack: str, needle: str) -> bool:
    return needle.casefold() in haystack.casefold()


class RecordStore:
    """Thread-safe in-memory collection of reports keyed by identifier.

    Every public method takes the shared lock for its whole duration: reads in
    shared mode, writes in exclusive mode. Stored records are immutable, so the
    values handed out are snapshots that later writes cannot change.
    """

    def __init__(
        self,
        records: Iterable[Record] = (),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._records: dict[str, Record] = {}
        self._lock = ReadWriteLock()
        self._clock = clock
        seeded_at: datetime | None = None
        for record in records:
            if record.id in self._records:
                raise ValueError(f"Duplicate record id in seed data: {record.id}")
            if None in _timestamps(record).values():
                seeded_at = seeded_at or self._clock()
                record = _stamp_missing(record, seeded_at)
            _require_aware(record)
            self._records[record.id] = record

    def __contains__(self, record_id: object) -> bool:
        with self._lock.read_locked():
            return record_id in self._records

    def create(self, record: Record) -> Record:
        """Insert a new report and stamp its creation times."""
        with self._lock.write_locked():
            if record.id in self._records:
                raise RecordAlreadyExistsError(record.id)
            now = self._clock()
            stored = dataclasses.replace(
                record,
                created_at=now,
                updated_at=now,
                submitted_date=now,
            )
            self._records[stored.id] = stored
        logger.info("Created AAR %s", stored.id)
        return stored

    def get_by_id(self, record_id: str) -> Record:
        with self._lock.read_locked():
            record = self._records.get(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        return record

    def update(self, record: Record) -> Record:
        """Replace a stored report wholesale.

        Creation and submission times are carried over from the stored value;
        only ``updated_at`` is refreshed.
        """
        with self._lock.write_locked():
            current = self._records.get(record.id)
            if current is None:
                raise RecordNotFoundError(record.id)
            stored = dataclasses.replace(
                record,
                created_at=current.created_at,
                submitted_date=current.submitted_date,
                updated_at=self._clock(),
            )
            self._records[stored.id] = stored
        logger.info("Updated AAR %s", stored.id)
        return stored

    def get_all(self) -> list[Record]:
        """Return every report, newest submission first."""
        with self._lock.read_locked():
            snapshot = list(self._records.values())
        return _newest_first(snapshot)

    def search(self, operation_name: str = "", unit: str = "", mission_type: str = "") -> list[Record]:
        """Filter reports; an empty argument disables that filter.

        Operation name and unit designation match by case-insensitive
        substring, mission type by exact equality. With every filter empty the
        result equals :meth:`get_all`.
        """
        with self._lock.read_locked():
            matches = [
                record
                for record in self._records.values()
                if (not operation_name or _contains_folded(record.operation_name, operation_name))
                and (not unit or _contains_folded(record.unit_designation, unit))
                and (not mission_type or record.mission_type == mission_type)
            ]
        return _newest_first(matches)

    def get_stats(self) -> RecordStats:
        with self._lock.read_locked():
            total = len(self._records)
            by_mission_type = Counter(record.mission_type for record in self._records.values())
            by_status = Counter(record.status for record in self._records.values())
        return RecordStats(
            total=total,
            by_mission_type=_frozen_counts(by_mission_type),
            by_status=_frozen_counts(by_status),
        )
