"""Domain model for After Action Reports."""

from aar_records.domain.models import (
    CLASSIFICATIONS,
    MISSION_TYPES,
    STATUSES,
    Attachment,
    Record,
)

__all__ = [
    "CLASSIFICATIONS",
    "MISSION_TYPES",
    "STATUSES",
    "Attachment",
    "Record",
]
