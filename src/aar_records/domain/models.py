"""Data models for After Action Reports and their attachments."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

# Mission types
MISSION_TYPE_TRAINING = "Training Exercise"
MISSION_TYPE_COMBAT = "Combat Operations"
MISSION_TYPE_HUMANITARIAN = "Humanitarian Assistance"
MISSION_TYPE_SECURITY = "Security Cooperation"
MISSION_TYPE_OTHER = "Other"

MISSION_TYPES: tuple[str, ...] = (
    MISSION_TYPE_TRAINING,
    MISSION_TYPE_COMBAT,
    MISSION_TYPE_HUMANITARIAN,
    MISSION_TYPE_SECURITY,
    MISSION_TYPE_OTHER,
)

# Classification levels
CLASSIFICATION_UNCLASSIFIED = "UNCLASSIFIED"
CLASSIFICATION_CUI = "CUI"
CLASSIFICATION_CONFIDENTIAL = "CONFIDENTIAL"
CLASSIFICATION_SECRET = "SECRET"

CLASSIFICATIONS: tuple[str, ...] = (
    CLASSIFICATION_UNCLASSIFIED,
    CLASSIFICATION_CUI,
    CLASSIFICATION_CONFIDENTIAL,
    CLASSIFICATION_SECRET,
)

# Report statuses
STATUS_DRAFT = "Draft"
STATUS_SUBMITTED = "Submitted"
STATUS_UNDER_REVIEW = "Under Review"
STATUS_APPROVED = "Approved"
STATUS_ARCHIVED = "Archived"

STATUSES: tuple[str, ...] = (
    STATUS_DRAFT,
    STATUS_SUBMITTED,
    STATUS_UNDER_REVIEW,
    STATUS_APPROVED,
    STATUS_ARCHIVED,
)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class Attachment:
    """Metadata for a file held in object storage, linked to one report."""

    id: str
    aar_id: str
    filename: str
    s3_key: str
    file_size: int
    content_type: str
    uploaded_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "aar_id": self.aar_id,
            "filename": self.filename,
            "s3_key": self.s3_key,
            "file_size": self.file_size,
            "content_type": self.content_type,
            "uploaded_at": _iso(self.uploaded_at),
        }


@dataclass(frozen=True)
class Record:
    """An After Action Report.

    Instances are immutable. The record store hands out the stored instance
    itself, which is safe because nobody can mutate it; changes go through
    ``dataclasses.replace`` and ``RecordStore.update``.

    ``created_at``, ``updated_at`` and ``submitted_date`` are assigned by the
    store and are ``None`` on a record that has not been inserted yet.
    """

    # Identification & classification
    id: str
    classification: str = ""
    operation_name: str = ""
    dtg: str = ""
    unit_designation: str = ""

    # Operational details
    mission_type: str = ""
    location: str = ""
    duration_start: str = ""
    duration_end: str = ""
    personnel_count: int = 0

    # Narrative sections
    executive_summary: str = ""
    key_events: str = ""
    what_went_well: str = ""
    needs_improvement: str = ""
    lessons_learned: str = ""
    recommendations: str = ""
    commanders_assessment: str = ""

    # Administrative
    prepared_by: str = ""
    reviewed_by: str = ""
    status: str = ""

    attachments: tuple[Attachment, ...] = field(default_factory=tuple)

    submitted_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        # Accept any iterable of attachments but always store a tuple.
        if not isinstance(self.attachments, tuple):
            object.__setattr__(self, "attachments", tuple(self.attachments))

    def find_attachment(self, filename: str) -> Attachment | None:
        for attachment in self.attachments:
            if attachment.filename == filename:
                return attachment
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "classification": self.classification,
            "operation_name": self.operation_name,
            "dtg": self.dtg,
            "unit_designation": self.unit_designation,
            "mission_type": self.mission_type,
            "location": self.location,
            "duration_start": self.duration_start,
            "duration_end": self.duration_end,
            "personnel_count": self.personnel_count,
            "executive_summary": self.executive_summary,
            "key_events": self.key_events,
            "what_went_well": self.what_went_well,
            "needs_improvement": self.needs_improvement,
            "lessons_learned": self.lessons_learned,
            "recommendations": self.recommendations,
            "commanders_assessment": self.commanders_assessment,
            "prepared_by": self.prepared_by,
            "reviewed_by": self.reviewed_by,
            "submitted_date": _iso(self.submitted_date),
            "status": self.status,
            "attachments": [attachment.to_dict() for attachment in self.attachments],
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
