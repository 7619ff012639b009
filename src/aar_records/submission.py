"""Turns a submitted report form and its files into stored objects and a record.

The record store and the attachment bucket are not transactional together.
A submission either fully succeeds or fails as a whole: when any upload or the
final insert fails, objects already uploaded for it are deleted best-effort
and the error propagates to the caller.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime

from aar_records.domain.identifiers import (
    RecordIdGenerator,
    attachment_key,
    new_attachment_id,
    safe_filename,
    utc_now,
)
from aar_records.domain.models import STATUS_DRAFT, Attachment, Record
from aar_records.objectstore import ObjectStorageClient, ObjectStorageError
from aar_records.store import RecordAlreadyExistsError, RecordStore, RecordStoreError

logger = logging.getLogger(__name__)

# Plain text form fields copied verbatim onto the record.
TEXT_FIELDS: tuple[str, ...] = (
    "classification",
    "operation_name",
    "dtg",
    "unit_designation",
    "mission_type",
    "location",
    "duration_start",
    "duration_end",
    "executive_summary",
    "key_events",
    "what_went_well",
    "needs_improvement",
    "lessons_learned",
    "recommendations",
    "commanders_assessment",
    "prepared_by",
    "reviewed_by",
    "status",
)


class SubmissionError(Exception):
    """Raised when a report submission cannot be completed."""

    def __init__(self, message: str, code: str) -> None:
        super().__init__(message)
        self.code = code


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def _parse_personnel_count(value: str | None) -> int:
    if not value:
        return 0
    try:
        return max(0, int(value.strip()))
    except ValueError:
        return 0


def record_from_form(record_id: str, form: Mapping[str, str]) -> Record:
    """Build an unsaved record from submitted form fields."""
    values = {name: (form.get(name) or "").strip() for name in TEXT_FIELDS}
    if not values["status"]:
        values["status"] = STATUS_DRAFT
    return Record(
        id=record_id,
        personnel_count=_parse_personnel_count(form.get("personnel_count")),
        **values,
    )


def _check_files(files: Sequence[UploadedFile], max_upload_bytes: int) -> None:
    seen: set[str] = set()
    for upload in files:
        try:
            name = safe_filename(upload.filename)
        except ValueError as exc:
            raise SubmissionError(str(exc), code="invalid_filename") from exc
        if name in seen:
            raise SubmissionError(
                f"Attachment '{name}' was submitted more than once",
                code="duplicate_attachment",
            )
        seen.add(name)
        if upload.size > max_upload_bytes:
            raise SubmissionError(
                f"Attachment '{name}' is {upload.size} bytes; limit is {max_upload_bytes}",
                code="attachment_too_large",
            )


async def _discard_uploads(
    storage: ObjectStorageClient,
    keys: Sequence[str],
    timeout: float | None,
) -> None:
    for key in keys:
        try:
            await storage.delete_async(key, timeout=timeout)
        except ObjectStorageError as exc:
            logger.warning("Could not remove orphaned attachment %s: %s", key, exc)


async def _await_in_flight(exc: ObjectStorageError, key: str) -> None:
    """Wait for an upload that outlived its deadline so a later delete wins."""
    if exc.pending is None:
        return
    try:
        await exc.pending
    except ObjectStorageError as late:
        logger.info("Timed-out upload of %s finished with an error: %s", key, late)


async def submit_report(
    form: Mapping[str, str],
    files: Sequence[UploadedFile],
    *,
    store: RecordStore,
    storage: ObjectStorageClient,
    id_generator: RecordIdGenerator,
    max_upload_bytes: int,
    storage_timeout: float | None = None,
    now: datetime | None = None,
) -> Record:
    """Upload attachments, then insert the record.

    Every attachment gets its own object key, so cleanup after a failure only
    ever deletes objects written by this submission.

    Raises:
        SubmissionError: an attachment was rejected or could not be uploaded.
        RecordStoreError: the insert failed (for example a duplicate id).
    """
    now = now or utc_now()
    _check_files(files, max_upload_bytes)

    record_id = id_generator.next_id(now)
    if record_id in store:
        raise RecordAlreadyExistsError(record_id)
    record = record_from_form(record_id, form)

    attachments: list[Attachment] = []
    written_keys: list[str] = []
    for upload in files:
        attachment_id = new_attachment_id()
        key = attachment_key(record_id, attachment_id, upload.filename)
        content_type = upload.content_type or "application/octet-stream"
        try:
            await storage.upload_bytes_async(
                key, upload.data, content_type, timeout=storage_timeout
            )
        except ObjectStorageError as exc:
            logger.warning("Attachment upload for %s failed: %s", record_id, exc)
            await _await_in_flight(exc, key)
            # A failed put may still have stored the object.
            await _discard_uploads(storage, [*written_keys, key], storage_timeout)
            raise SubmissionError(
                f"Error uploading attachment: {exc}", code="upload_failed"
            ) from exc
        written_keys.append(key)
        attachments.append(
            Attachment(
                id=attachment_id,
                aar_id=record_id,
                filename=safe_filename(upload.filename),
                s3_key=key,
                file_size=upload.size,
                content_type=content_type,
                uploaded_at=now,
            )
        )

    try:
        return store.create(dataclasses.replace(record, attachments=tuple(attachments)))
    except RecordStoreError:
        await _discard_uploads(storage, written_keys, storage_timeout)
        raise
