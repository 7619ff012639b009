from __future__ import annotations

import re
import time
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from aar_records.domain.identifiers import RecordIdGenerator
from aar_records.domain.models import STATUS_DRAFT, Attachment, Record
from aar_records.objectstore import ObjectStorageClient
from aar_records.store import RecordAlreadyExistsError, RecordStore
from aar_records.submission import (
    SubmissionError,
    UploadedFile,
    record_from_form,
    submit_report,
)

NOW = datetime(2025, 11, 7, 14, 30, tzinfo=timezone.utc)
LIMIT = 1024

FORM = {
    "classification": "UNCLASSIFIED",
    "operation_name": "  Exercise Cold Harbor ",
    "unit_designation": "2nd Battalion, 8th Marines",
    "mission_type": "Training Exercise",
    "personnel_count": "120",
    "status": "Submitted",
}


@pytest.fixture
def store(clock) -> RecordStore:
    return RecordStore(clock=clock)


@pytest.fixture
def storage(settings, fake_s3: MagicMock) -> ObjectStorageClient:
    return ObjectStorageClient(settings.storage, client=fake_s3)


async def _submit(store, storage, files, form=FORM, start=7):
    return await submit_report(
        form,
        files,
        store=store,
        storage=storage,
        id_generator=RecordIdGenerator(start=start),
        max_upload_bytes=LIMIT,
        storage_timeout=5,
        now=NOW,
    )


def test_record_from_form_strips_and_parses() -> None:
    record = record_from_form("AAR-1", FORM)

    assert record.operation_name == "Exercise Cold Harbor"
    assert record.personnel_count == 120
    assert record.status == "Submitted"
    assert record.location == ""
    assert record.attachments == ()


@pytest.mark.parametrize("raw", ["", "many", "-5", None])
def test_record_from_form_lenient_personnel_count(raw) -> None:
    form = dict(FORM)
    if raw is None:
        form.pop("personnel_count")
    else:
        form["personnel_count"] = raw

    assert record_from_form("AAR-1", form).personnel_count == 0


def test_record_from_form_blank_status_is_draft() -> None:
    form = dict(FORM, status="  ")

    assert record_from_form("AAR-1", form).status == STATUS_DRAFT


@pytest.mark.asyncio
async def test_submit_without_files(store: RecordStore, storage, fake_s3: MagicMock) -> None:
    record = await _submit(store, storage, [])

    assert record.id == "AAR-20251107-0007"
    assert store.get_by_id(record.id) == record
    assert record.attachments == ()
    fake_s3.put_object.assert_not_called()


@pytest.mark.asyncio
async def test_submit_uploads_each_file(store: RecordStore, storage, fake_s3: MagicMock) -> None:
    files = [
        UploadedFile("sitrep.pdf", "application/pdf", b"%PDF-1.4"),
        UploadedFile("C:\\photos\\range.jpg", "", b"\xff\xd8"),
    ]

    record = await _submit(store, storage, files)

    keys = [call.kwargs["Key"] for call in fake_s3.put_object.call_args_list]
    first, second = record.attachments
    assert keys == [first.s3_key, second.s3_key]
    assert first.s3_key == f"aars/AAR-20251107-0007/attachments/{first.id}/sitrep.pdf"
    assert second.s3_key == f"aars/AAR-20251107-0007/attachments/{second.id}/range.jpg"
    assert first.filename == "sitrep.pdf"
    assert first.file_size == 8
    assert first.content_type == "application/pdf"
    assert first.uploaded_at == NOW
    assert re.fullmatch(r"att-[0-9a-f]{12}", first.id)
    assert second.filename == "range.jpg"
    assert second.content_type == "application/octet-stream"
    assert second.aar_id == record.id
    assert store.get_by_id(record.id).attachments == record.attachments


@pytest.mark.asyncio
async def test_submit_rejects_oversized_file_before_upload(
    store: RecordStore, storage, fake_s3: MagicMock
) -> None:
    files = [
        UploadedFile("ok.txt", "text/plain", b"x"),
        UploadedFile("big.bin", "application/octet-stream", b"x" * (LIMIT + 1)),
    ]

    with pytest.raises(SubmissionError) as excinfo:
        await _submit(store, storage, files)

    assert excinfo.value.code == "attachment_too_large"
    fake_s3.put_object.assert_not_called()
    assert store.get_all() == []


@pytest.mark.asyncio
async def test_submit_rejects_duplicate_filenames(store: RecordStore, storage) -> None:
    files = [
        UploadedFile("a/map.png", "image/png", b"1"),
        UploadedFile("b/map.png", "image/png", b"2"),
    ]

    with pytest.raises(SubmissionError) as excinfo:
        await _submit(store, storage, files)

    assert excinfo.value.code == "duplicate_attachment"


@pytest.mark.asyncio
async def test_submit_rejects_invalid_filename(store: RecordStore, storage) -> None:
    with pytest.raises(SubmissionError) as excinfo:
        await _submit(store, storage, [UploadedFile("..", "text/plain", b"x")])

    assert excinfo.value.code == "invalid_filename"


def _put_keys(fake_s3: MagicMock) -> list[str]:
    return [call.kwargs["Key"] for call in fake_s3.put_object.call_args_list]


def _deleted_keys(fake_s3: MagicMock) -> list[str]:
    return [call.kwargs["Key"] for call in fake_s3.delete_object.call_args_list]


@pytest.mark.asyncio
async def test_upload_failure_discards_every_attempted_upload(
    store: RecordStore, storage, fake_s3: MagicMock
) -> None:
    fake_s3.put_object.side_effect = [
        None,
        ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"),
    ]
    files = [
        UploadedFile("one.txt", "text/plain", b"1"),
        UploadedFile("two.txt", "text/plain", b"2"),
    ]

    with pytest.raises(SubmissionError) as excinfo:
        await _submit(store, storage, files)

    assert excinfo.value.code == "upload_failed"
    put_keys = _put_keys(fake_s3)
    assert len(put_keys) == 2
    assert _deleted_keys(fake_s3) == put_keys
    assert store.get_all() == []


@pytest.mark.asyncio
async def test_cleanup_failure_does_not_mask_upload_error(
    store: RecordStore, storage, fake_s3: MagicMock
) -> None:
    denied = ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject")
    fake_s3.put_object.side_effect = [None, denied]
    fake_s3.delete_object.side_effect = denied
    files = [
        UploadedFile("one.txt", "text/plain", b"1"),
        UploadedFile("two.txt", "text/plain", b"2"),
    ]

    with pytest.raises(SubmissionError) as excinfo:
        await _submit(store, storage, files)

    assert excinfo.value.code == "upload_failed"


@pytest.mark.asyncio
async def test_timed_out_upload_is_deleted_after_it_lands(
    store: RecordStore, storage, fake_s3: MagicMock
) -> None:
    events: list[tuple[str, str]] = []

    def slow_put(**kwargs):
        time.sleep(0.3)
        events.append(("put", kwargs["Key"]))

    fake_s3.put_object.side_effect = slow_put
    fake_s3.delete_object.side_effect = lambda **kwargs: events.append(("delete", kwargs["Key"]))

    with pytest.raises(SubmissionError) as excinfo:
        await submit_report(
            FORM,
            [UploadedFile("a.pdf", "application/pdf", b"%PDF")],
            store=store,
            storage=storage,
            id_generator=RecordIdGenerator(start=1),
            max_upload_bytes=LIMIT,
            storage_timeout=0.05,
            now=NOW,
        )

    assert excinfo.value.code == "upload_failed"
    assert "timed out" in str(excinfo.value)
    key = _put_keys(fake_s3)[0]
    assert events == [("put", key), ("delete", key)]
    assert store.get_all() == []


@pytest.mark.asyncio
async def test_existing_id_is_rejected_before_upload(
    store: RecordStore, storage, fake_s3: MagicMock
) -> None:
    existing = store.create(
        Record(
            id="AAR-20251107-0007",
            operation_name="Existing",
            attachments=[
                Attachment(
                    id="att-001",
                    aar_id="AAR-20251107-0007",
                    filename="sitrep.pdf",
                    s3_key="aars/AAR-20251107-0007/attachments/sitrep.pdf",
                    file_size=4,
                    content_type="application/pdf",
                    uploaded_at=NOW,
                )
            ],
        )
    )

    with pytest.raises(RecordAlreadyExistsError):
        await _submit(store, storage, [UploadedFile("sitrep.pdf", "application/pdf", b"new")])

    fake_s3.put_object.assert_not_called()
    fake_s3.delete_object.assert_not_called()
    assert store.get_by_id("AAR-20251107-0007") == existing


@pytest.mark.asyncio
async def test_id_taken_during_upload_only_deletes_own_objects(
    store: RecordStore, storage, fake_s3: MagicMock
) -> None:
    existing_key = "aars/AAR-20251107-0007/attachments/sitrep.pdf"

    def racing_put(**kwargs):
        # Another writer claims the id while this upload is in flight.
        if "AAR-20251107-0007" not in store:
            store.create(
                Record(
                    id="AAR-20251107-0007",
                    operation_name="Existing",
                    attachments=[
                        Attachment(
                            id="att-001",
                            aar_id="AAR-20251107-0007",
                            filename="sitrep.pdf",
                            s3_key=existing_key,
                            file_size=4,
                            content_type="application/pdf",
                            uploaded_at=NOW,
                        )
                    ],
                )
            )

    fake_s3.put_object.side_effect = racing_put

    with pytest.raises(RecordAlreadyExistsError):
        await _submit(store, storage, [UploadedFile("sitrep.pdf", "application/pdf", b"new")])

    (own_key,) = _put_keys(fake_s3)
    assert own_key != existing_key
    assert _deleted_keys(fake_s3) == [own_key]
    assert store.get_by_id("AAR-20251107-0007").attachments[0].s3_key == existing_key
