from __future__ import annotations

import io
import re
import subprocess
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from starlette.testclient import TestClient

from aar_records.app import AppContext
from aar_records.config import ServerSettings
from aar_records.domain.identifiers import RecordIdGenerator, utc_now
from aar_records.domain.models import Record
from aar_records.objectstore import ObjectStorageClient
from aar_records.store.samples import SAMPLE_RECORD_IDS, build_sample_store
from aar_records.transport.http_server import content_disposition, create_http_app

FORM = {
    "classification": "UNCLASSIFIED",
    "operation_name": "Exercise Cold Harbor",
    "unit_designation": "2nd Battalion, 8th Marines",
    "mission_type": "Combat Operations",
    "personnel_count": "120",
}


@pytest.fixture
def context(settings, fake_s3: MagicMock, clock) -> AppContext:
    return AppContext(
        settings=settings,
        store=build_sample_store(clock),
        storage=ObjectStorageClient(settings.storage, client=fake_s3),
        id_generator=RecordIdGenerator(start=1),
    )


@pytest.fixture
def client(context: AppContext):
    with TestClient(create_http_app(context)) as test_client:
        yield test_client


def test_health_and_ready(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/ready").json() == {"status": "ready", "records": 3}


def test_dashboard(client: TestClient) -> None:
    response = client.get("/")

    assert response.status_code == 200
    body = response.json()
    assert body["stats"]["total"] == 3
    assert body["stats"]["by_status"] == {"Approved": 3}
    assert [r["id"] for r in body["recent_reports"]] == list(SAMPLE_RECORD_IDS)


def test_list_without_filters_returns_all(client: TestClient) -> None:
    body = client.get("/aar/list").json()

    assert [r["id"] for r in body["reports"]] == list(SAMPLE_RECORD_IDS)
    assert body["search_params"] == {"operation_name": "", "unit": "", "mission_type": ""}


def test_list_with_filters(client: TestClient) -> None:
    body = client.get(
        "/aar/list", params={"operation_name": "viking", "mission_type": "Training Exercise"}
    ).json()

    assert [r["operation_name"] for r in body["reports"]] == ["Exercise Northern Viking"]
    assert body["search_params"]["operation_name"] == "viking"


def test_view(client: TestClient) -> None:
    response = client.get("/aar/view", params={"id": "AAR-20250920-0002"})

    assert response.status_code == 200
    assert response.json()["report"]["unit_designation"] == "Marine Expeditionary Unit 26"


def test_view_missing_id(client: TestClient) -> None:
    response = client.get("/aar/view")

    assert response.status_code == 400
    assert response.json()["error"] == "missing_id"


def test_view_unknown_id(client: TestClient) -> None:
    response = client.get("/aar/view", params={"id": "AAR-00000000-0000"})

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_create_without_attachments(client: TestClient, context: AppContext) -> None:
    response = client.post("/aar/create", data=FORM)

    assert response.status_code == 201
    body = response.json()
    assert re.fullmatch(r"AAR-\d{8}-0001", body["id"])
    assert body["record"]["status"] == "Draft"
    assert body["record"]["personnel_count"] == 120
    assert context.store.get_by_id(body["id"]).operation_name == "Exercise Cold Harbor"


def test_create_with_attachments(client: TestClient, fake_s3: MagicMock) -> None:
    response = client.post(
        "/aar/create",
        data=FORM,
        files=[
            ("attachments", ("sitrep.pdf", b"%PDF-1.4", "application/pdf")),
            ("attachments", ("photo.jpg", b"\xff\xd8\xff", "image/jpeg")),
        ],
    )

    assert response.status_code == 201
    record = response.json()["record"]
    assert [a["filename"] for a in record["attachments"]] == ["sitrep.pdf", "photo.jpg"]
    assert fake_s3.put_object.call_count == 2
    first = record["attachments"][0]
    assert fake_s3.put_object.call_args_list[0].kwargs["Key"] == first["s3_key"]
    assert first["s3_key"] == (
        f"aars/{record['id']}/attachments/{first['id']}/sitrep.pdf"
    )


def test_create_keeps_first_value_of_repeated_field(
    client: TestClient, context: AppContext
) -> None:
    form = dict(FORM, operation_name=["Exercise Cold Harbor", "Injected Name"])

    response = client.post("/aar/create", data=form)

    assert response.status_code == 201
    assert response.json()["record"]["operation_name"] == "Exercise Cold Harbor"


def test_create_rejects_oversized_attachment(client: TestClient, fake_s3: MagicMock) -> None:
    too_big = b"x" * (1024 * 1024 + 1)
    response = client.post(
        "/aar/create",
        data=FORM,
        files=[("attachments", ("big.bin", too_big, "application/octet-stream"))],
    )

    assert response.status_code == 413
    assert response.json()["error"] == "attachment_too_large"
    fake_s3.put_object.assert_not_called()


def test_create_upload_failure(client: TestClient, context: AppContext, fake_s3: MagicMock) -> None:
    fake_s3.put_object.side_effect = ClientError(
        {"Error": {"Code": "NoSuchBucket", "Message": "missing"}}, "PutObject"
    )

    response = client.post(
        "/aar/create",
        data=FORM,
        files=[("attachments", ("a.txt", b"a", "text/plain"))],
    )

    assert response.status_code == 502
    assert response.json()["error"] == "upload_failed"
    assert context.store.get_stats().total == 3


def test_create_duplicate_id(client: TestClient, context: AppContext) -> None:
    taken = f"AAR-{utc_now():%Y%m%d}-0001"
    context.store.create(Record(id=taken, operation_name="Existing"))

    response = client.post("/aar/create", data=FORM)

    assert response.status_code == 409
    assert response.json()["error"] == "already_exists"
    assert context.store.get_by_id(taken).operation_name == "Existing"


def test_download_streams_attachment(client: TestClient, fake_s3: MagicMock) -> None:
    fake_s3.get_object.return_value = {
        "Body": io.BytesIO(b"%PDF-sample"),
        "ContentType": "application/pdf",
        "ContentLength": 11,
    }

    response = client.get(
        "/aar/download", params={"id": "AAR-20251005-0001", "file": "sitrep.pdf"}
    )

    assert response.status_code == 200
    assert response.content == b"%PDF-sample"
    assert response.headers["content-type"] == "application/pdf"
    assert 'filename="sitrep.pdf"' in response.headers["content-disposition"]
    fake_s3.get_object.assert_called_once_with(
        Bucket="aar-test", Key="aars/AAR-20251005-0001/attachments/sitrep.pdf"
    )


@pytest.mark.parametrize(
    ("params", "status", "error"),
    [
        ({"id": "AAR-20251005-0001"}, 400, "missing_parameters"),
        ({"id": "AAR-00000000-0000", "file": "sitrep.pdf"}, 404, "not_found"),
        ({"id": "AAR-20251005-0001", "file": "nope.pdf"}, 404, "attachment_not_found"),
    ],
)
def test_download_errors(client: TestClient, params, status: int, error: str) -> None:
    response = client.get("/aar/download", params=params)

    assert response.status_code == status
    assert response.json()["error"] == error


@pytest.mark.parametrize(
    ("code", "status", "error"),
    [
        ("NoSuchKey", 404, "attachment_missing"),
        ("AccessDenied", 502, "access_denied"),
    ],
)
def test_download_storage_errors(
    client: TestClient, fake_s3: MagicMock, code: str, status: int, error: str
) -> None:
    fake_s3.get_object.side_effect = ClientError({"Error": {"Code": code}}, "GetObject")

    response = client.get(
        "/aar/download", params={"id": "AAR-20251005-0001", "file": "sitrep.pdf"}
    )

    assert response.status_code == status
    assert response.json()["error"] == error


def test_generate_report(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[list[str]] = []

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        Path(cmd[-1]).write_bytes(b"%PDF-report")
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    monkeypatch.setattr("aar_records.reports.pdf.subprocess.run", fake_run)

    response = client.post("/aar/generate-report", data={"aar_id": "AAR-20251005-0001"})

    assert response.status_code == 200
    assert response.content == b"%PDF-report"
    assert response.headers["content-type"] == "application/pdf"
    assert "AAR_AAR-20251005-0001_Report.pdf" in response.headers["content-disposition"]
    assert calls[0][calls[0].index("--title") + 1] == "Operation Enduring Shield"


def test_generate_report_missing_id(client: TestClient) -> None:
    response = client.post("/aar/generate-report", data={})

    assert response.status_code == 400
    assert response.json()["error"] == "missing_id"


def test_generate_report_unknown_id(client: TestClient) -> None:
    response = client.post("/aar/generate-report", data={"aar_id": "AAR-00000000-0000"})

    assert response.status_code == 404


def test_generate_report_converter_missing(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    def missing(cmd, **kwargs):
        raise FileNotFoundError(cmd[0])

    monkeypatch.setattr("aar_records.reports.pdf.subprocess.run", missing)

    response = client.post("/aar/generate-report", data={"aar_id": "AAR-20251005-0001"})

    assert response.status_code == 503
    assert response.json()["error"] == "converter_missing"


def test_generate_report_conversion_failure(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(
        "aar_records.reports.pdf.subprocess.run",
        lambda cmd, **kwargs: subprocess.CompletedProcess(cmd, 2, stdout="", stderr="boom"),
    )

    response = client.post("/aar/generate-report", data={"aar_id": "AAR-20251005-0001"})

    assert response.status_code == 500
    assert response.json()["error"] == "conversion_failed"


def test_request_id_is_echoed(client: TestClient) -> None:
    response = client.get("/aar/list", headers={"X-Request-ID": "abc-123"})

    assert response.headers["x-request-id"] == "abc-123"


def test_unhandled_error_returns_500(context: AppContext) -> None:
    app = create_http_app(context)

    with TestClient(app, raise_server_exceptions=False) as test_client:
        # Break the store only after startup, which also reads the stats.
        context.store.get_stats = MagicMock(side_effect=RuntimeError("boom"))
        response = test_client.get("/ready")

    assert response.status_code == 500
    assert response.json()["error"] == "internal_error"


def test_cors_enabled(context: AppContext) -> None:
    context.settings.server = ServerSettings(
        http_enable_cors=True, http_allowed_origins=("https://aar.example.mil",)
    )

    with TestClient(create_http_app(context)) as test_client:
        response = test_client.options(
            "/aar/list",
            headers={
                "Origin": "https://aar.example.mil",
                "Access-Control-Request-Method": "GET",
            },
        )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "https://aar.example.mil"


def test_startup_validates_bucket(context: AppContext, fake_s3: MagicMock) -> None:
    context.settings.storage.validate_on_startup = True

    with TestClient(create_http_app(context)):
        pass

    fake_s3.list_objects_v2.assert_called_once_with(Bucket="aar-test", MaxKeys=1)


def test_startup_fails_when_bucket_unreachable(context: AppContext, fake_s3: MagicMock) -> None:
    context.settings.storage.validate_on_startup = True
    fake_s3.list_objects_v2.side_effect = ClientError(
        {"Error": {"Code": "NoSuchBucket"}}, "ListObjectsV2"
    )

    with pytest.raises(RuntimeError, match="Object storage validation failed"):
        with TestClient(create_http_app(context)):
            pass


def test_content_disposition_non_ascii() -> None:
    header = content_disposition('rapport "été".pdf')

    assert header.startswith('attachment; filename="rapport __t__.pdf"')
    assert "filename*=UTF-8''rapport%20%22%C3%A9t%C3%A9%22.pdf" in header
