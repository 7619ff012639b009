from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from aar_records.config import (
    ObjectStorageSettings,
    ReportSettings,
    Settings,
    UploadSettings,
)


def pytest_sessionstart(session: pytest.Session) -> None:
    # Required storage variables, so load_settings() works without a real bucket.
    os.environ.setdefault("S3_ACCESS_KEY", "test-access-key")
    os.environ.setdefault("S3_SECRET_KEY", "test-secret-key")
    os.environ.setdefault("S3_BUCKET", "aar-test")


class FakeClock:
    """Deterministic clock that advances one second per reading."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2025, 11, 7, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        storage=ObjectStorageSettings(
            access_key="test-access-key",
            secret_key="test-secret-key",
            bucket="aar-test",
            validate_on_startup=False,
        ),
        uploads=UploadSettings(max_upload_mb=1),
        reports=ReportSettings(wkhtmltopdf_path="wkhtmltopdf", timeout_seconds=5),
    )


@pytest.fixture
def fake_s3() -> MagicMock:
    return MagicMock(name="s3-client")
