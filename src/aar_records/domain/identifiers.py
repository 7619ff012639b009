"""Identifier and object-key generation for reports and attachments."""

from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from pathlib import PurePosixPath
from uuid import uuid4

_SEQUENCE_MODULUS = 10_000


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


class RecordIdGenerator:
    """Issues ``AAR-<YYYYMMDD>-<NNNN>`` identifiers.

    The four-digit sequence starts at the current unix time modulo 10000 and
    advances by one per identifier, so a single process never hands out the
    same value twice within a day.
    """

    def __init__(self, start: int | None = None) -> None:
        if start is None:
            start = int(time.time())
        self._next = start % _SEQUENCE_MODULUS
        self._lock = threading.Lock()

    def next_id(self, now: datetime | None = None) -> str:
        now = now or utc_now()
        with self._lock:
            sequence = self._next
            self._next = (self._next + 1) % _SEQUENCE_MODULUS
        return f"AAR-{now:%Y%m%d}-{sequence:04d}"


def new_attachment_id() -> str:
    return f"att-{uuid4().hex[:12]}"


def safe_filename(filename: str) -> str:
    """Reduce a client-supplied filename to its final path component."""
    name = PurePosixPath(filename.replace("\\", "/")).name.strip()
    if name in {"", ".", ".."}:
        raise ValueError(f"Invalid attachment filename: {filename[:120]!r}")
    return name


def attachment_key(record_id: str, attachment_id: str, filename: str) -> str:
    """Object key for one uploaded attachment.

    The attachment id keeps keys distinct even when two submissions share a
    record id and a filename.
    """
    return f"aars/{record_id}/attachments/{attachment_id}/{safe_filename(filename)}"
