"""Masking helpers for secrets that end up in logs."""

from __future__ import annotations

# Secrets at or below this length are hidden entirely.
_MIN_PARTIAL_LENGTH = 8
_VISIBLE_CHARS = 4


def mask_secret(secret: str | None, *, mask: str = "****") -> str:
    """Return ``secret`` with everything but its edges hidden.

    Long values keep their first and last four characters so operators can
    tell which key is configured; short ones are replaced by ``mask``.
    """
    if not secret:
        return "(not set)"
    if len(secret) <= _MIN_PARTIAL_LENGTH:
        return mask
    return f"{secret[:_VISIBLE_CHARS]}{mask}{secret[-_VISIBLE_CHARS:]}"
