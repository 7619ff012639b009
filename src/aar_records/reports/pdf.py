"""PDF conversion through the ``wkhtmltopdf`` binary.

The converter is started with an argument vector and no shell, so record
values (the document title in particular) are only ever single argv entries.
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
import tempfile
from datetime import datetime
from pathlib import Path

from aar_records.config import ReportSettings
from aar_records.domain.models import Record
from aar_records.reports.html import render_report_html

logger = logging.getLogger(__name__)

# Cap on converter output echoed into logs and error messages.
_MAX_OUTPUT_CHARS = 500


class ReportGenerationError(Exception):
    """Raised when a PDF report cannot be produced."""

    def __init__(self, message: str, code: str = "conversion_failed") -> None:
        super().__init__(message)
        self.code = code


def build_command(
    binary: str, title: str, html_path: Path, pdf_path: Path
) -> list[str]:
    return [
        binary,
        "--quiet",
        "--disable-javascript",
        "--title",
        title,
        str(html_path),
        str(pdf_path),
    ]


def _run(cmd: list[str], timeout: float) -> None:
    try:
        result = subprocess.run(
            cmd, check=False, capture_output=True, text=True, timeout=timeout
        )
    except FileNotFoundError as exc:
        raise ReportGenerationError(
            f"PDF converter not found: {cmd[0]}", code="converter_missing"
        ) from exc
    except subprocess.TimeoutExpired as exc:
        raise ReportGenerationError(
            f"PDF conversion timed out after {timeout}s", code="timeout"
        ) from exc
    if result.returncode != 0:
        output = (result.stderr or result.stdout or "").strip()[:_MAX_OUTPUT_CHARS]
        logger.warning("wkhtmltopdf exited with %d: %s", result.returncode, output)
        raise ReportGenerationError(f"PDF conversion failed (exit {result.returncode})")


def generate_pdf(
    record: Record,
    settings: ReportSettings,
    generated_at: datetime | None = None,
) -> bytes:
    """Render ``record`` to HTML and convert it to PDF bytes."""
    html = render_report_html(record, generated_at)
    with tempfile.TemporaryDirectory(prefix="aar-report-") as workdir:
        html_path = Path(workdir) / "report.html"
        pdf_path = Path(workdir) / "report.pdf"
        html_path.write_text(html, encoding="utf-8")

        _run(
            build_command(settings.wkhtmltopdf_path, record.operation_name, html_path, pdf_path),
            settings.timeout_seconds,
        )

        try:
            data = pdf_path.read_bytes()
        except FileNotFoundError as exc:
            raise ReportGenerationError("PDF converter produced no output") from exc

    logger.info("Generated PDF report for %s (%d bytes)", record.id, len(data))
    return data


async def generate_pdf_async(record: Record, settings: ReportSettings) -> bytes:
    return await asyncio.to_thread(generate_pdf, record, settings)
