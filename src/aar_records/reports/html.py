"""Standalone HTML rendering of a single report."""

from __future__ import annotations

from datetime import datetime
from html import escape

from aar_records.domain.identifiers import utc_now
from aar_records.domain.models import Record

_STYLE = """
body { font-family: Arial, Helvetica, sans-serif; margin: 2cm; color: #333; }
.header { text-align: center; border-bottom: 3px solid #002F6C; padding-bottom: 1rem; margin-bottom: 2rem; }
.classification { background-color: #5C8F5C; color: white; padding: 0.5rem; text-align: center; font-weight: bold; margin-bottom: 1rem; }
h1 { color: #002F6C; font-size: 1.8rem; }
h2 { color: #002F6C; font-size: 1.3rem; border-bottom: 2px solid #E5E5E5; padding-bottom: 0.3rem; margin-top: 2rem; }
.metadata { display: grid; grid-template-columns: 150px 1fr; gap: 0.5rem; margin-bottom: 1rem; }
.label { font-weight: bold; }
.section { margin-bottom: 2rem; }
.footer { margin-top: 3rem; padding-top: 1rem; border-top: 2px solid #E5E5E5; font-size: 0.9rem; text-align: center; }
"""

_NARRATIVE_SECTIONS: tuple[tuple[str, str], ...] = (
    ("Executive Summary", "executive_summary"),
    ("What Went Well", "what_went_well"),
    ("Needs Improvement", "needs_improvement"),
    ("Lessons Learned", "lessons_learned"),
    ("Recommendations", "recommendations"),
    ("Commander's Assessment", "commanders_assessment"),
)


def _metadata(rows: list[tuple[str, object]]) -> str:
    cells = "".join(
        f'<div class="label">{escape(label)}:</div><div>{escape(str(value))}</div>'
        for label, value in rows
    )
    return f'<div class="metadata">{cells}</div>'


def _section(title: str, body: str) -> str:
    return f'<div class="section"><h2>{escape(title)}</h2>{body}</div>'


def render_report_html(record: Record, generated_at: datetime | None = None) -> str:
    """Render ``record`` as a printable HTML page.

    Every record value is HTML-escaped; the output is safe to hand to a
    renderer even when fields contain markup.
    """
    generated_at = generated_at or utc_now()
    classification = escape(record.classification)

    sections = [
        _section(
            "Identification",
            _metadata(
                [
                    ("DTG", record.dtg),
                    ("Unit", record.unit_designation),
                    ("Mission Type", record.mission_type),
                    ("Location", record.location),
                    ("Duration", f"{record.duration_start} - {record.duration_end}"),
                    ("Personnel", record.personnel_count),
                ]
            ),
        ),
        _section("Key Events", f"<pre>{escape(record.key_events)}</pre>"),
    ]
    for title, attr in _NARRATIVE_SECTIONS:
        text = getattr(record, attr)
        if text:
            sections.append(_section(title, f"<p>{escape(text)}</p>"))
    sections.append(
        _section(
            "Administrative",
            _metadata(
                [
                    ("Prepared By", record.prepared_by),
                    ("Reviewed By", record.reviewed_by),
                    ("Status", record.status),
                ]
            ),
        )
    )

    return (
        "<!DOCTYPE html>\n"
        '<html><head><meta charset="UTF-8">'
        f"<title>After Action Report - {escape(record.operation_name)}</title>"
        f"<style>{_STYLE}</style></head><body>"
        f'<div class="classification">{classification}</div>'
        '<div class="header"><h1>AFTER ACTION REPORT</h1>'
        f"<h2>{escape(record.operation_name)}</h2>"
        f"<p><strong>AAR ID:</strong> {escape(record.id)}</p></div>"
        + "".join(sections)
        + '<div class="footer">'
        f'<div class="classification">{classification}</div>'
        "<p>Distribution: Authorized to U.S. Government Agencies Only</p>"
        f"<p>Generated: {generated_at:%d %b %Y %H:%M %Z}</p>"
        "</div></body></html>\n"
    )
