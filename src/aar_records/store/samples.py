"""Fixed sample reports loaded into the store at startup."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta

from aar_records.domain.identifiers import utc_now
from aar_records.domain.models import (
    CLASSIFICATION_UNCLASSIFIED,
    MISSION_TYPE_SECURITY,
    MISSION_TYPE_TRAINING,
    STATUS_APPROVED,
    Attachment,
    Record,
)
from aar_records.store.memory import RecordStore

SAMPLE_RECORD_IDS: tuple[str, ...] = (
    "AAR-20251005-0001",
    "AAR-20250920-0002",
    "AAR-20250815-0004",
)


def _attachments(
    record_id: str,
    uploaded_at: datetime,
    files: list[tuple[str, str, int, str]],
) -> tuple[Attachment, ...]:
    return tuple(
        Attachment(
            id=attachment_id,
            aar_id=record_id,
            filename=filename,
            s3_key=f"aars/{record_id}/attachments/{filename}",
            file_size=size,
            content_type=content_type,
            uploaded_at=uploaded_at,
        )
        for attachment_id, filename, size, content_type in files
    )


def _enduring_shield(now: datetime) -> Record:
    record_id = "AAR-20251005-0001"
    submitted = now - timedelta(days=32)
    return Record(
        id=record_id,
        classification=CLASSIFICATION_UNCLASSIFIED,
        operation_name="Operation Enduring Shield",
        dtg="051200ZOCT25",
        unit_designation="3rd Infantry Division, 2nd Brigade Combat Team",
        mission_type=MISSION_TYPE_TRAINING,
        location="Fort Stewart, GA",
        duration_start="051200ZOCT25",
        duration_end="051800ZOCT25",
        personnel_count=450,
        executive_summary=(
            "Battalion-level combined arms training exercise focusing on rapid deployment and "
            "sustainment operations. Exercise included live-fire maneuvers, logistical "
            "coordination, and interoperability drills with supporting units. All training "
            "objectives were met with no significant safety incidents."
        ),
        key_events=(
            "0600: Unit assembly and mission brief\n"
            "0800: Movement to training area\n"
            "1000: Live-fire exercise commenced\n"
            "1400: Tactical maneuver phase\n"
            "1700: After action review\n"
            "1800: Stand down"
        ),
        what_went_well=(
            "Communications between units exceeded expectations. Logistical support was timely "
            "and effective. All personnel demonstrated proficiency in basic combat tasks. "
            "Leadership at the platoon level showed strong tactical decision-making."
        ),
        needs_improvement=(
            "Coordination with supporting artillery units needs refinement. Some delays in "
            "medical evacuation procedures were noted. Night operations revealed gaps in night "
            "vision equipment availability."
        ),
        lessons_learned=(
            "Pre-coordination with supporting elements is critical for mission success. "
            "Additional training on CASEVAC procedures is required. Equipment readiness checks "
            "must be more thorough before operations."
        ),
        recommendations=(
            "Increase frequency of integrated training with artillery and air support. Procure "
            "additional night vision devices. Conduct quarterly CASEVAC refresher training for "
            "all personnel."
        ),
        commanders_assessment=(
            "Overall excellent performance by the battalion. Unit is combat-ready and capable of "
            "executing assigned missions. Recommend continued emphasis on combined arms "
            "integration."
        ),
        prepared_by="CPT John Smith, S3 Operations Officer",
        reviewed_by="LTC Michael Johnson, Battalion Commander",
        status=STATUS_APPROVED,
        submitted_date=submitted,
        created_at=submitted,
        updated_at=submitted,
        attachments=_attachments(
            record_id,
            submitted,
            [
                ("att-001", "training_photo_001.jpg", 2_048_576, "image/jpeg"),
                ("att-002", "sitrep.pdf", 524_288, "application/pdf"),
                (
                    "att-003",
                    "equipment_status.xlsx",
                    102_400,
                    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
                ),
            ],
        ),
    )


def _iron_sentinel(now: datetime) -> Record:
    record_id = "AAR-20250920-0002"
    submitted = now - timedelta(days=47)
    return Record(
        id=record_id,
        classification=CLASSIFICATION_UNCLASSIFIED,
        operation_name="Exercise Iron Sentinel",
        dtg="201430ZSEP25",
        unit_designation="Marine Expeditionary Unit 26",
        mission_type=MISSION_TYPE_SECURITY,
        location="Camp Pendleton, CA / Pacific Ocean",
        duration_start="200600ZSEP25",
        duration_end="221800ZSEP25",
        personnel_count=2200,
        executive_summary=(
            "Multi-national training exercise with allied forces practicing amphibious assault "
            "operations and humanitarian assistance/disaster relief scenarios. Exercise included "
            "naval surface warfare, air-ground integration, and logistics over the shore "
            "operations. Participating nations included Japan, Australia, and South Korea."
        ),
        key_events=(
            "Day 1: Embarkation and movement to sea\n"
            "Day 2: Amphibious rehearsal\n"
            "Day 3: Full-scale amphibious assault with live-fire\n"
            "Day 4: HA/DR scenario and medical operations\n"
            "Day 5: Debarkation and equipment accountability"
        ),
        what_went_well=(
            "Excellent coordination with allied forces. Communications interoperability exceeded "
            "previous exercises. Aviation support was responsive and effective. Medical staff "
            "demonstrated outstanding capability in mass casualty scenarios."
        ),
        needs_improvement=(
            "Landing craft scheduling caused minor delays. Some language barriers with partner "
            "nations during complex operations. Weather monitoring and contingency planning "
            "needs enhancement."
        ),
        lessons_learned=(
            "Importance of liaison officers embedded with partner forces. Need for redundant "
            "communications systems. Value of cultural awareness training prior to multinational "
            "exercises."
        ),
        recommendations=(
            "Increase number of liaison officers for future multinational exercises. Develop "
            "standardized visual signals for operations with language barriers. Conduct "
            "additional weather-related contingency training."
        ),
        commanders_assessment=(
            "MEU demonstrated exceptional operational capability and readiness. Integration with "
            "allied forces was seamless. Unit is fully prepared for real-world contingency "
            "operations."
        ),
        prepared_by="MAJ Sarah Williams, MEU Operations Officer",
        reviewed_by="COL Robert Davis, MEU Commander",
        status=STATUS_APPROVED,
        submitted_date=submitted,
        created_at=submitted,
        updated_at=submitted,
        attachments=_attachments(
            record_id,
            submitted,
            [
                ("att-004", "amphibious_ops_photo_001.jpg", 3_145_728, "image/jpeg"),
                ("att-005", "tactical_map.png", 1_572_864, "image/png"),
                ("att-006", "exercise_video.mp4", 52_428_800, "video/mp4"),
                ("att-007", "allied_coordination_plan.pdf", 819_200, "application/pdf"),
                ("att-008", "medical_ops_photo.jpg", 2_621_440, "image/jpeg"),
            ],
        ),
    )


def _northern_viking(now: datetime) -> Record:
    record_id = "AAR-20250815-0004"
    submitted = now - timedelta(days=83)
    return Record(
        id=record_id,
        classification=CLASSIFICATION_UNCLASSIFIED,
        operation_name="Exercise Northern Viking",
        dtg="151500ZAUG25",
        unit_designation="10th Mountain Division, 1st Brigade",
        mission_type=MISSION_TYPE_TRAINING,
        location="Fort Drum, NY / Adirondack Mountains",
        duration_start="150600ZAUG25",
        duration_end="171800ZAUG25",
        personnel_count=3500,
        executive_summary=(
            "Brigade-level cold weather and mountain warfare training exercise. Focused on "
            "operations in austere, high-altitude environments with emphasis on cold weather "
            "survival, mountain mobility, and logistics in challenging terrain. Exercise prepared "
            "unit for potential deployment to arctic regions."
        ),
        key_events=(
            "Day 1: Movement to mountain training area and cold weather acclimatization\n"
            "Day 2: Mountain mobility training and technical rope operations\n"
            "Day 3: Cold weather survival and bivouac operations\n"
            "Day 4: Brigade tactical exercise with opposing force"
        ),
        what_went_well=(
            "Soldiers demonstrated excellent cold weather discipline. Mountain warfare skills "
            "improved significantly. Logistics chain functioned effectively despite challenging "
            "terrain. Leadership at all levels adapted well to austere conditions."
        ),
        needs_improvement=(
            "Some cold weather equipment shortages were identified. Communications in "
            "mountainous terrain remains challenging. Additional medical personnel training for "
            "cold weather injuries needed."
        ),
        lessons_learned=(
            "Importance of proper cold weather equipment maintenance. Need for specialized "
            "communications equipment for mountain operations. Value of pre-deployment cold "
            "weather training for personnel unfamiliar with arctic conditions."
        ),
        recommendations=(
            "Procure additional cold weather equipment sets. Invest in mountainous terrain "
            "communications solutions. Establish cold weather injury prevention program. Conduct "
            "annual cold weather refresher training."
        ),
        commanders_assessment=(
            "Brigade performed exceptionally well in challenging conditions. Unit is prepared for "
            "cold weather and mountain operations. Soldiers demonstrated resilience and "
            "adaptability."
        ),
        prepared_by="CPT Emily Rodriguez, Brigade S3 Air",
        reviewed_by="COL James Anderson, Brigade Commander",
        status=STATUS_APPROVED,
        submitted_date=submitted,
        created_at=submitted,
        updated_at=submitted,
        attachments=_attachments(
            record_id,
            submitted,
            [
                ("att-011", "mountain_training_photo.jpg", 2_621_440, "image/jpeg"),
                ("att-012", "cold_weather_procedures.pdf", 614_400, "application/pdf"),
            ],
        ),
    )


def sample_records(now: datetime | None = None) -> list[Record]:
    """Build the demo reports with timestamps relative to ``now``."""
    now = now or utc_now()
    return [_enduring_shield(now), _iron_sentinel(now), _northern_viking(now)]


def build_sample_store(clock: Callable[[], datetime] = utc_now) -> RecordStore:
    return RecordStore(sample_records(clock()), clock=clock)
