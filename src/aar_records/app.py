"""Application context assembly."""

from __future__ import annotations

from dataclasses import dataclass, field

from aar_records.config import Settings, load_settings
from aar_records.domain.identifiers import RecordIdGenerator
from aar_records.objectstore import ObjectStorageClient
from aar_records.store import RecordStore
from aar_records.store.samples import build_sample_store


@dataclass
class AppContext:
    """Dependencies owned by one running application.

    Built once when the HTTP app is created and kept on ``app.state``; nothing
    here is module-global, so tests can build as many contexts as they like.
    """

    settings: Settings
    store: RecordStore
    storage: ObjectStorageClient
    id_generator: RecordIdGenerator = field(default_factory=RecordIdGenerator)


def build_app_context(settings: Settings | None = None) -> AppContext:
    """Create a context with a freshly seeded store and an S3 client."""
    settings = settings or load_settings()
    return AppContext(
        settings=settings,
        store=build_sample_store(),
        storage=ObjectStorageClient(settings.storage),
    )
