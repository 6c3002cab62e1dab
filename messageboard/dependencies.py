"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from messageboard.config import get_settings
from messageboard.db import InMemoryRecordStore, RecordStore, SqlRecordStore

logger = logging.getLogger(__name__)

_record_store: RecordStore | None = None


def get_record_store() -> RecordStore:
    """
    Return a singleton record store so board state persists across requests.

    The backend is chosen once, from configuration: a SQL store when
    DATABASE_URL is set, otherwise the in-memory store.
    """
    global _record_store
    if _record_store:
        return _record_store

    settings = get_settings()
    if settings.use_in_memory_store or not settings.database_url:
        _record_store = InMemoryRecordStore()
    else:
        _record_store = SqlRecordStore(settings.database_url)
    logger.info("Record store: %s", _record_store.__class__.__name__)
    return _record_store
