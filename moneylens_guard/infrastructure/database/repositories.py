"""Data access layer for key-value entries"""

from typing import Any, Optional

from sqlalchemy.orm import Session

from moneylens_guard.infrastructure.database.models import KeyValueEntry


class KeyValueRepository:
    """Repository for JSON documents stored by key"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, key: str) -> Optional[Any]:
        entry = self.db.get(KeyValueEntry, key)
        return entry.value if entry is not None else None

    def put(self, key: str, value: Any) -> KeyValueEntry:
        """Insert or replace the document under key"""
        entry = self.db.get(KeyValueEntry, key)
        if entry is None:
            entry = KeyValueEntry(key=key, value=value)
            self.db.add(entry)
        else:
            entry.value = value
        self.db.flush()
        return entry
