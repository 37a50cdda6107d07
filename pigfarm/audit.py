"""
Audit trail writer.

Entries are written in a session of their own after the primary operation
has committed. A failed write is logged and dropped; it never undoes or
fails the operation it describes.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from pydantic_core import to_jsonable_python
from sqlalchemy.orm import sessionmaker

from . import models

logger = logging.getLogger(__name__)


class AuditSink:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def _write(self, entry) -> bool:
        try:
            with self.session_factory() as db:
                db.add(entry)
                db.commit()
            return True
        except Exception:
            logger.exception(
                "Failed to write audit entry %s for %s %s",
                type(entry).__name__,
                getattr(entry, "entity_type", None) or getattr(entry, "activity_type", None),
                getattr(entry, "entity_id", None),
            )
            return False

    def record_activity(
        self,
        actor: int,
        activity_type: str,
        description: str,
        details: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        return self._write(
            models.AuditActivity(
                user_id=actor,
                activity_type=activity_type,
                description=description,
                details=to_jsonable_python(dict(details)) if details else None,
            )
        )

    def record_create(self, actor: int, entity_type: str, entity_id: Any, description: str, details=None) -> bool:
        return self.record_activity(
            actor,
            "create",
            description,
            {"entity_type": entity_type, "entity_id": str(entity_id), **(details or {})},
        )

    def record_update(self, actor: int, entity_type: str, entity_id: Any, description: str, details=None) -> bool:
        return self.record_activity(
            actor,
            "update",
            description,
            {"entity_type": entity_type, "entity_id": str(entity_id), **(details or {})},
        )

    def record_delete(self, actor: int, entity_type: str, entity_id: Any, description: str, details=None) -> bool:
        return self.record_activity(
            actor,
            "delete",
            description,
            {"entity_type": entity_type, "entity_id": str(entity_id), **(details or {})},
        )

    def record_edit(
        self,
        actor: int,
        entity_type: str,
        entity_id: Any,
        action: str,
        before: Optional[Mapping[str, Any]] = None,
        after: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """Store an edit with the old/new values and a per-field diff."""
        before = dict(before or {})
        after = dict(after or {})
        diff = {
            key: {"from": before.get(key), "to": after.get(key)}
            for key in sorted(set(before) | set(after))
            if before.get(key) != after.get(key)
        }
        changes = {"old": before, "new": after, "diff": diff}
        return self._write(
            models.EditChange(
                user_id=actor,
                entity_type=entity_type,
                entity_id=str(entity_id),
                action=action,
                changes=to_jsonable_python(changes),
            )
        )


def snapshot(obj, fields) -> dict[str, Any]:
    return {f: getattr(obj, f) for f in fields}
