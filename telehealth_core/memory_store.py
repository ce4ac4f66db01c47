from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from typing import Any

from .models import EntityKind, to_db_time, utc_now
from .store_protocol import Record


@dataclass
class InMemoryRepository:
    """Dict-backed store; insertion order is preserved for ``get_all``."""

    _tables: dict[str, dict[str, Record]] = field(default_factory=dict)
    _audit_rows: list[dict[str, Any]] = field(default_factory=list)

    def _table(self, kind: EntityKind) -> dict[str, Record]:
        return self._tables.setdefault(EntityKind(kind).value, {})

    def get_all(self, kind: EntityKind) -> list[Record]:
        return [copy.deepcopy(row) for row in self._table(kind).values()]

    def get(self, kind: EntityKind, entity_id: str) -> Record | None:
        row = self._table(kind).get(str(entity_id))
        return copy.deepcopy(row) if row is not None else None

    def put(self, kind: EntityKind, record: Record) -> Record:
        if not record.get("id"):
            raise ValueError("Records must carry an 'id' before they are stored.")
        self._table(kind)[str(record["id"])] = copy.deepcopy(record)
        return record

    def find_one_by_index(self, kind: EntityKind, index: str, value: Any) -> Record | None:
        for row in self._table(kind).values():
            if row.get(index) == value:
                return copy.deepcopy(row)
        return None

    def find_all_by_index(self, kind: EntityKind, index: str, value: Any) -> list[Record]:
        return [copy.deepcopy(row) for row in self._table(kind).values() if row.get(index) == value]

    def audit(
        self,
        *,
        entity_type: str,
        entity_id: str,
        action: str,
        payload: dict[str, Any],
    ) -> None:
        self._audit_rows.append(
            {
                "id": len(self._audit_rows) + 1,
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action,
                "payload": json.dumps(payload),
                "created_at": to_db_time(utc_now()),
            }
        )

    def recent_audit_log(self, limit: int = 100) -> list[dict[str, Any]]:
        return [dict(row) for row in reversed(self._audit_rows)][:limit]
