from __future__ import annotations

from typing import Any, Protocol

from .models import EntityKind

Record = dict[str, Any]


class EntityStore(Protocol):
    def get_all(self, kind: EntityKind) -> list[Record]:
        ...

    def get(self, kind: EntityKind, entity_id: str) -> Record | None:
        ...

    def put(self, kind: EntityKind, record: Record) -> Record:
        ...

    def find_one_by_index(self, kind: EntityKind, index: str, value: Any) -> Record | None:
        ...

    def find_all_by_index(self, kind: EntityKind, index: str, value: Any) -> list[Record]:
        ...

    def audit(
        self,
        *,
        entity_type: str,
        entity_id: str,
        action: str,
        payload: dict[str, Any],
    ) -> None:
        ...

    def recent_audit_log(self, limit: int = 100) -> list[dict[str, Any]]:
        ...
