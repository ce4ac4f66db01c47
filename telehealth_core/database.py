from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from .models import (
    AvailabilityStatus,
    Doctor,
    DispatchUnit,
    EntityKind,
    Location,
    UnitType,
    utc_now,
    to_db_time,
)
from .store_protocol import EntityStore, Record


class SQLiteRepository:
    """Document store over SQLite: one JSON record per (kind, id)."""

    def __init__(self, db_path: str) -> None:
        self.db_path = str(Path(db_path))

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _managed_conn(self, conn: sqlite3.Connection | None):
        if conn is not None:
            yield conn
            return
        with self.connect() as local_conn:
            yield local_conn

    def init_db(self) -> None:
        schema = """
        CREATE TABLE IF NOT EXISTS entities (
            seq INTEGER PRIMARY KEY AUTOINCREMENT,
            kind TEXT NOT NULL,
            id TEXT NOT NULL,
            data TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now')),
            UNIQUE(kind, id)
        );

        CREATE TABLE IF NOT EXISTS audit_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            entity_type TEXT NOT NULL,
            entity_id TEXT NOT NULL,
            action TEXT NOT NULL,
            payload TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE INDEX IF NOT EXISTS idx_entities_kind
            ON entities(kind, seq);
        CREATE INDEX IF NOT EXISTS idx_audit_entity
            ON audit_log(entity_type, entity_id, created_at);
        """
        with self.connect() as conn:
            conn.executescript(schema)

    def get_all(self, kind: EntityKind, *, conn: sqlite3.Connection | None = None) -> list[Record]:
        with self._managed_conn(conn) as db:
            rows = db.execute(
                "SELECT data FROM entities WHERE kind = ? ORDER BY seq ASC;",
                (EntityKind(kind).value,),
            ).fetchall()
            return [json.loads(row["data"]) for row in rows]

    def get(
        self,
        kind: EntityKind,
        entity_id: str,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> Record | None:
        with self._managed_conn(conn) as db:
            row = db.execute(
                "SELECT data FROM entities WHERE kind = ? AND id = ?;",
                (EntityKind(kind).value, str(entity_id)),
            ).fetchone()
            return json.loads(row["data"]) if row else None

    def put(
        self,
        kind: EntityKind,
        record: Record,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> Record:
        if not record.get("id"):
            raise ValueError("Records must carry an 'id' before they are stored.")
        with self._managed_conn(conn) as db:
            db.execute(
                """
                INSERT INTO entities (kind, id, data)
                VALUES (?, ?, ?)
                ON CONFLICT(kind, id) DO UPDATE SET
                    data = excluded.data,
                    updated_at = datetime('now');
                """,
                (EntityKind(kind).value, str(record["id"]), json.dumps(record)),
            )
        return record

    def find_one_by_index(
        self,
        kind: EntityKind,
        index: str,
        value: Any,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> Record | None:
        rows = self._find_by_index(kind, index, value, limit=1, conn=conn)
        return rows[0] if rows else None

    def find_all_by_index(
        self,
        kind: EntityKind,
        index: str,
        value: Any,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> list[Record]:
        return self._find_by_index(kind, index, value, limit=-1, conn=conn)

    def _find_by_index(
        self,
        kind: EntityKind,
        index: str,
        value: Any,
        *,
        limit: int,
        conn: sqlite3.Connection | None,
    ) -> list[Record]:
        if isinstance(value, bool):
            value = int(value)
        with self._managed_conn(conn) as db:
            rows = db.execute(
                """
                SELECT data FROM entities
                WHERE kind = ? AND json_extract(data, ?) = ?
                ORDER BY seq ASC
                LIMIT ?;
                """,
                (EntityKind(kind).value, f"$.{index}", value, limit),
            ).fetchall()
            return [json.loads(row["data"]) for row in rows]

    def audit(
        self,
        *,
        entity_type: str,
        entity_id: str,
        action: str,
        payload: dict[str, Any],
        conn: sqlite3.Connection | None = None,
    ) -> None:
        with self._managed_conn(conn) as db:
            db.execute(
                """
                INSERT INTO audit_log (entity_type, entity_id, action, payload)
                VALUES (?, ?, ?, ?);
                """,
                (entity_type, str(entity_id), action, json.dumps(payload)),
            )

    def recent_audit_log(self, limit: int = 100) -> list[dict[str, Any]]:
        with self.connect() as conn:
            rows = conn.execute(
                """
                SELECT id, entity_type, entity_id, action, payload, created_at
                FROM audit_log
                ORDER BY id DESC
                LIMIT ?;
                """,
                (limit,),
            ).fetchall()
            return [dict(row) for row in rows]


DEMO_DOCTORS = (
    ("DOC_001", "USR_DOC_001", "Dr. Chenai Madziva", "General Practice", 4.8, True, 2, (-17.8252, 31.0502)),
    ("DOC_002", "USR_DOC_002", "Dr. Tafadzwa Ncube", "Pediatrics", 4.9, False, 1, (-17.8272, 31.0512)),
    ("DOC_003", "USR_DOC_003", "Dr. Rumbidzai Choto", "Cardiology", 4.7, True, 5, (-17.8232, 31.0492)),
    ("DOC_004", "USR_DOC_004", "Dr. Kudakwashe Dube", "General Practice", 4.6, False, 0, (-17.8302, 31.0532)),
)

DEMO_DISPATCHES = (
    ("DSP_001", "USR_DSP_001", "Harare Central Ambulance", UnitType.AMBULANCE, "AMB-01", (-17.8200, 31.0450)),
    ("DSP_002", "USR_DSP_002", "Parirenyatwa Emergency", UnitType.HOSPITAL, "HOSP-01", (-17.8350, 31.0600)),
)


def seed_demo_data_if_empty(store: EntityStore) -> None:
    """Load a handful of doctors and responders around Harare into an empty store."""
    if store.get_all(EntityKind.DOCTORS) or store.get_all(EntityKind.DISPATCHES):
        return
    now = utc_now()
    for profile_id, account_id, name, specialty, rating, capable, queue, (lat, lng) in DEMO_DOCTORS:
        doctor = Doctor(
            id=profile_id,
            account_id=account_id,
            name=name,
            specialty=specialty,
            location=Location(lat=lat, lng=lng),
            status=AvailabilityStatus.AVAILABLE,
            rating=rating,
            queue=queue,
            emergency_capable=capable,
        )
        store.put(EntityKind.DOCTORS, doctor.to_record())
    for profile_id, account_id, name, unit_type, unit_id, (lat, lng) in DEMO_DISPATCHES:
        unit = DispatchUnit(
            id=profile_id,
            account_id=account_id,
            name=name,
            unit_type=unit_type,
            location=Location(lat=lat, lng=lng),
            status=AvailabilityStatus.AVAILABLE,
            unit_id=unit_id,
        )
        store.put(EntityKind.DISPATCHES, unit.to_record())
    store.audit(
        entity_type="system",
        entity_id="seed",
        action="DEMO_DATA_SEEDED",
        payload={"seeded_at": to_db_time(now)},
    )
