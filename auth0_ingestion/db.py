"""PostgreSQL graph store: connection pool, entity/relationship upserts, run tracking."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from typing import Any, Generator, Optional, Sequence

import psycopg2
import psycopg2.extras
import psycopg2.pool

from auth0_ingestion.config import DatabaseConfig

logger = logging.getLogger("ingestion.db")

ENTITY_COLUMNS = [
    "instance_id", "entity_key", "entity_type", "entity_class",
    "properties", "raw_data",
]
RELATIONSHIP_COLUMNS = [
    "instance_id", "relationship_key", "relationship_type",
    "relationship_class", "from_entity_key", "to_entity_key", "properties",
]


class Database:
    """Thin wrapper around a ThreadedConnectionPool with graph upsert helpers."""

    def __init__(self, config: DatabaseConfig) -> None:
        self._pool = psycopg2.pool.ThreadedConnectionPool(
            minconn=config.min_connections,
            maxconn=config.max_connections,
            dsn=config.url,
        )

    def close(self) -> None:
        self._pool.closeall()

    @contextmanager
    def connection(self) -> Generator:
        conn = self._pool.getconn()
        try:
            yield conn
        finally:
            self._pool.putconn(conn)

    @contextmanager
    def transaction(self) -> Generator:
        """Yield a cursor inside an auto-commit/rollback transaction."""
        with self.connection() as conn:
            try:
                with conn.cursor() as cur:
                    yield cur
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def upsert_batch(
        self,
        cur,
        table: str,
        columns: list[str],
        rows: Sequence[tuple],
        conflict_columns: list[str],
        update_columns: list[str],
    ) -> int:
        """Bulk upsert using execute_values with ON CONFLICT DO UPDATE.

        Returns the number of rows affected.
        """
        if not rows:
            return 0

        set_clauses = ", ".join(f"{c} = EXCLUDED.{c}" for c in update_columns)
        set_clauses += ", last_synced_at = NOW()"
        sql = (
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES %s "
            f"ON CONFLICT ({', '.join(conflict_columns)}) DO UPDATE SET {set_clauses}"
        )
        # one statement for the whole batch, so rowcount covers every row
        psycopg2.extras.execute_values(cur, sql, rows, page_size=len(rows))
        return cur.rowcount

    def upsert_entities(self, instance_id: str, entities: Sequence[dict]) -> int:
        rows = []
        for e in entities:
            properties = {k: v for k, v in e.items() if k != "_rawData"}
            rows.append((
                instance_id,
                e["_key"],
                e["_type"],
                e["_class"],
                psycopg2.extras.Json(properties),
                psycopg2.extras.Json(e.get("_rawData", [])),
            ))
        with self.transaction() as cur:
            return self.upsert_batch(
                cur, "graph_entities", ENTITY_COLUMNS, rows,
                ["instance_id", "entity_key"],
                ["entity_type", "entity_class", "properties", "raw_data"],
            )

    def upsert_relationships(self, instance_id: str, relationships: Sequence[dict]) -> int:
        rows = [
            (
                instance_id,
                r["_key"],
                r["_type"],
                r["_class"],
                r["_fromEntityKey"],
                r["_toEntityKey"],
                psycopg2.extras.Json(r),
            )
            for r in relationships
        ]
        with self.transaction() as cur:
            return self.upsert_batch(
                cur, "graph_relationships", RELATIONSHIP_COLUMNS, rows,
                ["instance_id", "relationship_key"],
                [
                    "relationship_type", "relationship_class",
                    "from_entity_key", "to_entity_key", "properties",
                ],
            )

    # ------------------------------------------------------------------
    # Ingestion run tracking
    # ------------------------------------------------------------------

    def record_run_start(
        self,
        instance_id: str,
        provider: str,
        metadata: Optional[dict] = None,
    ) -> str:
        """Insert an ingestion_runs row with status RUNNING. Returns the run id."""
        run_id = str(uuid.uuid4())
        with self.transaction() as cur:
            cur.execute(
                """INSERT INTO ingestion_runs
                   (id, instance_id, provider, status, run_metadata)
                   VALUES (%s, %s, %s, 'RUNNING', %s)""",
                (run_id, instance_id, provider, psycopg2.extras.Json(metadata or {})),
            )
        return run_id

    def record_run_end(
        self,
        run_id: str,
        instance_id: str,
        status: str,
        entities_upserted: int = 0,
        relationships_upserted: int = 0,
        error_message: Optional[str] = None,
        error_detail: Optional[dict] = None,
    ) -> None:
        """Finalise an ingestion_runs row."""
        with self.transaction() as cur:
            cur.execute(
                """UPDATE ingestion_runs
                   SET status = %s,
                       finished_at = NOW(),
                       entities_upserted = %s,
                       relationships_upserted = %s,
                       error_message = %s,
                       error_detail = %s
                   WHERE id = %s AND instance_id = %s""",
                (
                    status,
                    entities_upserted,
                    relationships_upserted,
                    error_message,
                    psycopg2.extras.Json(error_detail) if error_detail else None,
                    run_id,
                    instance_id,
                ),
            )

    def get_recent_runs(self, instance_id: str, limit: int = 10) -> list[dict[str, Any]]:
        """Fetch recent ingestion runs for status display."""
        with self.transaction() as cur:
            cur.execute(
                """SELECT id, provider, status, started_at, finished_at,
                          entities_upserted, relationships_upserted, error_message
                   FROM ingestion_runs
                   WHERE instance_id = %s
                   ORDER BY started_at DESC LIMIT %s""",
                (instance_id, limit),
            )
            cols = [d[0] for d in cur.description]
            return [dict(zip(cols, row)) for row in cur.fetchall()]
