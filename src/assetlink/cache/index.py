"""SQLite index of produced outputs and build runs."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def _utcnow() -> str:
    """Return the current UTC timestamp in ISO format."""

    return datetime.now(timezone.utc).strftime(ISO_FORMAT)


@dataclass(slots=True)
class OutputRecord:
    """Indexed output for one fingerprint."""

    fingerprint: str
    identifier: str
    output_name: str
    content_hash: str
    byte_size: int
    preview: Optional[str] = None
    data_url: Optional[str] = None


@dataclass(slots=True)
class RunRecord:
    """Representation of a build run."""

    id: int
    status: str
    started_at: str
    completed_at: Optional[str]
    artifacts: int
    stats: Dict[str, Any]


class CacheIndex:
    """SQLite-backed fingerprint -> output index."""

    def __init__(self, path: Path) -> None:
        self.path = path.resolve()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        connection = sqlite3.connect(self.path, check_same_thread=False, timeout=30.0)
        connection.row_factory = sqlite3.Row
        try:
            yield connection
        finally:
            connection.close()

    def initialize(self) -> None:
        """Create tables if they do not exist."""

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.connect() as connection:
            connection.executescript(
                """
                CREATE TABLE IF NOT EXISTS outputs (
                    fingerprint TEXT PRIMARY KEY,
                    identifier TEXT NOT NULL,
                    output_name TEXT NOT NULL,
                    content_hash TEXT NOT NULL,
                    byte_size INTEGER NOT NULL,
                    preview TEXT,
                    data_url TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS runs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    status TEXT NOT NULL,
                    started_at TEXT NOT NULL,
                    completed_at TEXT,
                    artifacts INTEGER NOT NULL DEFAULT 0,
                    stats_json TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_outputs_identifier ON outputs(identifier);
                """
            )
            connection.commit()

    def lookup(self, fingerprint: str) -> Optional[OutputRecord]:
        with self.connect() as connection:
            row = connection.execute(
                """
                SELECT fingerprint, identifier, output_name, content_hash, byte_size, preview, data_url
                FROM outputs
                WHERE fingerprint = ?
                """,
                (fingerprint,),
            ).fetchone()
        if row is None:
            return None
        return OutputRecord(
            fingerprint=row["fingerprint"],
            identifier=row["identifier"],
            output_name=row["output_name"],
            content_hash=row["content_hash"],
            byte_size=int(row["byte_size"]),
            preview=row["preview"],
            data_url=row["data_url"],
        )

    def record(self, output: OutputRecord) -> None:
        """Insert or refresh the row for ``output.fingerprint``."""

        timestamp = _utcnow()
        with self.connect() as connection:
            connection.execute(
                """
                INSERT INTO outputs (
                    fingerprint, identifier, output_name, content_hash, byte_size,
                    preview, data_url, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(fingerprint) DO UPDATE SET
                    identifier = excluded.identifier,
                    output_name = excluded.output_name,
                    content_hash = excluded.content_hash,
                    byte_size = excluded.byte_size,
                    preview = excluded.preview,
                    data_url = excluded.data_url,
                    updated_at = excluded.updated_at
                """,
                (
                    output.fingerprint,
                    output.identifier,
                    output.output_name,
                    output.content_hash,
                    output.byte_size,
                    output.preview,
                    output.data_url,
                    timestamp,
                    timestamp,
                ),
            )
            connection.commit()

    def forget(self, fingerprint: str) -> None:
        with self.connect() as connection:
            connection.execute("DELETE FROM outputs WHERE fingerprint = ?", (fingerprint,))
            connection.commit()

    def count_outputs(self) -> int:
        with self.connect() as connection:
            value = connection.execute("SELECT COUNT(*) FROM outputs").fetchone()[0]
        return int(value)

    def start_run(self, artifacts: int) -> RunRecord:
        """Create a new run row and return it."""

        started_at = _utcnow()
        with self.connect() as connection:
            cursor = connection.execute(
                "INSERT INTO runs (status, started_at, artifacts) VALUES (?, ?, ?)",
                ("running", started_at, artifacts),
            )
            run_id = cursor.lastrowid
            connection.commit()
        return RunRecord(
            id=int(run_id),
            status="running",
            started_at=started_at,
            completed_at=None,
            artifacts=artifacts,
            stats={},
        )

    def finish_run(self, run_id: int, status: str, stats: Dict[str, Any]) -> None:
        with self.connect() as connection:
            connection.execute(
                "UPDATE runs SET status = ?, completed_at = ?, stats_json = ? WHERE id = ?",
                (status, _utcnow(), json.dumps(stats, sort_keys=True), run_id),
            )
            connection.commit()

    def list_recent_runs(self, limit: int = 5) -> list[RunRecord]:
        """Return recent runs ordered by start time descending."""

        with self.connect() as connection:
            rows = connection.execute(
                """
                SELECT id, status, started_at, completed_at, artifacts, stats_json
                FROM runs
                ORDER BY id DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [
            RunRecord(
                id=row["id"],
                status=row["status"],
                started_at=row["started_at"],
                completed_at=row["completed_at"],
                artifacts=row["artifacts"],
                stats=json.loads(row["stats_json"]) if row["stats_json"] else {},
            )
            for row in rows
        ]
