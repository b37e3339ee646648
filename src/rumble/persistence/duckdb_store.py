from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any

import duckdb


class AnalyticsStore:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def connect(self) -> Any:
        return duckdb.connect(str(self.db_path))

    def initialize_schema(self) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS mart_score_deltas (
                    delta_id BIGINT PRIMARY KEY,
                    party_id VARCHAR,
                    action_id VARCHAR,
                    participant_id VARCHAR,
                    category VARCHAR,
                    points_awarded INTEGER,
                    recorded_at VARCHAR
                );

                CREATE TABLE IF NOT EXISTS mart_leaderboard (
                    party_id VARCHAR,
                    participant_id VARCHAR,
                    prediction_points INTEGER,
                    number_points INTEGER,
                    total INTEGER,
                    updated_at VARCHAR,
                    PRIMARY KEY(party_id, participant_id)
                );

                CREATE TABLE IF NOT EXISTS mart_results (
                    party_id VARCHAR,
                    category VARCHAR,
                    value_json VARCHAR,
                    source VARCHAR,
                    resolved_at VARCHAR,
                    PRIMARY KEY(party_id, category)
                );
                """
            )

    def refresh_from_sqlite(self, sqlite_path: Path, party_id: str) -> dict[str, int]:
        self.initialize_schema()
        with sqlite3.connect(sqlite_path) as sconn, self.connect() as dconn:
            delta_rows = sconn.execute(
                """
                SELECT delta_id, party_id, action_id, participant_id, category, points_awarded, recorded_at
                FROM score_deltas
                WHERE party_id = ?
                ORDER BY delta_id
                """,
                (party_id,),
            ).fetchall()
            self._replace_party_rows(dconn, "mart_score_deltas", party_id, delta_rows, 7)

            total_rows = sconn.execute(
                "SELECT party_id, participant_id, prediction_points, number_points, total, updated_at FROM totals WHERE party_id = ?",
                (party_id,),
            ).fetchall()
            self._replace_party_rows(dconn, "mart_leaderboard", party_id, total_rows, 6)

            result_rows = sconn.execute(
                "SELECT party_id, category, value_json, source, resolved_at FROM results WHERE party_id = ?",
                (party_id,),
            ).fetchall()
            self._replace_party_rows(dconn, "mart_results", party_id, result_rows, 5)
        return {
            "mart_score_deltas": len(delta_rows),
            "mart_leaderboard": len(total_rows),
            "mart_results": len(result_rows),
        }

    def leaderboard(self, party_id: str) -> list[tuple[str, int]]:
        with self.connect() as conn:
            rows = conn.execute(
                "SELECT participant_id, total FROM mart_leaderboard WHERE party_id = ? ORDER BY total DESC, participant_id",
                [party_id],
            ).fetchall()
        return [(r[0], int(r[1])) for r in rows]

    def _replace_party_rows(self, conn: Any, table: str, party_id: str, rows: list[tuple], width: int) -> None:
        conn.execute(f"DELETE FROM {table} WHERE party_id = ?", [party_id])
        if not rows:
            return
        placeholders = ",".join(["?"] * width)
        conn.executemany(f"INSERT INTO {table} VALUES ({placeholders})", rows)
