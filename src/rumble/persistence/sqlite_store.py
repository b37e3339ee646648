from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Iterable

from rumble.contracts import LeaderboardRow, LifecycleSnapshot, Result, ScoreDelta
from rumble.core import now_utc
from rumble.persistence.migrations import MigrationRunner

logger = logging.getLogger(__name__)


class PartyLedgerStore:
    """Append-only ledger of accepted actions and score deltas per party.

    Slots, results and totals are overwritten with the latest state after
    every accepted action so a reader never has to replay the ledger.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def initialize_schema(self) -> None:
        with self.connect() as conn:
            MigrationRunner(conn).apply()

    def register_party(self, party_id: str, event_id: str) -> None:
        with self.connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO parties(party_id, event_id, created_at) VALUES (?, ?, ?)",
                (party_id, event_id, now_utc().isoformat()),
            )

    def record_action(
        self,
        party_id: str,
        action_id: str,
        action_type: str,
        actor_id: str,
        payload: dict[str, Any],
        success: bool,
        message: str,
    ) -> int:
        with self.connect() as conn:
            seq = conn.execute("SELECT COALESCE(MAX(seq), 0) + 1 FROM actions WHERE party_id = ?", (party_id,)).fetchone()[0]
            conn.execute(
                """
                INSERT OR REPLACE INTO actions(action_id, party_id, seq, action_type, actor_id, payload_json, success, message, recorded_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    action_id,
                    party_id,
                    seq,
                    action_type,
                    actor_id,
                    json.dumps(payload, default=str, sort_keys=True),
                    int(success),
                    message,
                    now_utc().isoformat(),
                ),
            )
        return int(seq)

    def save_deltas(self, party_id: str, action_id: str, deltas: Iterable[ScoreDelta]) -> None:
        recorded_at = now_utc().isoformat()
        with self.connect() as conn:
            conn.executemany(
                """
                INSERT INTO score_deltas(party_id, action_id, participant_id, category, points_awarded, recorded_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [(party_id, action_id, d.participant_id, d.category, d.points_awarded, recorded_at) for d in deltas],
            )

    def save_state(
        self,
        party_id: str,
        snapshots: Iterable[LifecycleSnapshot],
        results: Iterable[Result],
        leaderboard: Iterable[LeaderboardRow],
    ) -> None:
        updated_at = now_utc().isoformat()
        with self.connect() as conn:
            for snapshot in snapshots:
                conn.executemany(
                    """
                    INSERT OR REPLACE INTO slots(party_id, division, number, occupant, entry_time, elimination_time, eliminated_by)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            party_id,
                            snapshot.division.value,
                            s.number,
                            s.occupant,
                            s.entry_time.isoformat() if s.entry_time else None,
                            s.elimination_time.isoformat() if s.elimination_time else None,
                            s.eliminated_by,
                        )
                        for s in snapshot.slots
                    ],
                )
            conn.execute("DELETE FROM results WHERE party_id = ?", (party_id,))
            conn.executemany(
                """
                INSERT INTO results(party_id, category, value_json, source, resolved_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                [
                    (
                        party_id,
                        r.category.key,
                        json.dumps(sorted(r.value) if isinstance(r.value, frozenset) else r.value),
                        r.source.value,
                        r.resolved_at.isoformat(),
                    )
                    for r in results
                ],
            )
            conn.execute("DELETE FROM totals WHERE party_id = ?", (party_id,))
            conn.executemany(
                """
                INSERT INTO totals(party_id, participant_id, prediction_points, number_points, total, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (party_id, row.participant_id, row.prediction_points, row.number_points, row.total, updated_at)
                    for row in leaderboard
                ],
            )
        logger.debug("saved state for party %s", party_id)

    def load_totals(self, party_id: str) -> list[tuple[str, int]]:
        with self.connect() as conn:
            rows = conn.execute(
                "SELECT participant_id, total FROM totals WHERE party_id = ? ORDER BY total DESC, participant_id",
                (party_id,),
            ).fetchall()
        return [(r[0], int(r[1])) for r in rows]

    def load_actions(self, party_id: str) -> list[dict[str, Any]]:
        with self.connect() as conn:
            rows = conn.execute(
                "SELECT seq, action_type, actor_id, payload_json, success, message FROM actions WHERE party_id = ? ORDER BY seq",
                (party_id,),
            ).fetchall()
        return [
            {
                "seq": r[0],
                "action_type": r[1],
                "actor_id": r[2],
                "payload": json.loads(r[3]),
                "success": bool(r[4]),
                "message": r[5],
            }
            for r in rows
        ]
