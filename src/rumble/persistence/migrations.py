from __future__ import annotations

import sqlite3

MIGRATIONS: list[tuple[int, str]] = [
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version INTEGER PRIMARY KEY,
            applied_at TEXT DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS parties (
            party_id TEXT PRIMARY KEY,
            event_id TEXT NOT NULL,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS actions (
            action_id TEXT PRIMARY KEY,
            party_id TEXT NOT NULL,
            seq INTEGER NOT NULL,
            action_type TEXT NOT NULL,
            actor_id TEXT NOT NULL,
            payload_json TEXT NOT NULL,
            success INTEGER NOT NULL,
            message TEXT NOT NULL,
            recorded_at TEXT NOT NULL,
            FOREIGN KEY (party_id) REFERENCES parties(party_id)
        );

        CREATE TABLE IF NOT EXISTS score_deltas (
            delta_id INTEGER PRIMARY KEY AUTOINCREMENT,
            party_id TEXT NOT NULL,
            action_id TEXT NOT NULL,
            participant_id TEXT NOT NULL,
            category TEXT NOT NULL,
            points_awarded INTEGER,
            recorded_at TEXT NOT NULL,
            FOREIGN KEY (party_id) REFERENCES parties(party_id)
        );

        CREATE TABLE IF NOT EXISTS results (
            party_id TEXT NOT NULL,
            category TEXT NOT NULL,
            value_json TEXT NOT NULL,
            source TEXT NOT NULL,
            resolved_at TEXT NOT NULL,
            PRIMARY KEY (party_id, category),
            FOREIGN KEY (party_id) REFERENCES parties(party_id)
        );

        CREATE TABLE IF NOT EXISTS slots (
            party_id TEXT NOT NULL,
            division TEXT NOT NULL,
            number INTEGER NOT NULL,
            occupant TEXT,
            entry_time TEXT,
            elimination_time TEXT,
            eliminated_by INTEGER,
            PRIMARY KEY (party_id, division, number),
            FOREIGN KEY (party_id) REFERENCES parties(party_id)
        );

        CREATE TABLE IF NOT EXISTS totals (
            party_id TEXT NOT NULL,
            participant_id TEXT NOT NULL,
            prediction_points INTEGER NOT NULL,
            number_points INTEGER NOT NULL,
            total INTEGER NOT NULL,
            updated_at TEXT NOT NULL,
            PRIMARY KEY (party_id, participant_id),
            FOREIGN KEY (party_id) REFERENCES parties(party_id)
        );
        """,
    ),
    (
        2,
        """
        CREATE INDEX IF NOT EXISTS idx_actions_party_seq ON actions(party_id, seq);
        CREATE INDEX IF NOT EXISTS idx_score_deltas_party ON score_deltas(party_id, participant_id);
        """,
    ),
]


class MigrationRunner:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def apply(self) -> None:
        self.conn.execute("CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT DEFAULT CURRENT_TIMESTAMP)")
        applied = {
            row[0]
            for row in self.conn.execute("SELECT version FROM schema_migrations").fetchall()
        }
        for version, sql in MIGRATIONS:
            if version in applied:
                continue
            self.conn.executescript(sql)
            self.conn.execute("INSERT INTO schema_migrations(version) VALUES (?)", (version,))
        self.conn.commit()

    def current_version(self) -> int:
        row = self.conn.execute("SELECT MAX(version) FROM schema_migrations").fetchone()
        return int(row[0] or 0)
