from __future__ import annotations

from pathlib import Path
from typing import Any

import duckdb


class ExportService:
    def __init__(self, analytics_db: Path) -> None:
        self.analytics_db = analytics_db

    def export_party_datasets(self, output_dir: Path, party_id: str) -> list[Path]:
        output_dir.mkdir(parents=True, exist_ok=True)
        outputs: list[Path] = []
        with duckdb.connect(str(self.analytics_db)) as conn:
            outputs.extend(self._export_table(conn, "mart_leaderboard", party_id, output_dir / f"{party_id}_leaderboard"))
            outputs.extend(self._export_table(conn, "mart_score_deltas", party_id, output_dir / f"{party_id}_score_deltas"))
            outputs.extend(self._export_table(conn, "mart_results", party_id, output_dir / f"{party_id}_results"))
        return outputs

    def _export_table(self, conn: Any, table: str, party_id: str, stem: Path) -> list[Path]:
        csv_path = stem.with_suffix(".csv")
        parquet_path = stem.with_suffix(".parquet")
        quoted = party_id.replace("'", "''")
        query = f"SELECT * FROM {table} WHERE party_id = '{quoted}'"
        conn.execute(f"COPY ({query}) TO '{csv_path.as_posix()}' (HEADER, DELIMITER ',')")
        conn.execute(f"COPY ({query}) TO '{parquet_path.as_posix()}' (FORMAT PARQUET)")
        return [csv_path, parquet_path]
