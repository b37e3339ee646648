from __future__ import annotations

import logging
from pathlib import Path

from rumble.persistence.duckdb_store import AnalyticsStore

logger = logging.getLogger(__name__)


def run_party_etl(sqlite_path: Path, duckdb_path: Path, party_id: str) -> dict[str, int]:
    """Rebuild one party's marts from the sqlite ledger; returns rows per mart."""
    if not sqlite_path.exists():
        raise FileNotFoundError(f"no party ledger at {sqlite_path}")
    counts = AnalyticsStore(duckdb_path).refresh_from_sqlite(sqlite_path, party_id=party_id)
    logger.info(
        "party %s marts refreshed: %s",
        party_id,
        ", ".join(f"{mart}={rows}" for mart, rows in sorted(counts.items())),
    )
    return counts
