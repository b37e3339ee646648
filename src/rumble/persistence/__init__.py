from .duckdb_store import AnalyticsStore
from .etl import run_party_etl
from .migrations import MigrationRunner
from .sqlite_store import PartyLedgerStore

__all__ = [
    "AnalyticsStore",
    "MigrationRunner",
    "PartyLedgerStore",
    "run_party_etl",
]
