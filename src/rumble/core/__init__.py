from .errors import (
    CategoryLocked,
    ConflictViolation,
    DuplicateOccupant,
    EngineIntegrityError,
    FinalFourIncomplete,
    HasDependents,
    InvalidEliminator,
    InvalidEntrant,
    InvalidPayload,
    InvalidPredictionValue,
    InvalidResultValue,
    InvalidTimestamp,
    MatchConcluded,
    MatchInProgress,
    NotActive,
    NotEliminated,
    NotEntered,
    ResultUnavailable,
    RumbleRejection,
    SlotOccupied,
    UnknownCategory,
    UnknownSlot,
    build_forensic_artifact,
    persist_forensic_artifact,
)
from .events import EventBus
from .ids import make_id, now_utc
from .randomness import PythonRandomSource, party_random, seeded_random

__all__ = [
    "CategoryLocked",
    "ConflictViolation",
    "DuplicateOccupant",
    "EngineIntegrityError",
    "EventBus",
    "FinalFourIncomplete",
    "HasDependents",
    "InvalidEliminator",
    "InvalidEntrant",
    "InvalidPayload",
    "InvalidPredictionValue",
    "InvalidResultValue",
    "InvalidTimestamp",
    "MatchConcluded",
    "MatchInProgress",
    "NotActive",
    "NotEliminated",
    "NotEntered",
    "PythonRandomSource",
    "ResultUnavailable",
    "RumbleRejection",
    "SlotOccupied",
    "UnknownCategory",
    "UnknownSlot",
    "build_forensic_artifact",
    "make_id",
    "now_utc",
    "party_random",
    "persist_forensic_artifact",
    "seeded_random",
]
