from .types import (
    DERIVABLE_KINDS,
    UNAIDED_ELIMINATOR,
    ActionRequest,
    ActionResult,
    ActionType,
    Category,
    CategoryKind,
    Conflict,
    ConflictRule,
    Division,
    EntrantSlot,
    FactOutcome,
    FinalFour,
    ForensicArtifact,
    Incomplete,
    LeaderboardRow,
    LedgerEvent,
    LifecycleSnapshot,
    NumberAward,
    Prediction,
    RandomSource,
    Result,
    ResultSource,
    ResultValue,
    ScoreDelta,
    SlotAnswer,
    SlotView,
    ValidationError,
    ValidationIssue,
)

__all__ = [
    "DERIVABLE_KINDS",
    "UNAIDED_ELIMINATOR",
    "ActionRequest",
    "ActionResult",
    "ActionType",
    "Category",
    "CategoryKind",
    "Conflict",
    "ConflictRule",
    "Division",
    "EntrantSlot",
    "FactOutcome",
    "FinalFour",
    "ForensicArtifact",
    "Incomplete",
    "LeaderboardRow",
    "LedgerEvent",
    "LifecycleSnapshot",
    "NumberAward",
    "Prediction",
    "RandomSource",
    "Result",
    "ResultSource",
    "ResultValue",
    "ScoreDelta",
    "SlotAnswer",
    "SlotView",
    "ValidationError",
    "ValidationIssue",
]
