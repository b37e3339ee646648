from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Mapping, Protocol, Sequence

UNAIDED_ELIMINATOR = 0


class Division(str, Enum):
    MENS = "mens"
    WOMENS = "womens"


class CategoryKind(str, Enum):
    MATCH_WINNER = "match_winner"
    RUMBLE_WINNER = "rumble_winner"
    ENTRANT = "entrant"
    FIRST_ELIMINATION = "first_elimination"
    MOST_ELIMINATIONS = "most_eliminations"
    LONGEST_TIME = "longest_time"
    FINAL_FOUR = "final_four"
    CHAOS_PROP = "chaos_prop"


DERIVABLE_KINDS = frozenset(
    {
        CategoryKind.RUMBLE_WINNER,
        CategoryKind.ENTRANT,
        CategoryKind.FIRST_ELIMINATION,
        CategoryKind.MOST_ELIMINATIONS,
        CategoryKind.LONGEST_TIME,
        CategoryKind.FINAL_FOUR,
    }
)


class ResultSource(str, Enum):
    DERIVED = "derived"
    DECLARED = "declared"


class ActionType(str, Enum):
    DISTRIBUTE_NUMBERS = "distribute_numbers"
    SUBMIT_PREDICTION = "submit_prediction"
    BLOCKED_VALUES = "blocked_values"
    CONFIRM_ENTRY = "confirm_entry"
    CONFIRM_ELIMINATION = "confirm_elimination"
    RESET_ENTRY = "reset_entry"
    RESET_ELIMINATION = "reset_elimination"
    CONFIRM_WINNER = "confirm_winner"
    RESET_WINNER = "reset_winner"
    CONFIRM_FINAL_FOUR = "confirm_final_four"
    RESET_FINAL_FOUR = "reset_final_four"
    DECLARE_RESULT = "declare_result"
    RESET_RESULT = "reset_result"
    ACCEPT_DERIVED = "accept_derived"
    GET_SNAPSHOT = "get_snapshot"
    GET_LEADERBOARD = "get_leaderboard"


class RandomSource(Protocol):
    def shuffle(self, items: list[Any]) -> None: ...


@dataclass(slots=True)
class EntrantSlot:
    number: int
    occupant: str | None = None
    entry_time: datetime | None = None
    elimination_time: datetime | None = None
    eliminated_by: int | None = None

    @property
    def is_entered(self) -> bool:
        return self.entry_time is not None

    @property
    def is_eliminated(self) -> bool:
        return self.elimination_time is not None

    @property
    def is_active(self) -> bool:
        return self.entry_time is not None and self.elimination_time is None

    def clear_entry(self) -> None:
        self.occupant = None
        self.entry_time = None

    def clear_elimination(self) -> None:
        self.elimination_time = None
        self.eliminated_by = None


@dataclass(frozen=True, slots=True)
class SlotView:
    number: int
    occupant: str | None
    entry_time: datetime | None
    elimination_time: datetime | None
    eliminated_by: int | None

    @property
    def is_entered(self) -> bool:
        return self.entry_time is not None

    @property
    def is_eliminated(self) -> bool:
        return self.elimination_time is not None

    @property
    def is_active(self) -> bool:
        return self.entry_time is not None and self.elimination_time is None


@dataclass(frozen=True, slots=True)
class LifecycleSnapshot:
    division: Division
    slots: tuple[SlotView, ...]

    def slot(self, number: int) -> SlotView:
        for s in self.slots:
            if s.number == number:
                return s
        raise KeyError(number)

    @property
    def active(self) -> list[SlotView]:
        return [s for s in self.slots if s.is_active]

    @property
    def entered(self) -> list[SlotView]:
        return [s for s in self.slots if s.is_entered]

    @property
    def eliminated(self) -> list[SlotView]:
        return [s for s in self.slots if s.is_eliminated]


@dataclass(frozen=True, slots=True)
class Category:
    kind: CategoryKind
    division: Division | None = None
    index: int | None = None
    match_id: str | None = None

    @property
    def key(self) -> str:
        if self.kind == CategoryKind.MATCH_WINNER:
            return str(self.match_id)
        prefix = self.division.value if self.division is not None else ""
        if self.kind in {CategoryKind.ENTRANT, CategoryKind.FINAL_FOUR, CategoryKind.CHAOS_PROP}:
            return f"{prefix}_{self.kind.value}_{self.index}"
        return f"{prefix}_{self.kind.value}"

    @property
    def family(self) -> str:
        return self.kind.value

    def __str__(self) -> str:
        return self.key


ResultValue = str | frozenset[str]


@dataclass(slots=True)
class Prediction:
    participant_id: str
    category: Category
    value: str
    submitted_at: datetime
    points_awarded: int | None = None

    @property
    def resolved(self) -> bool:
        return self.points_awarded is not None


@dataclass(frozen=True, slots=True)
class Result:
    category: Category
    value: ResultValue
    source: ResultSource
    resolved_at: datetime

    def matches(self, prediction_value: str) -> bool:
        if isinstance(self.value, frozenset):
            return prediction_value in self.value
        return prediction_value == self.value


@dataclass(frozen=True, slots=True)
class ScoreDelta:
    participant_id: str
    category: str
    points_awarded: int | None


@dataclass(frozen=True, slots=True)
class NumberAward:
    participant_id: str
    division: Division
    number: int
    family: str
    points: int


@dataclass(frozen=True, slots=True)
class SlotAnswer:
    number: int
    wrestler: str
    count: int | None = None
    duration: timedelta | None = None


@dataclass(frozen=True, slots=True)
class FinalFour:
    numbers: tuple[int, ...]
    wrestlers: frozenset[str]


@dataclass(frozen=True, slots=True)
class Incomplete:
    reason: str
    active_count: int
    entered_count: int


@dataclass(frozen=True, slots=True)
class ConflictRule:
    source: CategoryKind
    targets: frozenset[CategoryKind]
    reason: str


@dataclass(frozen=True, slots=True)
class Conflict:
    blocking_category: str
    value: str
    reason: str


@dataclass(slots=True)
class FactOutcome:
    snapshot: LifecycleSnapshot | None
    derived: dict[str, Any] = field(default_factory=dict)
    deltas: list[ScoreDelta] = field(default_factory=list)
    totals: dict[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class LeaderboardRow:
    participant_id: str
    prediction_points: int
    number_points: int
    rank: int = 0

    @property
    def total(self) -> int:
        return self.prediction_points + self.number_points


@dataclass(slots=True)
class LedgerEvent:
    event_id: str
    time: datetime
    scope: str
    event_type: str
    party_id: str
    payload: dict[str, Any]


@dataclass(slots=True)
class ActionRequest:
    request_id: str
    action_type: ActionType | str
    payload: dict[str, Any]
    actor_id: str


@dataclass(slots=True)
class ActionResult:
    request_id: str
    success: bool
    message: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ValidationIssue:
    code: str
    severity: str
    field_path: str
    entity_id: str
    message: str


class ValidationError(ValueError):
    def __init__(self, issues: list[ValidationIssue]) -> None:
        message = "; ".join(f"{i.code}:{i.entity_id}:{i.message}" for i in issues)
        super().__init__(message)
        self.issues = issues


@dataclass(slots=True)
class ForensicArtifact:
    artifact_id: str
    timestamp: datetime
    engine_scope: str
    error_code: str
    message: str
    state_snapshot: Mapping[str, Any]
    context: Mapping[str, Any]
    identifiers: Mapping[str, str]
    causal_fragment: Sequence[str]
