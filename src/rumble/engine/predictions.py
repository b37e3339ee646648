from __future__ import annotations

from datetime import datetime

from rumble.contracts import Category, CategoryKind, Prediction
from rumble.core import CategoryLocked, ConflictViolation, InvalidPredictionValue
from rumble.engine.config import EventConfig, canonical_name
from rumble.engine.conflicts import blocked_values, find_conflict


class PredictionBook:
    """All predictions of one party, keyed by (participant, category key)."""

    def __init__(self, config: EventConfig) -> None:
        self._config = config
        self._predictions: dict[tuple[str, str], Prediction] = {}
        self._locked: set[str] = set()

    def submit(self, participant_id: str, category: Category, value: str, at: datetime) -> Prediction:
        if not participant_id:
            raise InvalidPredictionValue("participant id must not be empty", category=category.key)
        if category.kind == CategoryKind.CHAOS_PROP:
            value = value.strip().upper()
        else:
            value = canonical_name(value)
        allowed = self._config.allowed_values(category)
        if value not in allowed:
            raise InvalidPredictionValue(
                f"'{value}' is not a valid pick for {category.key}",
                category=category.key,
                value=value,
            )
        current = self._predictions.get((participant_id, category.key))
        if category.key in self._locked or (current is not None and current.resolved):
            raise CategoryLocked(
                f"{category.key} is already resolved",
                category=category.key,
                participant_id=participant_id,
            )
        conflict = find_conflict(category, value, self.for_participant(participant_id))
        if conflict is not None:
            raise ConflictViolation(
                f"{value} is already picked for {conflict.blocking_category}: {conflict.reason}",
                blocking_category=conflict.blocking_category,
                category=category.key,
                value=value,
            )
        prediction = Prediction(participant_id=participant_id, category=category, value=value, submitted_at=at)
        self._predictions[(participant_id, category.key)] = prediction
        return prediction

    def blocked_values(self, participant_id: str, category: Category) -> set[str]:
        return blocked_values(category, self.for_participant(participant_id))

    def lock(self, category: Category) -> None:
        self._locked.add(category.key)

    def unlock(self, category: Category) -> None:
        self._locked.discard(category.key)

    def get(self, participant_id: str, category: Category) -> Prediction | None:
        return self._predictions.get((participant_id, category.key))

    def for_participant(self, participant_id: str) -> list[Prediction]:
        return [p for (pid, _), p in self._predictions.items() if pid == participant_id]

    def in_category(self, category: Category) -> list[Prediction]:
        return sorted(
            (p for (_, key), p in self._predictions.items() if key == category.key),
            key=lambda p: p.participant_id,
        )

    def participants(self) -> list[str]:
        return sorted({pid for pid, _ in self._predictions})
