from __future__ import annotations

from rumble.contracts import Category, Result, ScoreDelta
from rumble.core import CategoryLocked, ResultUnavailable
from rumble.engine.config import ScoringWeights
from rumble.engine.predictions import PredictionBook


class ScoringEngine:
    """Turns results into ``points_awarded`` on predictions.

    ``resolve`` only touches predictions that are still unresolved, so applying
    the same result twice changes nothing. A different result for an already
    resolved category is refused until the category is unresolved.
    """

    def __init__(self, weights: ScoringWeights, book: PredictionBook) -> None:
        self._weights = weights
        self._book = book
        self._results: dict[str, Result] = {}

    def resolve(self, result: Result) -> list[ScoreDelta]:
        category = result.category
        existing = self._results.get(category.key)
        if existing is not None and existing.value != result.value:
            raise CategoryLocked(
                f"{category.key} is already resolved to {_display(existing.value)}; reset it first",
                category=category.key,
            )
        weight = self._weights.weight_for(category)
        deltas: list[ScoreDelta] = []
        for prediction in self._book.in_category(category):
            if prediction.resolved:
                continue
            prediction.points_awarded = weight if result.matches(prediction.value) else 0
            deltas.append(ScoreDelta(prediction.participant_id, category.key, prediction.points_awarded))
        if existing is None:
            self._results[category.key] = result
        self._book.lock(category)
        return deltas

    def unresolve(self, category: Category) -> list[ScoreDelta]:
        if category.key not in self._results:
            raise ResultUnavailable(f"{category.key} has no result to reset", category=category.key)
        deltas: list[ScoreDelta] = []
        for prediction in self._book.in_category(category):
            if not prediction.resolved:
                continue
            prediction.points_awarded = None
            deltas.append(ScoreDelta(prediction.participant_id, category.key, None))
        del self._results[category.key]
        self._book.unlock(category)
        return deltas

    def result_for(self, category: Category) -> Result | None:
        return self._results.get(category.key)

    def results(self) -> list[Result]:
        return [self._results[k] for k in sorted(self._results)]

    def total_for(self, participant_id: str) -> int:
        return sum(p.points_awarded or 0 for p in self._book.for_participant(participant_id))

    def totals(self) -> dict[str, int]:
        return {pid: self.total_for(pid) for pid in self._book.participants()}


def _display(value: object) -> str:
    if isinstance(value, frozenset):
        return ", ".join(sorted(value))
    return str(value)
