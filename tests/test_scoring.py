from __future__ import annotations

import pytest

from rumble.contracts import Category, CategoryKind, Division, Result, ResultSource
from rumble.core import CategoryLocked, InvalidPredictionValue, ResultUnavailable, UnknownCategory
from rumble.engine import PredictionBook, ScoringEngine
from tests.helpers import T0, small_event

WINNER = Category(CategoryKind.RUMBLE_WINNER, Division.MENS)


def _engine() -> tuple[PredictionBook, ScoringEngine]:
    config = small_event()
    book = PredictionBook(config)
    return book, ScoringEngine(config.weights, book)


def _points(book: PredictionBook, category: Category) -> dict[str, int | None]:
    return {p.participant_id: p.points_awarded for p in book.in_category(category)}


def test_rumble_winner_scenario_awards_fifty_to_correct_picks():
    book, engine = _engine()
    for pid in ("ann", "bob", "cat"):
        book.submit(pid, WINNER, "Roman Reigns", T0)
    for pid in ("dan", "eve"):
        book.submit(pid, WINNER, "Gunther", T0)

    deltas = engine.resolve(Result(WINNER, "Roman Reigns", ResultSource.DERIVED, T0))

    assert _points(book, WINNER) == {"ann": 50, "bob": 50, "cat": 50, "dan": 0, "eve": 0}
    assert len(deltas) == 5
    assert engine.total_for("ann") == 50
    assert engine.total_for("eve") == 0


def test_resolve_is_idempotent():
    book, engine = _engine()
    book.submit("ann", WINNER, "Roman Reigns", T0)
    book.submit("bob", WINNER, "Gunther", T0)
    result = Result(WINNER, "Roman Reigns", ResultSource.DERIVED, T0)

    engine.resolve(result)
    once = _points(book, WINNER)
    second = engine.resolve(result)

    assert second == []
    assert _points(book, WINNER) == once


def test_resolve_unresolve_resolve_round_trip():
    book, engine = _engine()
    for pid, pick in (("ann", "Roman Reigns"), ("bob", "Gunther"), ("cat", "Roman Reigns")):
        book.submit(pid, WINNER, pick, T0)
    result = Result(WINNER, "Roman Reigns", ResultSource.DERIVED, T0)

    engine.resolve(result)
    original = _points(book, WINNER)
    cleared = engine.unresolve(WINNER)
    assert all(d.points_awarded is None for d in cleared)
    assert all(p is None for p in _points(book, WINNER).values())
    engine.resolve(result)

    assert _points(book, WINNER) == original


def test_resolved_category_rejects_new_predictions_until_unresolved():
    book, engine = _engine()
    book.submit("ann", WINNER, "Roman Reigns", T0)
    engine.resolve(Result(WINNER, "Roman Reigns", ResultSource.DERIVED, T0))

    with pytest.raises(CategoryLocked):
        book.submit("ann", WINNER, "Gunther", T0)
    with pytest.raises(CategoryLocked):
        book.submit("bob", WINNER, "Gunther", T0)

    engine.unresolve(WINNER)
    book.submit("bob", WINNER, "Gunther", T0)
    assert book.get("bob", WINNER) is not None


def test_different_result_for_resolved_category_is_refused():
    book, engine = _engine()
    book.submit("ann", WINNER, "Roman Reigns", T0)
    engine.resolve(Result(WINNER, "Roman Reigns", ResultSource.DERIVED, T0))
    with pytest.raises(CategoryLocked):
        engine.resolve(Result(WINNER, "Gunther", ResultSource.DECLARED, T0))
    assert _points(book, WINNER) == {"ann": 50}


def test_unresolve_without_result_is_refused():
    _, engine = _engine()
    with pytest.raises(ResultUnavailable):
        engine.unresolve(WINNER)


def test_final_four_result_scores_every_slot_by_membership():
    book, engine = _engine()
    slots = [Category(CategoryKind.FINAL_FOUR, Division.MENS, index=i) for i in (1, 2)]
    book.submit("ann", slots[0], "Gunther", T0)
    book.submit("ann", slots[1], "Cody Rhodes", T0)
    four = frozenset({"Gunther", "Roman Reigns", "CM Punk", "Jey Uso"})
    for slot in slots:
        engine.resolve(Result(slot, four, ResultSource.DERIVED, T0))
    assert engine.total_for("ann") == 10


def test_late_prediction_is_scored_when_category_is_resolved_again():
    book, engine = _engine()
    book.submit("ann", WINNER, "Roman Reigns", T0)
    result = Result(WINNER, "Roman Reigns", ResultSource.DERIVED, T0)
    engine.resolve(result)
    engine.unresolve(WINNER)
    book.submit("bob", WINNER, "Roman Reigns", T0)
    deltas = engine.resolve(result)
    assert {d.participant_id for d in deltas} == {"ann", "bob"}
    assert engine.totals() == {"ann": 50, "bob": 50}


def test_category_weight_overrides_family_weight():
    config = small_event(scoring={**small_event().weights.as_dict(), "mens_rumble_winner": 75})
    book = PredictionBook(config)
    engine = ScoringEngine(config.weights, book)
    book.submit("ann", WINNER, "Roman Reigns", T0)
    engine.resolve(Result(WINNER, "Roman Reigns", ResultSource.DERIVED, T0))
    assert engine.total_for("ann") == 75


def test_prediction_values_are_normalized_and_checked():
    config = small_event()
    book = PredictionBook(config)
    prop = Category(CategoryKind.CHAOS_PROP, Division.MENS, index=1)
    assert book.submit("ann", prop, " yes ", T0).value == "YES"
    with pytest.raises(InvalidPredictionValue):
        book.submit("ann", prop, "MAYBE", T0)
    with pytest.raises(InvalidPredictionValue):
        book.submit("ann", WINNER, "Hulk Hogan", T0)
    match = Category(CategoryKind.MATCH_WINNER, match_id="undercard_1")
    assert book.submit("ann", match, "Sami Zayn", T0).value == "Sami Zayn"


def test_unknown_category_key_is_rejected():
    config = small_event()
    with pytest.raises(UnknownCategory):
        config.category("mens_final_four_9")
    with pytest.raises(UnknownCategory):
        config.category("undercard_2")
    with pytest.raises(UnknownCategory):
        config.category("mens_entrant_x")
    assert config.category("womens_entrant_6").index == 6
