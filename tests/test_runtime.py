from __future__ import annotations

import threading
from pathlib import Path

import pytest

from rumble.contracts import ActionType, Category, CategoryKind, Division, ResultSource
from rumble.core import (
    CategoryLocked,
    FinalFourIncomplete,
    HasDependents,
    InvalidResultValue,
    InvalidTimestamp,
    MatchConcluded,
    MatchInProgress,
    ResultUnavailable,
)
from rumble.engine import EntrantLifecycleStore
from tests.helpers import MENS, WOMENS, at, enter_all, make_runtime, play_to_winner, request

M = Division.MENS


def _points(runtime, participant_id: str, key: str) -> int | None:
    prediction = runtime.book.get(participant_id, runtime.config.category(key))
    assert prediction is not None
    return prediction.points_awarded


def test_entrant_slot_resolves_on_entry():
    runtime = make_runtime()
    runtime.submit_prediction("ann", "mens_entrant_1", "Cody Rhodes")
    runtime.submit_prediction("bob", "mens_entrant_1", "Gunther")

    outcome = runtime.confirm_entry(M, 1, "Cody Rhodes", at(0))

    assert {d.participant_id: d.points_awarded for d in outcome.deltas} == {"ann": 15, "bob": 0}
    assert outcome.totals["ann"] == 15
    assert outcome.snapshot is not None and outcome.snapshot.slot(1).occupant == "Cody Rhodes"


def test_first_elimination_resolves_once_and_survives_later_eliminations():
    runtime = make_runtime()
    runtime.submit_prediction("ann", "mens_first_elimination", "Cody Rhodes")
    enter_all(runtime)

    first = runtime.confirm_elimination(M, 1, 3, at(400))
    assert [d.points_awarded for d in first.deltas if d.category == "mens_first_elimination"] == [10]
    assert first.derived["first_elimination"] == {"number": 1, "wrestler": "Cody Rhodes"}

    later = runtime.confirm_elimination(M, 4, 2, at(500))
    assert not [d for d in later.deltas if d.category == "mens_first_elimination"]
    assert _points(runtime, "ann", "mens_first_elimination") == 10


def test_undo_rederives_first_elimination():
    runtime = make_runtime()
    runtime.submit_prediction("ann", "mens_first_elimination", "Cody Rhodes")
    runtime.submit_prediction("bob", "mens_first_elimination", "Jey Uso")
    enter_all(runtime)
    runtime.confirm_elimination(M, 1, 3, at(400))
    runtime.confirm_elimination(M, 4, 2, at(500))
    assert runtime.totals()["ann"] == 10

    outcome = runtime.reset_elimination(M, 1)

    assert _points(runtime, "ann", "mens_first_elimination") == 0
    assert _points(runtime, "bob", "mens_first_elimination") == 10
    assert outcome.derived["first_elimination"]["wrestler"] == "Jey Uso"
    result = runtime.scoring.result_for(Category(CategoryKind.FIRST_ELIMINATION, M))
    assert result is not None and result.source == ResultSource.DERIVED


def test_undo_of_only_elimination_unresolves_and_unlocks():
    runtime = make_runtime()
    runtime.submit_prediction("ann", "mens_first_elimination", "Cody Rhodes")
    enter_all(runtime)
    runtime.confirm_elimination(M, 1, 3, at(400))
    with pytest.raises(CategoryLocked):
        runtime.submit_prediction("bob", "mens_first_elimination", "Gunther")

    runtime.reset_elimination(M, 1)

    assert _points(runtime, "ann", "mens_first_elimination") is None
    runtime.submit_prediction("bob", "mens_first_elimination", "Gunther")


def test_final_four_resolves_when_four_remain():
    runtime = make_runtime()
    runtime.submit_prediction("ann", "mens_final_four_1", "Gunther")
    runtime.submit_prediction("ann", "mens_final_four_2", "Cody Rhodes")
    enter_all(runtime)
    runtime.confirm_elimination(M, 1, 3, at(400))

    outcome = runtime.confirm_elimination(M, 4, 2, at(500))

    assert outcome.derived["final_four"]["numbers"] == [2, 3, 5, 6]
    assert _points(runtime, "ann", "mens_final_four_1") == 10
    assert _points(runtime, "ann", "mens_final_four_2") == 0


def test_confirm_final_four_incomplete_is_typed():
    runtime = make_runtime()
    enter_all(runtime)
    with pytest.raises(FinalFourIncomplete) as exc:
        runtime.confirm_final_four(M)
    assert exc.value.code == "INCOMPLETE"
    assert exc.value.context["active"] == 6


def test_host_can_freeze_final_four_over_derivation():
    runtime = make_runtime()
    runtime.submit_prediction("ann", "mens_final_four_1", "Seth Rollins")
    enter_all(runtime)
    frozen = ["Roman Reigns", "Gunther", "CM Punk", "Seth Rollins"]

    runtime.confirm_final_four(M, frozen, at(350))
    runtime.confirm_elimination(M, 1, 3, at(400))
    runtime.confirm_elimination(M, 4, 2, at(500))

    result = runtime.scoring.result_for(runtime.config.category("mens_final_four_3"))
    assert result is not None
    assert result.source == ResultSource.DECLARED
    assert result.value == frozenset(frozen)
    assert _points(runtime, "ann", "mens_final_four_1") == 10


def test_frozen_final_four_must_be_four_known_wrestlers():
    runtime = make_runtime()
    with pytest.raises(InvalidResultValue):
        runtime.confirm_final_four(M, ["Gunther", "Gunther", "CM Punk", "Jey Uso"])
    with pytest.raises(InvalidResultValue):
        runtime.confirm_final_four(M, ["Gunther", "CM Punk", "Jey Uso"])
    with pytest.raises(InvalidResultValue):
        runtime.confirm_final_four(M, ["Gunther", "CM Punk", "Jey Uso", "Hulk Hogan"])


def test_winner_resolves_match_end_props():
    runtime = make_runtime()
    runtime.submit_prediction("ann", "mens_rumble_winner", "Roman Reigns")
    runtime.submit_prediction("bob", "mens_rumble_winner", "Gunther")
    runtime.submit_prediction("ann", "mens_most_eliminations", "Roman Reigns")
    runtime.submit_prediction("bob", "mens_longest_time", "Roman Reigns")

    play_to_winner(runtime)

    assert _points(runtime, "ann", "mens_rumble_winner") == 50
    assert _points(runtime, "bob", "mens_rumble_winner") == 0
    assert _points(runtime, "ann", "mens_most_eliminations") == 20
    assert _points(runtime, "bob", "mens_longest_time") == 20
    derived = runtime.derived_answers(M)
    assert derived["winner"] == {"number": 2, "wrestler": "Roman Reigns"}
    assert derived["most_eliminations"]["count"] == 3
    assert derived["longest_time"]["seconds"] == 840.0
    assert derived["final"] is True


def test_winner_requires_sole_survivor():
    runtime = make_runtime()
    enter_all(runtime)
    with pytest.raises(ResultUnavailable):
        runtime.confirm_winner(M, at(1000))


def test_lifecycle_is_closed_after_winner_until_reset():
    runtime = make_runtime()
    runtime.submit_prediction("ann", "mens_rumble_winner", "Roman Reigns")
    play_to_winner(runtime)

    with pytest.raises(MatchConcluded):
        runtime.reset_elimination(M, 5)

    runtime.reset_winner(M)
    assert _points(runtime, "ann", "mens_rumble_winner") is None
    runtime.reset_elimination(M, 5)
    assert runtime.derived_answers(M)["winner"] is None


def test_numbers_cannot_be_redrawn_once_entries_start():
    runtime = make_runtime()
    runtime.distribute_numbers(["ann", "bob"])
    runtime.confirm_entry(M, 1, "Cody Rhodes", at(0))
    with pytest.raises(MatchInProgress):
        runtime.distribute_numbers(["ann", "bob", "cat"])
    runtime.distribute_numbers(["ann", "bob", "cat"], Division.WOMENS)
    assert set(runtime.ownership(Division.WOMENS).values()) == {"ann", "bob", "cat"}


def test_leaderboard_combines_predictions_and_numbers():
    runtime = make_runtime()
    drawn = runtime.distribute_numbers(["ann", "bob"], M)
    owner_of_winner = drawn[M][2]
    runtime.submit_prediction("cat", "mens_rumble_winner", "Roman Reigns")

    play_to_winner(runtime)

    board = {row.participant_id: row for row in runtime.leaderboard()}
    assert set(board) == {"ann", "bob", "cat"}
    assert board["cat"].prediction_points == 50
    assert board["cat"].number_points == 0
    assert board[owner_of_winner].number_points >= 3 * 5 + 50 + 20
    ranks = [row.rank for row in runtime.leaderboard()]
    assert ranks[0] == 1
    assert ranks == sorted(ranks)


def test_leaderboard_ties_share_a_rank():
    runtime = make_runtime()
    runtime.submit_prediction("ann", "undercard_1", "Sami Zayn")
    runtime.submit_prediction("bob", "undercard_1", "Sami Zayn")
    runtime.submit_prediction("cat", "undercard_1", "Drew McIntyre")
    runtime.declare_result("undercard_1", "Sami Zayn")
    rows = [(r.participant_id, r.rank, r.total) for r in runtime.leaderboard()]
    assert rows == [("ann", 1, 25), ("bob", 1, 25), ("cat", 3, 0)]


def test_declared_override_beats_derivation_and_reset_suppresses_it():
    runtime = make_runtime()
    runtime.submit_prediction("ann", "mens_first_elimination", "Cody Rhodes")
    runtime.submit_prediction("bob", "mens_first_elimination", "Gunther")
    enter_all(runtime)
    runtime.confirm_elimination(M, 1, 3, at(400))

    runtime.declare_result("mens_first_elimination", "Gunther")
    assert _points(runtime, "ann", "mens_first_elimination") == 0
    assert _points(runtime, "bob", "mens_first_elimination") == 10

    runtime.confirm_elimination(M, 4, 2, at(500))
    assert _points(runtime, "bob", "mens_first_elimination") == 10

    runtime.reset_result("mens_first_elimination")
    runtime.confirm_elimination(M, 6, 2, at(600))
    assert runtime.scoring.result_for(runtime.config.category("mens_first_elimination")) is None

    runtime.accept_derived("mens_first_elimination")
    assert _points(runtime, "ann", "mens_first_elimination") == 10


def test_declared_result_conflicts_require_reset():
    runtime = make_runtime()
    runtime.declare_result("undercard_1", "Sami Zayn")
    runtime.declare_result("undercard_1", "Sami Zayn")
    with pytest.raises(CategoryLocked):
        runtime.declare_result("undercard_1", "Drew McIntyre")
    runtime.reset_result("undercard_1")
    runtime.declare_result("undercard_1", "Drew McIntyre")


def test_declared_values_are_checked():
    runtime = make_runtime()
    with pytest.raises(InvalidResultValue):
        runtime.declare_result("undercard_1", "Gunther")
    with pytest.raises(InvalidResultValue):
        runtime.declare_result("mens_chaos_prop_1", "MAYBE")
    with pytest.raises(InvalidResultValue):
        runtime.declare_result("mens_final_four_1", "Gunther")
    outcome = runtime.declare_result("mens_chaos_prop_1", "yes")
    assert outcome.snapshot is not None


def test_surprise_entrant_can_be_declared_once_entered():
    runtime = make_runtime()
    runtime.confirm_entry(M, 1, "Rob Van Dam", at(0))
    runtime.declare_result("mens_longest_time", "Rob Van Dam")
    result = runtime.scoring.result_for(runtime.config.category("mens_longest_time"))
    assert result is not None and result.value == "Rob Van Dam"


def test_rejected_fact_leaves_state_and_scores_untouched():
    runtime = make_runtime()
    runtime.submit_prediction("ann", "mens_first_elimination", "Cody Rhodes")
    enter_all(runtime)
    runtime.confirm_elimination(M, 1, 3, at(400))
    before = (runtime.snapshot(M), runtime.totals(), runtime.results())

    with pytest.raises(HasDependents):
        runtime.reset_entry(M, 3)

    assert (runtime.snapshot(M), runtime.totals(), runtime.results()) == before


def test_handle_action_reports_typed_rejections():
    runtime = make_runtime()
    runtime.handle_action(request(ActionType.CONFIRM_ENTRY, {"division": "mens", "number": 1, "wrestler": "Gunther"}))
    result = runtime.handle_action(
        request(ActionType.CONFIRM_ENTRY, {"division": "mens", "number": 1, "wrestler": "Jey Uso"})
    )
    assert not result.success
    assert result.data["code"] == "SLOT_OCCUPIED"
    assert result.data["context"]["occupant"] == "Gunther"
    assert not runtime.halted


def test_handle_action_reports_conflicts_by_category():
    runtime = make_runtime()
    ok = runtime.handle_action(
        request(ActionType.SUBMIT_PREDICTION, {"participant_id": "ann", "category": "mens_first_elimination", "value": "Gunther"})
    )
    assert ok.success
    blocked = runtime.handle_action(
        request(ActionType.BLOCKED_VALUES, {"participant_id": "ann", "category": "mens_final_four_2"})
    )
    assert blocked.data["blocked"] == ["Gunther"]
    rejected = runtime.handle_action(
        request(ActionType.SUBMIT_PREDICTION, {"participant_id": "ann", "category": "mens_final_four_2", "value": "Gunther"})
    )
    assert not rejected.success
    assert rejected.data["code"] == "CONFLICT"
    assert rejected.data["context"]["blocking_category"] == "mens_first_elimination"


def test_handle_action_validates_payloads():
    runtime = make_runtime()
    missing = runtime.handle_action(request(ActionType.CONFIRM_ENTRY, {"division": "mens"}))
    assert not missing.success
    assert "number" in missing.message
    unknown = runtime.handle_action(request("rewind_time", {}))
    assert not unknown.success
    bad_division = runtime.handle_action(request(ActionType.RESET_WINNER, {"division": "mixed"}))
    assert bad_division.data["code"] == "UNKNOWN_CATEGORY"
    bad_time = runtime.handle_action(
        request(ActionType.CONFIRM_ENTRY, {"division": "mens", "number": 1, "wrestler": "Gunther", "timestamp": "soon"})
    )
    assert bad_time.data["code"] == "INVALID_TIMESTAMP"
    bad_number = runtime.handle_action(
        request(ActionType.CONFIRM_ENTRY, {"division": "mens", "number": "one", "wrestler": "Gunther"})
    )
    assert bad_number.data["code"] == "INVALID_PAYLOAD"
    assert bad_number.data["context"]["field"] == "number"
    bad_eliminator = runtime.handle_action(
        request(ActionType.CONFIRM_ELIMINATION, {"division": "mens", "number": 1, "eliminator": None})
    )
    assert bad_eliminator.data["code"] == "INVALID_PAYLOAD"
    bad_participants = runtime.handle_action(request(ActionType.DISTRIBUTE_NUMBERS, {"participants": "ann"}))
    assert bad_participants.data["code"] == "INVALID_PAYLOAD"
    assert not runtime.halted
    assert runtime.snapshot(M).slot(1).occupant is None
    ok = runtime.handle_action(request(ActionType.CONFIRM_ENTRY, {"division": "mens", "number": 1, "wrestler": "Gunther"}))
    assert ok.success


def test_naive_timestamps_are_read_as_utc():
    runtime = make_runtime()
    naive = at(0).replace(tzinfo=None)

    runtime.confirm_entry(M, 1, "Cody Rhodes", naive)
    runtime.confirm_entry(M, 2, "Gunther", at(30))

    slot = runtime.snapshot(M).slot(1)
    assert slot.occupant == "Cody Rhodes"
    assert slot.entry_time == at(0)
    assert runtime.derived_answers(M)["longest_time"] is not None


def test_lifecycle_store_rejects_naive_timestamps_untouched():
    store = EntrantLifecycleStore(M, 6)
    with pytest.raises(InvalidTimestamp):
        store.confirm_entry(1, "Cody Rhodes", at(0).replace(tzinfo=None))
    assert store.snapshot().slot(1).occupant is None


def test_handle_action_runs_a_match_from_payloads():
    runtime = make_runtime()
    runtime.handle_action(request(ActionType.DISTRIBUTE_NUMBERS, {"participants": ["ann", "bob"], "division": "mens"}))
    for n, name in enumerate(MENS[:6], start=1):
        res = runtime.handle_action(
            request(
                ActionType.CONFIRM_ENTRY,
                {"division": "mens", "number": n, "wrestler": name, "timestamp": at((n - 1) * 60).isoformat()},
            )
        )
        assert res.success, res.message
    for number, eliminator, seconds in ((1, 3, 400), (4, 2, 500), (3, 2, 600), (6, 0, 700), (5, 2, 800)):
        res = runtime.handle_action(
            request(
                ActionType.CONFIRM_ELIMINATION,
                {"division": "mens", "number": number, "eliminator": eliminator, "timestamp": at(seconds).isoformat()},
            )
        )
        assert res.success, res.message
    winner = runtime.handle_action(request(ActionType.CONFIRM_WINNER, {"division": "mens", "timestamp": at(900).isoformat()}))
    assert winner.success
    assert winner.data["derived"]["winner"]["wrestler"] == "Roman Reigns"
    board = runtime.handle_action(request(ActionType.GET_LEADERBOARD))
    assert {row["participant_id"] for row in board.data["leaderboard"]} == {"ann", "bob"}
    snapshot = runtime.handle_action(request(ActionType.GET_SNAPSHOT))
    assert snapshot.data["divisions"]["mens"]["match_end"] == at(900).isoformat()


def test_unexpected_failure_halts_with_forensic_artifact(tmp_path: Path):
    runtime = make_runtime(tmp_path)

    def explode(*args, **kwargs):
        raise RuntimeError("store corrupted")

    runtime._stores[M].confirm_entry = explode  # type: ignore[method-assign]
    result = runtime.handle_action(request(ActionType.CONFIRM_ENTRY, {"division": "mens", "number": 1, "wrestler": "Gunther"}))

    assert not result.success
    assert runtime.halted
    assert Path(result.data["forensic_path"]).exists()
    follow_up = runtime.handle_action(request(ActionType.GET_LEADERBOARD))
    assert not follow_up.success


def test_concurrent_facts_are_serialized():
    runtime = make_runtime(slot_count=30)
    roster = [f"Entrant {n}" for n in range(1, 31)]
    errors: list[Exception] = []

    def enter(numbers):
        for n in numbers:
            try:
                runtime.confirm_entry(M, n, roster[n - 1], at(n))
            except Exception as exc:
                errors.append(exc)

    threads = [threading.Thread(target=enter, args=(range(start, 31, 3),)) for start in (1, 2, 3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert not errors
    assert len(runtime.snapshot(M).entered) == 30
    events = runtime.event_bus.emitted_count("lifecycle")
    assert events == 30


def test_halt_without_root_keeps_artifact_in_memory(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    runtime = make_runtime()

    def explode(*args, **kwargs):
        raise RuntimeError("store corrupted")

    runtime._stores[M].confirm_entry = explode  # type: ignore[method-assign]
    result = runtime.handle_action(request(ActionType.CONFIRM_ENTRY, {"division": "mens", "number": 1, "wrestler": "Gunther"}))

    assert runtime.halted
    assert result.data["forensic_path"] is None
    assert runtime.last_forensic is not None
    assert runtime.last_forensic.error_code == "UNHANDLED_RUNTIME_EXCEPTION"
    assert list(tmp_path.iterdir()) == []


def test_state_marks_unconfirmed_roster_entries():
    runtime = make_runtime(rosters={"mens": ["*CM Punk", *MENS[:4]], "womens": list(WOMENS)})
    roster = {r["wrestler"]: r["confirmed"] for r in runtime.state()["divisions"]["mens"]["roster"]}
    assert roster["CM Punk"] is False
    assert roster["Cody Rhodes"] is True
