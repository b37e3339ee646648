from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Iterable

from rumble.contracts import (
    DERIVABLE_KINDS,
    UNAIDED_ELIMINATOR,
    ActionRequest,
    ActionResult,
    ActionType,
    Category,
    CategoryKind,
    Division,
    FactOutcome,
    FinalFour,
    ForensicArtifact,
    LeaderboardRow,
    LedgerEvent,
    LifecycleSnapshot,
    NumberAward,
    Prediction,
    Result,
    ResultSource,
    ResultValue,
    ScoreDelta,
    SlotView,
)
from rumble.core import (
    CategoryLocked,
    EngineIntegrityError,
    EventBus,
    FinalFourIncomplete,
    InvalidPayload,
    InvalidResultValue,
    InvalidTimestamp,
    MatchConcluded,
    MatchInProgress,
    ResultUnavailable,
    RumbleRejection,
    UnknownCategory,
    build_forensic_artifact,
    make_id,
    now_utc,
    party_random,
    persist_forensic_artifact,
    seeded_random,
)
from rumble.engine import (
    CHAOS_PROP_OPTIONS,
    EntrantLifecycleStore,
    EventConfig,
    PredictionBook,
    ScoringEngine,
    canonical_name,
    distribute_numbers,
    elimination_counts,
    entrant_category,
    final_four,
    final_four_categories,
    first_eliminated,
    load_event_config,
    longest_duration,
    most_eliminations,
    number_awards,
    occupant_of,
    sole_survivor,
)
from rumble.export import ExportService
from rumble.persistence import PartyLedgerStore, run_party_etl

logger = logging.getLogger(__name__)

# Categories only settled once the winner is confirmed.
MATCH_END_KINDS = (CategoryKind.RUMBLE_WINNER, CategoryKind.MOST_ELIMINATIONS, CategoryKind.LONGEST_TIME)

_QUERY_ACTIONS = frozenset({ActionType.BLOCKED_VALUES, ActionType.GET_SNAPSHOT, ActionType.GET_LEADERBOARD})


class RuntimePaths:
    def __init__(self, root: Path) -> None:
        self.root = root

    @property
    def sqlite_path(self) -> Path:
        return self.root / "data" / "party.sqlite3"

    @property
    def duckdb_path(self) -> Path:
        return self.root / "data" / "analytics.duckdb"

    @property
    def export_dir(self) -> Path:
        return self.root / "exports"

    @property
    def forensic_dir(self) -> Path:
        return self.root / "forensics"


class PartyRuntime:
    """One watch party: lifecycle facts, predictions and scores behind one lock.

    Host facts go through the lifecycle store first; if the store rejects
    them nothing else is touched. Accepted facts are followed by a
    reconciliation pass that keeps derived results in line with the
    lifecycle state. Declared results are left alone by reconciliation.
    """

    def __init__(
        self,
        config: EventConfig | None = None,
        party_id: str | None = None,
        root: Path | None = None,
        seed: int | None = None,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.config = config if config is not None else load_event_config()
        self.party_id = party_id or make_id("party")
        self.seed = seed
        self.rand = seeded_random(seed) if seed is not None else party_random()
        self.clock = clock
        self.event_bus = EventBus()
        self._lock = threading.RLock()

        self._stores = {d: EntrantLifecycleStore(d, self.config.slot_count) for d in self.config.divisions}
        self.book = PredictionBook(self.config)
        self.scoring = ScoringEngine(self.config.weights, self.book)
        self._ownership: dict[Division, dict[int, str | None]] = {d: {} for d in self.config.divisions}
        self._match_end: dict[Division, datetime] = {}
        self._winner: dict[Division, int] = {}
        self._suppressed: set[str] = set()

        self.halted = False
        self.last_forensic: ForensicArtifact | None = None
        self.last_forensic_path: str | None = None

        self.paths = RuntimePaths(root) if root is not None else None
        self.store: PartyLedgerStore | None = None
        if self.paths is not None:
            self.store = PartyLedgerStore(self.paths.sqlite_path)
            self.store.initialize_schema()
            self.store.register_party(self.party_id, self.config.event_id)
        logger.info("party %s opened for event %s", self.party_id, self.config.event_id)

    def distribute_numbers(
        self,
        participant_ids: Iterable[str],
        division: Division | None = None,
    ) -> dict[Division, dict[int, str | None]]:
        participants = sorted({p for p in participant_ids if p})
        divisions = (division,) if division is not None else self.config.divisions
        with self._lock:
            for d in divisions:
                self._division_store(d)
                if self._stores[d].snapshot().entered:
                    raise MatchInProgress(
                        f"{d.value} numbers cannot be redrawn once entries have started",
                        division=d.value,
                    )
            drawn: dict[Division, dict[int, str | None]] = {}
            for d in divisions:
                drawn[d] = distribute_numbers(participants, self.config.slot_count, self.rand)
                self._ownership[d] = dict(drawn[d])
            self._publish("numbers", "NUMBERS_DISTRIBUTED", {"participants": participants, "divisions": [d.value for d in divisions]})
            return {d: dict(o) for d, o in drawn.items()}

    def ownership(self, division: Division) -> dict[int, str | None]:
        with self._lock:
            return dict(self._ownership.get(division, {}))

    def submit_prediction(
        self,
        participant_id: str,
        category_key: str,
        value: str,
        at: datetime | None = None,
    ) -> Prediction:
        with self._lock:
            category = self.config.category(category_key)
            prediction = self.book.submit(participant_id, category, value, self._stamp(at))
            self._publish(
                "predictions",
                "PREDICTION_SUBMITTED",
                {"participant_id": participant_id, "category": category.key, "value": prediction.value},
            )
            return prediction

    def blocked_values(self, participant_id: str, category_key: str) -> set[str]:
        with self._lock:
            return self.book.blocked_values(participant_id, self.config.category(category_key))

    def confirm_entry(self, division: Division, number: int, wrestler: str, timestamp: datetime | None = None) -> FactOutcome:
        with self._lock:
            store = self._open_store(division)
            view = store.confirm_entry(number, canonical_name(wrestler), self._stamp(timestamp))
            return self._after_fact(division, "ENTRY_CONFIRMED", _slot_payload(view))

    def confirm_elimination(
        self,
        division: Division,
        number: int,
        eliminator_number: int = UNAIDED_ELIMINATOR,
        timestamp: datetime | None = None,
    ) -> FactOutcome:
        with self._lock:
            store = self._open_store(division)
            view = store.confirm_elimination(number, eliminator_number, self._stamp(timestamp))
            return self._after_fact(division, "ELIMINATION_CONFIRMED", _slot_payload(view))

    def reset_entry(self, division: Division, number: int) -> FactOutcome:
        with self._lock:
            view = self._open_store(division).reset_entry(number)
            return self._after_fact(division, "ENTRY_RESET", _slot_payload(view))

    def reset_elimination(self, division: Division, number: int) -> FactOutcome:
        with self._lock:
            view = self._open_store(division).reset_elimination(number)
            return self._after_fact(division, "ELIMINATION_RESET", _slot_payload(view))

    def confirm_winner(self, division: Division, timestamp: datetime | None = None) -> FactOutcome:
        with self._lock:
            store = self._open_store(division)
            snapshot = store.snapshot()
            survivor = sole_survivor(snapshot)
            if survivor is None:
                raise ResultUnavailable(
                    f"{division.value} winner is undetermined: {len(snapshot.active)} active, "
                    f"{len(snapshot.slots) - len(snapshot.entered)} not entered",
                    division=division.value,
                    active=len(snapshot.active),
                    entered=len(snapshot.entered),
                )
            match_end = self._stamp(timestamp)
            latest = max(_last_fact_time(s) for s in snapshot.entered)
            if match_end < latest:
                raise InvalidTimestamp(
                    f"match end must not precede the last recorded fact at {latest.isoformat()}",
                    division=division.value,
                    timestamp=match_end.isoformat(),
                )
            self._match_end[division] = match_end
            self._winner[division] = survivor.number
            return self._after_fact(
                division,
                "WINNER_CONFIRMED",
                {"number": survivor.number, "wrestler": survivor.wrestler, "match_end": match_end.isoformat()},
            )

    def reset_winner(self, division: Division) -> FactOutcome:
        with self._lock:
            self._division_store(division)
            if division not in self._match_end:
                raise ResultUnavailable(f"{division.value} winner has not been confirmed", division=division.value)
            deltas: list[ScoreDelta] = []
            for kind in MATCH_END_KINDS:
                category = Category(kind, division)
                existing = self.scoring.result_for(category)
                if existing is not None and existing.source == ResultSource.DERIVED:
                    deltas.extend(self.scoring.unresolve(category))
            number = self._winner.pop(division)
            del self._match_end[division]
            return self._after_fact(division, "WINNER_RESET", {"number": number}, deltas)

    def confirm_final_four(
        self,
        division: Division,
        wrestlers: Iterable[str] | None = None,
        timestamp: datetime | None = None,
    ) -> FactOutcome:
        """Resolve every Final Four slot of ``division``.

        Without ``wrestlers`` the set is derived from the lifecycle and must be
        complete. With ``wrestlers`` the host freezes the set as declared.
        """
        with self._lock:
            store = self._division_store(division)
            categories = final_four_categories(division, self.config.final_four_slots)
            if wrestlers is None:
                derived = final_four(store.snapshot(), self.config.final_four_slots)
                if not isinstance(derived, FinalFour):
                    raise FinalFourIncomplete(
                        f"{division.value} Final Four cannot be derived: {derived.reason}",
                        division=division.value,
                        active=derived.active_count,
                        entered=derived.entered_count,
                    )
                value: ResultValue = derived.wrestlers
                source = ResultSource.DERIVED
            else:
                value = self._validated_final_four(division, wrestlers)
                source = ResultSource.DECLARED
            at = self._stamp(timestamp)
            results = [Result(c, value, source, at) for c in categories]
            for result in results:
                self._check_replaceable(result)
            deltas: list[ScoreDelta] = []
            for result in results:
                self._suppressed.discard(result.category.key)
                deltas.extend(self._apply_result(result))
            return self._after_fact(
                division,
                "FINAL_FOUR_CONFIRMED",
                {"wrestlers": sorted(value), "source": source.value},
                deltas,
            )

    def reset_final_four(self, division: Division) -> FactOutcome:
        with self._lock:
            self._division_store(division)
            categories = [
                c
                for c in final_four_categories(division, self.config.final_four_slots)
                if self.scoring.result_for(c) is not None
            ]
            if not categories:
                raise ResultUnavailable(f"{division.value} Final Four has no result to reset", division=division.value)
            deltas: list[ScoreDelta] = []
            for category in categories:
                deltas.extend(self.scoring.unresolve(category))
                self._suppressed.add(category.key)
            return self._after_fact(division, "FINAL_FOUR_RESET", {}, deltas)

    def declare_result(self, category_key: str, value: str, timestamp: datetime | None = None) -> FactOutcome:
        """Host-declared result: match winners, chaos props or an override of a derived answer."""
        with self._lock:
            category = self.config.category(category_key)
            if category.kind == CategoryKind.FINAL_FOUR:
                raise InvalidResultValue(
                    "Final Four slots share one result; confirm the Final Four instead",
                    category=category.key,
                )
            result = Result(category, self._validated_result_value(category, value), ResultSource.DECLARED, self._stamp(timestamp))
            self._check_replaceable(result)
            self._suppressed.discard(category.key)
            deltas = self._apply_result(result)
            payload = {"category": category.key, "value": result.value, "source": result.source.value}
            if category.division is None:
                return self._after_result("RESULT_DECLARED", payload, deltas)
            return self._after_fact(category.division, "RESULT_DECLARED", payload, deltas)

    def accept_derived(self, category_key: str, timestamp: datetime | None = None) -> FactOutcome:
        """Resolve a derivable category with its current derived answer.

        This is how the host puts back an automatic answer after resetting it.
        """
        with self._lock:
            category = self.config.category(category_key)
            if category.kind not in DERIVABLE_KINDS or category.division is None:
                raise ResultUnavailable(f"{category.key} is not derived from the lifecycle", category=category.key)
            if category.kind == CategoryKind.FINAL_FOUR:
                return self.confirm_final_four(category.division, timestamp=timestamp)
            value = self._derived_values(category.division).get(category)
            if value is None:
                raise ResultUnavailable(f"{category.key} has no derived answer yet", category=category.key)
            result = Result(category, value, ResultSource.DERIVED, self._stamp(timestamp))
            existing = self.scoring.result_for(category)
            if existing is not None and existing.value != value:
                raise CategoryLocked(
                    f"{category.key} is already resolved by the host; reset it first",
                    category=category.key,
                )
            self._suppressed.discard(category.key)
            deltas = self.scoring.resolve(result)
            return self._after_fact(
                category.division,
                "DERIVED_ACCEPTED",
                {"category": category.key, "value": value},
                deltas,
            )

    def reset_result(self, category_key: str) -> FactOutcome:
        with self._lock:
            category = self.config.category(category_key)
            if category.kind == CategoryKind.FINAL_FOUR:
                assert category.division is not None
                return self.reset_final_four(category.division)
            deltas = self.scoring.unresolve(category)
            if category.kind in DERIVABLE_KINDS:
                self._suppressed.add(category.key)
            payload = {"category": category.key}
            if category.division is None:
                return self._after_result("RESULT_RESET", payload, deltas)
            return self._after_fact(category.division, "RESULT_RESET", payload, deltas)

    def snapshot(self, division: Division) -> LifecycleSnapshot:
        with self._lock:
            return self._division_store(division).snapshot()

    def results(self) -> list[Result]:
        with self._lock:
            return self.scoring.results()

    def derived_answers(self, division: Division) -> dict[str, Any]:
        with self._lock:
            return self._derived_summary(division, self._division_store(division).snapshot())

    def awards(self) -> list[NumberAward]:
        with self._lock:
            awards: list[NumberAward] = []
            threshold = timedelta(seconds=self.config.jobber_threshold_seconds)
            for division in self.config.divisions:
                snapshot = self._stores[division].snapshot()
                iron_man = None
                if division in self._match_end:
                    longest = longest_duration(snapshot, self._match_end[division])
                    iron_man = longest.number if longest is not None else None
                awards.extend(
                    number_awards(
                        snapshot,
                        self._ownership[division],
                        self.config.weights,
                        winner_number=self._winner.get(division),
                        iron_man_number=iron_man,
                        jobber_threshold=threshold,
                    )
                )
            return awards

    def leaderboard(self) -> list[LeaderboardRow]:
        with self._lock:
            number_points: dict[str, int] = {}
            for award in self.awards():
                number_points[award.participant_id] = number_points.get(award.participant_id, 0) + award.points
            participants = set(self.book.participants()) | set(number_points)
            for owners in self._ownership.values():
                participants.update(p for p in owners.values() if p is not None)
            rows = [
                LeaderboardRow(
                    participant_id=pid,
                    prediction_points=self.scoring.total_for(pid),
                    number_points=number_points.get(pid, 0),
                )
                for pid in participants
            ]
            rows.sort(key=lambda r: (-r.total, r.participant_id))
            for position, row in enumerate(rows, start=1):
                if position > 1 and row.total == rows[position - 2].total:
                    row.rank = rows[position - 2].rank
                else:
                    row.rank = position
            return rows

    def totals(self) -> dict[str, int]:
        return {row.participant_id: row.total for row in self.leaderboard()}

    def state(self) -> dict[str, Any]:
        with self._lock:
            return {
                "party_id": self.party_id,
                "event_id": self.config.event_id,
                "divisions": {
                    d.value: {
                        "slots": [_slot_payload(s) for s in self._stores[d].snapshot().slots],
                        "derived": self.derived_answers(d),
                        "match_end": self._match_end[d].isoformat() if d in self._match_end else None,
                        "roster": [
                            {"wrestler": name, "confirmed": name not in self.config.unconfirmed}
                            for name in self.config.roster(d)
                        ],
                    }
                    for d in self.config.divisions
                },
                "results": [_result_payload(r) for r in self.scoring.results()],
            }

    def handle_action(self, request: ActionRequest) -> ActionResult:
        if self.halted:
            return ActionResult(
                request.request_id,
                False,
                f"runtime halted after integrity failure; forensic={self.last_forensic_path}",
                {"forensic_path": self.last_forensic_path},
            )

        with self._lock:
            try:
                result = self._handle_action_core(request)
            except RumbleRejection as exc:
                logger.info("party %s rejected %s: %s", self.party_id, request.action_type, exc)
                result = ActionResult(request.request_id, False, exc.reason, data=exc.as_dict())
            except EngineIntegrityError as exc:
                return self._halt(request, exc.artifact)
            except Exception as exc:
                logger.exception("party %s hard-stopped on %s", self.party_id, request.action_type)
                artifact = build_forensic_artifact(
                    engine_scope="runtime",
                    error_code="UNHANDLED_RUNTIME_EXCEPTION",
                    message=str(exc),
                    state_snapshot=self.state(),
                    context={"action_type": str(request.action_type), "payload": request.payload},
                    identifiers={"request_id": request.request_id, "party_id": self.party_id, "actor_id": request.actor_id},
                    causal_fragment=["runtime_dispatch"],
                )
                return self._halt(request, artifact)
            self._record(request, result)
            return result

    def _handle_action_core(self, request: ActionRequest) -> ActionResult:
        action = self._normalize_action(request.action_type)
        if action is None:
            return ActionResult(request.request_id, False, f"unknown action type '{request.action_type}'")
        payload = request.payload

        required = _REQUIRED_FIELDS.get(action, ())
        missing = sorted(f for f in required if f not in payload)
        if missing:
            return ActionResult(request.request_id, False, f"missing {action.value} fields: {', '.join(missing)}")

        if action == ActionType.DISTRIBUTE_NUMBERS:
            division = _parse_division(payload["division"]) if payload.get("division") else None
            drawn = self.distribute_numbers(_parse_names(payload, "participants"), division)
            return ActionResult(
                request.request_id,
                True,
                "numbers distributed",
                data={"ownership": {d.value: {str(n): o for n, o in owners.items()} for d, owners in drawn.items()}},
            )

        if action == ActionType.SUBMIT_PREDICTION:
            prediction = self.submit_prediction(
                str(payload["participant_id"]),
                str(payload["category"]),
                str(payload["value"]),
                _parse_time(payload.get("timestamp")),
            )
            return ActionResult(
                request.request_id,
                True,
                f"prediction recorded for {prediction.category.key}",
                data={"participant_id": prediction.participant_id, "category": prediction.category.key, "value": prediction.value},
            )

        if action == ActionType.BLOCKED_VALUES:
            blocked = self.blocked_values(str(payload["participant_id"]), str(payload["category"]))
            return ActionResult(request.request_id, True, "blocked values", data={"blocked": sorted(blocked)})

        if action == ActionType.CONFIRM_ENTRY:
            outcome = self.confirm_entry(
                _parse_division(payload["division"]),
                _parse_int(payload, "number"),
                str(payload["wrestler"]),
                _parse_time(payload.get("timestamp")),
            )
            return self._outcome_result(request, "entry confirmed", outcome)

        if action == ActionType.CONFIRM_ELIMINATION:
            outcome = self.confirm_elimination(
                _parse_division(payload["division"]),
                _parse_int(payload, "number"),
                _parse_int(payload, "eliminator", UNAIDED_ELIMINATOR),
                _parse_time(payload.get("timestamp")),
            )
            return self._outcome_result(request, "elimination confirmed", outcome)

        if action == ActionType.RESET_ENTRY:
            outcome = self.reset_entry(_parse_division(payload["division"]), _parse_int(payload, "number"))
            return self._outcome_result(request, "entry reset", outcome)

        if action == ActionType.RESET_ELIMINATION:
            outcome = self.reset_elimination(_parse_division(payload["division"]), _parse_int(payload, "number"))
            return self._outcome_result(request, "elimination reset", outcome)

        if action == ActionType.CONFIRM_WINNER:
            outcome = self.confirm_winner(_parse_division(payload["division"]), _parse_time(payload.get("timestamp")))
            return self._outcome_result(request, "winner confirmed", outcome)

        if action == ActionType.RESET_WINNER:
            outcome = self.reset_winner(_parse_division(payload["division"]))
            return self._outcome_result(request, "winner reset", outcome)

        if action == ActionType.CONFIRM_FINAL_FOUR:
            wrestlers = payload.get("wrestlers")
            outcome = self.confirm_final_four(
                _parse_division(payload["division"]),
                _parse_names(payload, "wrestlers") if wrestlers is not None else None,
                _parse_time(payload.get("timestamp")),
            )
            return self._outcome_result(request, "final four confirmed", outcome)

        if action == ActionType.RESET_FINAL_FOUR:
            outcome = self.reset_final_four(_parse_division(payload["division"]))
            return self._outcome_result(request, "final four reset", outcome)

        if action == ActionType.DECLARE_RESULT:
            outcome = self.declare_result(str(payload["category"]), str(payload["value"]), _parse_time(payload.get("timestamp")))
            return self._outcome_result(request, "result declared", outcome)

        if action == ActionType.RESET_RESULT:
            outcome = self.reset_result(str(payload["category"]))
            return self._outcome_result(request, "result reset", outcome)

        if action == ActionType.ACCEPT_DERIVED:
            outcome = self.accept_derived(str(payload["category"]), _parse_time(payload.get("timestamp")))
            return self._outcome_result(request, "derived result accepted", outcome)

        if action == ActionType.GET_SNAPSHOT:
            return ActionResult(request.request_id, True, "snapshot", data=self.state())

        if action == ActionType.GET_LEADERBOARD:
            return ActionResult(
                request.request_id,
                True,
                "leaderboard",
                data={"leaderboard": [_leaderboard_payload(r) for r in self.leaderboard()]},
            )

        return ActionResult(request.request_id, False, f"unsupported action {action.value}")

    def _normalize_action(self, action: ActionType | str) -> ActionType | None:
        if isinstance(action, ActionType):
            return action
        try:
            return ActionType(action)
        except ValueError:
            return None

    def _outcome_result(self, request: ActionRequest, message: str, outcome: FactOutcome) -> ActionResult:
        data: dict[str, Any] = {
            "derived": outcome.derived,
            "deltas": [_delta_payload(d) for d in outcome.deltas],
            "totals": outcome.totals,
        }
        if outcome.snapshot is not None:
            data["division"] = outcome.snapshot.division.value
            data["active"] = [s.number for s in outcome.snapshot.active]
        return ActionResult(request.request_id, True, message, data=data)

    def _halt(self, request: ActionRequest, artifact: ForensicArtifact) -> ActionResult:
        self.last_forensic = artifact
        if self.paths is not None:
            self.last_forensic_path = str(persist_forensic_artifact(artifact, self.paths.forensic_dir))
        self.halted = True
        logger.error("party %s halted: %s (forensic=%s)", self.party_id, artifact.error_code, self.last_forensic_path)
        return ActionResult(
            request.request_id,
            False,
            f"integrity failure: {artifact.error_code}",
            {"forensic_path": self.last_forensic_path},
        )

    def _record(self, request: ActionRequest, result: ActionResult) -> None:
        if self.store is None:
            return
        action = self._normalize_action(request.action_type)
        if action in _QUERY_ACTIONS:
            return
        action_type = action.value if action is not None else str(request.action_type)
        self.store.record_action(
            self.party_id,
            request.request_id,
            action_type,
            request.actor_id,
            request.payload,
            result.success,
            result.message,
        )
        if not result.success:
            return
        deltas = [
            ScoreDelta(d["participant_id"], d["category"], d["points_awarded"]) for d in result.data.get("deltas", [])
        ]
        if deltas:
            self.store.save_deltas(self.party_id, request.request_id, deltas)
        self.store.save_state(
            self.party_id,
            [self._stores[d].snapshot() for d in self.config.divisions],
            self.scoring.results(),
            self.leaderboard(),
        )

    def export(self) -> list[Path]:
        if self.paths is None or self.store is None:
            raise RuntimeError("export requires a runtime root")
        with self._lock:
            run_party_etl(self.paths.sqlite_path, self.paths.duckdb_path, self.party_id)
            service = ExportService(self.paths.duckdb_path)
            return service.export_party_datasets(self.paths.export_dir, self.party_id)

    def _division_store(self, division: Division) -> EntrantLifecycleStore:
        try:
            return self._stores[division]
        except KeyError:
            raise UnknownCategory(
                f"division '{division.value}' is not part of event '{self.config.event_id}'",
                division=division.value,
            ) from None

    def _open_store(self, division: Division) -> EntrantLifecycleStore:
        store = self._division_store(division)
        if division in self._match_end:
            raise MatchConcluded(
                f"{division.value} winner is confirmed; reset the winner before changing the lifecycle",
                division=division.value,
            )
        return store

    def _after_fact(
        self,
        division: Division,
        event_type: str,
        payload: dict[str, Any],
        deltas: list[ScoreDelta] | None = None,
    ) -> FactOutcome:
        deltas = list(deltas or [])
        snapshot = self._stores[division].snapshot()
        try:
            deltas.extend(self._reconcile(division))
        except RumbleRejection as exc:
            raise EngineIntegrityError(
                build_forensic_artifact(
                    engine_scope="reconcile",
                    error_code="DERIVED_RESULT_REJECTED",
                    message=str(exc),
                    state_snapshot={"slots": [_slot_payload(s) for s in snapshot.slots]},
                    context={"event_type": event_type, "payload": payload, "rejection": exc.as_dict()},
                    identifiers={"party_id": self.party_id, "division": division.value},
                    causal_fragment=["lifecycle_fact", "reconcile"],
                )
            ) from exc
        self._publish("lifecycle", event_type, {"division": division.value, **payload})
        if deltas:
            self._publish("scoring", "SCORES_UPDATED", {"deltas": [_delta_payload(d) for d in deltas]})
        logger.debug("party %s %s %s", self.party_id, event_type, payload)
        return FactOutcome(
            snapshot=snapshot,
            derived=self._derived_summary(division, snapshot),
            deltas=deltas,
            totals=self.totals(),
        )

    def _after_result(self, event_type: str, payload: dict[str, Any], deltas: list[ScoreDelta]) -> FactOutcome:
        self._publish("scoring", event_type, {**payload, "value": _plain(payload.get("value"))})
        return FactOutcome(snapshot=None, deltas=deltas, totals=self.totals())

    def _reconcile(self, division: Division) -> list[ScoreDelta]:
        deltas: list[ScoreDelta] = []
        at = self.clock()
        for category, value in self._derived_values(division).items():
            if category.key in self._suppressed:
                continue
            existing = self.scoring.result_for(category)
            if existing is not None and existing.source == ResultSource.DECLARED:
                continue
            if existing is not None and existing.value == value:
                continue
            if existing is not None:
                deltas.extend(self.scoring.unresolve(category))
            if value is not None:
                deltas.extend(self.scoring.resolve(Result(category, value, ResultSource.DERIVED, at)))
        return deltas

    def _derived_values(self, division: Division) -> dict[Category, ResultValue | None]:
        snapshot = self._stores[division].snapshot()
        values: dict[Category, ResultValue | None] = {}
        for number in self.config.entrant_numbers:
            values[entrant_category(division, number)] = occupant_of(snapshot, number)
        first = first_eliminated(snapshot)
        values[Category(CategoryKind.FIRST_ELIMINATION, division)] = first.wrestler if first is not None else None
        four = final_four(snapshot, self.config.final_four_slots)
        for category in final_four_categories(division, self.config.final_four_slots):
            values[category] = four.wrestlers if isinstance(four, FinalFour) else None
        match_end = self._match_end.get(division)
        if match_end is None:
            for kind in MATCH_END_KINDS:
                values[Category(kind, division)] = None
            return values
        winner = snapshot.slot(self._winner[division])
        most = most_eliminations(snapshot)
        longest = longest_duration(snapshot, match_end)
        values[Category(CategoryKind.RUMBLE_WINNER, division)] = winner.occupant
        values[Category(CategoryKind.MOST_ELIMINATIONS, division)] = most.wrestler if most is not None else None
        values[Category(CategoryKind.LONGEST_TIME, division)] = longest.wrestler if longest is not None else None
        return values

    def _derived_summary(self, division: Division, snapshot: LifecycleSnapshot) -> dict[str, Any]:
        match_end = self._match_end.get(division)
        first = first_eliminated(snapshot)
        most = most_eliminations(snapshot)
        longest = longest_duration(snapshot, match_end or self.clock())
        four = final_four(snapshot, self.config.final_four_slots)
        return {
            "first_elimination": {"number": first.number, "wrestler": first.wrestler} if first else None,
            "most_eliminations": {"number": most.number, "wrestler": most.wrestler, "count": most.count} if most else None,
            "longest_time": (
                {"number": longest.number, "wrestler": longest.wrestler, "seconds": longest.duration.total_seconds()}
                if longest is not None and longest.duration is not None
                else None
            ),
            "elimination_counts": {str(n): c for n, c in sorted(elimination_counts(snapshot).items())},
            "final_four": (
                {"numbers": list(four.numbers), "wrestlers": sorted(four.wrestlers)}
                if isinstance(four, FinalFour)
                else {"incomplete": four.reason}
            ),
            "winner": (
                {"number": self._winner[division], "wrestler": snapshot.slot(self._winner[division]).occupant}
                if division in self._winner
                else None
            ),
            "final": match_end is not None,
        }

    def _check_replaceable(self, result: Result) -> None:
        existing = self.scoring.result_for(result.category)
        if existing is None or existing.value == result.value:
            return
        if existing.source == ResultSource.DERIVED and result.source == ResultSource.DECLARED:
            return
        raise CategoryLocked(
            f"{result.category.key} is already resolved; reset it first",
            category=result.category.key,
        )

    def _apply_result(self, result: Result) -> list[ScoreDelta]:
        existing = self.scoring.result_for(result.category)
        deltas: list[ScoreDelta] = []
        if existing is not None and existing.value != result.value:
            deltas.extend(self.scoring.unresolve(result.category))
        deltas.extend(self.scoring.resolve(result))
        return deltas

    def _validated_result_value(self, category: Category, value: str) -> str:
        if category.kind == CategoryKind.CHAOS_PROP:
            normalized = value.strip().upper()
            allowed = frozenset(CHAOS_PROP_OPTIONS)
        else:
            normalized = canonical_name(value)
            allowed = self.config.allowed_values(category)
            if category.division is not None:
                allowed = allowed | self._occupants(category.division)
        if normalized not in allowed:
            raise InvalidResultValue(
                f"'{normalized}' is not a valid result for {category.key}",
                category=category.key,
                value=normalized,
            )
        return normalized

    def _validated_final_four(self, division: Division, wrestlers: Iterable[str]) -> frozenset[str]:
        names = [canonical_name(w) for w in wrestlers]
        chosen = frozenset(names)
        if len(chosen) != len(names) or len(chosen) != self.config.final_four_slots:
            raise InvalidResultValue(
                f"Final Four needs {self.config.final_four_slots} distinct wrestlers",
                division=division.value,
                wrestlers=names,
            )
        allowed = frozenset(self.config.roster(division)) | self._occupants(division)
        unknown = sorted(chosen - allowed)
        if unknown:
            raise InvalidResultValue(
                f"not on the {division.value} roster: {', '.join(unknown)}",
                division=division.value,
                wrestlers=unknown,
            )
        return chosen

    def _stamp(self, timestamp: datetime | None) -> datetime:
        return _as_utc(timestamp) if timestamp is not None else self.clock()

    def _occupants(self, division: Division) -> frozenset[str]:
        return frozenset(s.occupant for s in self._stores[division].snapshot().entered if s.occupant is not None)

    def _publish(self, scope: str, event_type: str, payload: dict[str, Any]) -> None:
        self.event_bus.publish(
            LedgerEvent(
                event_id=make_id("evt"),
                time=now_utc(),
                scope=scope,
                event_type=event_type,
                party_id=self.party_id,
                payload=payload,
            )
        )


_REQUIRED_FIELDS: dict[ActionType, tuple[str, ...]] = {
    ActionType.DISTRIBUTE_NUMBERS: ("participants",),
    ActionType.SUBMIT_PREDICTION: ("participant_id", "category", "value"),
    ActionType.BLOCKED_VALUES: ("participant_id", "category"),
    ActionType.CONFIRM_ENTRY: ("division", "number", "wrestler"),
    ActionType.CONFIRM_ELIMINATION: ("division", "number"),
    ActionType.RESET_ENTRY: ("division", "number"),
    ActionType.RESET_ELIMINATION: ("division", "number"),
    ActionType.CONFIRM_WINNER: ("division",),
    ActionType.RESET_WINNER: ("division",),
    ActionType.CONFIRM_FINAL_FOUR: ("division",),
    ActionType.RESET_FINAL_FOUR: ("division",),
    ActionType.DECLARE_RESULT: ("category", "value"),
    ActionType.RESET_RESULT: ("category",),
    ActionType.ACCEPT_DERIVED: ("category",),
}


def _parse_division(raw: Any) -> Division:
    try:
        return Division(str(raw).lower())
    except ValueError:
        raise UnknownCategory(f"unknown division '{raw}'", division=str(raw)) from None


def _parse_int(payload: dict[str, Any], field: str, default: int | None = None) -> int:
    raw = payload.get(field, default)
    if isinstance(raw, bool):
        raise InvalidPayload(f"'{field}' must be an integer", field=field, value=raw)
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise InvalidPayload(f"'{field}' must be an integer", field=field, value=str(raw)) from None


def _parse_names(payload: dict[str, Any], field: str) -> list[str]:
    raw = payload[field]
    if isinstance(raw, (str, bytes)) or not isinstance(raw, (list, tuple)):
        raise InvalidPayload(f"'{field}' must be a list of names", field=field, value=str(raw))
    return [str(item) for item in raw]


def _parse_time(raw: Any) -> datetime | None:
    if raw is None or isinstance(raw, datetime):
        parsed = raw
    else:
        try:
            parsed = datetime.fromisoformat(str(raw))
        except ValueError:
            raise InvalidTimestamp(f"'{raw}' is not an ISO-8601 timestamp", timestamp=str(raw)) from None
    return _as_utc(parsed) if parsed is not None else None


def _as_utc(timestamp: datetime) -> datetime:
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=UTC)
    return timestamp


def _last_fact_time(slot: SlotView) -> datetime:
    if slot.elimination_time is not None:
        return slot.elimination_time
    assert slot.entry_time is not None
    return slot.entry_time


def _plain(value: Any) -> Any:
    if isinstance(value, frozenset):
        return sorted(value)
    return value


def _slot_payload(slot: SlotView) -> dict[str, Any]:
    return {
        "number": slot.number,
        "occupant": slot.occupant,
        "entry_time": slot.entry_time.isoformat() if slot.entry_time else None,
        "elimination_time": slot.elimination_time.isoformat() if slot.elimination_time else None,
        "eliminated_by": slot.eliminated_by,
    }


def _result_payload(result: Result) -> dict[str, Any]:
    return {
        "category": result.category.key,
        "value": _plain(result.value),
        "source": result.source.value,
        "resolved_at": result.resolved_at.isoformat(),
    }


def _delta_payload(delta: ScoreDelta) -> dict[str, Any]:
    return {"participant_id": delta.participant_id, "category": delta.category, "points_awarded": delta.points_awarded}


def _leaderboard_payload(row: LeaderboardRow) -> dict[str, Any]:
    return {
        "rank": row.rank,
        "participant_id": row.participant_id,
        "prediction_points": row.prediction_points,
        "number_points": row.number_points,
        "total": row.total,
    }
