from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from rumble.contracts import ActionRequest, ActionType, Division
from rumble.core import make_id
from rumble.engine import EventConfig, build_event_config
from rumble.party import PartyRuntime

T0 = datetime(2026, 1, 31, 20, 0, tzinfo=UTC)

MENS = [
    "Cody Rhodes",
    "Roman Reigns",
    "Gunther",
    "Jey Uso",
    "CM Punk",
    "Logan Paul",
    "Seth Rollins",
    "Bron Breakker",
]

WOMENS = [
    "Rhea Ripley",
    "IYO SKY",
    "Bayley",
    "Liv Morgan",
    "Asuka",
    "Bianca Belair",
    "Nia Jax",
    "Charlotte Flair",
]

DEFAULT_SCORING = {
    "match_winner": 25,
    "chaos_prop": 10,
    "rumble_winner": 50,
    "entrant": 15,
    "first_elimination": 10,
    "most_eliminations": 20,
    "longest_time": 20,
    "final_four": 10,
    "elimination": 5,
    "jobber_penalty": -10,
    "winner_number": 50,
    "iron_man": 20,
}


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


def small_event_raw(slot_count: int = 6, **overrides: Any) -> dict[str, Any]:
    raw: dict[str, Any] = {
        "schema_version": "1.0",
        "event_id": "test_rumble",
        "title": "Test Rumble",
        "divisions": ["mens", "womens"],
        "slot_count": slot_count,
        "entrant_numbers": [1, slot_count],
        "final_four_slots": 4,
        "jobber_threshold_seconds": 60,
        "matches": [
            {"match_id": "undercard_1", "title": "Drew McIntyre vs Sami Zayn", "options": ["Drew McIntyre", "Sami Zayn"]},
        ],
        "chaos_props": [{"prop_id": "prop_1", "title": "Betrayal!"}],
        "rosters": {"mens": list(MENS), "womens": list(WOMENS)},
        "scoring": dict(DEFAULT_SCORING),
        "penalties": ["jobber_penalty"],
    }
    raw.update(overrides)
    return raw


def small_event(slot_count: int = 6, **overrides: Any) -> EventConfig:
    return build_event_config(small_event_raw(slot_count, **overrides))


def make_runtime(root: Path | None = None, seed: int = 7, slot_count: int = 6, **overrides: Any) -> PartyRuntime:
    return PartyRuntime(small_event(slot_count, **overrides), party_id="party_test", root=root, seed=seed)


def request(action_type: ActionType | str, payload: dict[str, Any] | None = None, actor_id: str = "host") -> ActionRequest:
    return ActionRequest(make_id("req"), action_type, payload or {}, actor_id)


def enter_all(runtime: PartyRuntime, division: Division = Division.MENS, spacing: int = 60) -> None:
    """Enter every slot in order, slot ``n`` at ``(n - 1) * spacing`` seconds."""
    names = MENS if division == Division.MENS else WOMENS
    for number in range(1, runtime.config.slot_count + 1):
        runtime.confirm_entry(division, number, names[number - 1], at((number - 1) * spacing))


def play_to_winner(runtime: PartyRuntime, division: Division = Division.MENS) -> None:
    """Six-slot match won by #2 (Roman Reigns).

    Eliminations: #1 by #3 at 400s, #4 by #2 at 500s, #3 by #2 at 600s,
    #6 unaided at 700s, #5 by #2 at 800s; winner confirmed at 900s.
    """
    enter_all(runtime, division)
    runtime.confirm_elimination(division, 1, 3, at(400))
    runtime.confirm_elimination(division, 4, 2, at(500))
    runtime.confirm_elimination(division, 3, 2, at(600))
    runtime.confirm_elimination(division, 6, 0, at(700))
    runtime.confirm_elimination(division, 5, 2, at(800))
    runtime.confirm_winner(division, at(900))
