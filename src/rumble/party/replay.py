from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any
import json

from rumble.contracts import ActionRequest, ActionResult
from rumble.core import make_id
from rumble.engine import EventConfig, load_event_config
from rumble.party.runtime import PartyRuntime


@dataclass(slots=True)
class ReplayAction:
    action_type: str
    payload: dict
    actor_id: str


class ReplayHarness:
    """Records a party's action stream and replays it into fresh runtimes.

    Replays are only deterministic when every fact carries its own timestamp;
    actions without one are stamped with the wall clock.
    """

    def __init__(self, seed: int, event: str | None = None) -> None:
        self.seed = seed
        self.event = event
        self.actions: list[ReplayAction] = []

    def record(self, action_type: str, payload: dict, actor_id: str = "host") -> None:
        self.actions.append(ReplayAction(action_type=str(action_type), payload=payload, actor_id=actor_id))

    def save(self, path: Path) -> None:
        data: dict[str, Any] = {"seed": self.seed, "actions": [asdict(a) for a in self.actions]}
        if self.event is not None:
            data["event"] = self.event
        path.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")

    @staticmethod
    def load(path: Path) -> ReplayHarness:
        data = json.loads(path.read_text(encoding="utf-8"))
        harness = ReplayHarness(seed=int(data["seed"]), event=data.get("event"))
        for raw in data["actions"]:
            harness.actions.append(
                ReplayAction(
                    action_type=raw["action_type"],
                    payload=raw.get("payload", {}),
                    actor_id=raw.get("actor_id", "host"),
                )
            )
        return harness

    def config(self) -> EventConfig:
        return load_event_config(self.event)

    def run(self, runtime: PartyRuntime) -> list[ActionResult]:
        return [
            runtime.handle_action(ActionRequest(make_id("req"), action.action_type, action.payload, action.actor_id))
            for action in self.actions
        ]

    def replay(self, root: Path) -> tuple[dict, dict]:
        config = self.config()
        runtime_a = PartyRuntime(config, party_id="replay_a", root=root / "replay_a", seed=self.seed)
        runtime_b = PartyRuntime(config, party_id="replay_b", root=root / "replay_b", seed=self.seed)
        self.run(runtime_a)
        self.run(runtime_b)
        return self._fingerprint(runtime_a), self._fingerprint(runtime_b)

    def _fingerprint(self, runtime: PartyRuntime) -> dict:
        return {
            "ownership": {
                d.value: {str(n): owner for n, owner in runtime.ownership(d).items()} for d in runtime.config.divisions
            },
            "slots": {
                d.value: [
                    (s.number, s.occupant, s.eliminated_by, s.is_eliminated) for s in runtime.snapshot(d).slots
                ]
                for d in runtime.config.divisions
            },
            "results": {
                r.category.key: sorted(r.value) if isinstance(r.value, frozenset) else r.value
                for r in runtime.results()
            },
            "leaderboard": [(row.rank, row.participant_id, row.total) for row in runtime.leaderboard()],
        }
