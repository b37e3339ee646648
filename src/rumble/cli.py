from __future__ import annotations

import argparse
import logging
from pathlib import Path

from rumble.contracts import ActionRequest, ActionType
from rumble.core import make_id
from rumble.party import PartyRuntime, ReplayHarness


def main() -> None:
    parser = argparse.ArgumentParser(description="Rumble watch-party prediction scoring")
    parser.add_argument("--script", type=Path, required=True, help="recorded action script (JSON)")
    parser.add_argument("--root", type=Path, default=Path.cwd(), help="runtime root directory")
    parser.add_argument("--seed", type=int, default=None, help="seed for the number draw; overrides the script seed")
    parser.add_argument("--event", type=Path, default=None, help="event configuration JSON; defaults to the packaged event")
    parser.add_argument("--party-id", default=None, help="party identifier for the ledger")
    parser.add_argument("--export", action="store_true", help="export leaderboard, deltas and results after the run")
    parser.add_argument("--verbose", action="store_true", help="debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    harness = ReplayHarness.load(args.script)
    if args.event is not None:
        harness.event = str(args.event)
    seed = args.seed if args.seed is not None else harness.seed
    runtime = PartyRuntime(harness.config(), party_id=args.party_id, root=args.root, seed=seed)

    for action, result in zip(harness.actions, harness.run(runtime)):
        status = "ok" if result.success else "rejected"
        print(f"[{status}] {action.action_type}: {result.message}")
        if runtime.halted:
            print(f"runtime halted; forensic artifact at {runtime.last_forensic_path}")
            break

    board = runtime.handle_action(ActionRequest(make_id("req"), ActionType.GET_LEADERBOARD, {}, "host"))
    print("Leaderboard:")
    for row in board.data.get("leaderboard", []):
        print(
            f"{row['rank']:>3}. {row['participant_id']}: {row['total']} "
            f"(predictions={row['prediction_points']}, numbers={row['number_points']})"
        )

    if args.export:
        outputs = runtime.export()
        print("Exported datasets:")
        for p in outputs:
            print(f"- {p}")


if __name__ == "__main__":
    main()
