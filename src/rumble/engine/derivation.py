"""Prop answers computed from a lifecycle snapshot.

Every function here is pure: same snapshot in, same answer out. Tie-breaks
are fixed and shared by all callers:

* identical timestamps or counts go to the lower slot number;
* final-four boundary ties (two eliminations at the same instant competing
  for the last place) also go to the lower slot number.
"""
from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta

from rumble.contracts import UNAIDED_ELIMINATOR, FinalFour, Incomplete, LifecycleSnapshot, SlotAnswer, SlotView


def occupant_of(snapshot: LifecycleSnapshot, number: int) -> str | None:
    return snapshot.slot(number).occupant


def first_eliminated(snapshot: LifecycleSnapshot) -> SlotAnswer | None:
    eliminated = snapshot.eliminated
    if not eliminated:
        return None
    first = min(eliminated, key=lambda s: (s.elimination_time, s.number))
    return _answer(first)


def elimination_counts(snapshot: LifecycleSnapshot) -> dict[int, int]:
    counts = Counter(
        s.eliminated_by
        for s in snapshot.eliminated
        if s.eliminated_by is not None and s.eliminated_by != UNAIDED_ELIMINATOR
    )
    return dict(counts)


def most_eliminations(snapshot: LifecycleSnapshot) -> SlotAnswer | None:
    counts = elimination_counts(snapshot)
    if not counts:
        return None
    number, count = min(counts.items(), key=lambda item: (-item[1], item[0]))
    return _answer(snapshot.slot(number), count=count)


def duration_of(slot: SlotView, now: datetime) -> timedelta | None:
    if slot.entry_time is None:
        return None
    end = slot.elimination_time if slot.elimination_time is not None else now
    return end - slot.entry_time


def longest_duration(snapshot: LifecycleSnapshot, now: datetime) -> SlotAnswer | None:
    """Longest time in the match; active slots are measured up to ``now``.

    ``now`` should be the match-end timestamp once a winner is confirmed.
    """
    timed = [(s, duration_of(s, now)) for s in snapshot.entered]
    if not timed:
        return None
    slot, duration = min(timed, key=lambda item: (-item[1], item[0].number))
    return _answer(slot, duration=duration)


def sole_survivor(snapshot: LifecycleSnapshot) -> SlotAnswer | None:
    active = snapshot.active
    if len(active) != 1 or len(snapshot.entered) != len(snapshot.slots):
        return None
    return _answer(active[0])


def final_four(snapshot: LifecycleSnapshot, size: int = 4) -> FinalFour | Incomplete:
    entered = snapshot.entered
    active = snapshot.active
    if len(entered) < len(snapshot.slots):
        return Incomplete(
            reason=f"{len(snapshot.slots) - len(entered)} slots have not entered",
            active_count=len(active),
            entered_count=len(entered),
        )
    if len(active) > size:
        return Incomplete(
            reason=f"{len(active)} entrants are still active",
            active_count=len(active),
            entered_count=len(entered),
        )
    chosen = list(active)
    names = {s.occupant for s in active}
    # A wrestler who re-entered fills one place only.
    for slot in sorted(snapshot.eliminated, key=lambda s: (-s.elimination_time.timestamp(), s.number)):
        if len(chosen) == size:
            break
        if slot.occupant in names:
            continue
        chosen.append(slot)
        names.add(slot.occupant)
    if len(chosen) < size:
        return Incomplete(
            reason=f"only {len(chosen)} distinct wrestlers can fill the final four",
            active_count=len(active),
            entered_count=len(entered),
        )
    chosen.sort(key=lambda s: s.number)
    return FinalFour(
        numbers=tuple(s.number for s in chosen),
        wrestlers=frozenset(s.occupant for s in chosen if s.occupant is not None),
    )


def _answer(slot: SlotView, count: int | None = None, duration: timedelta | None = None) -> SlotAnswer:
    assert slot.occupant is not None
    return SlotAnswer(number=slot.number, wrestler=slot.occupant, count=count, duration=duration)
