from __future__ import annotations

from datetime import timedelta
from typing import Mapping, Sequence

from rumble.contracts import UNAIDED_ELIMINATOR, LifecycleSnapshot, NumberAward, RandomSource
from rumble.engine.config import ScoringWeights


def distribute_numbers(
    participant_ids: Sequence[str],
    slot_count: int,
    random_source: RandomSource,
) -> dict[int, str | None]:
    """Deal the slot numbers out as evenly as possible.

    Numbers are shuffled, every participant gets ``slot_count // n`` and the
    first ``slot_count % n`` participants get one extra. With no participants
    every number stays vacant.
    """
    numbers = list(range(1, slot_count + 1))
    random_source.shuffle(numbers)
    ownership: dict[int, str | None] = {}
    if not participant_ids:
        return {n: None for n in sorted(numbers)}
    per_participant, remainder = divmod(slot_count, len(participant_ids))
    index = 0
    for position, participant_id in enumerate(participant_ids):
        count = per_participant + (1 if position < remainder else 0)
        for number in numbers[index:index + count]:
            ownership[number] = participant_id
        index += count
    for number in numbers[index:]:
        ownership[number] = None
    return dict(sorted(ownership.items()))


def number_awards(
    snapshot: LifecycleSnapshot,
    ownership: Mapping[int, str | None],
    weights: ScoringWeights,
    *,
    winner_number: int | None = None,
    iron_man_number: int | None = None,
    jobber_threshold: timedelta = timedelta(seconds=60),
) -> list[NumberAward]:
    """Points earned through owned numbers, recomputed from lifecycle state."""
    awards: list[NumberAward] = []

    def award(number: int, family: str) -> None:
        owner = ownership.get(number)
        if owner is None:
            return
        awards.append(
            NumberAward(
                participant_id=owner,
                division=snapshot.division,
                number=number,
                family=family,
                points=weights.family(family),
            )
        )

    for slot in snapshot.eliminated:
        if slot.eliminated_by is not None and slot.eliminated_by != UNAIDED_ELIMINATOR:
            award(slot.eliminated_by, "elimination")
        if slot.entry_time is not None and slot.elimination_time - slot.entry_time < jobber_threshold:
            award(slot.number, "jobber_penalty")
    if winner_number is not None:
        award(winner_number, "winner_number")
    if iron_man_number is not None:
        award(iron_man_number, "iron_man")
    return awards
