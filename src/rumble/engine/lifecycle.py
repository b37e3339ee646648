from __future__ import annotations

from datetime import datetime

from rumble.contracts import UNAIDED_ELIMINATOR, Division, EntrantSlot, LifecycleSnapshot, SlotView
from rumble.core import (
    DuplicateOccupant,
    HasDependents,
    InvalidEntrant,
    InvalidEliminator,
    InvalidTimestamp,
    NotActive,
    NotEliminated,
    NotEntered,
    SlotOccupied,
    UnknownSlot,
)


class EntrantLifecycleStore:
    """Source of truth for one division's numbered slots.

    Every operation checks all of its preconditions before touching a slot,
    so a rejected call leaves the store exactly as it was. Nothing derived
    (first elimination, counts, durations) is kept here.
    """

    def __init__(self, division: Division, slot_count: int = 30) -> None:
        if slot_count < 1:
            raise ValueError("slot_count must be positive")
        self.division = division
        self.slot_count = slot_count
        self._slots: dict[int, EntrantSlot] = {n: EntrantSlot(number=n) for n in range(1, slot_count + 1)}

    def confirm_entry(self, number: int, wrestler: str, timestamp: datetime) -> SlotView:
        slot = self._slot(number)
        self._check_aware(number, timestamp)
        wrestler = wrestler.strip()
        if not wrestler:
            raise InvalidEntrant("wrestler must not be empty", division=self.division.value, number=number)
        if slot.occupant is not None:
            raise SlotOccupied(
                f"#{number} is already occupied by {slot.occupant}",
                division=self.division.value,
                number=number,
                occupant=slot.occupant,
            )
        holder = next((s for s in self._slots.values() if s.is_active and s.occupant == wrestler), None)
        if holder is not None:
            raise DuplicateOccupant(
                f"{wrestler} is already active at #{holder.number}",
                division=self.division.value,
                number=number,
                wrestler=wrestler,
                active_number=holder.number,
            )
        slot.occupant = wrestler
        slot.entry_time = timestamp
        return self._view(slot)

    def confirm_elimination(self, number: int, eliminator_number: int, timestamp: datetime) -> SlotView:
        slot = self._slot(number)
        self._check_aware(number, timestamp)
        if not slot.is_active:
            state = "has not entered" if not slot.is_entered else "is already eliminated"
            raise NotActive(f"#{number} {state}", division=self.division.value, number=number)
        assert slot.entry_time is not None
        if timestamp <= slot.entry_time:
            raise InvalidTimestamp(
                f"elimination of #{number} must be after its entry",
                division=self.division.value,
                number=number,
                entry_time=slot.entry_time.isoformat(),
                timestamp=timestamp.isoformat(),
            )
        if eliminator_number != UNAIDED_ELIMINATOR:
            self._check_eliminator(number, eliminator_number, timestamp)
        slot.elimination_time = timestamp
        slot.eliminated_by = eliminator_number
        return self._view(slot)

    def reset_elimination(self, number: int) -> SlotView:
        slot = self._slot(number)
        if not slot.is_eliminated:
            raise NotEliminated(f"#{number} has no recorded elimination", division=self.division.value, number=number)
        slot.clear_elimination()
        return self._view(slot)

    def reset_entry(self, number: int) -> SlotView:
        slot = self._slot(number)
        if not slot.is_entered:
            raise NotEntered(f"#{number} has not entered", division=self.division.value, number=number)
        if slot.is_eliminated:
            raise HasDependents(
                f"#{number} has a recorded elimination; reset it first",
                division=self.division.value,
                number=number,
            )
        dependents = sorted(s.number for s in self._slots.values() if s.eliminated_by == number)
        if dependents:
            raise HasDependents(
                f"#{number} is credited with eliminating {', '.join(f'#{d}' for d in dependents)}",
                division=self.division.value,
                number=number,
                dependents=dependents,
            )
        slot.clear_entry()
        return self._view(slot)

    def slot(self, number: int) -> SlotView:
        return self._view(self._slot(number))

    def snapshot(self) -> LifecycleSnapshot:
        return LifecycleSnapshot(
            division=self.division,
            slots=tuple(self._view(self._slots[n]) for n in sorted(self._slots)),
        )

    def _check_aware(self, number: int, timestamp: datetime) -> None:
        if timestamp.tzinfo is None:
            raise InvalidTimestamp(
                "timestamps must carry a timezone",
                division=self.division.value,
                number=number,
                timestamp=timestamp.isoformat(),
            )

    def _check_eliminator(self, number: int, eliminator_number: int, timestamp: datetime) -> None:
        if eliminator_number == number:
            raise InvalidEliminator(
                f"#{number} cannot be credited with eliminating itself",
                division=self.division.value,
                number=number,
                eliminator=eliminator_number,
            )
        if eliminator_number not in self._slots:
            raise UnknownSlot(
                f"eliminator #{eliminator_number} is outside 1..{self.slot_count}",
                division=self.division.value,
                number=eliminator_number,
            )
        eliminator = self._slots[eliminator_number]
        if eliminator.entry_time is None or eliminator.entry_time > timestamp:
            raise InvalidEliminator(
                f"eliminator #{eliminator_number} had not entered at the time of elimination",
                division=self.division.value,
                number=number,
                eliminator=eliminator_number,
            )
        if eliminator.elimination_time is not None and eliminator.elimination_time <= timestamp:
            raise InvalidEliminator(
                f"eliminator #{eliminator_number} was already eliminated",
                division=self.division.value,
                number=number,
                eliminator=eliminator_number,
            )

    def _slot(self, number: int) -> EntrantSlot:
        try:
            return self._slots[number]
        except KeyError:
            raise UnknownSlot(
                f"#{number} is outside 1..{self.slot_count}",
                division=self.division.value,
                number=number,
            ) from None

    def _view(self, slot: EntrantSlot) -> SlotView:
        return SlotView(
            number=slot.number,
            occupant=slot.occupant,
            entry_time=slot.entry_time,
            elimination_time=slot.elimination_time,
            eliminated_by=slot.eliminated_by,
        )
