from __future__ import annotations

from collections import Counter, deque
from typing import Callable, Iterable

from rumble.contracts import LedgerEvent

LedgerHandler = Callable[[LedgerEvent], None]

LEDGER_SCOPES = frozenset({"numbers", "predictions", "lifecycle", "scoring"})


class EventBus:
    """Fans party ledger events out to subscribers, filtered by scope.

    The bus keeps the last ``history`` events so a client joining mid-match
    can catch up before its subscription starts receiving.
    """

    def __init__(self, history: int = 200) -> None:
        self._subscriptions: list[tuple[frozenset[str] | None, LedgerHandler]] = []
        self._counts: Counter[tuple[str, str]] = Counter()
        self._recent: deque[LedgerEvent] = deque(maxlen=history)

    def subscribe(self, handler: LedgerHandler, scopes: Iterable[str] | None = None) -> Callable[[], None]:
        wanted = frozenset(scopes) if scopes is not None else None
        if wanted is not None and not wanted <= LEDGER_SCOPES:
            raise ValueError(f"unknown ledger scopes: {', '.join(sorted(wanted - LEDGER_SCOPES))}")
        entry = (wanted, handler)
        self._subscriptions.append(entry)

        def unsubscribe() -> None:
            if entry in self._subscriptions:
                self._subscriptions.remove(entry)

        return unsubscribe

    def publish(self, event: LedgerEvent) -> None:
        if event.scope not in LEDGER_SCOPES:
            raise ValueError(f"unknown ledger scope '{event.scope}'")
        self._counts[(event.scope, event.event_type)] += 1
        self._recent.append(event)
        for wanted, handler in list(self._subscriptions):
            if wanted is None or event.scope in wanted:
                handler(event)

    def emitted_count(self, scope: str | None = None, event_type: str | None = None) -> int:
        return sum(
            n
            for (s, t), n in self._counts.items()
            if (scope is None or s == scope) and (event_type is None or t == event_type)
        )

    def recent(self, scope: str | None = None) -> list[LedgerEvent]:
        return [e for e in self._recent if scope is None or e.scope == scope]
