from __future__ import annotations

from rumble.contracts import Category, CategoryKind, Division
from rumble.core import UnknownCategory

INDEXED_KINDS = (CategoryKind.ENTRANT, CategoryKind.FINAL_FOUR, CategoryKind.CHAOS_PROP)
PLAIN_DIVISION_KINDS = frozenset(
    {
        CategoryKind.RUMBLE_WINNER,
        CategoryKind.FIRST_ELIMINATION,
        CategoryKind.MOST_ELIMINATIONS,
        CategoryKind.LONGEST_TIME,
    }
)


def parse_category(key: str) -> Category:
    """Parse a category key such as ``mens_final_four_2`` or ``undercard_1``.

    Keys without a division prefix are treated as undercard match ids; whether
    that match exists is checked against the event configuration, not here.
    """
    for division in Division:
        prefix = f"{division.value}_"
        if not key.startswith(prefix):
            continue
        rest = key[len(prefix):]
        for kind in INDEXED_KINDS:
            head = f"{kind.value}_"
            if rest.startswith(head):
                raw_index = rest[len(head):]
                if not raw_index.isdigit():
                    raise UnknownCategory(f"category '{key}' has a non-numeric index", category=key)
                return Category(kind=kind, division=division, index=int(raw_index))
        try:
            kind = CategoryKind(rest)
        except ValueError:
            raise UnknownCategory(f"unknown category '{key}'", category=key) from None
        if kind not in PLAIN_DIVISION_KINDS:
            raise UnknownCategory(f"category '{key}' requires an index", category=key)
        return Category(kind=kind, division=division)
    if not key:
        raise UnknownCategory("category key must not be empty", category=key)
    return Category(kind=CategoryKind.MATCH_WINNER, match_id=key)


def final_four_categories(division: Division, slots: int) -> list[Category]:
    return [Category(CategoryKind.FINAL_FOUR, division, index=i) for i in range(1, slots + 1)]


def entrant_category(division: Division, number: int) -> Category:
    return Category(CategoryKind.ENTRANT, division, index=number)
