from __future__ import annotations

from typing import Iterable

from rumble.contracts import Category, CategoryKind, Conflict, ConflictRule, Prediction

# Adding a conflicting pair is a new row here; evaluation below is symmetric,
# so each pair is listed once.
CONFLICT_RULES: tuple[ConflictRule, ...] = (
    ConflictRule(
        source=CategoryKind.FIRST_ELIMINATION,
        targets=frozenset({CategoryKind.MOST_ELIMINATIONS, CategoryKind.LONGEST_TIME, CategoryKind.FINAL_FOUR}),
        reason="a wrestler eliminated first cannot have the most eliminations, last the longest, or reach the Final Four",
    ),
    ConflictRule(
        source=CategoryKind.ENTRANT,
        targets=frozenset({CategoryKind.ENTRANT}),
        reason="one wrestler cannot enter at two numbers",
    ),
    ConflictRule(
        source=CategoryKind.FINAL_FOUR,
        targets=frozenset({CategoryKind.FINAL_FOUR}),
        reason="one wrestler cannot fill two Final Four slots",
    ),
)


def rule_between(a: CategoryKind, b: CategoryKind, rules: Iterable[ConflictRule] = CONFLICT_RULES) -> ConflictRule | None:
    for rule in rules:
        if (rule.source == a and b in rule.targets) or (rule.source == b and a in rule.targets):
            return rule
    return None


def conflicts_between(
    target: Category,
    other: Category,
    rules: Iterable[ConflictRule] = CONFLICT_RULES,
) -> ConflictRule | None:
    if target == other:
        return None
    if target.division is None or target.division != other.division:
        return None
    return rule_between(target.kind, other.kind, rules)


def find_conflict(
    category: Category,
    value: str,
    existing: Iterable[Prediction],
    rules: Iterable[ConflictRule] = CONFLICT_RULES,
) -> Conflict | None:
    """Return the first existing prediction that forbids ``value`` in ``category``.

    ``existing`` should be one participant's predictions; predictions for
    ``category`` itself are ignored so that editing a pick never conflicts
    with the pick being replaced.
    """
    rules = tuple(rules)
    for prediction in sorted(existing, key=lambda p: p.category.key):
        if prediction.value != value:
            continue
        rule = conflicts_between(category, prediction.category, rules)
        if rule is not None:
            return Conflict(blocking_category=prediction.category.key, value=value, reason=rule.reason)
    return None


def blocked_values(
    category: Category,
    existing: Iterable[Prediction],
    rules: Iterable[ConflictRule] = CONFLICT_RULES,
) -> set[str]:
    rules = tuple(rules)
    return {p.value for p in existing if conflicts_between(category, p.category, rules) is not None}
