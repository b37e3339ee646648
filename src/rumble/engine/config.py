from __future__ import annotations

import json
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from rumble.contracts import Category, CategoryKind, Division, ValidationError, ValidationIssue
from rumble.core import UnknownCategory
from rumble.engine.categories import parse_category

EXPECTED_SCHEMA_VERSION = "1.0"
DEFAULT_EVENT_RESOURCE = "rumble_2026.json"
CHAOS_PROP_OPTIONS = ("YES", "NO")
NUMBER_AWARD_FAMILIES = ("elimination", "jobber_penalty", "winner_number", "iron_man")


def canonical_name(name: str) -> str:
    """Strip the unconfirmed-entrant marker (``*CM Punk`` -> ``CM Punk``)."""
    cleaned = name.strip()
    return cleaned[1:].strip() if cleaned.startswith("*") else cleaned


class ScoringWeights:
    """Read-only category/family -> points table, shared freely across readers."""

    def __init__(self, weights: Mapping[str, int], penalties: Iterable[str] = ()) -> None:
        self._weights = MappingProxyType(dict(weights))
        self._penalties = frozenset(penalties)

    @property
    def penalties(self) -> frozenset[str]:
        return self._penalties

    def family(self, name: str) -> int:
        return self._weights[name]

    def weight_for(self, category: Category) -> int:
        if category.key in self._weights:
            return self._weights[category.key]
        return self._weights[category.family]

    def as_dict(self) -> dict[str, int]:
        return dict(self._weights)


@dataclass(slots=True)
class MatchConfig:
    match_id: str
    title: str
    options: tuple[str, ...]


@dataclass(slots=True)
class ChaosPropConfig:
    index: int
    prop_id: str
    title: str
    question: str = ""


@dataclass(slots=True)
class EventConfig:
    event_id: str
    title: str
    divisions: tuple[Division, ...]
    slot_count: int
    entrant_numbers: tuple[int, ...]
    final_four_slots: int
    matches: tuple[MatchConfig, ...]
    chaos_props: tuple[ChaosPropConfig, ...]
    rosters: dict[Division, tuple[str, ...]]
    weights: ScoringWeights
    jobber_threshold_seconds: int = 60
    unconfirmed: frozenset[str] = field(default_factory=frozenset)

    def categories(self) -> list[Category]:
        out = [Category(CategoryKind.MATCH_WINNER, match_id=m.match_id) for m in self.matches]
        for division in self.divisions:
            out.append(Category(CategoryKind.RUMBLE_WINNER, division))
            out.extend(Category(CategoryKind.ENTRANT, division, index=n) for n in self.entrant_numbers)
            out.append(Category(CategoryKind.FIRST_ELIMINATION, division))
            out.append(Category(CategoryKind.MOST_ELIMINATIONS, division))
            out.append(Category(CategoryKind.LONGEST_TIME, division))
            out.extend(
                Category(CategoryKind.FINAL_FOUR, division, index=i) for i in range(1, self.final_four_slots + 1)
            )
            out.extend(Category(CategoryKind.CHAOS_PROP, division, index=p.index) for p in self.chaos_props)
        return out

    def category(self, key: str) -> Category:
        parsed = parse_category(key)
        if parsed not in set(self.categories()):
            raise UnknownCategory(f"category '{key}' is not offered by event '{self.event_id}'", category=key)
        return parsed

    def allowed_values(self, category: Category) -> frozenset[str]:
        if category.kind == CategoryKind.MATCH_WINNER:
            match = next(m for m in self.matches if m.match_id == category.match_id)
            return frozenset(match.options)
        if category.kind == CategoryKind.CHAOS_PROP:
            return frozenset(CHAOS_PROP_OPTIONS)
        assert category.division is not None
        return frozenset(self.rosters.get(category.division, ()))

    def roster(self, division: Division) -> tuple[str, ...]:
        return self.rosters.get(division, ())


class EventConfigValidator:
    def validate(self, raw: Mapping[str, Any]) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        event_id = str(raw.get("event_id", "<unknown>"))
        required = {"schema_version", "event_id", "title", "divisions", "rosters", "scoring"}
        missing = sorted(required - set(raw.keys()))
        for key in missing:
            issues.append(self._issue("MISSING_REQUIRED_CONFIG", key, event_id, f"missing required key '{key}'"))
        if missing:
            return issues
        if raw.get("schema_version") != EXPECTED_SCHEMA_VERSION:
            issues.append(
                self._issue("SCHEMA_VERSION_MISMATCH", "schema_version", event_id, f"schema_version must be '{EXPECTED_SCHEMA_VERSION}'")
            )

        divisions = self._divisions(raw, event_id, issues)
        slot_count = raw.get("slot_count", 30)
        if not isinstance(slot_count, int) or isinstance(slot_count, bool) or slot_count < 2:
            issues.append(self._issue("INVALID_SLOT_COUNT", "slot_count", event_id, "slot_count must be an integer >= 2"))
            slot_count = 30
        final_four_slots = raw.get("final_four_slots", 4)
        if not isinstance(final_four_slots, int) or not 1 <= final_four_slots <= slot_count:
            issues.append(
                self._issue("INVALID_FINAL_FOUR_SLOTS", "final_four_slots", event_id, "final_four_slots must fit within slot_count")
            )
        for n in raw.get("entrant_numbers", [1, slot_count]):
            if not isinstance(n, int) or not 1 <= n <= slot_count:
                issues.append(self._issue("INVALID_ENTRANT_NUMBER", "entrant_numbers", event_id, f"entrant number {n!r} outside 1..{slot_count}"))
        threshold = raw.get("jobber_threshold_seconds", 60)
        if not isinstance(threshold, int) or threshold < 0:
            issues.append(
                self._issue("INVALID_JOBBER_THRESHOLD", "jobber_threshold_seconds", event_id, "threshold must be a non-negative integer")
            )

        issues.extend(self._validate_matches(raw.get("matches", []), event_id))
        issues.extend(self._validate_rosters(raw["rosters"], divisions, event_id))
        issues.extend(self._validate_scoring(raw, divisions, event_id))
        return issues

    def _divisions(self, raw: Mapping[str, Any], event_id: str, issues: list[ValidationIssue]) -> list[Division]:
        divisions: list[Division] = []
        for value in raw["divisions"]:
            try:
                divisions.append(Division(value))
            except ValueError:
                issues.append(self._issue("UNKNOWN_DIVISION", "divisions", event_id, f"unknown division '{value}'"))
        if not divisions:
            issues.append(self._issue("NO_DIVISIONS", "divisions", event_id, "at least one division is required"))
        return divisions

    def _validate_matches(self, matches: Any, event_id: str) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        if not isinstance(matches, list):
            return [self._issue("MALFORMED_MATCHES", "matches", event_id, "matches must be a list")]
        seen: set[str] = set()
        for idx, match in enumerate(matches):
            path = f"matches[{idx}]"
            if not isinstance(match, dict) or not match.get("match_id"):
                issues.append(self._issue("MALFORMED_MATCH", path, event_id, "match requires a match_id"))
                continue
            match_id = str(match["match_id"])
            if match_id in seen:
                issues.append(self._issue("DUPLICATE_MATCH_ID", path, match_id, "match ids must be unique"))
            seen.add(match_id)
            if parse_category(match_id).kind != CategoryKind.MATCH_WINNER:
                issues.append(self._issue("MATCH_ID_COLLISION", path, match_id, "match id collides with a rumble category key"))
            options = match.get("options")
            if not isinstance(options, list) or len(options) < 2 or len(set(options)) != len(options):
                issues.append(self._issue("MALFORMED_MATCH_OPTIONS", f"{path}.options", match_id, "a match needs two or more distinct options"))
        return issues

    def _validate_rosters(self, rosters: Any, divisions: list[Division], event_id: str) -> list[ValidationIssue]:
        if not isinstance(rosters, dict):
            return [self._issue("MALFORMED_ROSTER", "rosters", event_id, "rosters must map division -> wrestler list")]
        issues: list[ValidationIssue] = []
        for division in divisions:
            names = rosters.get(division.value)
            path = f"rosters.{division.value}"
            if not isinstance(names, list) or not names:
                issues.append(self._issue("MALFORMED_ROSTER", path, event_id, "roster must be a non-empty list"))
                continue
            canonical: list[str] = []
            for name in names:
                if not isinstance(name, str) or not canonical_name(name):
                    issues.append(self._issue("MALFORMED_ROSTER", path, event_id, f"invalid roster entry {name!r}"))
                    continue
                canonical.append(canonical_name(name))
            for name in sorted({n for n in canonical if canonical.count(n) > 1}):
                issues.append(self._issue("DUPLICATE_ROSTER_ENTRY", path, name, "wrestler listed more than once"))
        return issues

    def _validate_scoring(self, raw: Mapping[str, Any], divisions: list[Division], event_id: str) -> list[ValidationIssue]:
        scoring = raw["scoring"]
        if not isinstance(scoring, dict):
            return [self._issue("MALFORMED_SCORING", "scoring", event_id, "scoring must map category -> integer")]
        issues: list[ValidationIssue] = []
        penalties = set(raw.get("penalties", []))
        for name in sorted(penalties - set(scoring)):
            issues.append(self._issue("UNKNOWN_PENALTY_FAMILY", "penalties", name, "penalty names a weight that does not exist"))
        for name, value in sorted(scoring.items()):
            if not isinstance(value, int) or isinstance(value, bool):
                issues.append(self._issue("NON_INTEGER_WEIGHT", f"scoring.{name}", name, "weights must be integers"))
            elif value < 0 and name not in penalties:
                issues.append(self._issue("NEGATIVE_WEIGHT", f"scoring.{name}", name, "only configured penalties may be negative"))
        for key, family in self._category_keys(raw, divisions):
            if key not in scoring and family not in scoring:
                issues.append(self._issue("MISSING_WEIGHT", f"scoring.{family}", key, f"no weight for category '{key}'"))
        for family in NUMBER_AWARD_FAMILIES:
            if family not in scoring:
                issues.append(self._issue("MISSING_WEIGHT", f"scoring.{family}", event_id, f"no weight for number award '{family}'"))
        return issues

    def _category_keys(self, raw: Mapping[str, Any], divisions: list[Division]) -> list[tuple[str, str]]:
        keys = [
            (str(m["match_id"]), CategoryKind.MATCH_WINNER.value)
            for m in raw.get("matches", [])
            if isinstance(m, dict) and m.get("match_id")
        ]
        slot_count = raw.get("slot_count", 30)
        chaos_count = len(raw.get("chaos_props", []))
        for division in divisions:
            categories = [
                Category(CategoryKind.RUMBLE_WINNER, division),
                Category(CategoryKind.FIRST_ELIMINATION, division),
                Category(CategoryKind.MOST_ELIMINATIONS, division),
                Category(CategoryKind.LONGEST_TIME, division),
            ]
            categories.extend(
                Category(CategoryKind.ENTRANT, division, index=n)
                for n in raw.get("entrant_numbers", [1, slot_count])
                if isinstance(n, int)
            )
            ff_slots = raw.get("final_four_slots", 4)
            if isinstance(ff_slots, int):
                categories.extend(Category(CategoryKind.FINAL_FOUR, division, index=i) for i in range(1, ff_slots + 1))
            categories.extend(Category(CategoryKind.CHAOS_PROP, division, index=i) for i in range(1, chaos_count + 1))
            keys.extend((c.key, c.family) for c in categories)
        return keys

    def _issue(self, code: str, field_path: str, entity_id: str, message: str) -> ValidationIssue:
        return ValidationIssue(code=code, severity="blocking", field_path=field_path, entity_id=entity_id, message=message)


def build_event_config(raw: Mapping[str, Any]) -> EventConfig:
    issues = EventConfigValidator().validate(raw)
    blocking = [i for i in issues if i.severity == "blocking"]
    if blocking:
        raise ValidationError(sorted(blocking, key=lambda x: (x.code, x.entity_id, x.field_path)))

    divisions = tuple(Division(d) for d in raw["divisions"])
    slot_count = int(raw.get("slot_count", 30))
    rosters = {d: tuple(canonical_name(n) for n in raw["rosters"][d.value]) for d in divisions}
    unconfirmed = frozenset(
        canonical_name(n) for d in divisions for n in raw["rosters"][d.value] if n.strip().startswith("*")
    )
    chaos_props = tuple(
        ChaosPropConfig(
            index=i,
            prop_id=str(p.get("prop_id", f"prop_{i}")),
            title=str(p.get("title", "")),
            question=str(p.get("question", "")),
        )
        for i, p in enumerate(raw.get("chaos_props", []), start=1)
    )
    matches = tuple(
        MatchConfig(match_id=str(m["match_id"]), title=str(m.get("title", m["match_id"])), options=tuple(m["options"]))
        for m in raw.get("matches", [])
    )
    return EventConfig(
        event_id=str(raw["event_id"]),
        title=str(raw["title"]),
        divisions=divisions,
        slot_count=slot_count,
        entrant_numbers=tuple(sorted(set(raw.get("entrant_numbers", [1, slot_count])))),
        final_four_slots=int(raw.get("final_four_slots", 4)),
        matches=matches,
        chaos_props=chaos_props,
        rosters=rosters,
        weights=ScoringWeights(raw["scoring"], raw.get("penalties", [])),
        jobber_threshold_seconds=int(raw.get("jobber_threshold_seconds", 60)),
        unconfirmed=unconfirmed,
    )


def load_event_config(source: Path | str | Mapping[str, Any] | None = None) -> EventConfig:
    if source is None:
        package = resources.files("rumble.resources.events")
        raw = json.loads((package / DEFAULT_EVENT_RESOURCE).read_text(encoding="utf-8"))
    elif isinstance(source, Mapping):
        raw = source
    else:
        raw = json.loads(Path(source).read_text(encoding="utf-8"))
    return build_event_config(raw)
