from .categories import entrant_category, final_four_categories, parse_category
from .config import (
    CHAOS_PROP_OPTIONS,
    ChaosPropConfig,
    EventConfig,
    EventConfigValidator,
    MatchConfig,
    ScoringWeights,
    build_event_config,
    canonical_name,
    load_event_config,
)
from .conflicts import CONFLICT_RULES, blocked_values, find_conflict
from .derivation import (
    elimination_counts,
    final_four,
    first_eliminated,
    longest_duration,
    most_eliminations,
    occupant_of,
    sole_survivor,
)
from .lifecycle import EntrantLifecycleStore
from .numbers import distribute_numbers, number_awards
from .predictions import PredictionBook
from .scoring import ScoringEngine

__all__ = [
    "CHAOS_PROP_OPTIONS",
    "CONFLICT_RULES",
    "ChaosPropConfig",
    "EntrantLifecycleStore",
    "EventConfig",
    "EventConfigValidator",
    "MatchConfig",
    "PredictionBook",
    "ScoringEngine",
    "ScoringWeights",
    "blocked_values",
    "build_event_config",
    "canonical_name",
    "distribute_numbers",
    "elimination_counts",
    "entrant_category",
    "final_four",
    "final_four_categories",
    "find_conflict",
    "first_eliminated",
    "load_event_config",
    "longest_duration",
    "most_eliminations",
    "number_awards",
    "occupant_of",
    "parse_category",
    "sole_survivor",
]
