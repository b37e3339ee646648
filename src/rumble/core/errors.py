from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime, UTC
from pathlib import Path
from typing import Any
from uuid import uuid4

from rumble.contracts import ForensicArtifact


class EngineIntegrityError(RuntimeError):
    def __init__(self, artifact: ForensicArtifact) -> None:
        super().__init__(artifact.message)
        self.artifact = artifact


class RumbleRejection(ValueError):
    """A precondition failure. Raised before any mutation, so state is unchanged."""

    code = "REJECTED"

    def __init__(self, reason: str, **context: Any) -> None:
        super().__init__(f"{self.code}: {reason}")
        self.reason = reason
        self.context = context

    def as_dict(self) -> dict[str, Any]:
        return {"code": self.code, "reason": self.reason, "context": dict(self.context)}


class UnknownSlot(RumbleRejection):
    code = "UNKNOWN_SLOT"


class SlotOccupied(RumbleRejection):
    code = "SLOT_OCCUPIED"


class DuplicateOccupant(RumbleRejection):
    code = "DUPLICATE_OCCUPANT"


class NotActive(RumbleRejection):
    code = "NOT_ACTIVE"


class NotEntered(RumbleRejection):
    code = "NOT_ENTERED"


class NotEliminated(RumbleRejection):
    code = "NOT_ELIMINATED"


class HasDependents(RumbleRejection):
    code = "HAS_DEPENDENTS"


class InvalidEntrant(RumbleRejection):
    code = "INVALID_ENTRANT"


class InvalidEliminator(RumbleRejection):
    code = "INVALID_ELIMINATOR"


class InvalidTimestamp(RumbleRejection):
    code = "INVALID_TIMESTAMP"


class CategoryLocked(RumbleRejection):
    code = "CATEGORY_LOCKED"


class UnknownCategory(RumbleRejection):
    code = "UNKNOWN_CATEGORY"


class InvalidPredictionValue(RumbleRejection):
    code = "INVALID_PREDICTION_VALUE"


class ConflictViolation(RumbleRejection):
    code = "CONFLICT"

    def __init__(self, reason: str, blocking_category: str, **context: Any) -> None:
        super().__init__(reason, blocking_category=blocking_category, **context)
        self.blocking_category = blocking_category


class ResultUnavailable(RumbleRejection):
    code = "RESULT_UNAVAILABLE"


class FinalFourIncomplete(ResultUnavailable):
    code = "INCOMPLETE"


class MatchConcluded(RumbleRejection):
    code = "MATCH_CONCLUDED"


class MatchInProgress(RumbleRejection):
    code = "MATCH_IN_PROGRESS"


class InvalidResultValue(RumbleRejection):
    code = "INVALID_RESULT_VALUE"


class InvalidPayload(RumbleRejection):
    code = "INVALID_PAYLOAD"


def build_forensic_artifact(
    engine_scope: str,
    error_code: str,
    message: str,
    state_snapshot: dict[str, object],
    context: dict[str, object],
    identifiers: dict[str, str],
    causal_fragment: list[str],
) -> ForensicArtifact:
    return ForensicArtifact(
        artifact_id=str(uuid4()),
        timestamp=datetime.now(UTC),
        engine_scope=engine_scope,
        error_code=error_code,
        message=message,
        state_snapshot=state_snapshot,
        context=context,
        identifiers=identifiers,
        causal_fragment=causal_fragment,
    )


def persist_forensic_artifact(artifact: ForensicArtifact, output_dir: Path) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"forensic_{artifact.artifact_id}.json"
    path.write_text(json.dumps(asdict(artifact), default=str, indent=2), encoding="utf-8")
    return path
