"""Decides whether a workflow status report may overwrite the persisted record.

Reports for one PDR, granule or execution can arrive out of order and from
overlapping executions. The rules, in order:

1. No current record: apply.
2. Different execution: apply, replacing the record outright, only when the
   incoming workflow started strictly after the current record was created.
3. Same execution, current record terminal: reject.
4. Same execution, current record running: reject when progress went down;
   on equal progress apply only if something other than bookkeeping fields
   changed.

Rejections are ordinary outcomes, never exceptions.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Optional

from cumulus_api.schemas import is_terminal

Record = Dict[str, Any]

BOOKKEEPING_FIELDS = frozenset({"updatedAt", "timestamp", "duration"})


class Outcome(str, enum.Enum):
    created = "created"
    replaced = "replaced"
    updated = "updated"
    stale = "stale"
    immutable = "immutable"
    regressed = "regressed"
    unchanged = "unchanged"

    @property
    def applied(self) -> bool:
        return self in (Outcome.created, Outcome.replaced, Outcome.updated)


@dataclass(frozen=True)
class Resolution:
    apply: bool
    record: Record
    outcome: Outcome


def constant_progress(record: Record) -> float:
    return 0


def pdr_progress(record: Record) -> float:
    stats = record.get("stats") or {}
    return stats.get("completed", 0) + stats.get("failed", 0)


@dataclass(frozen=True)
class UpdatePolicy:
    identity_field: str
    running_fields: FrozenSet[str]
    progress: Callable[[Record], float] = field(default=constant_progress)


PDR_POLICY = UpdatePolicy(
    identity_field="execution",
    running_fields=frozenset(
        {
            "createdAt",
            "updatedAt",
            "timestamp",
            "status",
            "execution",
            "stats",
            "progress",
            "duration",
            "PANSent",
            "PANmessage",
        }
    ),
    progress=pdr_progress,
)

GRANULE_POLICY = UpdatePolicy(
    identity_field="execution",
    running_fields=frozenset(
        {"createdAt", "updatedAt", "timestamp", "status", "execution"}
    ),
)

EXECUTION_POLICY = UpdatePolicy(
    identity_field="arn",
    running_fields=frozenset(
        {"createdAt", "updatedAt", "timestamp", "status", "duration", "originalPayload"}
    ),
)


def _significant(record: Record) -> Record:
    return {k: v for k, v in record.items() if k not in BOOKKEEPING_FIELDS}


class ConditionalUpdateResolver:
    def __init__(self, policy: UpdatePolicy):
        self.policy = policy

    def mutable_fields(self, incoming: Record) -> Record:
        """Fields of `incoming` allowed to overwrite the current record."""
        if is_terminal(incoming["status"]):
            return dict(incoming)
        return {k: v for k, v in incoming.items() if k in self.policy.running_fields}

    def merge(self, current: Record, incoming: Record) -> Record:
        return {**current, **self.mutable_fields(incoming)}

    def resolve(self, current: Optional[Record], incoming: Record) -> Resolution:
        if current is None:
            return Resolution(True, incoming, Outcome.created)

        identity = self.policy.identity_field
        if current.get(identity) != incoming.get(identity):
            if (incoming.get("createdAt") or 0) > (current.get("createdAt") or 0):
                return Resolution(True, incoming, Outcome.replaced)
            return Resolution(False, current, Outcome.stale)

        if is_terminal(current["status"]):
            return Resolution(False, current, Outcome.immutable)

        current_progress = self.policy.progress(current)
        incoming_progress = self.policy.progress(incoming)
        if incoming_progress < current_progress:
            return Resolution(False, current, Outcome.regressed)

        merged = self.merge(current, incoming)
        if incoming_progress == current_progress and _significant(
            merged
        ) == _significant(current):
            return Resolution(False, current, Outcome.unchanged)
        return Resolution(True, merged, Outcome.updated)
