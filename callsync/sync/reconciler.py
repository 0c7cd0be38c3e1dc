"""
Field-by-field merge of a call update into stored call state.

``reconcile`` is pure: it takes a snapshot of the stored record (or None when
the provider call id has not been seen) and returns the column changes plus the
side effects the caller must execute. Merging is monotonic so webhook and poll
observations can be applied in any order and any number of times:

* terminal statuses are sticky, non-terminal statuses only move forward
* a set timestamp never moves backwards, and is frozen once the call is terminal
* durations and recording fields take the latest non-null value
* the raw payload is always replaced (audit only)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from callsync.sync.normalizer import (
    CallUpdate,
    TERMINAL_STATUSES,
    is_observed,
)

TIMESTAMP_FIELDS = ("started_at", "answered_at", "ended_at")
FILL_ONCE_FIELDS = ("conversation_id", "direction", "from_number", "to_number")
LATEST_FIELDS = (
    "call_duration_sec",
    "conversation_duration_sec",
    "ring_duration_sec",
    "recording_url",
    "recording_duration_sec",
)

STATUS_RANK = {
    "unknown": -1,
    "queued": 0,
    "ringing": 1,
    "in-progress": 2,
}
TERMINAL_RANK = 3

SESSION_INITIATING = "initiating"
SESSION_RINGING = "ringing"
SESSION_CONNECTED = "connected"
SESSION_ENDED = "ended"


@dataclass(frozen=True)
class CreateActivity:
    """Record the finished call as a CRM activity"""


@dataclass(frozen=True)
class UpsertSession:
    """Move the agent session for this call to ``status``"""
    status: str


@dataclass
class Reconciliation:
    created: bool
    status: str
    changes: Dict[str, Any] = field(default_factory=dict)
    effects: List[Any] = field(default_factory=list)

    @property
    def creates_activity(self) -> bool:
        return any(isinstance(effect, CreateActivity) for effect in self.effects)


def is_terminal(status: Optional[str]) -> bool:
    return status in TERMINAL_STATUSES


def status_rank(status: Optional[str]) -> int:
    if is_terminal(status):
        return TERMINAL_RANK
    return STATUS_RANK.get(status, -1)


def merge_status(current: Optional[str], incoming: Any) -> Optional[str]:
    if not is_observed(incoming):
        return current
    if current is None:
        return incoming
    if is_terminal(current):
        return current
    if status_rank(incoming) >= status_rank(current):
        return incoming
    return current


def merge_timestamp(current, incoming, frozen: bool):
    if not is_observed(incoming):
        return current
    if current is None:
        return incoming
    if frozen:
        return current
    return incoming if incoming > current else current


def session_status_for(status: Optional[str]) -> str:
    if is_terminal(status):
        return SESSION_ENDED
    if status == "ringing":
        return SESSION_RINGING
    if status == "in-progress":
        return SESSION_CONNECTED
    return SESSION_INITIATING


def reconcile(current: Optional[Mapping[str, Any]], update: CallUpdate) -> Reconciliation:
    """Merge ``update`` into ``current`` (a record snapshot, or None)"""
    if current is None:
        changes = update.observed()
        changes["provider_call_id"] = update.provider_call_id
        changes.setdefault("status", "unknown")
        changes["raw_provider_payload"] = update.raw_payload
        changes["last_source"] = update.source
        status = changes["status"]
        return Reconciliation(
            created=True,
            status=status,
            changes=changes,
            effects=_effects(status, had_activity=False),
        )

    changes: Dict[str, Any] = {}
    was_terminal = is_terminal(current.get("status"))

    status = merge_status(current.get("status"), update.status)
    if status != current.get("status"):
        changes["status"] = status

    for name in TIMESTAMP_FIELDS:
        merged = merge_timestamp(current.get(name), getattr(update, name), frozen=was_terminal)
        if merged != current.get(name):
            changes[name] = merged

    for name in FILL_ONCE_FIELDS:
        incoming = getattr(update, name)
        if current.get(name) is None and is_observed(incoming):
            changes[name] = incoming

    for name in LATEST_FIELDS:
        incoming = getattr(update, name)
        if is_observed(incoming) and incoming != current.get(name):
            changes[name] = incoming

    changes["raw_provider_payload"] = update.raw_payload
    changes["last_source"] = update.source

    return Reconciliation(
        created=False,
        status=status,
        changes=changes,
        effects=_effects(status, had_activity=current.get("activity_id") is not None),
    )


def _effects(status: Optional[str], had_activity: bool) -> List[Any]:
    effects: List[Any] = []
    if is_terminal(status) and not had_activity:
        effects.append(CreateActivity())
    effects.append(UpsertSession(status=session_status_for(status)))
    return effects


def snapshot(record) -> Dict[str, Any]:
    """Plain-dict view of a stored record for ``reconcile``"""
    names = ("status", "activity_id") + TIMESTAMP_FIELDS + FILL_ONCE_FIELDS + LATEST_FIELDS
    return {name: getattr(record, name) for name in names}
