"""
Normalization of provider payloads into canonical call updates.

Webhook callbacks arrive as flat form fields, the call-list API returns nested
JSON. Both are converted by an explicit adapter into a ``CallUpdate``. Fields a
payload does not carry stay ``NOT_OBSERVED`` so the reconciler can tell "no new
information" apart from a real value; malformed numbers and dates are treated
the same way instead of collapsing to zero.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Mapping, Optional
from zoneinfo import ZoneInfo

from callsync.config import settings
from callsync.errors import PayloadError


class _NotObserved:
    """Marker for a field the payload did not report"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __repr__(self):
        return "NOT_OBSERVED"


NOT_OBSERVED = _NotObserved()


TERMINAL_STATUSES = frozenset({"completed", "failed", "busy", "no-answer", "canceled"})
CALL_STATUSES = frozenset({"queued", "ringing", "in-progress", "unknown"}) | TERMINAL_STATUSES

# Provider spellings -> canonical status
STATUS_ALIASES = {
    "queued": "queued",
    "initiated": "queued",
    "initiating": "queued",
    "ringing": "ringing",
    "in-progress": "in-progress",
    "in_progress": "in-progress",
    "inprogress": "in-progress",
    "answered": "in-progress",
    "completed": "completed",
    "complete": "completed",
    "failed": "failed",
    "busy": "busy",
    "no-answer": "no-answer",
    "no_answer": "no-answer",
    "noanswer": "no-answer",
    "missed": "no-answer",
    "canceled": "canceled",
    "cancelled": "canceled",
}

SOURCE_WEBHOOK = "webhook"
SOURCE_POLL = "poll"
SOURCE_API = "api"


@dataclass
class CallUpdate:
    """Canonical observation of a call, independent of where it came from"""

    provider_call_id: str
    source: str
    raw_payload: Dict[str, Any] = field(default_factory=dict)
    account_sid: Any = NOT_OBSERVED
    conversation_id: Any = NOT_OBSERVED
    direction: Any = NOT_OBSERVED
    from_number: Any = NOT_OBSERVED
    to_number: Any = NOT_OBSERVED
    status: Any = NOT_OBSERVED
    started_at: Any = NOT_OBSERVED
    answered_at: Any = NOT_OBSERVED
    ended_at: Any = NOT_OBSERVED
    call_duration_sec: Any = NOT_OBSERVED
    conversation_duration_sec: Any = NOT_OBSERVED
    ring_duration_sec: Any = NOT_OBSERVED
    recording_url: Any = NOT_OBSERVED
    recording_duration_sec: Any = NOT_OBSERVED

    def observed(self) -> Dict[str, Any]:
        """Fields carrying a value, excluding identity/audit fields"""
        skip = {"provider_call_id", "source", "raw_payload", "account_sid"}
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name not in skip and is_observed(getattr(self, f.name))
        }

    @property
    def counterpart_number(self) -> Optional[str]:
        """The customer-side number, used for contact matching"""
        number = self.from_number if self.direction == "inbound" else self.to_number
        return number if is_observed(number) else None


def is_observed(value: Any) -> bool:
    return value is not NOT_OBSERVED and value is not None


def normalize_status(value: Any) -> Any:
    if not _present(value):
        return NOT_OBSERVED
    key = str(value).strip().lower().replace(" ", "-")
    return STATUS_ALIASES.get(key, "unknown")


def normalize_direction(value: Any) -> Any:
    if not _present(value):
        return NOT_OBSERVED
    direction = str(value).strip().lower()
    if direction.startswith("in"):  # inbound, incoming
        return "inbound"
    if direction.startswith("out"):  # outbound, outbound-api, outbound-dial
        return "outbound"
    return NOT_OBSERVED


def parse_duration(value: Any) -> Any:
    if not _present(value) or isinstance(value, bool):
        return NOT_OBSERVED
    try:
        seconds = int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        return NOT_OBSERVED
    if seconds < 0:
        return NOT_OBSERVED
    return seconds


def parse_timestamp(value: Any) -> Any:
    """Parse a provider timestamp into naive UTC"""
    if not _present(value) or isinstance(value, bool):
        return NOT_OBSERVED
    try:
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, (int, float)):
            parsed = datetime.fromtimestamp(value, tz=timezone.utc)
        else:
            text = str(value).strip()
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                parsed = parsedate_to_datetime(text)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=ZoneInfo(settings.exotel_timezone))
        return parsed.astimezone(timezone.utc).replace(tzinfo=None)
    except (TypeError, ValueError, IndexError, OverflowError, OSError):
        # Out-of-range placeholders such as 0001-01-01 cannot be represented in UTC
        return NOT_OBSERVED


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and (not value.strip() or value.strip().lower() in {"null", "none"}):
        return False
    return True


def _text(value: Any) -> Any:
    return str(value).strip() if _present(value) else NOT_OBSERVED


def _first(payload: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = payload.get(key)
        if _present(value):
            return value
    return None


def from_webhook(form: Mapping[str, Any]) -> CallUpdate:
    """Adapt a status-callback form body"""
    payload = {key: value for key, value in form.items()}
    call_id = _first(payload, "CallSid", "Sid")
    if not call_id:
        raise PayloadError("Missing CallSid")

    return CallUpdate(
        provider_call_id=str(call_id).strip(),
        source=SOURCE_WEBHOOK,
        raw_payload=payload,
        account_sid=_text(_first(payload, "AccountSid")),
        conversation_id=_text(_first(payload, "ConversationUuid", "ConversationId")),
        direction=normalize_direction(_first(payload, "Direction", "CallType")),
        from_number=_text(_first(payload, "From", "CallFrom")),
        to_number=_text(_first(payload, "To", "CallTo")),
        status=normalize_status(_first(payload, "CallStatus", "Status")),
        started_at=parse_timestamp(_first(payload, "StartTime")),
        answered_at=parse_timestamp(_first(payload, "AnswerTime")),
        ended_at=parse_timestamp(_first(payload, "EndTime")),
        call_duration_sec=parse_duration(_first(payload, "Duration", "DialCallDuration")),
        conversation_duration_sec=parse_duration(_first(payload, "ConversationDuration")),
        ring_duration_sec=parse_duration(_first(payload, "RingDuration")),
        recording_url=_text(_first(payload, "RecordingUrl")),
        recording_duration_sec=parse_duration(_first(payload, "RecordingDuration")),
    )


def from_poll(call: Mapping[str, Any]) -> CallUpdate:
    """Adapt one element of the call-list response"""
    call_id = _first(call, "Sid", "CallSid")
    if not call_id:
        raise PayloadError("Missing Sid")
    details = call.get("Details")
    # Top-level fields win over the nested leg summary
    merged = {**details, **call} if isinstance(details, Mapping) else dict(call)

    return CallUpdate(
        provider_call_id=str(call_id).strip(),
        source=SOURCE_POLL,
        raw_payload=dict(call),
        account_sid=_text(_first(call, "AccountSid")),
        conversation_id=_text(_first(call, "ConversationUuid", "ConversationId")),
        direction=normalize_direction(_first(call, "Direction")),
        from_number=_text(_first(call, "From")),
        to_number=_text(_first(call, "To")),
        status=normalize_status(_first(call, "Status")),
        started_at=parse_timestamp(_first(call, "StartTime")),
        answered_at=parse_timestamp(_first(call, "AnswerTime")),
        ended_at=parse_timestamp(_first(call, "EndTime")),
        call_duration_sec=parse_duration(_first(call, "Duration")),
        conversation_duration_sec=parse_duration(_first(merged, "ConversationDuration")),
        ring_duration_sec=parse_duration(_first(merged, "RingDuration")),
        recording_url=_text(_first(call, "RecordingUrl")),
        recording_duration_sec=parse_duration(_first(call, "RecordingDuration")),
    )
