"""
Field contracts for the three kinds of ledger records.

The assistant (or a function call) produces a loose dict; these models decide
whether it is complete. Field names on the wire are camelCase. Missing
required fields are never filled with defaults: validation fails instead and
the caller drops the payload.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Type

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from voicelog.config.constants import DEFAULT_SLOT_DURATION_MINUTES
from voicelog.utils.time_slots import (
    generate_time_slots,
    is_valid_slot,
    parse_slot,
    parse_time_range,
)


class CommandKind(str, Enum):
    """Kinds of records the assistant can fill."""

    EXPENSE = "expense"
    INCOME = "income"
    TIME_LOG = "time_log"


def _coerce_amount(value: Any) -> Any:
    # bool is an int subclass and must not pass as an amount
    if isinstance(value, bool):
        raise ValueError("amount must be a number")
    if isinstance(value, str):
        cleaned = value.replace(",", "").replace("₹", "").strip()
        try:
            return float(cleaned)
        except ValueError:
            raise ValueError(f"amount is not a number: {value!r}")
    return value


def _require_text(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError("must be a non-empty string")
    return value.strip()


class RecordFields(BaseModel):
    """Base for record field sets. Accepts camelCase or snake_case input."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_fields(self) -> Dict[str, Any]:
        """Normalized camelCase dict, as delivered to the host."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ExpenseFields(RecordFields):
    amount: float = Field(gt=0)
    category: str
    description: str
    payment_mode: str = Field(alias="paymentMode")
    need_want: str = Field(default="NEED", alias="needWant")

    @field_validator("amount", mode="before")
    @classmethod
    def check_amount(cls, value):
        return _coerce_amount(value)

    @field_validator("category", "description", "payment_mode", mode="before")
    @classmethod
    def check_text(cls, value):
        return _require_text(value)

    @field_validator("need_want", mode="before")
    @classmethod
    def check_need_want(cls, value):
        if value is None:
            return "NEED"
        normalized = _require_text(value).upper()
        if normalized not in ("NEED", "WANT"):
            raise ValueError("needWant must be NEED or WANT")
        return normalized


class IncomeFields(RecordFields):
    amount: float = Field(gt=0)
    source: str
    received_in: str = Field(alias="receivedIn")
    received_from: str = Field(alias="receivedFrom")
    notes: Optional[str] = None

    @field_validator("amount", mode="before")
    @classmethod
    def check_amount(cls, value):
        return _coerce_amount(value)

    @field_validator("source", "received_in", "received_from", mode="before")
    @classmethod
    def check_text(cls, value):
        return _require_text(value)


class TimeLogEntry(RecordFields):
    slot: str
    activity: str
    category: str

    @field_validator("activity", "category", mode="before")
    @classmethod
    def check_text(cls, value):
        return _require_text(value)

    @field_validator("slot", mode="before")
    @classmethod
    def check_slot(cls, value):
        start, end = parse_slot(_require_text(value))
        return f"{start // 60:02d}:{start % 60:02d} - {end // 60:02d}:{end % 60:02d}"


class TimeLogFields(RecordFields):
    """One or more filled time slots.

    Besides ``{"entries": [...]}`` this accepts a single flat entry
    (``slot``, ``activity``, ``category``) or a range (``start``, ``end``,
    ``activity``, ``category``) which is split into consecutive slots. A flat
    ``slot`` spoken as a range ("10 baje se 12 baje", "10 to 12") is split the
    same way.
    """

    entries: List[TimeLogEntry] = Field(min_length=1)

    @model_validator(mode="before")
    @classmethod
    def expand_shorthand(cls, data: Any, info) -> Any:
        if not isinstance(data, dict) or "entries" in data:
            return data
        duration = DEFAULT_SLOT_DURATION_MINUTES
        if info.context:
            duration = info.context.get("slot_duration_minutes", duration)
        if "slot" in data:
            spoken = parse_time_range(data["slot"]) if isinstance(data["slot"], str) else None
            if spoken is not None and not is_valid_slot(data["slot"]):
                return _range_entries(data, spoken[0], spoken[1], duration)
            return {"entries": [data]}
        if "start" in data and "end" in data:
            return _range_entries(data, str(data["start"]), str(data["end"]), duration)
        return data


def _range_entries(data: Dict[str, Any], start: str, end: str, duration: int) -> Dict[str, Any]:
    slots = generate_time_slots(start, end, duration)
    return {
        "entries": [
            {
                "slot": slot,
                "activity": data.get("activity"),
                "category": data.get("category"),
            }
            for slot in slots
        ]
    }


RECORD_MODELS: Dict[CommandKind, Type[RecordFields]] = {
    CommandKind.EXPENSE: ExpenseFields,
    CommandKind.INCOME: IncomeFields,
    CommandKind.TIME_LOG: TimeLogFields,
}


def parse_kind(value: Any) -> Optional[CommandKind]:
    """Map a ``type`` value such as ``"expense"`` or ``"time-log"`` to a kind."""
    if not isinstance(value, str):
        return None
    normalized = value.strip().lower().replace("-", "_").replace(" ", "_")
    if normalized in ("time", "timelog"):
        normalized = CommandKind.TIME_LOG.value
    try:
        return CommandKind(normalized)
    except ValueError:
        return None


def validate_fields(
    kind: CommandKind,
    data: Dict[str, Any],
    slot_duration_minutes: int = DEFAULT_SLOT_DURATION_MINUTES,
) -> Dict[str, Any]:
    """Validate a loose payload for ``kind`` and return the normalized fields.

    Raises:
        pydantic.ValidationError: If a required field is missing or invalid
    """
    payload = {k: v for k, v in data.items() if k != "type"}
    model = RECORD_MODELS[kind].model_validate(
        payload, context={"slot_duration_minutes": slot_duration_minutes}
    )
    return model.to_fields()
