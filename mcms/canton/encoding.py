"""
Hex-string encoding shared by the Canton MCMS template.

The Daml contract hashes and decodes hex *strings*, so everything here
produces lowercase hex without a 0x prefix:

  - ``pad_left32`` / ``int_to_hex`` / ``ascii_to_hex``: leaf and op-id pieces
  - ``encode_operation_data``: raw when the value already is even-length hex,
    ascii-hex otherwise
  - ``marshal_*``: the params records passed as ``operationData`` to the
    timelock choices (TEXT = 4-byte length + utf-8 bytes, INT = 32-byte
    word, lists = 4-byte count + items, records = fields in order)
  - ``to_ledger_time`` / ``ledger_time_to_unix``: Daml Time is sent as
    microseconds and read back as unix seconds
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from ..constants import CANTON_MCMS_TEMPLATE_KEY
from ..sdk.client import CreatedEvent

_HEX_RE = re.compile(r"^[0-9a-fA-F]*$")


# ── Leaf pieces ──────────────────────────────────────────────────────

def int_to_hex(n: int) -> str:
    return format(int(n), "x")


def pad_left32(hex_str: str) -> str:
    if len(hex_str) >= 64:
        return hex_str[:64]
    return hex_str.rjust(64, "0")


def ascii_to_hex(s: str) -> str:
    return s.encode("utf-8").hex()


def is_valid_hex(s: str) -> bool:
    return len(s) % 2 == 0 and bool(_HEX_RE.match(s))


def encode_operation_data(data: str) -> str:
    if is_valid_hex(data):
        return data
    return ascii_to_hex(data)


# ── Params records ───────────────────────────────────────────────────

def marshal_text(value: str) -> str:
    raw = value.encode("utf-8")
    return format(len(raw), "08x") + raw.hex()


def marshal_int(value: int) -> str:
    return pad_left32(int_to_hex(value))


def marshal_list(items: Sequence[Any], marshal_item) -> str:
    return format(len(items), "08x") + "".join(marshal_item(item) for item in items)


def marshal_timelock_call(call: Dict[str, str]) -> str:
    return (
        marshal_text(call["targetInstanceId"])
        + marshal_text(call["functionName"])
        + marshal_text(call["operationData"])
    )


def marshal_schedule_batch(calls: Sequence[Dict[str, str]], predecessor: str, salt: str, delay_secs: int) -> str:
    return (
        marshal_list(calls, marshal_timelock_call)
        + marshal_text(predecessor)
        + marshal_text(salt)
        + marshal_int(delay_secs)
    )


def marshal_cancel_batch(op_id: str) -> str:
    return marshal_text(op_id)


def marshal_bypasser_execute_batch(calls: Sequence[Dict[str, str]]) -> str:
    return marshal_list(calls, marshal_timelock_call)


# ── Created events ───────────────────────────────────────────────────

def normalize_template_key(template_id: str) -> str:
    """
    "<package>:<module>:<entity>" → "<module>:<entity>".

    Package ids differ between uploads of the same DAR, so created events
    are matched on module and entity only.
    """
    parts = template_id.split(":")
    if len(parts) < 2:
        return template_id
    return ":".join(parts[-2:])


def find_created(events: Iterable[CreatedEvent], template_key: str = CANTON_MCMS_TEMPLATE_KEY) -> Optional[CreatedEvent]:
    for event in events:
        if normalize_template_key(event.template_id) == template_key:
            return event
    return None


def strip_hex_prefix(value: str) -> str:
    return value[2:] if value.startswith(("0x", "0X")) else value


def to_hex_list(values: Iterable[bytes]) -> List[str]:
    return [bytes(v).hex() for v in values]


# ── Ledger time ──────────────────────────────────────────────────────

MICROSECONDS = 1_000_000

_FRACTION_RE = re.compile(r"\.\d+")


def to_ledger_time(unix_seconds: int) -> int:
    """Unix seconds as the microsecond count a Daml Time argument takes."""
    return int(unix_seconds) * MICROSECONDS


def ledger_time_to_unix(value: Union[str, int, Dict[str, Any]]) -> int:
    """
    Daml Time read back from the ledger, as unix seconds.

    Accepts the JSON API's ISO-8601 form ("2030-01-01T00:00:00.000000Z"),
    a microsecond count, or ``{"microseconds": n}``. Sub-second precision is
    dropped.
    """
    if isinstance(value, str):
        text = _FRACTION_RE.sub("", value.strip())
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        moment = datetime.fromisoformat(text)
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return int(moment.timestamp())
    if isinstance(value, dict):
        value = value["microseconds"]
    return int(value) // MICROSECONDS


def ledger_duration_to_seconds(value: Union[int, Dict[str, Any]]) -> int:
    """Daml RelTime (microseconds, bare or as ``{"microseconds": n}``) in seconds."""
    if isinstance(value, dict):
        value = value["microseconds"]
    return int(value) // MICROSECONDS
