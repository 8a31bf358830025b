"""
Timelock action and delay types.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Union

from ..exceptions import InvalidTimelockOperation


class TimelockAction(str, Enum):
    SCHEDULE = "schedule"
    CANCEL = "cancel"
    BYPASS = "bypass"

    @classmethod
    def parse(cls, value: Union[str, "TimelockAction"]) -> "TimelockAction":
        try:
            return cls(value)
        except ValueError:
            raise InvalidTimelockOperation(f"invalid timelock operation: {value}") from None


_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(h|ms|m|s)")
_UNIT_SECONDS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


@dataclass(frozen=True)
class Duration:
    """Timelock delay with whole-second precision on chain."""
    seconds: int = 0

    @classmethod
    def parse(cls, value: Union[int, float, str, "Duration"]) -> "Duration":
        """
        Accepts seconds or a duration string such as "1h30m" or "90s".
        """
        if isinstance(value, Duration):
            return value
        if isinstance(value, (int, float)):
            if value < 0:
                raise ValueError(f"duration must not be negative: {value}")
            return cls(int(value))
        text = value.strip()
        if text in ("", "0"):
            return cls(0)
        pos = 0
        total = 0.0
        for match in _DURATION_RE.finditer(text):
            if match.start() != pos:
                break
            total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
            pos = match.end()
        if pos != len(text):
            raise ValueError(f"invalid duration: {value!r}")
        return cls(int(total))

    def __str__(self) -> str:
        hours, rem = divmod(self.seconds, 3600)
        minutes, seconds = divmod(rem, 60)
        out = ""
        if hours:
            out += f"{hours}h"
        if hours or minutes:
            out += f"{minutes}m"
        return out + f"{seconds}s"
