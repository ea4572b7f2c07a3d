"""
Structured JSONL logging for the relay.

Every event is one JSON object on one stdout line, written and flushed
immediately. Events may carry a "level" key ("debug", "info", "warning",
"error"); a missing or unrecognised level counts as "info". Events below
the level set with configure() are dropped.
"""

from __future__ import annotations

import json
import sys
import time
from typing import Any, Mapping, Callable


_LEVELS: dict[str, int] = {
    "debug": 10,
    "info": 20,
    "warning": 30,
    "error": 40,
}
_DEFAULT_LEVEL = _LEVELS["info"]


# ------------------------------------------------------------------
# Output sink (tests replace this)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()

_print: Callable[[str], None] = _stdout_print

_min_level: int = _DEFAULT_LEVEL


def now_ms() -> int:
    """Wall-clock milliseconds for an event's ts_ms."""
    return int(time.time() * 1000)


def _level_value(name: Any) -> int:
    return _LEVELS.get(str(name).lower(), _DEFAULT_LEVEL)


def configure(level: str) -> None:
    """Set the minimum level log_event() writes (LOG_LEVEL)."""
    global _min_level  # pylint: disable=global-statement
    _min_level = _level_value(level)


def log_event(event: Mapping[str, Any]) -> None:
    """
    Emit one relay event.

    Callers build the whole event: ts_ms, event_type and, for anything
    tied to a browser connection, client_id. Transcript text and other
    non-ASCII content are written as-is.

    Never raises. An event that cannot be serialized is replaced by a
    LOGGER_SERIALIZATION_ERROR event carrying its repr.
    """
    if _level_value(event.get("level", "info")) < _min_level:
        return

    try:
        line = json.dumps(event, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        line = json.dumps(
            {
                "ts_ms": event.get("ts_ms"),
                "level": "error",
                "event_type": "LOGGER_SERIALIZATION_ERROR",
                "error": str(e),
                "original_event_repr": repr(event),
            },
            ensure_ascii=False,
            separators=(",", ":"),
        )

    _print(line)
