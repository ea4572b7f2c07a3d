"""
Timing metrics for the relay.

What gets measured:
- upstream_handshake: socket open + session update, per client
- pending_audio_flush: draining the pre-ready queue into a fresh upstream
- batch_transcription: one provider call for an uploaded clip

Each measurement is emitted as a single METRIC_TIMER event through
observability.logger. Nothing is aggregated in-process.

Durations come from the monotonic clock; the event's ts_ms is wall-clock.
"""

from __future__ import annotations

import time
import uuid
from contextlib import contextmanager
from typing import Any, Iterator, NamedTuple

from observability.logger import log_event, now_ms


class _RunningTimer(NamedTuple):
    metric: str
    client_id: str | None
    started_ns: int


# timer_id -> running timer
_running: dict[str, _RunningTimer] = {}


def start_timer(metric: str, *, client_id: str | None = None) -> str:
    """
    Start timing `metric` and return an opaque timer id.

    Pair every call with stop_timer() in a finally block, or use timed().
    """
    timer_id = uuid.uuid4().hex[:12]
    _running[timer_id] = _RunningTimer(metric, client_id, time.monotonic_ns())
    return timer_id


def stop_timer(timer_id: str, *, details: dict[str, Any] | None = None) -> int | None:
    """
    Stop a timer and emit its METRIC_TIMER event.

    Details known only at the end of the measured work (frame counts,
    byte counts) can be attached here.

    Returns the duration in ms, or None for an unknown / already stopped id.
    """
    timer = _running.pop(timer_id, None)
    if timer is None:
        return None

    elapsed_ms = (time.monotonic_ns() - timer.started_ns) // 1_000_000

    log_event({
        "ts_ms": now_ms(),
        "event_type": "METRIC_TIMER",
        "metric": timer.metric,
        "value_ms": elapsed_ms,
        "client_id": timer.client_id,
        "details": details or {},
    })
    return elapsed_ms


@contextmanager
def timed(
    metric: str,
    *,
    client_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> Iterator[None]:
    """
    Time the enclosed block. The metric is emitted exactly once, also
    when the block raises or is cancelled.
    """
    timer_id = start_timer(metric, client_id=client_id)
    try:
        yield
    finally:
        stop_timer(timer_id, details=details)
