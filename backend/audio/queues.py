# backend/audio/queues.py
"""
Bounded queue for audio that arrives before the upstream is ready.

Requirements:
- FIFO: frames leave in exactly the order they arrived
- Depth measured in bytes and seconds (frames are variable-sized)
- Explicit drop behavior with counters
- Drop OLDEST frames on overflow so the freshest audio survives a slow
  upstream handshake
- Deterministic, synchronous behavior
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional

from audio.frames import AudioFrame
from constants import AUDIO_BYTES_PER_SECOND


@dataclass
class DropCounters:
    """
    Drop counters for observability.
    """
    frames: int = 0
    bytes: int = 0


class PendingAudioQueue:
    """
    Bounded FIFO queue for AudioFrame objects.

    Drop rule:
    - If appending a frame would exceed max_bytes, drop OLDEST frames until it
      fits, then append.
    - A single frame larger than max_bytes is dropped on arrival.
    """

    def __init__(self, *, max_bytes: int) -> None:
        if max_bytes <= 0:
            raise ValueError("max_bytes must be > 0")

        self._max_bytes: int = max_bytes
        self._frames: Deque[AudioFrame] = deque()
        self._bytes: int = 0
        self.drops: DropCounters = DropCounters()

    # -------------------------
    # Core queue operations
    # -------------------------

    def enqueue(self, frame: AudioFrame) -> int:
        """
        Append an AudioFrame.

        Returns:
            Number of frames dropped to make room (0 if none).
            If the frame itself is too large it is counted as a drop and
            not enqueued.
        """
        size = len(frame)
        if size > self._max_bytes:
            self._count_drop(size)
            return 1

        dropped = 0
        while self._frames and self._bytes + size > self._max_bytes:
            oldest = self._frames.popleft()
            self._bytes -= len(oldest)
            self._count_drop(len(oldest))
            dropped += 1

        self._frames.append(frame)
        self._bytes += size
        return dropped

    def dequeue(self) -> Optional[AudioFrame]:
        """
        Dequeue the oldest AudioFrame.

        Returns None if queue is empty.
        """
        if not self._frames:
            return None
        frame = self._frames.popleft()
        self._bytes -= len(frame)
        return frame

    def peek(self) -> Optional[AudioFrame]:
        """View the oldest frame without removing it."""
        return self._frames[0] if self._frames else None

    def clear(self) -> None:
        """
        Drop all queued frames without counting them as drops.

        Used during teardown.
        """
        self._frames.clear()
        self._bytes = 0

    def _count_drop(self, size: int) -> None:
        self.drops.frames += 1
        self.drops.bytes += size

    # -------------------------
    # Introspection helpers
    # -------------------------

    def __len__(self) -> int:
        return len(self._frames)

    def is_empty(self) -> bool:
        """Check if the queue is empty."""
        return not self._frames

    def depth_bytes(self) -> int:
        """Total queued payload size in bytes."""
        return self._bytes

    def depth_seconds(self) -> float:
        """
        Queue depth in seconds assuming the default PCM16 mono format.

        depth_s = depth_bytes / AUDIO_BYTES_PER_SECOND
        """
        return self._bytes / AUDIO_BYTES_PER_SECOND

    def snapshot(self) -> dict[str, float | int]:
        """
        Lightweight snapshot for logging / metrics.
        """
        return {
            "frames": len(self._frames),
            "depth_bytes": self._bytes,
            "depth_s": round(self.depth_seconds(), 3),
            "dropped_frames": self.drops.frames,
            "dropped_bytes": self.drops.bytes,
        }
