"""
Audio frame primitives.

Pure data containers only.
No behavior, no queues, no timing logic.
"""

from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class AudioFrame:
    """
    One binary audio message received from the browser.

    pcm_bytes:
        Raw PCM16 little-endian mono bytes. Sample rate is agreed
        out-of-band with the capture client; the relay never inspects it.

    sequence_num:
        Per-connection receive counter assigned by the gateway.
        Used for observability only.

    ts_ms:
        Wall-clock timestamp (milliseconds) when the frame was received.
    """
    pcm_bytes: bytes
    sequence_num: int = 0
    ts_ms: int = 0

    def __len__(self) -> int:
        return len(self.pcm_bytes)
