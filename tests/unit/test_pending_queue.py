# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from audio.frames import AudioFrame
from audio.queues import PendingAudioQueue
from constants import AUDIO_BYTES_PER_SECOND


def make_frame(seq: int, size: int = 640) -> AudioFrame:
    return AudioFrame(pcm_bytes=bytes([seq % 256]) * size, sequence_num=seq)


def drain(q: PendingAudioQueue) -> list[int]:
    out: list[int] = []
    while (frame := q.dequeue()) is not None:
        out.append(frame.sequence_num)
    return out


# ---------------------------------------------------------------------
# FIFO + depth
# ---------------------------------------------------------------------

def test_dequeue_preserves_arrival_order():
    q = PendingAudioQueue(max_bytes=10_000)

    for seq in range(1, 6):
        q.enqueue(make_frame(seq))

    assert drain(q) == [1, 2, 3, 4, 5]
    assert q.is_empty()
    assert q.depth_bytes() == 0


def test_depth_tracks_bytes_and_seconds():
    q = PendingAudioQueue(max_bytes=AUDIO_BYTES_PER_SECOND)

    q.enqueue(make_frame(1, size=AUDIO_BYTES_PER_SECOND // 4))
    q.enqueue(make_frame(2, size=AUDIO_BYTES_PER_SECOND // 4))

    assert len(q) == 2
    assert q.depth_bytes() == AUDIO_BYTES_PER_SECOND // 2
    assert q.depth_seconds() == pytest.approx(0.5)


def test_rejects_non_positive_bound():
    with pytest.raises(ValueError):
        PendingAudioQueue(max_bytes=0)


# ---------------------------------------------------------------------
# Overflow behavior
# ---------------------------------------------------------------------

def test_overflow_drops_oldest():
    q = PendingAudioQueue(max_bytes=3 * 640)

    for seq in (1, 2, 3):
        assert q.enqueue(make_frame(seq)) == 0

    assert q.enqueue(make_frame(4)) == 1

    assert q.drops.frames == 1
    assert q.drops.bytes == 640
    head = q.peek()
    assert head is not None
    assert head.sequence_num == 2
    assert drain(q) == [2, 3, 4]


def test_overflow_drops_as_many_as_needed():
    q = PendingAudioQueue(max_bytes=4 * 640)

    for seq in (1, 2, 3, 4):
        q.enqueue(make_frame(seq))

    assert q.enqueue(make_frame(5, size=3 * 640)) == 3
    assert drain(q) == [4, 5]


def test_oversized_frame_is_dropped_on_arrival():
    q = PendingAudioQueue(max_bytes=640)
    q.enqueue(make_frame(1))

    assert q.enqueue(make_frame(2, size=641)) == 1

    assert q.drops.frames == 1
    assert drain(q) == [1]


def test_clear_does_not_count_drops():
    q = PendingAudioQueue(max_bytes=10_000)
    q.enqueue(make_frame(1))
    q.enqueue(make_frame(2))

    q.clear()

    assert q.is_empty()
    assert q.drops.frames == 0
    assert q.snapshot()["frames"] == 0
