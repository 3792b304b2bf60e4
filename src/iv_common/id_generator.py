"""Time-ordered string ids for plans and contracts.

Snowflake layout packed into 63 bits:
  41 bits  milliseconds since 2026-01-01 UTC
  10 bits  worker id (settings.WORKER_ID, one per API process)
  12 bits  per-millisecond sequence

Ids sort by creation time within a worker. The clock never runs backwards
from the generator's point of view: a lagging clock or an exhausted sequence
borrows the next millisecond instead of blocking.
"""

import threading
import time
from collections.abc import Callable
from typing import NamedTuple

from config.settings import settings

EPOCH_MS = 1_767_225_600_000  # 2026-01-01T00:00:00Z
WORKER_BITS = 10
SEQUENCE_BITS = 12
MAX_WORKER_ID = (1 << WORKER_BITS) - 1
_SEQUENCE_MASK = (1 << SEQUENCE_BITS) - 1


class IdParts(NamedTuple):
    timestamp_ms: int
    worker_id: int
    sequence: int


def _wall_clock_ms() -> int:
    return time.time_ns() // 1_000_000


class SnowflakeIdGenerator:
    def __init__(self, machine_id: int = 0, clock_ms: Callable[[], int] = _wall_clock_ms) -> None:
        if not 0 <= machine_id <= MAX_WORKER_ID:
            raise ValueError(f"machine_id must be 0-{MAX_WORKER_ID}, got {machine_id}")
        self._worker_id = machine_id
        self._clock_ms = clock_ms
        self._last_ms = 0
        self._sequence = 0
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            now_ms = max(self._clock_ms() - EPOCH_MS, self._last_ms)
            if now_ms == self._last_ms:
                self._sequence = (self._sequence + 1) & _SEQUENCE_MASK
                if self._sequence == 0:
                    now_ms += 1
            else:
                self._sequence = 0
            self._last_ms = now_ms
            packed = (
                (now_ms << (WORKER_BITS + SEQUENCE_BITS))
                | (self._worker_id << SEQUENCE_BITS)
                | self._sequence
            )
        return str(packed)


def decode_id(value: str) -> IdParts:
    """Split an id back into (absolute timestamp ms, worker, sequence); handy in logs."""
    packed = int(value)
    return IdParts(
        timestamp_ms=(packed >> (WORKER_BITS + SEQUENCE_BITS)) + EPOCH_MS,
        worker_id=(packed >> SEQUENCE_BITS) & MAX_WORKER_ID,
        sequence=packed & _SEQUENCE_MASK,
    )


_default_generator = SnowflakeIdGenerator(machine_id=settings.WORKER_ID)


def generate_id() -> str:
    return _default_generator.next_id()
