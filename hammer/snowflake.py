"""
Snowflake identifiers.

Every message (and every user and channel created by the in-memory
store) gets a 64-bit identifier made of a millisecond timestamp, a
worker id and a per-millisecond sequence number. Identifiers sort in
creation order.

    >>> gen = Snowflake(worker_id=3)
    >>> first, second = gen.next(), gen.next()
    >>> first < second
    True
    >>> Snowflake.worker_of(second)
    3
"""

import threading
import time
import typing

import attr

# 2023-01-01T00:00:00Z, in milliseconds.
HAMMER_EPOCH = 1672531200000

WORKER_BITS = 10
SEQUENCE_BITS = 12

MAX_WORKER = (1 << WORKER_BITS) - 1
MAX_SEQUENCE = (1 << SEQUENCE_BITS) - 1


def _wall_clock_ms() -> int:
    return time.time_ns() // 1_000_000


@attr.s(auto_attribs=True)
class Snowflake:
    """A thread-safe, monotonic snowflake generator."""

    worker_id: int = attr.ib(default=0)
    epoch: int = HAMMER_EPOCH
    clock: typing.Callable[[], int] = _wall_clock_ms

    _last_timestamp: int = attr.ib(default=-1, init=False)
    _sequence: int = attr.ib(default=0, init=False)
    _lock: threading.Lock = attr.ib(factory=threading.Lock, init=False, repr=False)

    @worker_id.validator
    def _check_worker_id(self, _attribute, value):
        if not 0 <= value <= MAX_WORKER:
            raise ValueError(
                "worker_id must be between 0 and {}, got {}".format(MAX_WORKER, value)
            )

    def _timestamp(self) -> int:
        # A clock that goes backwards keeps the last timestamp, so ids
        # never decrease.
        return max(self.clock() - self.epoch, self._last_timestamp)

    def next(self) -> int:
        """Generates the next identifier.

        Returns:
            int -- A unique identifier, greater than any returned before it.
        """

        with self._lock:
            timestamp = self._timestamp()

            if timestamp == self._last_timestamp:
                self._sequence = (self._sequence + 1) & MAX_SEQUENCE

                if self._sequence == 0:
                    # Sequence exhausted for this millisecond.
                    while timestamp <= self._last_timestamp:
                        timestamp = self.clock() - self.epoch

            else:
                self._sequence = 0

            self._last_timestamp = timestamp

            return (
                (timestamp << (WORKER_BITS + SEQUENCE_BITS))
                | (self.worker_id << SEQUENCE_BITS)
                | self._sequence
            )

    @staticmethod
    def timestamp_of(identifier: int, epoch: int = HAMMER_EPOCH) -> int:
        """Returns the UNIX timestamp, in milliseconds, embedded in an identifier."""
        return (identifier >> (WORKER_BITS + SEQUENCE_BITS)) + epoch

    @staticmethod
    def worker_of(identifier: int) -> int:
        """Returns the worker id embedded in an identifier."""
        return (identifier >> SEQUENCE_BITS) & MAX_WORKER
