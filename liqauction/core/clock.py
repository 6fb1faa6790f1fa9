"""
Chain clock - source of timestamps and block heights.

Every engine call reads time from an injected clock so behaviour is
reproducible: SystemClock for live use, ManualClock for tests and demos.
"""

import time


class SystemClock:
    """Wall-clock time with block heights derived from a fixed block interval."""

    def __init__(self, block_time: int = 12, genesis_time: int = 0):
        if block_time <= 0:
            raise ValueError("block_time must be > 0")
        self.block_time = block_time
        self.genesis_time = genesis_time

    def timestamp(self) -> int:
        return int(time.time())

    def block_number(self) -> int:
        return (self.timestamp() - self.genesis_time) // self.block_time


class ManualClock:
    """Clock advanced explicitly by the caller."""

    def __init__(self, timestamp: int = 1_700_000_000, block_number: int = 1):
        self._timestamp = timestamp
        self._block_number = block_number

    def timestamp(self) -> int:
        return self._timestamp

    def block_number(self) -> int:
        return self._block_number

    def advance(self, seconds: int = 0, blocks: int = 1) -> None:
        """Move forward by `seconds` and `blocks` (one block by default)."""
        if seconds < 0 or blocks < 0:
            raise ValueError("Clock cannot move backwards")
        self._timestamp += seconds
        self._block_number += blocks

    def set(self, timestamp: int, block_number: int) -> None:
        if timestamp < self._timestamp or block_number < self._block_number:
            raise ValueError("Clock cannot move backwards")
        self._timestamp = timestamp
        self._block_number = block_number
