"""Clock with a trusted offset from an external time-sync source."""

import time


class SystemClock:
    """
    Wall clock corrected by a known offset.

    The offset comes from whatever clock-synchronization source the caller
    trusts (positive when the device clock runs behind).
    """

    def __init__(self, offset_seconds: float = 0.0):
        self.offset_seconds = offset_seconds

    def __call__(self) -> float:
        return time.time() + self.offset_seconds


class FixedClock:
    """Clock frozen at a given instant. Useful in tests and replays."""

    def __init__(self, now: float):
        self.now = now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def __call__(self) -> float:
        return self.now
