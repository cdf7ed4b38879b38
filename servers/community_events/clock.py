"""Time source threaded through the pipeline."""

from datetime import datetime, timedelta
from typing import Callable

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    """Local wall-clock time, naive."""
    return datetime.now()


class FrozenClock:
    """Clock that only moves when told to. Used for manual replays and tests."""

    def __init__(self, moment: datetime):
        self.moment = moment

    def __call__(self) -> datetime:
        return self.moment

    def advance(self, **kwargs: float) -> datetime:
        self.moment = self.moment + timedelta(**kwargs)
        return self.moment
