import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[2]))

from timed_sequence.timer import TimerScheduler


class FakeTimeSource:
    """Manually advanced clock."""

    def __init__(self, t: float = 0.0) -> None:
        self.t = t

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += dt


class RecordingSink:
    def __init__(self) -> None:
        self.messages: list[str] = []

    def log(self, message: str) -> None:
        self.messages.append(message)


@pytest.fixture
def clock() -> FakeTimeSource:
    return FakeTimeSource()


@pytest.fixture
def scheduler(clock: FakeTimeSource) -> TimerScheduler:
    return TimerScheduler(clock)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
