from enum import Enum
from dataclasses import dataclass


class ReentryPolicy(str, Enum):
    """What a trigger does while a run of the same sequence is still active."""

    CONCURRENT = "concurrent"  # start another independent run
    IGNORE = "ignore"          # drop the trigger
    RESTART = "restart"        # cancel active runs, then start fresh

# -----------------------------------------------------------------------------
# Configuration
# -----------------------------------------------------------------------------
@dataclass
class PlayerConfig:
    """Central configuration for the tick loop and trigger handling."""

    tick_dt: float = 0.02                  # 20 ms poll cycle (50 Hz)
    reentry_policy: ReentryPolicy = ReentryPolicy.CONCURRENT
    default_button: str = "Fire1"          # button fired by an empty console line
    once: bool = False                     # fire default button at start, exit when idle

    def __post_init__(self) -> None:
        if self.tick_dt <= 0:
            raise ValueError(f"tick_dt must be > 0, got {self.tick_dt}.")
        self.reentry_policy = ReentryPolicy(self.reentry_policy)
