# -----------------------------------------------------------------------------
# Logging helpers
# -----------------------------------------------------------------------------
import logging
import time
import sys
from typing import Optional, Protocol

_logger = logging.getLogger("TimedSequence")
_logger.setLevel(logging.INFO)
_ch = logging.StreamHandler(sys.stdout)
_ch.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)s: %(message)s"))
_logger.addHandler(_ch)

# -----------------------------------------------------------------------------
# Utility: time source abstraction (testability)
# -----------------------------------------------------------------------------
class TimeSource(Protocol):  # structural type
    def now(self) -> float: ...

class PerfCounterTimeSource:
    def now(self) -> float:
        return time.perf_counter()

# -----------------------------------------------------------------------------
# Observability sink for step actions
# -----------------------------------------------------------------------------
class LogSink(Protocol):
    def log(self, message: str) -> None: ...

class LoggerSink:
    """Writes sequence messages to a :mod:`logging` logger at info level."""
    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or _logger

    def log(self, message: str) -> None:
        self._logger.info("%s", message)
