from typing import Dict, Optional
from .config import ReentryPolicy
from .sequence_loader import SequenceDefinition, build_steps
from .step_sequence import SequenceRun, TimedStepSequence
from .timer import TimerScheduler
from .utility import LogSink, LoggerSink, _logger
# -----------------------------------------------------------------------------
# Sequence Manager: owns sequences by id and routes button presses to them
# -----------------------------------------------------------------------------
class SequenceManager:
    def __init__(
        self,
        definitions: Dict[int, SequenceDefinition],
        scheduler: TimerScheduler,
        sink: Optional[LogSink] = None,
        policy: ReentryPolicy = ReentryPolicy.CONCURRENT,
    ):
        if not definitions:
            raise ValueError("SequenceManager requires at least one sequence.")
        self._definitions = definitions
        sink = sink or LoggerSink()
        self._sequences: Dict[int, TimedStepSequence] = {
            seq_id: TimedStepSequence(
                build_steps(d, sink), scheduler, policy=policy, name=d.name
            )
            for seq_id, d in definitions.items()
        }
        self._bindings: Dict[str, int] = {}
        for seq_id, d in definitions.items():
            if d.button:
                self.bind(d.button, seq_id)

    # Accessors ------------------------------------------------------------------
    @property
    def definitions(self) -> Dict[int, SequenceDefinition]:
        return self._definitions

    @property
    def bindings(self) -> Dict[str, int]:
        return dict(self._bindings)

    def sequence(self, seq_id: int) -> Optional[TimedStepSequence]:
        return self._sequences.get(seq_id)

    @property
    def active_run_count(self) -> int:
        return sum(len(s.active_runs) for s in self._sequences.values())

    # API -----------------------------------------------------------------------
    def bind(self, button: str, seq_id: int) -> None:
        if seq_id not in self._sequences:
            raise KeyError(f"Unknown sequence id {seq_id}.")
        previous = self._bindings.get(button)
        if previous is not None and previous != seq_id:
            _logger.warning("Button %s rebound from sequence %s to %s.", button, previous, seq_id)
        self._bindings[button] = seq_id

    def on_button_down(self, button: str) -> Optional[SequenceRun]:
        seq_id = self._bindings.get(button)
        if seq_id is None:
            _logger.warning("No sequence bound to button %s.", button)
            return None
        return self._sequences[seq_id].on_trigger_event()

    def play(self, seq_id: int) -> bool:
        seq = self._sequences.get(seq_id)
        if seq is None:
            _logger.error("Sequence id %s not found.", seq_id)
            return False
        seq.start()
        return True

    def cancel(self, seq_id: Optional[int] = None) -> int:
        """Cancel runs of one sequence, or of every sequence when *seq_id* is None."""
        if seq_id is None:
            return sum(s.cancel() for s in self._sequences.values())
        seq = self._sequences.get(seq_id)
        if seq is None:
            _logger.error("Sequence id %s not found.", seq_id)
            return 0
        return seq.cancel()
