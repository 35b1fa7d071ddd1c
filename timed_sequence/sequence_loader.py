from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
from functools import partial
import json
import math

import numpy as np

from .step_sequence import Step
from .utility import LogSink

# -----------------------------------------------------------------------------
# Sequence data model & validation
# -----------------------------------------------------------------------------
@dataclass
class StepSpec:
    message: str
    delay: float = 0.0   # seconds to wait after the previous step

@dataclass
class SequenceDefinition:
    name: str
    steps: List[StepSpec] = field(default_factory=list)
    button: Optional[str] = None   # trigger bound at load time

    def offsets(self) -> np.ndarray:
        return np.cumsum(np.array([s.delay for s in self.steps], dtype=float))

    @property
    def total_duration(self) -> float:
        offsets = self.offsets()
        return float(offsets[-1]) if offsets.size else 0.0

class SequenceValidationError(Exception):
    pass


def default_sequences() -> Dict[int, SequenceDefinition]:
    """Built-in sequence: a start message, then two more after 4 s and 5 s."""
    return {
        1: SequenceDefinition(
            name="SoundC1",
            steps=[
                StepSpec("시작", 0.0),
                StepSpec("2초 지남", 4.0),
                StepSpec("5초 지남", 5.0),
            ],
            button="Fire1",
        )
    }


def build_steps(definition: SequenceDefinition, sink: LogSink) -> List[Step]:
    """Turn a definition into executable steps that log through *sink*."""
    return [
        Step(delay=s.delay, action=partial(sink.log, s.message), label=s.message)
        for s in definition.steps
    ]


class SequenceLoader:
    """Loads and validates step sequences from JSON files.

    Supports file containing either:
    * single sequence object
    * list of sequence objects

    Example::

        {"sequence_name": "SoundC1", "button": "Fire1",
         "steps": [{"message": "start"}, {"delay": 4, "message": "4s later"}]}
    """

    REQUIRED_KEYS = {"sequence_name", "steps"}

    def load_file(self, path: str) -> Dict[int, SequenceDefinition]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:  # rethrow with context
            raise SequenceValidationError(f"Sequence JSON not found: {path}") from e
        except json.JSONDecodeError as e:
            raise SequenceValidationError(f"Invalid JSON in {path}: {e}") from e
        return self.parse(data)

    def parse(self, data: Any) -> Dict[int, SequenceDefinition]:
        sequences: Dict[int, SequenceDefinition] = {}
        if isinstance(data, list):
            if not data:
                raise SequenceValidationError("Sequence list is empty.")
            for i, obj in enumerate(data):
                sequences[i + 1] = self._parse_sequence_obj(obj)
        elif isinstance(data, dict):
            sequences[1] = self._parse_sequence_obj(data)
        else:
            raise SequenceValidationError("Top-level JSON must be object or array of objects.")
        return sequences

    # -- internal ------------------------------------------------------------------
    def _parse_sequence_obj(self, obj: Any) -> SequenceDefinition:
        if not isinstance(obj, dict):
            raise SequenceValidationError("Sequence entries must be JSON objects.")
        missing = self.REQUIRED_KEYS - obj.keys()
        if missing:
            raise SequenceValidationError(f"Missing keys in sequence object: {missing}")

        name = str(obj["sequence_name"]) or "unnamed_sequence"
        button = obj.get("button")
        if button is not None and (not isinstance(button, str) or not button):
            raise SequenceValidationError(f"Sequence {name}: 'button' must be a non-empty string.")
        raw_steps = obj["steps"]
        if not isinstance(raw_steps, list) or len(raw_steps) == 0:
            raise SequenceValidationError(f"Sequence {name}: 'steps' must be a non-empty list.")

        steps = [self._parse_step(name, idx, s) for idx, s in enumerate(raw_steps)]
        return SequenceDefinition(name=name, steps=steps, button=button)

    def _parse_step(self, seq_name: str, idx: int, raw: Any) -> StepSpec:
        if not isinstance(raw, dict):
            raise SequenceValidationError(f"Sequence {seq_name} step#{idx}: must be an object.")
        try:
            message = raw["message"]
        except KeyError as e:
            raise SequenceValidationError(f"Sequence {seq_name} step#{idx}: missing {e}.") from e
        if not isinstance(message, str):
            raise SequenceValidationError(
                f"Sequence {seq_name} step#{idx}: message must be a string."
            )
        delay_raw = raw.get("delay", 0.0)
        # bool is an int subclass; reject it explicitly
        if isinstance(delay_raw, bool) or not isinstance(delay_raw, (int, float)):
            raise SequenceValidationError(
                f"Sequence {seq_name} step#{idx}: delay must be a number, got {delay_raw!r}."
            )
        delay = float(delay_raw)
        if not math.isfinite(delay) or delay < 0:
            raise SequenceValidationError(
                f"Sequence {seq_name} step#{idx}: delay must be >= 0, got {delay}."
            )
        return StepSpec(message=message, delay=delay)
