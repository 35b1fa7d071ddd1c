import json
from pathlib import Path
from unittest.mock import MagicMock, call

import numpy as np
import pytest

from timed_sequence.sequence_loader import (
    SequenceLoader,
    SequenceValidationError,
    StepSpec,
    build_steps,
    default_sequences,
)


def _write(tmp_path: Path, data) -> str:
    path = tmp_path / "sequences.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def test_load_single_sequence(tmp_path: Path) -> None:
    path = _write(tmp_path, {
        "sequence_name": "chime",
        "button": "Jump",
        "steps": [{"message": "go"}, {"delay": 1.5, "message": "done"}],
    })
    sequences = SequenceLoader().load_file(path)

    assert list(sequences) == [1]
    seq = sequences[1]
    assert seq.name == "chime"
    assert seq.button == "Jump"
    assert seq.steps == [StepSpec("go", 0.0), StepSpec("done", 1.5)]
    assert seq.total_duration == 1.5


def test_load_list_assigns_ids_in_file_order(tmp_path: Path) -> None:
    path = _write(tmp_path, [
        {"sequence_name": "a", "steps": [{"message": "x"}]},
        {"sequence_name": "b", "steps": [{"message": "y", "delay": 2}]},
    ])
    sequences = SequenceLoader().load_file(path)
    assert {k: v.name for k, v in sequences.items()} == {1: "a", 2: "b"}
    assert sequences[2].button is None


def test_default_sequence_timeline() -> None:
    seq = default_sequences()[1]
    assert seq.button == "Fire1"
    assert [s.message for s in seq.steps] == ["시작", "2초 지남", "5초 지남"]
    np.testing.assert_allclose(seq.offsets(), [0.0, 4.0, 9.0])


def test_build_steps_logs_messages_through_sink() -> None:
    sink = MagicMock()
    steps = build_steps(default_sequences()[1], sink)
    assert [s.delay for s in steps] == [0.0, 4.0, 5.0]
    for step in steps:
        step.action()
    assert sink.log.call_args_list == [call("시작"), call("2초 지남"), call("5초 지남")]


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(SequenceValidationError, match="not found"):
        SequenceLoader().load_file(str(tmp_path / "nope.json"))


def test_invalid_json_raises(tmp_path: Path) -> None:
    path = tmp_path / "bad.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(SequenceValidationError, match="Invalid JSON"):
        SequenceLoader().load_file(str(path))


@pytest.mark.parametrize(
    "data, match",
    [
        ({"steps": [{"message": "x"}]}, "Missing keys"),
        ({"sequence_name": "s", "steps": []}, "non-empty list"),
        ({"sequence_name": "s", "steps": "x"}, "non-empty list"),
        ({"sequence_name": "s", "steps": [{"delay": 1}]}, "missing"),
        ({"sequence_name": "s", "steps": [{"message": 3}]}, "must be a string"),
        ({"sequence_name": "s", "steps": [{"message": "x", "delay": -1}]}, ">= 0"),
        ({"sequence_name": "s", "steps": [{"message": "x", "delay": "4"}]}, "must be a number"),
        ({"sequence_name": "s", "steps": [{"message": "x", "delay": True}]}, "must be a number"),
        ({"sequence_name": "s", "button": "", "steps": [{"message": "x"}]}, "button"),
        ([], "empty"),
        ("text", "Top-level"),
        ([1], "objects"),
    ],
)
def test_invalid_sequences_rejected(data, match) -> None:
    with pytest.raises(SequenceValidationError, match=match):
        SequenceLoader().parse(data)
