import queue
from unittest.mock import patch

import pytest

from timed_sequence.cli import CLI
from timed_sequence.sequence_loader import default_sequences
from timed_sequence.sequence_manager import SequenceManager


@pytest.fixture
def cli(scheduler, sink) -> CLI:
    mgr = SequenceManager(default_sequences(), scheduler, sink=sink)
    return CLI(mgr, queue.Queue(), default_button="Fire1")


@pytest.mark.parametrize(
    "line, expected",
    [
        ("", ("trigger", "Fire1")),
        ("   ", ("trigger", "Fire1")),
        ("fire", ("trigger", "Fire1")),
        ("FIRE Jump", ("trigger", "Jump")),
        ("2", ("play", 2)),
        ("cancel", ("cancel", None)),
        ("cancel 1", ("cancel", 1)),
        ("cancel all", None),
        ("list", None),
        ("quit", ("quit", None)),
        ("dance", None),
    ],
)
def test_parse_command(cli: CLI, line, expected) -> None:
    assert cli.parse_command(line) == expected


def _drain(q: queue.Queue) -> list:
    items = []
    while not q.empty():
        items.append(q.get_nowait())
    return items


def test_run_feeds_queue_until_quit(cli: CLI, capsys) -> None:
    with patch("builtins.input", side_effect=["", "bogus", "1", "list", "quit", "never read"]):
        cli._run()

    assert _drain(cli._q) == [("trigger", "Fire1"), ("play", 1), ("quit", None)]
    out = capsys.readouterr().out
    assert "Invalid input!" in out
    assert "SoundC1 (3 steps, 9.0s) [Fire1]" in out


def test_run_stops_on_eof(cli: CLI) -> None:
    with patch("builtins.input", side_effect=EOFError):
        cli._run()
    assert cli._q.empty()
