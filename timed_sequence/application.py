import sys
import threading
import signal
import queue
import logging
from typing import Optional, Tuple, List, Any
from .utility import _logger, LogSink, TimeSource
from .config import PlayerConfig, ReentryPolicy
from .sequence_loader import SequenceLoader, SequenceValidationError, default_sequences
from .step_sequence import ActionFailure
from .timer import TimerScheduler
from .sequence_manager import SequenceManager
from .cli import CLI

# -----------------------------------------------------------------------------
# Application Orchestration
# -----------------------------------------------------------------------------
class Application:
    def __init__(
        self,
        json_file: Optional[str],
        cfg: PlayerConfig,
        sink: Optional[LogSink] = None,
        time_source: Optional[TimeSource] = None,
    ):
        self._cfg = cfg
        self._json_file = json_file

        # Load sequences ---------------------------------------------------------
        if json_file:
            try:
                definitions = SequenceLoader().load_file(json_file)
            except SequenceValidationError as e:
                _logger.error("Failed to load sequences: %s", e)
                raise SystemExit(1) from e
        else:
            definitions = default_sequences()

        # Compose player stack ---------------------------------------------------
        self._scheduler = TimerScheduler(time_source)
        self._seq_mgr = SequenceManager(
            definitions, self._scheduler, sink=sink, policy=cfg.reentry_policy
        )
        self._cmd_queue: "queue.Queue[Tuple[str, Any]]" = queue.Queue()
        self._cli = CLI(self._seq_mgr, self._cmd_queue, default_button=cfg.default_button)

        # Shutdown flag
        self._shutdown = threading.Event()

    @property
    def sequence_manager(self) -> SequenceManager:
        return self._seq_mgr

    @property
    def scheduler(self) -> TimerScheduler:
        return self._scheduler

    @property
    def commands(self) -> "queue.Queue[Tuple[str, Any]]":
        return self._cmd_queue

    def run(self) -> None:
        self._install_signal_handlers()

        if self._cfg.once:
            if self._cfg.default_button not in self._seq_mgr.bindings:
                _logger.error("No sequence bound to button %s; nothing to play.", self._cfg.default_button)
                self.shutdown()
                raise SystemExit(1)
            self._guarded(self._seq_mgr.on_button_down, self._cfg.default_button)
        else:
            self._cli.start()

        # Tick loop: commands and timers share this one thread -------------------
        while not self._shutdown.is_set():
            if self._cfg.once and self._seq_mgr.active_run_count == 0:
                _logger.info("All sequences finished.")
                break
            if not self.tick():
                break

        # graceful shutdown ------------------------------------------------------
        self.shutdown()

    def tick(self) -> bool:
        """Wait for one command (bounded by the next timer), then fire due timers.

        Returns ``False`` once a quit command has been received.
        """
        timeout = self._cfg.tick_dt
        next_due = self._scheduler.next_due()
        if next_due is not None:
            timeout = min(timeout, next_due)
        try:
            cmd, payload = self._cmd_queue.get(timeout=timeout) if timeout > 0 else self._cmd_queue.get_nowait()
        except queue.Empty:
            pass
        else:
            if not self.dispatch(cmd, payload):
                return False
        self._guarded(self._scheduler.poll)
        return True

    def dispatch(self, cmd: str, payload: Any) -> bool:
        if cmd == "quit":
            _logger.info("Quit command received.")
            return False
        elif cmd == "trigger":
            self._guarded(self._seq_mgr.on_button_down, str(payload))
        elif cmd == "play":
            seq_id = int(payload)
            ok = self._guarded(self._seq_mgr.play, seq_id)
            if ok is False:
                print(f"Sequence {seq_id} not found.")
        elif cmd == "cancel":
            n = self._seq_mgr.cancel(None if payload is None else int(payload))
            _logger.info("Cancelled %d run(s).", n)
        else:  # unknown
            _logger.warning("Unknown command: %s", cmd)
        return True

    def shutdown(self) -> None:
        if self._shutdown.is_set():
            return
        self._shutdown.set()
        _logger.info("Shutting down application...")
        self._cli.stop()
        self._seq_mgr.cancel()
        print("Application exited cleanly.")

    # internal ------------------------------------------------------------------
    def _guarded(self, fn, *args):
        # A failed action has already aborted its own run; keep serving the rest.
        try:
            return fn(*args)
        except ActionFailure as e:
            _logger.error("Sequence action failed: %s", e)
            return None

    # Signals -------------------------------------------------------------------
    def _install_signal_handlers(self) -> None:
        def _sig_handler(signum, _frame):
            _logger.info("Signal %s received; shutting down.", signum)
            self.shutdown()
        signal.signal(signal.SIGINT, _sig_handler)
        signal.signal(signal.SIGTERM, _sig_handler)

# -----------------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------------

def _parse_args(argv: List[str]) -> Tuple[Optional[str], PlayerConfig]:
    import argparse
    parser = argparse.ArgumentParser(description="Timed step sequence player")
    parser.add_argument("json_file", nargs="?", default=None, help="Path to sequence JSON file (built-in sequence if omitted)")
    parser.add_argument(
        "--policy",
        default=ReentryPolicy.CONCURRENT.value,
        choices=[p.value for p in ReentryPolicy],
        help="What a trigger does while the sequence is already running",
    )
    parser.add_argument("--button", default="Fire1", help="Button pressed by an empty input line")
    parser.add_argument("--tick", type=float, default=0.02, help="Tick loop period in seconds")
    parser.add_argument("--once", action="store_true", help="Press the button once and exit when the sequence ends")
    parser.add_argument("--log", default="info", choices=["debug", "info", "warning", "error"], help="Log level")
    args = parser.parse_args(argv)

    level = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }[args.log]
    _logger.setLevel(level)

    try:
        cfg = PlayerConfig(
            tick_dt=args.tick,
            reentry_policy=ReentryPolicy(args.policy),
            default_button=args.button,
            once=args.once,
        )
    except ValueError as e:
        parser.error(str(e))
    return args.json_file, cfg


def main(argv: Optional[List[str]] = None) -> None:
    if argv is None:
        argv = sys.argv[1:]
    json_file, cfg = _parse_args(argv)
    app = Application(json_file, cfg)
    app.run()


if __name__ == "__main__":  # pragma: no cover
    main()
