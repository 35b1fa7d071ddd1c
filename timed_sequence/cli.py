import threading
import queue
from typing import Any, Optional, Tuple
from .sequence_manager import SequenceManager
# -----------------------------------------------------------------------------
# CLI / User interaction (separate from the tick loop)
# -----------------------------------------------------------------------------
Command = Tuple[str, Any]


class CLI:
    """Blocking console interface that feeds commands into a queue.

    Stands in for per-frame button polling: an empty line presses the default
    button. The tick loop never blocks on input; requests go through a
    thread-safe queue.
    """
    def __init__(self, seq_mgr: SequenceManager, cmd_queue: "queue.Queue[Command]", default_button: str = "Fire1"):
        self._seq_mgr = seq_mgr
        self._q = cmd_queue
        self._default_button = default_button
        self._thread = threading.Thread(target=self._run, name="CLIThread", daemon=True)
        self._stop = threading.Event()

    def start(self) -> None:
        self._print_menu()
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        # cannot reliably stop blocking input() in all terminals; user ^C ends.

    def show_menu(self) -> None:
        self._print_menu()

    def parse_command(self, line: str) -> Optional[Command]:
        """Map one console line to a queue command; ``None`` for menu/invalid input."""
        parts = line.strip().split()
        if not parts:
            return ("trigger", self._default_button)
        word = parts[0].lower()
        if word == "quit":
            return ("quit", None)
        if word == "fire":
            return ("trigger", parts[1] if len(parts) > 1 else self._default_button)
        if word == "cancel":
            if len(parts) == 1:
                return ("cancel", None)
            try:
                return ("cancel", int(parts[1]))
            except ValueError:
                return None
        if word == "list":
            return None
        try:
            return ("play", int(word))
        except ValueError:
            return None

    # internal ------------------------------------------------------------------
    def _print_menu(self) -> None:
        bound = {seq_id: button for button, seq_id in self._seq_mgr.bindings.items()}
        print("\nAvailable sequences:")
        for seq_id, d in self._seq_mgr.definitions.items():
            button = f" [{bound[seq_id]}]" if seq_id in bound else ""
            print(f"  {seq_id}: {d.name} ({len(d.steps)} steps, {d.total_duration:.1f}s){button}")
        print(
            "\nCommands:\n"
            f"  <Enter>       : Press {self._default_button}\n"
            "  fire <button> : Press a named button\n"
            "  <number>      : Play sequence with given ID\n"
            "  cancel [id]   : Cancel running sequences\n"
            "  list          : Show this menu again\n"
            "  quit          : Exit program\n"
        )

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                user_input = input("Enter command: ")
            except EOFError:
                break
            cmd = self.parse_command(user_input)
            if cmd is None:
                if user_input.strip().lower() == "list":
                    self._print_menu()
                else:
                    print("Invalid input! Press Enter, 'fire', a number, 'cancel', 'list', or 'quit'.")
                continue
            self._q.put(cmd)
            if cmd[0] == "quit":
                break
