"""Terminal control for the interactive selector.

The selector owns the terminal in cbreak mode on the alternate screen.
Before a command runs it must hand the terminal back with ``suspend()``
and take it again afterwards with ``resume()``. Every step of either
transition is attempted even if an earlier one fails; failures are
reported together as a TerminalError.
"""

import logging
import os
import sys
import termios
import tty
from typing import Callable, TextIO

from rich.console import Console
from rich.live import Live

from sshs.errors import TerminalError

LOG = logging.getLogger(__name__)


class TerminalSession:
    """Saves, releases and restores exclusive terminal control."""

    def __init__(self, console: Console, stdin: TextIO | None = None):
        self.console = console
        self.stdin = stdin if stdin is not None else sys.stdin
        self.live: Live | None = None
        self.active = False
        self._saved_mode: list | None = None

    @property
    def fd(self) -> int:
        return self.stdin.fileno()

    def _run_steps(self, action: str, steps: list[tuple[str, Callable[[], object]]]) -> None:
        failed: list[str] = []
        errors: list[Exception] = []
        for description, step in steps:
            try:
                step()
            except Exception as e:
                LOG.debug("Terminal %s step '%s' failed: %s", action, description, e)
                failed.append(description)
                errors.append(e)
        if errors:
            raise TerminalError(action, errors, failed)

    def _restore_mode(self) -> None:
        if self._saved_mode is not None:
            termios.tcsetattr(self.fd, termios.TCSADRAIN, self._saved_mode)

    def _stop_live(self) -> None:
        if self.live is not None:
            self.live.stop()

    def _start_live(self) -> None:
        if self.live is not None:
            self.live.start(refresh=True)

    def enter(self) -> None:
        """Save the current terminal mode and take control."""
        try:
            self._saved_mode = termios.tcgetattr(self.fd)
        except (OSError, termios.error) as e:
            raise TerminalError("setup", [e], ["save terminal mode"]) from e
        self.resume()

    def suspend(self) -> None:
        """Release the terminal: leave cbreak mode and the alternate screen."""
        self.active = False
        self._run_steps(
            "suspend",
            [
                ("stop live display", self._stop_live),
                ("show cursor", lambda: self.console.show_cursor(True)),
                ("leave alternate screen", lambda: self.console.set_alt_screen(False)),
                ("restore terminal mode", self._restore_mode),
            ],
        )

    def resume(self) -> None:
        """Take the terminal back after a command has run."""
        self._run_steps(
            "resume",
            [
                ("enable cbreak mode", lambda: tty.setcbreak(self.fd)),
                ("enter alternate screen", lambda: self.console.set_alt_screen(True)),
                ("hide cursor", lambda: self.console.show_cursor(False)),
                ("start live display", self._start_live),
            ],
        )
        self.active = True

    def read_key(self) -> str:
        """Read one keypress.

        Escape sequences (arrow keys) and pasted text arrive in a single read
        and are returned whole.
        """
        return os.read(self.fd, 32).decode("utf-8", errors="replace")

    def __enter__(self) -> "TerminalSession":
        self.enter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.suspend()
