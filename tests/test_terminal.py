import os
import termios
import tty

import pytest
from rich.errors import LiveError

from sshs.errors import TerminalError
from sshs.terminal import TerminalSession


class FakeStdin:
    def __init__(self, fd=0):
        self._fd = fd

    def fileno(self):
        return self._fd


class FakeConsole:
    """Records console calls, optionally failing all of them."""

    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def show_cursor(self, show=True):
        self.calls.append(("show_cursor", show))
        if self.fail:
            raise OSError("cursor")

    def set_alt_screen(self, enable=True):
        self.calls.append(("set_alt_screen", enable))
        if self.fail:
            raise OSError("alt screen")


class FakeLive:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def stop(self):
        self.calls.append("stop")
        if self.fail:
            raise LiveError("stop")

    def start(self, refresh=False):
        self.calls.append("start")
        if self.fail:
            raise LiveError("start")


def _fail(*args, **kwargs):
    raise termios.error("not a tty")


def _session(console, live):
    session = TerminalSession(console, stdin=FakeStdin())
    session.live = live
    session._saved_mode = ["saved"]
    return session


def test_suspend_attempts_every_step(monkeypatch):
    monkeypatch.setattr(termios, "tcsetattr", _fail)
    console = FakeConsole(fail=True)
    live = FakeLive(fail=True)
    session = _session(console, live)

    with pytest.raises(TerminalError) as excinfo:
        session.suspend()

    error = excinfo.value
    assert error.action == "suspend"
    assert error.steps == [
        "stop live display",
        "show cursor",
        "leave alternate screen",
        "restore terminal mode",
    ]
    assert len(error.causes) == 4
    assert "failed to show cursor" in str(error)
    assert live.calls == ["stop"]
    assert console.calls == [("show_cursor", True), ("set_alt_screen", False)]
    assert not session.active


def test_resume_reports_only_failed_steps(monkeypatch):
    monkeypatch.setattr(tty, "setcbreak", _fail)
    console = FakeConsole()
    live = FakeLive()
    session = _session(console, live)

    with pytest.raises(TerminalError) as excinfo:
        session.resume()

    assert excinfo.value.steps == ["enable cbreak mode"]
    assert console.calls == [("set_alt_screen", True), ("show_cursor", False)]
    assert live.calls == ["start"]


def test_suspend_and_resume_succeed(monkeypatch):
    calls = []
    monkeypatch.setattr(termios, "tcsetattr", lambda fd, when, mode: calls.append(mode))
    monkeypatch.setattr(tty, "setcbreak", lambda fd: calls.append("cbreak"))
    session = _session(FakeConsole(), FakeLive())

    session.suspend()
    session.resume()

    assert calls == [["saved"], "cbreak"]
    assert session.active


def test_enter_fails_when_mode_cannot_be_saved(monkeypatch):
    monkeypatch.setattr(termios, "tcgetattr", _fail)
    session = TerminalSession(FakeConsole(), stdin=FakeStdin())

    with pytest.raises(TerminalError) as excinfo:
        session.enter()

    assert excinfo.value.action == "setup"
    assert excinfo.value.steps == ["save terminal mode"]


def test_read_key_returns_whole_escape_sequence():
    read_fd, write_fd = os.pipe()
    try:
        os.write(write_fd, b"\x1b[A")
        session = TerminalSession(FakeConsole(), stdin=FakeStdin(read_fd))

        assert session.read_key() == "\x1b[A"
    finally:
        os.close(read_fd)
        os.close(write_fd)


def test_unexpected_step_errors_do_not_stop_restoration(monkeypatch):
    restored = []
    monkeypatch.setattr(termios, "tcsetattr", lambda fd, when, mode: restored.append(mode))

    class ClosedStreamConsole(FakeConsole):
        def show_cursor(self, show=True):
            raise ValueError("I/O operation on closed file")

    console = ClosedStreamConsole()
    session = _session(console, FakeLive())

    with pytest.raises(TerminalError) as excinfo:
        session.suspend()

    assert excinfo.value.steps == ["show cursor"]
    assert isinstance(excinfo.value.causes[0], ValueError)
    assert console.calls == [("set_alt_screen", False)]
    assert restored == [["saved"]]
