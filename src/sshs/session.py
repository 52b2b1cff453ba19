"""Running rendered templates: the start, connect and end steps of a session."""

import logging
import subprocess
from dataclasses import dataclass
from typing import Callable

from sshs.errors import ExecError, NonZeroExitError, SpawnError, TemplateError
from sshs.ssh_config import Host
from sshs.template import DEFAULT_SSH_TEMPLATE, RenderedCommand, render_command

LOG = logging.getLogger(__name__)

Runner = Callable[[list[str]], int]


@dataclass(frozen=True)
class SessionTemplates:
    """The three templates run when connecting to a host."""

    connect: str = DEFAULT_SSH_TEMPLATE
    on_start: str | None = None
    on_end: str | None = None


@dataclass
class CommandResult:
    """Result of running one template."""

    command: RenderedCommand
    argv: list[str]
    return_code: int

    @property
    def success(self) -> bool:
        return self.return_code == 0


def spawn(argv: list[str]) -> int:
    """Run ``argv`` in the foreground, inheriting the terminal, and wait.

    Ctrl+C reaches the child through the terminal; the parent keeps waiting
    for it to exit.
    """
    process = subprocess.Popen(argv)
    while True:
        try:
            return process.wait()
        except KeyboardInterrupt:
            continue


def run_template(template: str, host: Host, runner: Runner = spawn) -> CommandResult:
    """Render ``template`` for ``host`` and run it.

    Args:
        template: Command template.
        host: Host whose fields fill the template.
        runner: Executes an argv and returns its exit code.

    Returns:
        CommandResult for a zero exit status.

    Raises:
        TemplateError: If the template cannot be rendered.
        SpawnError: If the program cannot be started.
        NonZeroExitError: If the program exits with a non-zero status.
    """
    command = render_command(template, host)
    argv = command.argv()
    LOG.info("Running command: %s", command.line)

    try:
        return_code = runner(argv)
    except FileNotFoundError as e:
        raise SpawnError(f"{argv[0]}: command not found", argv) from e
    except OSError as e:
        raise SpawnError(f"Failed to start {argv[0]}: {e}", argv) from e

    if return_code != 0:
        raise NonZeroExitError(return_code, argv)
    return CommandResult(command=command, argv=argv, return_code=return_code)


def run_session(
    host: Host,
    templates: SessionTemplates,
    runner: Runner = spawn,
) -> CommandResult:
    """Run the start, connect and end templates for ``host``.

    A failing start template aborts before connecting. Once the connect
    step has been attempted, the end template runs whatever its outcome,
    and a connect failure is re-raised after it.

    Returns:
        The connect step's result.
    """
    if templates.on_start:
        run_template(templates.on_start, host, runner)

    connect_error: TemplateError | ExecError | None = None
    result = None
    try:
        result = run_template(templates.connect, host, runner)
    except (TemplateError, ExecError) as e:
        connect_error = e

    if templates.on_end:
        try:
            run_template(templates.on_end, host, runner)
        except (TemplateError, ExecError) as e:
            if connect_error is None:
                raise
            LOG.warning("Session end command for %s failed: %s", host.name, e)

    if connect_error is not None:
        raise connect_error
    return result
