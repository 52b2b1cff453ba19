"""The controller that owns the host list, the search view and connecting."""

import logging

from rich.console import Console
from rich.markup import escape

from sshs.config import Settings
from sshs.errors import TerminalError
from sshs.searchable import Searchable, search_hosts
from sshs.session import CommandResult, Runner, SessionTemplates, run_session, spawn
from sshs.ssh_config import Host, parse_ssh_config
from sshs.terminal import TerminalSession

LOG = logging.getLogger(__name__)


def load_hosts(settings: Settings) -> list[Host]:
    """Resolve the configured SSH config files into hosts.

    Raises:
        ConfigError: If any config file cannot be loaded or resolved.
    """
    hosts = parse_ssh_config(settings.config_paths)
    if settings.sort_by_name:
        hosts = sorted(hosts, key=lambda h: h.name.lower())
    return hosts


class App:
    """Holds the resolved hosts and runs sessions against them.

    The host list and its search view are replaced wholesale on reload,
    never mutated in place.
    """

    def __init__(
        self,
        settings: Settings,
        query: str = "",
        console: Console | None = None,
        terminal: TerminalSession | None = None,
        runner: Runner = spawn,
    ):
        self.settings = settings
        self.console = console or Console(stderr=True)
        self.terminal = terminal
        self.runner = runner
        self.status: str | None = None
        self.status_is_error = False
        self.hosts: Searchable[Host] = search_hosts(load_hosts(settings), query)

    @property
    def templates(self) -> SessionTemplates:
        return SessionTemplates(
            connect=self.settings.template,
            on_start=self.settings.on_session_start_template,
            on_end=self.settings.on_session_end_template,
        )

    @property
    def query(self) -> str:
        return self.hosts.query

    def current_hosts(self) -> list[Host]:
        """Hosts matching the current query, in list order."""
        return list(self.hosts)

    def set_query(self, query: str) -> None:
        self.hosts.search(query)

    def reload(self) -> None:
        """Re-read the config files, keeping the current query."""
        self.hosts = search_hosts(load_hosts(self.settings), self.query)
        LOG.debug("Reloaded %d hosts", len(list(self.hosts.all_items())))

    def set_status(self, message: str, error: bool = False) -> None:
        self.status = message
        self.status_is_error = error

    def _report_terminal_error(self, error: TerminalError) -> None:
        LOG.error("%s", error)
        self.console.print(f"[bold red]✗[/bold red] {escape(str(error))}")
        self.set_status(str(error), error=True)

    def connect(self, index: int) -> CommandResult:
        """Run the session templates for the host at ``index`` in the current view.

        The terminal is released for the duration of the session and taken
        back afterwards, even if the session fails.

        Raises:
            IndexError: If ``index`` is outside the current view.
            TemplateError: If a template cannot be rendered.
            ExecError: If a command cannot be started or exits non-zero.
        """
        host = self.hosts[index]

        if self.terminal is not None:
            try:
                self.terminal.suspend()
            except TerminalError as e:
                self._report_terminal_error(e)

        try:
            result = run_session(host, self.templates, self.runner)
        finally:
            if self.terminal is not None:
                try:
                    self.terminal.resume()
                except TerminalError as e:
                    self._report_terminal_error(e)

        self.set_status(f"Session with {host.name} ended")
        return result
