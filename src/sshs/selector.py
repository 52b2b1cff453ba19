"""Interactive host selector with type-to-search, using rich."""

from typing import Callable

from rich.console import Console, Group
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from sshs.app import App
from sshs.errors import ConfigError, ExecError, TemplateError
from sshs.ssh_config import Host
from sshs.terminal import TerminalSession

KEY_UP = ("\x1b[A", "\x1bOA", "\x10")  # arrow, application-mode arrow, ctrl+p
KEY_DOWN = ("\x1b[B", "\x1bOB", "\x0e")  # ctrl+n
KEY_PAGE_UP = ("\x1b[5~",)
KEY_PAGE_DOWN = ("\x1b[6~",)
KEY_ENTER = ("\r", "\n")
KEY_BACKSPACE = ("\x7f", "\x08")
KEY_CLEAR = ("\x15",)  # ctrl+u
KEY_RELOAD = ("\x12",)  # ctrl+r
KEY_ESCAPE = "\x1b"
KEY_QUIT = ("\x03", "\x04")  # ctrl+c, ctrl+d

# Rows taken by the panel border, search line, header, help and status.
CHROME_HEIGHT = 10


def host_columns(show_proxy_command: bool) -> list[tuple[str, Callable[[Host], str]]]:
    """Column headers and value getters for the host table."""
    columns = [
        ("Name", lambda h: h.name),
        ("Aliases", lambda h: ", ".join(h.aliases)),
        ("User", lambda h: h.user or ""),
        ("Destination", lambda h: h.destination),
        ("Port", lambda h: h.port or ""),
    ]
    if show_proxy_command:
        columns.append(("Proxy", lambda h: h.proxy_command or ""))
    return columns


class HostSelector:
    """Keyboard-driven view over an App's hosts."""

    def __init__(self, app: App, console: Console):
        self.app = app
        self.console = console
        self.selected = 0
        self.columns = host_columns(app.settings.show_proxy_command)
        self.widths = self._column_widths()

    def _column_widths(self) -> list[int]:
        """Widths over every host, so columns stay put while filtering."""
        widths = [len(header) for header, _ in self.columns]
        for host in self.app.hosts.all_items():
            for i, (_, getter) in enumerate(self.columns):
                widths[i] = max(widths[i], len(getter(host)))
        return widths

    def _clamp(self) -> None:
        count = len(self.app.hosts)
        self.selected = min(max(self.selected, 0), max(count - 1, 0))

    def _visible_rows(self) -> tuple[int, list[Host]]:
        hosts = self.app.current_hosts()
        height = max(self.console.height - CHROME_HEIGHT, 3)
        start = max(0, min(self.selected - height // 2, len(hosts) - height))
        return start, hosts[start : start + height]

    def render(self) -> Panel:
        """Render the current selection state."""
        table = Table(
            show_header=True,
            header_style="bold cyan",
            box=None,
            padding=(0, 2),
            expand=True,
        )

        table.add_column("", width=2)  # Selection indicator
        for (header, _), width in zip(self.columns, self.widths):
            table.add_column(header, min_width=width, no_wrap=True)

        start, rows = self._visible_rows()
        for offset, host in enumerate(rows):
            is_selected = start + offset == self.selected
            indicator = "[bold cyan]▸[/bold cyan]" if is_selected else " "
            style = "bold white on grey23" if is_selected else ""
            table.add_row(indicator, *[escape(getter(host)) for _, getter in self.columns], style=style)

        search = Text()
        search.append("Search: ", style="bold cyan")
        search.append(self.app.query)
        search.append("▏", style="dim")

        help_text = Text()
        help_text.append("↑/↓", style="bold cyan")
        help_text.append(" navigate  ", style="dim")
        help_text.append("Enter", style="bold cyan")
        help_text.append(" connect  ", style="dim")
        help_text.append("Ctrl+R", style="bold cyan")
        help_text.append(" reload  ", style="dim")
        help_text.append("Esc", style="bold cyan")
        help_text.append(" clear/quit", style="dim")

        parts = [search, Text(""), table, Text(""), help_text]
        if self.app.status:
            style = "bold red" if self.app.status_is_error else "green"
            parts.append(Text(self.app.status, style=style))

        total = sum(1 for _ in self.app.hosts.all_items())
        count = f"{len(self.app.hosts)}/{total}"
        return Panel(
            Group(*parts),
            title="[bold]SSH Hosts[/bold]",
            subtitle=f"[dim]{count}[/dim]",
            border_style="cyan",
            padding=(1, 2),
        )

    def connect(self) -> None:
        if not len(self.app.hosts):
            return
        try:
            self.app.connect(self.selected)
        except (TemplateError, ExecError) as e:
            self.app.set_status(str(e), error=True)

    def reload(self) -> None:
        try:
            self.app.reload()
        except ConfigError as e:
            self.app.set_status(f"Reload failed: {e}", error=True)
            return
        self.widths = self._column_widths()
        self._clamp()
        self.app.set_status("Configuration reloaded")

    def set_query(self, query: str) -> None:
        self.app.set_query(query)
        self._clamp()

    def handle_key(self, key: str) -> bool:
        """Apply one keypress. Returns False when the selector should close."""
        page = max(self.console.height - CHROME_HEIGHT, 1)

        if not key:  # end of input
            return False
        if key in KEY_UP:
            self.selected -= 1
        elif key in KEY_DOWN:
            self.selected += 1
        elif key in KEY_PAGE_UP:
            self.selected -= page
        elif key in KEY_PAGE_DOWN:
            self.selected += page
        elif key in KEY_ENTER:
            self.connect()
            if self.app.settings.exit_after_session:
                return False
        elif key in KEY_BACKSPACE:
            self.set_query(self.app.query[:-1])
        elif key in KEY_CLEAR:
            self.set_query("")
        elif key in KEY_RELOAD:
            self.reload()
        elif key == KEY_ESCAPE:
            if not self.app.query:
                return False
            self.set_query("")
        elif key in KEY_QUIT:
            return False
        elif key.isprintable():
            self.set_query(self.app.query + key)

        self._clamp()
        return True


def run_selector(app: App, console: Console | None = None) -> None:
    """Show the interactive selector until the user quits.

    Connecting releases the terminal to the child process and blocks until
    it exits.
    """
    console = console or Console()
    selector = HostSelector(app, console)
    terminal = TerminalSession(console)
    app.terminal = terminal

    live = Live(
        selector.render(),
        console=console,
        auto_refresh=False,
        transient=True,
    )
    terminal.live = live

    with terminal:
        while True:
            try:
                key = terminal.read_key()
            except KeyboardInterrupt:
                break
            if not selector.handle_key(key):
                break
            live.update(selector.render(), refresh=True)
