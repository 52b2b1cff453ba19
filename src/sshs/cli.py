"""CLI commands for sshs."""

import logging
import sys
from dataclasses import asdict, dataclass

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from sshs import __version__
from sshs.app import App, load_hosts
from sshs.config import Settings, load_settings, save_settings
from sshs.errors import (
    ConfigError,
    ExecError,
    NoAliasesError,
    NonZeroExitError,
    TemplateError,
)
from sshs.searchable import search_hosts
from sshs.selector import run_selector
from sshs.session import SessionTemplates, run_session
from sshs.ssh_config import Host, get_host_by_name
from sshs.template import render

app = typer.Typer(
    name="sshs",
    help="Terminal user interface for SSH: search your SSH config and connect.",
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)


@dataclass
class State:
    """Options shared by every command."""

    settings: Settings
    query: str = ""


def version_callback(value: bool):
    if value:
        console.print(f"[bold cyan]sshs[/bold cyan] version {__version__}")
        raise typer.Exit()


def setup_logging(debug: bool) -> None:
    """Send log records through rich, at DEBUG with --debug, else WARNING."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=debug)],
        force=True,
    )


def _fail(message: str, title: str = "Error") -> typer.Exit:
    err_console.print(Panel(message, title=title, border_style="red"))
    return typer.Exit(1)


def _config_failure(error: ConfigError) -> typer.Exit:
    if isinstance(error, NoAliasesError):
        return _fail(
            "[red]No SSH hosts found[/red]\n\n"
            "Add some [bold]Host[/bold] entries to your SSH config file first."
        )
    return _fail(f"[red]Failed to load SSH configuration[/red]\n\n{escape(str(error))}")


def _load_hosts(settings: Settings) -> list[Host]:
    try:
        return load_hosts(settings)
    except ConfigError as e:
        raise _config_failure(e)


def _require_host(settings: Settings, name: str) -> Host:
    host = get_host_by_name(name, _load_hosts(settings))
    if host is None:
        raise _fail(f"[red]Host '{escape(name)}' not found in SSH config[/red]")
    return host


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    config: list[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to an SSH config file (repeatable; the first is primary).",
    ),
    search: str = typer.Option(None, "--search", "-s", help="Initial host search filter."),
    sort: bool = typer.Option(None, "--sort/--no-sort", help="Sort hosts by name."),
    template: str = typer.Option(
        None, "--template", "-t", help="Template of the command to execute."
    ),
    on_session_start_template: str = typer.Option(
        None,
        "--on-session-start-template",
        metavar="TEMPLATE",
        help="Template of a command to execute before the session starts.",
    ),
    on_session_end_template: str = typer.Option(
        None,
        "--on-session-end-template",
        metavar="TEMPLATE",
        help="Template of a command to execute after the session ends.",
    ),
    show_proxy_command: bool = typer.Option(
        None,
        "--show-proxy-command/--hide-proxy-command",
        help="Show the ProxyCommand column.",
    ),
    exit_after_session: bool = typer.Option(
        None, "--exit/--no-exit", "-e", help="Exit after the SSH session ends."
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
):
    """Search the hosts of your SSH config and connect to one."""
    setup_logging(debug)

    settings = load_settings().with_overrides(
        config_paths=list(config) if config else None,
        template=template,
        on_session_start_template=on_session_start_template,
        on_session_end_template=on_session_end_template,
        sort_by_name=sort,
        show_proxy_command=show_proxy_command,
        exit_after_session=exit_after_session,
    )
    ctx.obj = State(settings=settings, query=search or "")

    if ctx.invoked_subcommand is not None or ctx.resilient_parsing:
        return

    if not sys.stdin.isatty():
        raise _fail(
            "[red]Interactive mode needs a terminal.[/red]\n\n"
            "Use [bold cyan]sshs list[/bold cyan] or "
            "[bold cyan]sshs connect HOST[/bold cyan] instead."
        )

    try:
        interactive = App(settings, query=ctx.obj.query, console=err_console)
    except ConfigError as e:
        raise _config_failure(e)
    run_selector(interactive, console)


@app.command("list")
def list_hosts(
    ctx: typer.Context,
    query: str = typer.Argument(None, help="Fuzzy filter (overrides --search)."),
):
    """List the hosts resolved from your SSH config."""
    state: State = ctx.obj
    hosts = search_hosts(_load_hosts(state.settings), query if query is not None else state.query)

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Name", style="cyan")
    table.add_column("Aliases", style="dim")
    table.add_column("User")
    table.add_column("Destination", style="green")
    table.add_column("Port")
    if state.settings.show_proxy_command:
        table.add_column("Proxy", style="dim")

    for host in hosts:
        row = [
            host.name,
            ", ".join(host.aliases),
            host.user or "-",
            host.destination,
            host.port or "22",
        ]
        if state.settings.show_proxy_command:
            row.append(host.proxy_command or "-")
        table.add_row(*[escape(value) for value in row])

    console.print(
        Panel(
            table,
            title=f"[bold]SSH Hosts[/bold] [dim]({len(hosts)})[/dim]",
            border_style="cyan",
        )
    )


@app.command()
def show(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Host name or alias"),
):
    """Show every resolved field of one host."""
    host = _require_host(ctx.obj.settings, name)

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="dim")
    table.add_column("Value", style="bold")

    rows = [("Host", host.name)]
    if host.aliases:
        rows.append(("Aliases", ", ".join(host.aliases)))
    rows.append(("HostName", host.destination))
    if host.user:
        rows.append(("User", host.user))
    if host.port:
        rows.append(("Port", host.port))
    if host.proxy_command:
        rows.append(("ProxyCommand", host.proxy_command))
    rows.extend(host.extra.items())
    rows.extend((keyword, "\n".join(values)) for keyword, values in host.lists.items())

    for key, value in rows:
        table.add_row(escape(key), escape(value))

    console.print(
        Panel(
            table,
            title=f"[bold green]{escape(host.name)}[/bold green]",
            border_style="green",
        )
    )


@app.command()
def connect(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Host name or alias"),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-n", help="Print the rendered commands without running them"
    ),
):
    """Connect to a host without the interactive selector."""
    settings: Settings = ctx.obj.settings
    host = _require_host(settings, name)
    templates = SessionTemplates(
        connect=settings.template,
        on_start=settings.on_session_start_template,
        on_end=settings.on_session_end_template,
    )

    if dry_run:
        steps = [
            ("start", templates.on_start),
            ("connect", templates.connect),
            ("end", templates.on_end),
        ]
        try:
            for label, template in steps:
                if template:
                    console.print(f"[dim]{label}:[/dim] {escape(render(template, host))}", highlight=False)
        except TemplateError as e:
            raise _fail(f"[red]Invalid template[/red]\n\n{escape(str(e))}")
        return

    console.print(f"[dim]Connecting to[/dim] [cyan]{escape(host.name)}[/cyan]")
    try:
        run_session(host, templates)
    except TemplateError as e:
        raise _fail(f"[red]Invalid template[/red]\n\n{escape(str(e))}")
    except NonZeroExitError as e:
        console.print(f"[bold red]✗[/bold red] {escape(str(e))}")
        raise typer.Exit(e.return_code)
    except ExecError as e:
        console.print(f"[bold red]✗[/bold red] {escape(str(e))}")
        raise typer.Exit(1)

    console.print(f"[bold green]✓[/bold green] Session with [cyan]{escape(host.name)}[/cyan] ended")


@app.command()
def defaults(
    ctx: typer.Context,
    save: bool = typer.Option(
        False, "--save", help="Store the effective settings, including given flags"
    ),
):
    """Show the effective settings, or save them as the new defaults."""
    settings: Settings = ctx.obj.settings

    if save:
        path = save_settings(settings)
        console.print(f"[bold green]✓[/bold green] Saved settings to [cyan]{path}[/cyan]")
        return

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="dim")
    table.add_column("Value", style="bold")
    for key, value in asdict(settings).items():
        if isinstance(value, list):
            value = "\n".join(value)
        table.add_row(key, "-" if value is None else escape(str(value)))

    console.print(
        Panel(table, title="[bold]Settings[/bold]", border_style="cyan"),
        highlight=False,
    )


if __name__ == "__main__":
    app()
