"""Rendering command templates against resolved hosts.

Templates are operator-authored and may use any shell quoting. Host fields
come from config files and are untrusted: each one is inserted as a
ShellArgument. Outside quotes the value becomes one ``shlex.quote``d word.
Inside a template's double or single quotes, the ``shlex.quote``d word is
written as literal text of that quote, so the argument still carries a
quoted word after ``shlex.split``. A template that hands the argument to a
shell (``sh -c "ssh {{name}}"``) therefore still sees the value as a single
word.
"""

import re
import shlex
from dataclasses import dataclass
from enum import Enum

from sshs.errors import RenderError, UnknownFieldError
from sshs.ssh_config import Host

DEFAULT_SSH_TEMPLATE = "ssh {{name}}"

_PLACEHOLDER_RE = re.compile(
    r"\{\{\{\s*(?P<triple>[A-Za-z_][A-Za-z0-9_]*)\s*\}\}\}"
    r"|\{\{\s*(?P<double>[A-Za-z_][A-Za-z0-9_]*)\s*\}\}"
)
# Characters shlex.split unescapes inside double quotes.
_DOUBLE_QUOTE_SPECIAL_RE = re.compile(r'(["\\])')


class QuoteContext(Enum):
    """Shell quoting state of the template at a placeholder."""

    BARE = "bare"
    DOUBLE = "double"
    SINGLE = "single"


class ShellArgument:
    """A field value quoted for the template context it is inserted into.

    Quoting happens only here; the rendered line is built exclusively from
    template literals and ShellArgument instances.
    """

    __slots__ = ("raw", "_quoted")

    def __init__(self, raw: str, context: QuoteContext = QuoteContext.BARE):
        self.raw = raw
        quoted = shlex.quote(raw)
        if context is QuoteContext.DOUBLE:
            quoted = _DOUBLE_QUOTE_SPECIAL_RE.sub(r"\\\1", quoted)
        elif context is QuoteContext.SINGLE:
            quoted = quoted.replace("'", "'\\''")
        self._quoted = quoted

    def __str__(self) -> str:
        return self._quoted

    def __repr__(self) -> str:
        return f"ShellArgument({self.raw!r})"


def host_fields(host: Host) -> dict[str, str | None]:
    """Fields a template may reference."""
    return {
        "name": host.name,
        "aliases": ", ".join(host.aliases),
        "hostname": host.hostname,
        "destination": host.destination,
        "user": host.user,
        "port": host.port,
        "proxy_command": host.proxy_command,
    }


TEMPLATE_FIELDS = tuple(host_fields(Host(name="")).keys())


@dataclass(frozen=True)
class RenderedCommand:
    """A template rendered for one host, consumed immediately by execution."""

    line: str
    template: str
    host_name: str

    def argv(self) -> list[str]:
        """Split the rendered line into program arguments.

        Raises:
            RenderError: If the line is empty or cannot be split.
        """
        try:
            args = shlex.split(self.line)
        except ValueError as exc:
            raise RenderError(f"Failed to parse command: {self.line}") from exc
        if not args:
            raise RenderError(f"Template renders to an empty command: {self.template}")
        return args


def render(template: str, host: Host) -> str:
    """Render ``template`` with ``host``'s fields.

    Raises:
        UnknownFieldError: If a placeholder names an unknown field.
        RenderError: If the template has a malformed placeholder or leaves a
            quote open.
    """
    fields = host_fields(host)
    parts: list[str] = []
    context = QuoteContext.BARE
    i = 0

    while i < len(template):
        if template.startswith("{{", i):
            match = _PLACEHOLDER_RE.match(template, i)
            if match is None:
                raise RenderError(f"Malformed placeholder at position {i} in: {template}")
            name = match.group("triple") or match.group("double")
            if name not in fields:
                raise UnknownFieldError(name, template)
            value = fields[name] or ""
            parts.append(str(ShellArgument(value, context)))
            i = match.end()
            continue

        char = template[i]
        parts.append(char)

        if context is QuoteContext.SINGLE:
            if char == "'":
                context = QuoteContext.BARE
        elif char == "\\" and i + 1 < len(template):
            parts.append(template[i + 1])
            i += 1
        elif context is QuoteContext.DOUBLE:
            if char == '"':
                context = QuoteContext.BARE
        elif char == "'":
            context = QuoteContext.SINGLE
        elif char == '"':
            context = QuoteContext.DOUBLE
        i += 1

    if context is not QuoteContext.BARE:
        raise RenderError(f"Unterminated {context.value} quote in: {template}")
    return "".join(parts)


def render_command(template: str, host: Host) -> RenderedCommand:
    """Render ``template`` into a RenderedCommand for ``host``."""
    return RenderedCommand(line=render(template, host), template=template, host_name=host.name)
