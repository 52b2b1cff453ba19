"""Resolving parsed SSH config blocks into connectable hosts."""

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping

from sshs.errors import NoAliasesError
from sshs.loader import DEFAULT_CONFIG_PATHS, DEFAULT_SYSTEM_SSH_CONFIG, load
from sshs.parser import Keyword, PatternBlock, canonical_keyword, parse

LOG = logging.getLogger(__name__)

# Keywords whose values accumulate across every applying block.
LIST_VALUED_KEYWORDS = frozenset(
    {
        "IdentityFile",
        "CertificateFile",
        "LocalForward",
        "RemoteForward",
        "DynamicForward",
        "SendEnv",
        "SetEnv",
    }
)

# Keywords whose value is a command line, kept exactly as written.
COMMAND_KEYWORDS = frozenset(
    {
        "ProxyCommand",
        "LocalCommand",
        "RemoteCommand",
        "KnownHostsCommand",
    }
)

_MODELED_FIELDS = {
    Keyword.HOSTNAME.value: "hostname",
    Keyword.USER.value: "user",
    Keyword.PORT.value: "port",
    Keyword.PROXY_COMMAND.value: "proxy_command",
}


@dataclass(frozen=True)
class Host:
    """A resolved SSH host, ready to be displayed and connected to."""

    name: str
    aliases: tuple[str, ...] = ()
    hostname: str | None = None
    user: str | None = None
    port: str | None = None
    proxy_command: str | None = None
    extra: Mapping[str, str] = field(default_factory=dict, hash=False)
    lists: Mapping[str, tuple[str, ...]] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))
        object.__setattr__(
            self,
            "lists",
            MappingProxyType({key: tuple(values) for key, values in self.lists.items()}),
        )

    @property
    def destination(self) -> str:
        """The address to connect to; the host name when HostName is unset."""
        return self.hostname or self.name


@dataclass(frozen=True)
class AliasGroup:
    """The literal names one Host line introduced."""

    name: str
    aliases: tuple[str, ...]


def discover_aliases(blocks: Iterable[PatternBlock]) -> list[AliasGroup]:
    """Collect alias groups from Host lines in first-appearance order.

    The first literal pattern not claimed by an earlier group becomes the
    group's name; its other unclaimed literals become aliases. Wildcard and
    negated patterns never introduce a name.
    """
    seen: set[str] = set()
    groups: list[AliasGroup] = []

    for block in blocks:
        if not block.is_host:
            continue
        fresh = []
        for pattern in block.patterns:
            if pattern.is_literal and pattern.glob not in seen:
                seen.add(pattern.glob)
                fresh.append(pattern.glob)
        if fresh:
            groups.append(AliasGroup(name=fresh[0], aliases=tuple(fresh[1:])))

    return groups


def resolve_host(group: AliasGroup, blocks: Iterable[PatternBlock]) -> Host:
    """Merge every block that applies to ``group.name``, first value wins."""
    single: dict[str, str] = {}
    multi: dict[str, list[str]] = {}

    for block in sorted(blocks, key=lambda b: b.source_order):
        if not block.applies_to(group.name):
            continue
        for directive in block.directives:
            keyword = canonical_keyword(directive.keyword)
            if keyword in LIST_VALUED_KEYWORDS:
                multi.setdefault(keyword, []).append(directive.value)
            elif keyword in single:
                continue
            elif keyword in COMMAND_KEYWORDS:
                single[keyword] = directive.raw_value
            else:
                single[keyword] = directive.value

    modeled = {attr: single.pop(kw, None) for kw, attr in _MODELED_FIELDS.items()}
    if modeled["proxy_command"] is not None and modeled["proxy_command"].lower() == "none":
        modeled["proxy_command"] = None

    return Host(
        name=group.name,
        aliases=group.aliases,
        extra=single,
        lists=multi,
        **modeled,
    )


def _split_aliases(host: Host, blocks: list[PatternBlock]) -> list[Host]:
    """Give every alias that resolves differently from ``host`` its own host.

    Returns ``host`` with the remaining aliases, followed by the split-off
    hosts in alias order.
    """
    kept: list[str] = []
    split: list[Host] = []
    for alias in host.aliases:
        own = resolve_host(AliasGroup(name=alias, aliases=()), blocks)
        if replace(own, name=host.name, aliases=host.aliases) == host:
            kept.append(alias)
        else:
            LOG.debug("Alias %s of %s has its own settings", alias, host.name)
            split.append(own)
    return [replace(host, aliases=tuple(kept)), *split]


def resolve(blocks: Iterable[PatternBlock]) -> list[Host]:
    """Resolve pattern blocks into hosts, one per alias group.

    An alias whose blocks give it different settings from its group's name
    becomes a host of its own, right after the group.

    Args:
        blocks: Parsed blocks, in any order; precedence follows source_order.

    Returns:
        Hosts in alias-discovery order.

    Raises:
        NoAliasesError: If no Host line names a literal alias.
    """
    blocks = sorted(blocks, key=lambda b: b.source_order)
    groups = discover_aliases(blocks)
    if not groups:
        raise NoAliasesError("No host aliases found in SSH configuration")

    hosts = []
    for group in groups:
        hosts.extend(_split_aliases(resolve_host(group, blocks), blocks))
    LOG.debug("Resolved %d hosts from %d blocks", len(hosts), len(blocks))
    return hosts


def parse_ssh_config(
    config_paths: Iterable[str | Path] | None = None,
    optional_paths: Iterable[str | Path] = (DEFAULT_SYSTEM_SSH_CONFIG,),
) -> list[Host]:
    """Load, parse and resolve SSH config files.

    Args:
        config_paths: Paths to SSH config files. Defaults to the user config
            followed by the system-wide config.
        optional_paths: Paths silently skipped when missing.

    Returns:
        List of Host objects representing configured hosts.
    """
    if config_paths is None:
        config_paths = DEFAULT_CONFIG_PATHS
    return resolve(parse(load(config_paths, optional_paths)))


def get_host_by_name(name: str, hosts: Iterable[Host]) -> Host | None:
    """Find a host by its name or one of its aliases.

    Args:
        name: The host name or alias to find.
        hosts: Resolved hosts to search.

    Returns:
        Host if found, None otherwise.
    """
    for host in hosts:
        if host.name == name or name in host.aliases:
            return host
    return None
