"""SSH config grammar: tokenizing lines and grouping them into pattern blocks."""

import functools
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable

from sshs.errors import ConfigSyntaxError

LOG = logging.getLogger(__name__)

_KEYWORD_RE = re.compile(r"\s*([^\s=]+)\s*(?:=\s*)?(.*)$")
_WILDCARD_CHARS = frozenset("*?")


class Keyword(str, Enum):
    """Keywords with dedicated handling in the parser and resolver."""

    HOST = "Host"
    MATCH = "Match"
    INCLUDE = "Include"
    HOSTNAME = "HostName"
    USER = "User"
    PORT = "Port"
    PROXY_COMMAND = "ProxyCommand"


# Canonical spellings of the OpenSSH client keywords sshs knows about.
_CANONICAL_NAMES = [k.value for k in Keyword] + [
    "AddKeysToAgent",
    "AddressFamily",
    "BatchMode",
    "BindAddress",
    "BindInterface",
    "CanonicalDomains",
    "CanonicalizeFallbackLocal",
    "CanonicalizeHostname",
    "CanonicalizeMaxDots",
    "CanonicalizePermittedCNAMEs",
    "CASignatureAlgorithms",
    "CertificateFile",
    "CheckHostIP",
    "Ciphers",
    "ClearAllForwardings",
    "Compression",
    "ConnectionAttempts",
    "ConnectTimeout",
    "ControlMaster",
    "ControlPath",
    "ControlPersist",
    "DynamicForward",
    "EscapeChar",
    "ExitOnForwardFailure",
    "FingerprintHash",
    "ForwardAgent",
    "ForwardX11",
    "ForwardX11Timeout",
    "ForwardX11Trusted",
    "GatewayPorts",
    "GlobalKnownHostsFile",
    "GSSAPIAuthentication",
    "GSSAPIDelegateCredentials",
    "HashKnownHosts",
    "HostbasedAuthentication",
    "HostKeyAlgorithms",
    "HostKeyAlias",
    "IdentitiesOnly",
    "IdentityAgent",
    "IdentityFile",
    "IgnoreUnknown",
    "IPQoS",
    "KbdInteractiveAuthentication",
    "KexAlgorithms",
    "KnownHostsCommand",
    "LocalCommand",
    "LocalForward",
    "LogLevel",
    "MACs",
    "NoHostAuthenticationForLocalhost",
    "NumberOfPasswordPrompts",
    "PasswordAuthentication",
    "PermitLocalCommand",
    "PKCS11Provider",
    "PreferredAuthentications",
    "ProxyJump",
    "ProxyUseFdpass",
    "PubkeyAcceptedAlgorithms",
    "PubkeyAuthentication",
    "RekeyLimit",
    "RemoteCommand",
    "RemoteForward",
    "RequestTTY",
    "SendEnv",
    "ServerAliveCountMax",
    "ServerAliveInterval",
    "SetEnv",
    "StreamLocalBindMask",
    "StreamLocalBindUnlink",
    "StrictHostKeyChecking",
    "TCPKeepAlive",
    "Tunnel",
    "TunnelDevice",
    "UpdateHostKeys",
    "UserKnownHostsFile",
    "VerifyHostKeyDNS",
    "VisualHostKey",
    "XAuthLocation",
]
CANONICAL_KEYWORDS: dict[str, str] = {name.lower(): name for name in _CANONICAL_NAMES}


def canonical_keyword(word: str) -> str:
    """Return the canonical spelling of a keyword.

    Known keywords get their OpenSSH casing; anything else is lower-cased,
    so that two spellings of the same keyword always compare equal.
    """
    return CANONICAL_KEYWORDS.get(word.lower(), word.lower())


def tokenize(text: str) -> list[str]:
    """Split an argument string on whitespace, honouring double quotes.

    Inside quotes ``\\"`` is a literal quote and ``\\\\`` a literal
    backslash. An unquoted token starting with ``#`` begins a trailing
    comment.

    Raises:
        ValueError: If a quote is left unterminated.
    """
    tokens: list[str] = []
    current: list[str] = []
    in_token = False
    in_quotes = False
    i = 0

    while i < len(text):
        char = text[i]
        if in_quotes:
            if char == "\\" and i + 1 < len(text) and text[i + 1] in '"\\':
                current.append(text[i + 1])
                i += 1
            elif char == '"':
                in_quotes = False
            else:
                current.append(char)
        elif char.isspace():
            if in_token:
                tokens.append("".join(current))
                current = []
                in_token = False
        elif char == "#" and not in_token:
            break
        elif char == '"':
            in_quotes = True
            in_token = True
        else:
            current.append(char)
            in_token = True
        i += 1

    if in_quotes:
        raise ValueError("Unterminated quote")
    if in_token:
        tokens.append("".join(current))
    return tokens


def split_keyword(line: str) -> tuple[str, str]:
    """Split a config line into its keyword and the raw argument text.

    Accepts both ``Keyword value`` and ``Keyword=value``.

    Raises:
        ValueError: If the line has no keyword.
    """
    match = _KEYWORD_RE.match(line)
    if match is None:
        raise ValueError(f"Unable to parse line: '{line.strip()}'")
    keyword, rest = match.groups()
    return keyword, rest.strip()


def split_line(line: str) -> tuple[str, list[str]]:
    """Split a config line into its keyword and tokenized arguments.

    Raises:
        ValueError: If the line has no keyword or an unterminated quote.
    """
    keyword, rest = split_keyword(line)
    return keyword, tokenize(rest)


@dataclass(frozen=True)
class RawDirective:
    """One non-comment config line, tagged with where it came from.

    ``raw_arguments`` is the argument text exactly as written, for keywords
    whose value is a command line.
    """

    origin_file: Path
    line_number: int
    keyword: str
    arguments: tuple[str, ...]
    root_index: int = 0
    raw_arguments: str | None = None

    @property
    def value(self) -> str:
        """Arguments joined back into a single value."""
        return " ".join(self.arguments)

    @property
    def raw_value(self) -> str:
        """The argument text as written, falling back to ``value``."""
        if self.raw_arguments is None:
            return self.value
        return self.raw_arguments


@dataclass(frozen=True)
class Pattern:
    """A single Host pattern, possibly negated."""

    negated: bool
    glob: str

    @property
    def is_wildcard(self) -> bool:
        return any(char in _WILDCARD_CHARS for char in self.glob)

    @property
    def is_literal(self) -> bool:
        """True for a positive pattern that names exactly one alias."""
        return not self.negated and not self.is_wildcard

    def matches(self, alias: str) -> bool:
        """Glob-match ``alias`` ignoring case and the negation flag."""
        return _glob_regex(self.glob).fullmatch(alias) is not None


@functools.lru_cache(maxsize=None)
def _glob_regex(glob: str) -> re.Pattern:
    parts = []
    for char in glob:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


def parse_patterns(arguments: Iterable[str]) -> list[Pattern]:
    """Parse a comma-or-whitespace separated Host pattern list.

    Raises:
        ValueError: On an empty negation (``!`` alone).
    """
    patterns = []
    for argument in arguments:
        for token in argument.split(","):
            token = token.strip()
            if not token:
                continue
            if token.startswith("!"):
                if len(token) == 1:
                    raise ValueError("Empty negated pattern")
                patterns.append(Pattern(negated=True, glob=token[1:]))
            else:
                patterns.append(Pattern(negated=False, glob=token))
    return patterns


def _match_patterns(arguments: tuple[str, ...]) -> list[Pattern]:
    """Translate Match criteria into host patterns.

    Only criteria that can be decided from the alias alone are supported.
    Anything else yields no patterns, so the block never applies.
    """
    criteria = [arg.lower() for arg in arguments]
    if criteria == ["all"]:
        return [Pattern(negated=False, glob="*")]

    patterns: list[Pattern] = []
    i = 0
    while i < len(criteria):
        criterion = criteria[i]
        if criterion in ("host", "originalhost") and i + 1 < len(arguments):
            patterns.extend(parse_patterns([arguments[i + 1]]))
            i += 2
        else:
            LOG.debug("Match criterion '%s' cannot be evaluated, block ignored", criterion)
            return []
    return patterns


@dataclass(frozen=True)
class PatternBlock:
    """A Host or Match section and the directives that follow it."""

    patterns: tuple[Pattern, ...]
    directives: tuple[RawDirective, ...]
    source_order: int
    kind: Keyword | None = None

    @property
    def is_host(self) -> bool:
        return self.kind is Keyword.HOST

    def applies_to(self, alias: str) -> bool:
        """True if a positive pattern matches and no negated one does."""
        matched = False
        for pattern in self.patterns:
            if pattern.matches(alias):
                if pattern.negated:
                    return False
                matched = True
        return matched


@dataclass
class _OpenBlock:
    patterns: list[Pattern]
    kind: Keyword | None
    directives: list[RawDirective] = field(default_factory=list)


def parse(lines: Iterable[RawDirective]) -> list[PatternBlock]:
    """Group directives into pattern blocks in source order.

    Lines of a root file before its first Host or Match go into an implicit
    block matching every alias.

    Raises:
        ConfigSyntaxError: On a Host line without patterns or a directive
            without arguments.
    """
    blocks: list[PatternBlock] = []
    current: _OpenBlock | None = None
    current_root: int | None = None

    def close() -> None:
        if current is None:
            return
        blocks.append(
            PatternBlock(
                patterns=tuple(current.patterns),
                directives=tuple(current.directives),
                source_order=len(blocks),
                kind=current.kind,
            )
        )

    for directive in lines:
        if directive.root_index != current_root:
            close()
            current = None
            current_root = directive.root_index

        keyword = canonical_keyword(directive.keyword)

        if keyword == Keyword.HOST.value:
            try:
                patterns = parse_patterns(directive.arguments)
            except ValueError as exc:
                raise ConfigSyntaxError(
                    str(exc), directive.origin_file, directive.line_number
                ) from exc
            if not patterns:
                raise ConfigSyntaxError(
                    "Host directive without patterns",
                    directive.origin_file,
                    directive.line_number,
                )
            close()
            current = _OpenBlock(patterns, Keyword.HOST)

        elif keyword == Keyword.MATCH.value:
            if not directive.arguments:
                raise ConfigSyntaxError(
                    "Match directive without criteria",
                    directive.origin_file,
                    directive.line_number,
                )
            try:
                patterns = _match_patterns(directive.arguments)
            except ValueError as exc:
                raise ConfigSyntaxError(
                    str(exc), directive.origin_file, directive.line_number
                ) from exc
            close()
            current = _OpenBlock(patterns, Keyword.MATCH)

        else:
            if not directive.arguments:
                raise ConfigSyntaxError(
                    f"Missing argument for '{directive.keyword}'",
                    directive.origin_file,
                    directive.line_number,
                )
            if current is None:
                current = _OpenBlock([Pattern(negated=False, glob="*")], None)
            current.directives.append(directive)

    close()
    return blocks
