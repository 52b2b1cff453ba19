"""Reading SSH config files and flattening their Include directives."""

import glob
import logging
import os
from pathlib import Path
from typing import Iterable

from sshs.errors import ConfigIOError, ConfigSyntaxError, IncludeTooDeepError
from sshs.parser import Keyword, RawDirective, canonical_keyword, split_keyword, tokenize

LOG = logging.getLogger(__name__)

DEFAULT_SYSTEM_SSH_CONFIG = "/etc/ssh/ssh_config"
DEFAULT_USER_SSH_CONFIG = "~/.ssh/config"
DEFAULT_CONFIG_PATHS = (DEFAULT_USER_SSH_CONFIG, DEFAULT_SYSTEM_SSH_CONFIG)

# Same nesting limit as the OpenSSH client.
MAX_INCLUDE_DEPTH = 16


def expand_path(path: str | Path) -> Path:
    """Expand ``~`` and return an absolute path."""
    return Path(os.path.expanduser(str(path))).absolute()


def load(
    root_paths: Iterable[str | Path],
    optional_paths: Iterable[str | Path] = (DEFAULT_SYSTEM_SSH_CONFIG,),
) -> list[RawDirective]:
    """Load root config files into one flat, ordered directive list.

    Args:
        root_paths: Config files to read, in order. The first is primary.
        optional_paths: Root paths that are silently skipped when missing.

    Returns:
        Directives in file-then-line order across the flattened include tree.

    Raises:
        ConfigIOError: If a root or included file cannot be read.
        ConfigSyntaxError: If a line cannot be tokenized.
        IncludeTooDeepError: If includes nest too deeply or form a cycle.
    """
    optional = {expand_path(p) for p in optional_paths}
    directives: list[RawDirective] = []

    for root_index, raw_path in enumerate(root_paths):
        path = expand_path(raw_path)
        if path in optional and not path.exists():
            LOG.debug("Skipping missing optional config %s", path)
            continue
        _load_file(path, root_index, [], directives)

    return directives


def _read_lines(path: Path) -> list[str]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read().splitlines()
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigIOError(f"Unable to read config: {exc}", path) from exc


def _load_file(
    path: Path,
    root_index: int,
    stack: list[Path],
    out: list[RawDirective],
) -> None:
    """Append the directives of ``path`` to ``out``, expanding includes in place."""
    LOG.debug("Reading %s (depth %d)", path, len(stack))
    stack = stack + [path]

    for line_number, line in enumerate(_read_lines(path), 1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        try:
            keyword, raw_arguments = split_keyword(stripped)
            arguments = tokenize(raw_arguments)
        except ValueError as exc:
            raise ConfigSyntaxError(str(exc), path, line_number) from exc

        if canonical_keyword(keyword) == Keyword.INCLUDE.value:
            if not arguments:
                raise ConfigSyntaxError("Include without a pattern", path, line_number)
            for included in _expand_include(arguments, path.parent):
                if included in stack:
                    raise IncludeTooDeepError(
                        f"Include cycle through {included}", path, line_number
                    )
                if len(stack) > MAX_INCLUDE_DEPTH:
                    raise IncludeTooDeepError(
                        f"Include nested deeper than {MAX_INCLUDE_DEPTH} levels",
                        path,
                        line_number,
                    )
                _load_file(included, root_index, stack, out)
            continue

        out.append(
            RawDirective(
                origin_file=path,
                line_number=line_number,
                keyword=keyword,
                arguments=tuple(arguments),
                root_index=root_index,
                raw_arguments=raw_arguments,
            )
        )


def _expand_include(patterns: list[str], base_dir: Path) -> list[Path]:
    """Resolve Include patterns relative to the including file's directory.

    Each pattern's matches are visited in lexical order. A pattern that
    matches nothing is not an error.
    """
    resolved: list[Path] = []
    for pattern in patterns:
        expanded = os.path.expanduser(pattern)
        if not os.path.isabs(expanded):
            expanded = str(base_dir / expanded)
        matches = sorted(glob.glob(expanded))
        if not matches:
            LOG.debug("Include pattern %s matched no files", expanded)
        for match in matches:
            match_path = Path(match)
            if match_path.is_dir():
                continue
            resolved.append(match_path.absolute())
    return resolved
