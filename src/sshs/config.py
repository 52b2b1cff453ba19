"""Settings storage for sshs."""

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path

from sshs.loader import DEFAULT_CONFIG_PATHS
from sshs.template import DEFAULT_SSH_TEMPLATE

LOG = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "sshs"
CONFIG_FILE = CONFIG_DIR / "config.json"


def settings_path() -> Path:
    """Location of the settings file; ``SSHS_SETTINGS`` overrides it."""
    override = os.environ.get("SSHS_SETTINGS")
    return Path(override) if override else CONFIG_FILE


@dataclass
class Settings:
    """Application settings."""

    config_paths: list[str] = field(default_factory=lambda: list(DEFAULT_CONFIG_PATHS))
    template: str = DEFAULT_SSH_TEMPLATE
    on_session_start_template: str | None = None
    on_session_end_template: str | None = None
    sort_by_name: bool = True
    show_proxy_command: bool = False
    exit_after_session: bool = False

    def with_overrides(self, **overrides) -> "Settings":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from disk.

    Returns:
        Settings with loaded values, or defaults if no file exists or it
        cannot be read.
    """
    path = path or settings_path()
    if not path.exists():
        return Settings()

    try:
        with open(path, "r") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        LOG.warning("Ignoring unreadable settings file %s: %s", path, e)
        return Settings()

    if not isinstance(data, dict):
        LOG.warning("Ignoring settings file %s: expected a JSON object", path)
        return Settings()

    known = {f.name for f in fields(Settings)}
    return Settings().with_overrides(**{k: v for k, v in data.items() if k in known})


def save_settings(settings: Settings, path: Path | None = None) -> Path:
    """Save settings to disk.

    Returns:
        The path written.
    """
    path = path or settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        json.dump(asdict(settings), f, indent=2)
    return path
