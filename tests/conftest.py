import pytest

from sshs.ssh_config import Host


@pytest.fixture
def write_config(tmp_path):
    """Write an SSH config file under tmp_path and return its path."""

    def _write(name, *lines):
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("\n".join(lines) + "\n")
        return path

    return _write


@pytest.fixture
def make_host():
    """Build a Host with sensible defaults for the fields a test doesn't care about."""

    def _make(**overrides):
        defaults = {"name": "web", "hostname": "web.internal", "user": "deploy", "port": "2222"}
        defaults.update(overrides)
        return Host(**defaults)

    return _make


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Keep every test away from the real settings file."""
    path = tmp_path / "settings" / "config.json"
    monkeypatch.setenv("SSHS_SETTINGS", str(path))
    return path
