import pytest

from sshs.errors import NonZeroExitError, RenderError, SpawnError, UnknownFieldError
from sshs.session import SessionTemplates, run_session, run_template, spawn
from sshs.ssh_config import parse_ssh_config


class RecordingRunner:
    """Records every argv and returns scripted exit codes by program name."""

    def __init__(self, codes=None):
        self.codes = codes or {}
        self.calls = []

    def __call__(self, argv):
        self.calls.append(argv)
        return self.codes.get(argv[0], 0)


def test_run_template_passes_argv(make_host):
    runner = RecordingRunner()

    result = run_template("ssh -p {{port}} {{name}}", make_host(), runner)

    assert runner.calls == [["ssh", "-p", "2222", "web"]]
    assert result.success
    assert result.command.host_name == "web"


def test_run_template_nonzero_exit(make_host):
    runner = RecordingRunner({"ssh": 255})

    with pytest.raises(NonZeroExitError) as excinfo:
        run_template("ssh {{name}}", make_host(), runner)

    assert excinfo.value.return_code == 255
    assert excinfo.value.argv == ["ssh", "web"]


def test_run_template_missing_program(make_host):
    def runner(argv):
        raise FileNotFoundError(argv[0])

    with pytest.raises(SpawnError, match="command not found"):
        run_template("no-such-program {{name}}", make_host(), runner)


def test_session_runs_start_connect_end_in_order(make_host):
    runner = RecordingRunner()
    templates = SessionTemplates(
        connect="ssh {{name}}",
        on_start="notify start {{name}}",
        on_end="notify end {{name}}",
    )

    run_session(make_host(), templates, runner)

    assert runner.calls == [
        ["notify", "start", "web"],
        ["ssh", "web"],
        ["notify", "end", "web"],
    ]


def test_end_runs_once_when_connect_fails(make_host):
    runner = RecordingRunner({"ssh": 1})
    templates = SessionTemplates(connect="ssh {{name}}", on_end="cleanup {{name}}")

    with pytest.raises(NonZeroExitError):
        run_session(make_host(), templates, runner)

    assert runner.calls.count(["cleanup", "web"]) == 1


def test_end_runs_when_connect_template_is_invalid(make_host):
    runner = RecordingRunner()
    templates = SessionTemplates(connect="ssh {{bogus}}", on_end="cleanup")

    with pytest.raises(UnknownFieldError):
        run_session(make_host(), templates, runner)

    assert runner.calls == [["cleanup"]]


def test_end_failure_is_raised_when_connect_succeeded(make_host):
    runner = RecordingRunner({"cleanup": 3})
    templates = SessionTemplates(connect="ssh {{name}}", on_end="cleanup")

    with pytest.raises(NonZeroExitError) as excinfo:
        run_session(make_host(), templates, runner)

    assert excinfo.value.return_code == 3


def test_connect_error_wins_over_end_error(make_host):
    runner = RecordingRunner({"ssh": 1, "cleanup": 3})
    templates = SessionTemplates(connect="ssh {{name}}", on_end="cleanup")

    with pytest.raises(NonZeroExitError) as excinfo:
        run_session(make_host(), templates, runner)

    assert excinfo.value.return_code == 1


def test_start_failure_aborts_the_session(make_host):
    runner = RecordingRunner({"prepare": 1})
    templates = SessionTemplates(connect="ssh {{name}}", on_start="prepare", on_end="cleanup")

    with pytest.raises(NonZeroExitError):
        run_session(make_host(), templates, runner)

    assert runner.calls == [["prepare"]]


def test_empty_connect_template_is_a_render_error(make_host):
    with pytest.raises(RenderError):
        run_session(make_host(), SessionTemplates(connect=""), RecordingRunner())


def test_spawned_command_cannot_be_injected(tmp_path, make_host):
    marker = tmp_path / "pwned"
    host = make_host(hostname=f"h; touch {marker}")

    run_template("true {{hostname}}", host, spawn)

    assert not marker.exists()


def test_spawn_reports_exit_status(make_host):
    with pytest.raises(NonZeroExitError) as excinfo:
        run_template("false", make_host(), spawn)

    assert excinfo.value.return_code == 1


def test_spawn_missing_program(make_host):
    with pytest.raises(SpawnError):
        run_template("sshs-definitely-missing-program {{name}}", make_host(), spawn)


def test_injection_through_config_file(tmp_path, write_config):
    marker = tmp_path / "pwned"
    config = write_config("config", "Host evil", f"    HostName h; touch {marker}")
    (host,) = parse_ssh_config([config], optional_paths=())
    runner = RecordingRunner()

    run_template("ssh {{hostname}}", host, runner)
    run_template("true {{hostname}}", host, spawn)

    assert runner.calls == [["ssh", f"h; touch {marker}"]]
    assert not marker.exists()


@pytest.mark.parametrize(
    "template",
    [
        'sh -c "true {{hostname}}"',
        "sh -c 'true {{hostname}}'",
    ],
)
def test_field_handed_to_a_shell_cannot_be_injected(tmp_path, make_host, template):
    marker = tmp_path / "pwned"
    host = make_host(hostname=f"h; touch {marker}")

    run_template(template, host, spawn)

    assert not marker.exists()
