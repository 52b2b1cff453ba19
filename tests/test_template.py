import shlex

import pytest

from sshs.errors import RenderError, UnknownFieldError
from sshs.template import (
    DEFAULT_SSH_TEMPLATE,
    QuoteContext,
    ShellArgument,
    TEMPLATE_FIELDS,
    render,
    render_command,
)

PAYLOADS = [
    "host; rm -rf ~",
    "$(touch pwned)",
    "`id`",
    "a'b",
    'a"b',
    "with space",
    "back\\slash",
    "new\nline",
    "'; echo hi; '",
    '"; echo hi; "',
]


def test_default_template(make_host):
    assert render(DEFAULT_SSH_TEMPLATE, make_host()) == "ssh web"


def test_fields_render(make_host):
    line = render("ssh -p {{port}} {{user}}@{{destination}}", make_host())

    assert shlex.split(line) == ["ssh", "-p", "2222", "deploy@web.internal"]


def test_triple_braces_are_accepted(make_host):
    assert render("ssh {{{name}}}", make_host()) == "ssh web"


def test_template_fields():
    assert set(TEMPLATE_FIELDS) == {
        "name",
        "aliases",
        "hostname",
        "destination",
        "user",
        "port",
        "proxy_command",
    }


@pytest.mark.parametrize("payload", PAYLOADS)
def test_bare_placeholder_stays_one_argument(make_host, payload):
    argv = render_command("ssh {{hostname}}", make_host(hostname=payload)).argv()

    assert argv == ["ssh", payload]


@pytest.mark.parametrize("payload", PAYLOADS)
def test_double_quoted_placeholder_stays_one_shell_word(make_host, payload):
    argv = render_command('sh -c "ssh {{hostname}}"', make_host(hostname=payload)).argv()

    assert argv[:2] == ["sh", "-c"]
    assert shlex.split(argv[2]) == ["ssh", payload]


@pytest.mark.parametrize("payload", PAYLOADS)
def test_single_quoted_placeholder_stays_one_shell_word(make_host, payload):
    argv = render_command("sh -c 'ssh {{hostname}}'", make_host(hostname=payload)).argv()

    assert argv[:2] == ["sh", "-c"]
    assert shlex.split(argv[2]) == ["ssh", payload]


def test_quoted_placeholder_with_plain_value_is_unchanged(make_host):
    argv = render_command('printf "to:{{name}}!"', make_host(name="web-1")).argv()

    assert argv == ["printf", "to:web-1!"]


def test_unset_field_renders_as_empty_argument(make_host):
    argv = render_command("connect {{user}} {{name}}", make_host(user=None)).argv()

    assert argv == ["connect", "", "web"]


def test_shell_argument_contexts():
    assert str(ShellArgument("a b")) == "'a b'"
    assert str(ShellArgument("a b", QuoteContext.DOUBLE)) == "'a b'"
    assert str(ShellArgument('say "hi"', QuoteContext.DOUBLE)) == "'say \\\"hi\\\"'"
    assert str(ShellArgument("plain", QuoteContext.SINGLE)) == "plain"
    assert str(ShellArgument("a b", QuoteContext.SINGLE)) == "'\\''a b'\\''"


def test_unknown_field(make_host):
    with pytest.raises(UnknownFieldError) as excinfo:
        render("ssh {{nope}}", make_host())

    assert excinfo.value.field == "nope"


def test_malformed_placeholder(make_host):
    with pytest.raises(RenderError, match="Malformed"):
        render("ssh {{name", make_host())


def test_unterminated_quote(make_host):
    with pytest.raises(RenderError, match="Unterminated"):
        render("ssh '{{name}}", make_host())


def test_empty_render_is_rejected(make_host):
    with pytest.raises(RenderError):
        render_command("   ", make_host()).argv()
