"""Error taxonomy for sshs.

Error hierarchy:
- SshsError (base)
  - ConfigError (fatal at startup, carries file/line)
    - ConfigIOError
    - ConfigSyntaxError
    - IncludeTooDeepError
    - NoAliasesError
  - TemplateError (fatal to one connect attempt only)
    - UnknownFieldError
    - RenderError
  - ExecError
    - SpawnError
    - NonZeroExitError (reported as status, not fatal)
  - TerminalError (aggregated causes from suspend/resume)
"""

from pathlib import Path


class SshsError(Exception):
    """Base exception for all sshs errors."""


class ConfigError(SshsError):
    """Failure while loading or resolving SSH configuration."""

    def __init__(
        self,
        message: str,
        path: Path | str | None = None,
        line: int | None = None,
    ):
        self.message = message
        self.path = Path(path) if path is not None else None
        self.line = line
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.path is None:
            return self.message
        if self.line is None:
            return f"{self.path}: {self.message}"
        return f"{self.path}:{self.line}: {self.message}"


class ConfigIOError(ConfigError):
    """A config file could not be read."""


class ConfigSyntaxError(ConfigError):
    """A config line could not be parsed."""


class IncludeTooDeepError(ConfigError):
    """Include nesting exceeded the depth limit or formed a cycle."""


class NoAliasesError(ConfigError):
    """No Host pattern list yielded a single literal alias."""


class TemplateError(SshsError):
    """A command template could not be rendered."""


class UnknownFieldError(TemplateError):
    """A template placeholder names a field hosts do not have."""

    def __init__(self, field: str, template: str):
        self.field = field
        self.template = template
        super().__init__(f"Unknown template field '{field}' in: {template}")


class RenderError(TemplateError):
    """A template is malformed."""


class ExecError(SshsError):
    """A rendered command failed to run."""

    def __init__(self, message: str, argv: list[str] | None = None):
        self.argv = list(argv) if argv else []
        super().__init__(message)


class SpawnError(ExecError):
    """The command could not be started."""


class NonZeroExitError(ExecError):
    """The command ran and exited with a non-zero status."""

    def __init__(self, return_code: int, argv: list[str] | None = None):
        self.return_code = return_code
        super().__init__(f"Command exited with status {return_code}", argv)


class TerminalError(SshsError):
    """One or more terminal restoration steps failed.

    Every step is still attempted; the failures are collected here.
    """

    def __init__(self, action: str, causes: list[Exception], steps: list[str]):
        self.action = action
        self.causes = list(causes)
        self.steps = list(steps)
        details = "; ".join(
            f"failed to {step}: {cause}" for step, cause in zip(self.steps, self.causes)
        )
        super().__init__(f"Terminal {action} errors: {details}")
