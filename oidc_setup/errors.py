"""Exceptions raised by the setup stages.

Each exception carries the process exit code ``cli.main`` returns for it.
"""


class SetupError(Exception):
    """Fatal failure; the run stops and exits non-zero."""

    exit_code = 1


class UsageError(SetupError):
    """Missing or invalid arguments, or a missing input file."""


class MissingDependencyError(SetupError):
    """A required command-line tool is not installed."""

    def __init__(self, tool: str):
        super().__init__(
            f"The '{tool}' command is required but not installed or not on PATH."
        )
        self.tool = tool


class CommandError(SetupError):
    """An external command exited with a non-zero status."""

    def __init__(self, cmd: list, returncode: int, stderr: str = "", stdout: str = ""):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        self.stdout = (stdout or "").strip()
        detail = self.stderr or self.stdout or f"exit status {returncode}"
        super().__init__(f"Command failed: {' '.join(self.cmd)}\n{detail}")

    @property
    def already_exists(self) -> bool:
        """True when the resource the command tried to create is already there."""
        text = f"{self.stderr}\n{self.stdout}".lower()
        return "already exists" in text or "roleassignmentexists" in text


class ScopeListingError(SetupError):
    """No usable authorization scope could be listed."""


class UnsupportedEnvironmentError(SetupError):
    """The tool refuses to run in this execution environment."""

    exit_code = 0


class OperatorDeclined(SetupError):
    """The operator chose not to continue."""

    exit_code = 0
