from __future__ import annotations

OUTPUT_ARTIFACT_MISSING = "Unable to locate output file"


class SandboxError(Exception):
    """Base exception for every failure raised by the sandbox.

    `category` tells callers how to map the failure onto a transport
    response: `internal` for sandbox malfunctions, `timeout` for runaway
    user code and `input` for requests rejected before execution.

    Example:
        ```python
        try:
            compile_source("fn main() {}")
        except SandboxError as exc:
            status = 504 if exc.category == "timeout" else 500
        ```
    """

    category = "internal"


class InfrastructureError(SandboxError):
    """A failure that is never attributable to the submitted source."""


class WorkspaceCreationFailed(InfrastructureError):
    """Scratch directory or output directory could not be created."""


class OutputDirPermissionFailed(InfrastructureError):
    """Output directory permissions could not be widened."""


class SourceWriteFailed(InfrastructureError):
    """Source text could not be written into the workspace."""


class SourcePermissionFailed(InfrastructureError):
    """Source file permissions could not be widened."""


class ProcessLaunchFailed(InfrastructureError):
    """The isolation runtime could not be started at all."""


class OutputReadFailed(InfrastructureError):
    """The compiled artifact exists but could not be read."""


class OutputNotText(InfrastructureError):
    """Captured stdout or stderr was not valid UTF-8."""


class UnsupportedRuntime(InfrastructureError):
    """The configured runtime does not provide the required isolation."""


class SandboxStateError(InfrastructureError):
    """A sandbox was used after it compiled once or was closed."""


class VersionReleaseMissing(InfrastructureError):
    """Release was missing from the version output."""


class VersionHashMissing(InfrastructureError):
    """Commit hash was missing from the version output."""


class VersionDateMissing(InfrastructureError):
    """Commit date was missing from the version output."""


class ExecutionTimedOut(SandboxError):
    """The sandboxed process outlived the hard timeout and was killed.

    Example:
        ```python
        raise ExecutionTimedOut(12.0)
        ```
    """

    category = "timeout"

    def __init__(self, timeout: float) -> None:
        """Store the hard timeout that elapsed.

        Example:
            ```python
            exc = ExecutionTimedOut(12.0)
            assert exc.timeout == 12.0
            ```
        """
        super().__init__(f"Compiler execution took longer than {int(timeout * 1000)} ms")
        self.timeout = timeout


class SourceTooLarge(SandboxError):
    """Submitted source exceeds the configured size limit.

    Example:
        ```python
        raise SourceTooLarge(size=300_000, limit=262_144)
        ```
    """

    category = "input"

    def __init__(self, *, size: int, limit: int) -> None:
        """Store the measured size and the limit it exceeded.

        Example:
            ```python
            exc = SourceTooLarge(size=10, limit=5)
            ```
        """
        super().__init__(f"Source is {size} bytes, larger than the {limit} byte limit")
        self.size = size
        self.limit = limit


class SourceNotText(SandboxError):
    """Submitted source cannot be encoded as UTF-8, e.g. it holds a lone surrogate."""

    category = "input"
