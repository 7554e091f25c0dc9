from __future__ import annotations

from typing import Protocol

from .types import LaunchSpec


class ProcessHandle(Protocol):
    """A live sandboxed process started by an isolation runtime."""

    @property
    def returncode(self) -> int | None:
        """Return the exit status, or None while the process is running.

        Example:
            ```python
            status = handle.returncode
            ```
        """
        ...

    def communicate(self, timeout: float) -> tuple[bytes, bytes]:
        """Wait for exit and return captured stdout and stderr.

        Raises `subprocess.TimeoutExpired` when `timeout` elapses first.

        Example:
            ```python
            stdout, stderr = handle.communicate(timeout=12)
            ```
        """
        ...

    def kill_tree(self) -> None:
        """Kill the process and every descendant, then reap them.

        Example:
            ```python
            handle.kill_tree()
            ```
        """
        ...


class IsolationRuntime(Protocol):
    """Backend that starts sandboxed processes, e.g. Docker or a microVM.

    A runtime advertises its isolation through a `capabilities` attribute
    holding `RuntimeCapabilities`; runtimes without one are treated as
    non-isolating and refused unless `allow_unisolated_runtime` is set.
    """

    def launch(self, spec: LaunchSpec) -> ProcessHandle:
        """Start one sandboxed process described by `spec`.

        Raises `ProcessLaunchFailed` when the process cannot be started.

        Example:
            ```python
            handle = runtime.launch(spec)
            ```
        """
        ...
