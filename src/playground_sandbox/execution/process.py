from __future__ import annotations

import logging
import os
import signal
import subprocess
from typing import Callable, Mapping, Sequence

from ..errors import ProcessLaunchFailed

logger = logging.getLogger(__name__)

_REAP_TIMEOUT_SECONDS = 5.0


class PopenHandle:
    """Process handle that owns a whole process group.

    The child is started as a session leader, so its pid is also the
    process group id shared by everything it spawns.

    Example:
        ```python
        handle = spawn_process_group(["rustc", "--version"], cwd=None, env=os.environ)
        stdout, stderr = handle.communicate(timeout=5)
        ```
    """

    def __init__(
        self,
        process: subprocess.Popen[bytes],
        on_kill: Callable[[], None] | None = None,
    ) -> None:
        """Wrap a started process and an optional extra kill step.

        Example:
            ```python
            handle = PopenHandle(process, on_kill=lambda: remove_container(name))
            ```
        """
        self._process = process
        self._on_kill = on_kill

    @property
    def pid(self) -> int:
        """Return the pid, which is also the process group id.

        Example:
            ```python
            pgid = handle.pid
            ```
        """
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        """Return the exit status, or None while the process is running.

        Example:
            ```python
            status = handle.returncode
            ```
        """
        return self._process.returncode

    def communicate(self, timeout: float) -> tuple[bytes, bytes]:
        """Wait for exit and return captured stdout and stderr.

        Example:
            ```python
            stdout, stderr = handle.communicate(timeout=12)
            ```
        """
        stdout, stderr = self._process.communicate(timeout=timeout)
        return stdout or b"", stderr or b""

    def kill_tree(self) -> None:
        """SIGKILL the whole process group, run the extra kill step, and reap.

        Example:
            ```python
            handle.kill_tree()
            ```
        """
        try:
            os.killpg(self._process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        if self._on_kill is not None:
            self._on_kill()
        self._reap()

    def _reap(self) -> None:
        """Drain pipes and wait for the killed leader.

        Example:
            ```python
            handle._reap()
            ```
        """
        try:
            self._process.communicate(timeout=_REAP_TIMEOUT_SECONDS)
        except subprocess.TimeoutExpired:
            # Something that left the group still holds the pipes open.
            logger.warning("Process %d pipes still open after kill; closing them", self._process.pid)
            for stream in (self._process.stdout, self._process.stderr):
                if stream is not None:
                    stream.close()
            self._process.wait()


def spawn_process_group(
    argv: Sequence[str],
    *,
    cwd: str | None,
    env: Mapping[str, str],
    on_kill: Callable[[], None] | None = None,
) -> PopenHandle:
    """Start `argv` as a new session with captured stdout and stderr.

    Example:
        ```python
        handle = spawn_process_group(["docker", "run", "..."], cwd=None, env=os.environ)
        ```
    """
    try:
        process = subprocess.Popen(
            list(argv),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=cwd,
            env=dict(env),
            start_new_session=True,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        raise ProcessLaunchFailed(f"Unable to execute the compiler: {exc}") from exc
    return PopenHandle(process, on_kill=on_kill)
