from __future__ import annotations

import logging
import subprocess
import time

from ..errors import ExecutionTimedOut, OutputNotText
from .runtime import IsolationRuntime
from .types import ExecutionOutcome, LaunchSpec

logger = logging.getLogger(__name__)


def decode_text(data: bytes, stream: str) -> str:
    """Decode captured output as strict UTF-8.

    Example:
        ```python
        stderr = decode_text(outcome.stderr, "stderr")
        ```
    """
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise OutputNotText(f"Output was not valid UTF-8 on {stream}: {exc}") from exc


def run_with_timeout(
    runtime: IsolationRuntime,
    spec: LaunchSpec,
    hard_timeout_seconds: float,
) -> ExecutionOutcome:
    """Launch `spec` and race its exit against the hard timeout.

    When the deadline wins, the whole process tree is killed and reaped
    before `ExecutionTimedOut` is raised, so nothing from this invocation
    is still running once the caller sees the error.

    Example:
        ```python
        outcome = run_with_timeout(DockerRuntime(), spec, hard_timeout_seconds=12)
        ```
    """
    start = time.perf_counter()
    handle = runtime.launch(spec)
    try:
        stdout, stderr = handle.communicate(timeout=hard_timeout_seconds)
    except subprocess.TimeoutExpired as exc:
        handle.kill_tree()
        logger.warning(
            "Sandboxed process exceeded %.1fs hard timeout and was killed", hard_timeout_seconds
        )
        raise ExecutionTimedOut(hard_timeout_seconds) from exc
    except BaseException:
        handle.kill_tree()
        raise

    elapsed = time.perf_counter() - start
    returncode = handle.returncode
    if returncode is None:
        raise RuntimeError("Process handle returned output before the process exited")
    logger.debug("Sandboxed process exited with %d after %.3fs", returncode, elapsed)
    return ExecutionOutcome(
        stdout=stdout,
        stderr=stderr,
        returncode=returncode,
        elapsed_seconds=elapsed,
    )
