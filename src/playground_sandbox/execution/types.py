from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True, slots=True)
class Mount:
    """Bind mount of one host path into the sandbox.

    Example:
        ```python
        mount = Mount(Path("/tmp/playgroundx/input.rs"), "/playground/input.rs")
        ```
    """

    host_path: Path
    container_path: str


@dataclass(frozen=True, slots=True)
class LaunchSpec:
    """Everything an isolation runtime needs to start one sandboxed process.

    Example:
        ```python
        spec = LaunchSpec(
            image="lowlvl/playground",
            command=("rustc-wasm", "-o", "/playground-result/result.wasm", "input.rs"),
            workdir="/playground",
        )
        ```
    """

    image: str
    command: tuple[str, ...]
    workdir: str
    mounts: tuple[Mount, ...] = ()
    env: dict[str, str] = field(default_factory=dict)
    memory_limit_mb: int = 256
    memory_swap_mb: int = 320
    pids_limit: int = 512


@dataclass(slots=True)
class ExecutionOutcome:
    """Raw result of a process that exited before the hard timeout.

    Example:
        ```python
        out = ExecutionOutcome(stdout=b"", stderr=b"error: ...", returncode=1, elapsed_seconds=0.8)
        ```
    """

    stdout: bytes
    stderr: bytes
    returncode: int
    elapsed_seconds: float

    @property
    def succeeded(self) -> bool:
        """Return whether the process exited with status zero.

        Example:
            ```python
            assert ExecutionOutcome(b"", b"", 0, 0.1).succeeded
            ```
        """
        return self.returncode == 0
