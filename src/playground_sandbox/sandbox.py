from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType

from .errors import (
    OUTPUT_ARTIFACT_MISSING,
    ExecutionTimedOut,
    OutputReadFailed,
    SandboxError,
    SandboxStateError,
    SourceNotText,
    SourceTooLarge,
)
from .execution.capabilities import preflight_validate_runtime
from .execution.docker_runtime import DockerRuntime
from .execution.runtime import IsolationRuntime
from .execution.supervisor import decode_text, run_with_timeout
from .execution.types import ExecutionOutcome, LaunchSpec, Mount
from .settings import SandboxSettings
from .workspace import Workspace

logger = logging.getLogger(__name__)


class SandboxState(enum.Enum):
    """Lifecycle of a single-use sandbox; states only move forward."""

    CREATED = "created"
    SOURCE_WRITTEN = "source_written"
    INVOKED = "invoked"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    INFRA_FAILURE = "infra_failure"
    REJECTED = "rejected"


@dataclass(slots=True)
class CompileRequest:
    """Untrusted source text submitted for compilation.

    Size limits are enforced by `Sandbox.compile` against
    `SandboxSettings.max_source_bytes`.

    Example:
        ```python
        request = CompileRequest(source="fn main() {}")
        ```
    """

    source: str


@dataclass(slots=True)
class CompileResponse:
    """Outcome of a compile that ran to completion.

    `success` mirrors the toolchain exit status and is independent of
    whether `artifact` was produced.

    Example:
        ```python
        response = CompileResponse(success=True, artifact=b"\\0asm...", stdout="", stderr="")
        ```
    """

    success: bool
    artifact: bytes | None
    stdout: str
    stderr: str


class Sandbox:
    """Single-use engine compiling one source text in an isolated runtime.

    The workspace is allocated on construction and removed by `close()`;
    use the sandbox as a context manager so removal happens on every exit
    path.

    Example:
        ```python
        with Sandbox() as sandbox:
            response = sandbox.compile("fn main() {}")
        ```
    """

    def __init__(
        self,
        runtime: IsolationRuntime | None = None,
        settings: SandboxSettings | None = None,
    ) -> None:
        """Validate the runtime and allocate a fresh workspace.

        Example:
            ```python
            sandbox = Sandbox(runtime=DockerRuntime(), settings=SandboxSettings())
            ```
        """
        self._settings = settings if settings is not None else SandboxSettings()
        self._runtime = runtime if runtime is not None else DockerRuntime()
        preflight_validate_runtime(
            self._runtime,
            allow_unisolated=self._settings.allow_unisolated_runtime,
        )
        self._workspace = Workspace.create(
            prefix=self._settings.temp_prefix,
            root=self._settings.temp_root,
            input_name=self._settings.input_name,
        )
        self._state = SandboxState.CREATED

    @property
    def state(self) -> SandboxState:
        """Return the current lifecycle state.

        Example:
            ```python
            assert sandbox.state is SandboxState.CREATED
            ```
        """
        return self._state

    @property
    def workspace(self) -> Workspace:
        """Return the workspace owned by this sandbox.

        Example:
            ```python
            root = sandbox.workspace.root
            ```
        """
        return self._workspace

    def compile(self, source: str) -> CompileResponse:
        """Compile `source` once and classify the result.

        Raises `ExecutionTimedOut` when the hard timeout elapses, an
        `input`-category error when the source is refused, and an
        `InfrastructureError` subclass for workspace, launch and output
        failures. A toolchain rejection is a normal response with
        `success=False`. The sandbox ends in a terminal state whatever
        happens, so it never compiles twice.

        Example:
            ```python
            response = sandbox.compile("fn main() {}")
            ```
        """
        if self._state is not SandboxState.CREATED or self._workspace.closed:
            raise SandboxStateError(f"Sandbox cannot compile in state '{self._state.value}'")

        try:
            self._check_source(source)
            self._workspace.write_source(source)
            self._state = SandboxState.SOURCE_WRITTEN
            spec = self._launch_spec()
            self._state = SandboxState.INVOKED
            outcome = run_with_timeout(self._runtime, spec, self._settings.hard_timeout_seconds)
            response = self._classify(outcome)
        except ExecutionTimedOut:
            self._state = SandboxState.TIMED_OUT
            raise
        except SandboxError as exc:
            if exc.category == "input":
                self._state = SandboxState.REJECTED
            else:
                self._state = SandboxState.INFRA_FAILURE
            raise
        except BaseException:
            self._state = SandboxState.INFRA_FAILURE
            raise

        self._state = SandboxState.COMPLETED
        return response

    def close(self) -> None:
        """Remove the workspace. Safe to call more than once.

        Example:
            ```python
            sandbox.close()
            ```
        """
        self._workspace.close()

    def __enter__(self) -> "Sandbox":
        """Return the sandbox for use in a `with` block.

        Example:
            ```python
            with Sandbox() as sandbox:
                ...
            ```
        """
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Remove the workspace when the `with` block ends.

        Example:
            ```python
            sandbox.__exit__(None, None, None)
            ```
        """
        self.close()

    def _check_source(self, source: str) -> None:
        """Reject sources that are not UTF-8 text or exceed the size limit.

        Example:
            ```python
            sandbox._check_source("fn main() {}")
            ```
        """
        try:
            size = len(source.encode("utf-8"))
        except UnicodeEncodeError as exc:
            raise SourceNotText(f"Source is not valid UTF-8 text: {exc}") from exc
        if size > self._settings.max_source_bytes:
            raise SourceTooLarge(size=size, limit=self._settings.max_source_bytes)

    def _launch_spec(self) -> LaunchSpec:
        """Describe the compile invocation for the runtime.

        Example:
            ```python
            spec = sandbox._launch_spec()
            ```
        """
        settings = self._settings
        return LaunchSpec(
            image=settings.image,
            command=(
                settings.entrypoint,
                "-o",
                settings.artifact_container_path,
                settings.input_name,
            ),
            workdir=settings.workdir,
            mounts=(
                Mount(self._workspace.input_file, settings.input_container_path),
                Mount(self._workspace.output_dir, settings.output_mount),
            ),
            env={settings.timeout_env_var: str(settings.soft_timeout_seconds)},
            memory_limit_mb=settings.memory_limit_mb,
            memory_swap_mb=settings.memory_swap_mb,
            pids_limit=settings.pids_limit,
        )

    def _classify(self, outcome: ExecutionOutcome) -> CompileResponse:
        """Turn a completed process into a response.

        Example:
            ```python
            response = sandbox._classify(outcome)
            ```
        """
        stdout = decode_text(outcome.stdout, "stdout")
        stderr = decode_text(outcome.stderr, "stderr")

        artifact_path = self._workspace.output_dir / self._settings.artifact_name
        if artifact_path.exists():
            artifact: bytes | None = _read_artifact(artifact_path)
        else:
            # Most likely the user's code was invalid; keep the compiler's
            # diagnostics and say why there is no artifact.
            stderr += f"\n{OUTPUT_ARTIFACT_MISSING}"
            artifact = None

        return CompileResponse(
            success=outcome.succeeded,
            artifact=artifact,
            stdout=stdout,
            stderr=stderr,
        )


def _read_artifact(path: Path) -> bytes:
    """Read the compiled artifact bytes.

    Example:
        ```python
        wasm = _read_artifact(Path("/tmp/playgroundx/output/result.wasm"))
        ```
    """
    try:
        return path.read_bytes()
    except OSError as exc:
        raise OutputReadFailed(f"Unable to read output file: {exc}") from exc


def compile_source(
    source: str | CompileRequest,
    runtime: IsolationRuntime | None = None,
    settings: SandboxSettings | None = None,
) -> CompileResponse:
    """Compile `source` in a fresh sandbox that is removed before returning.

    Example:
        ```python
        from playground_sandbox import compile_source
        response = compile_source(CompileRequest(source="fn main() {}"))
        ```
    """
    if isinstance(source, CompileRequest):
        source = source.source
    with Sandbox(runtime=runtime, settings=settings) as sandbox:
        return sandbox.compile(source)
