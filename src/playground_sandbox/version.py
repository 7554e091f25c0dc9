from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import VersionDateMissing, VersionHashMissing, VersionReleaseMissing
from .execution.capabilities import preflight_validate_runtime
from .execution.docker_runtime import DockerRuntime
from .execution.runtime import IsolationRuntime
from .execution.supervisor import decode_text, run_with_timeout
from .execution.types import LaunchSpec
from .settings import SandboxSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToolchainVersion:
    """Compiler version reported from inside the sandbox image.

    Example:
        ```python
        version = ToolchainVersion("1.50.0", "cb75ad5db02783e8b0222fee363c5f63f7e2cf5b", "2021-02-10")
        ```
    """

    release: str
    commit_hash: str
    commit_date: str


def parse_verbose_version(output: str) -> ToolchainVersion:
    """Parse `rustc --version --verbose` style `key: value` lines.

    Example:
        ```python
        version = parse_verbose_version("release: 1.50.0\\ncommit-hash: cb75ad5\\ncommit-date: 2021-02-10\\n")
        ```
    """
    info: dict[str, str] = {}
    for line in output.splitlines():
        key, sep, value = line.partition(":")
        if sep and value.strip():
            info[key.strip()] = value.strip()

    release = info.get("release")
    if release is None:
        raise VersionReleaseMissing("Release was missing from the version output")
    commit_hash = info.get("commit-hash")
    if commit_hash is None:
        raise VersionHashMissing("Commit hash was missing from the version output")
    commit_date = info.get("commit-date")
    if commit_date is None:
        raise VersionDateMissing("Commit date was missing from the version output")
    return ToolchainVersion(release=release, commit_hash=commit_hash, commit_date=commit_date)


def toolchain_version(
    runtime: IsolationRuntime | None = None,
    settings: SandboxSettings | None = None,
) -> ToolchainVersion:
    """Ask the sandboxed toolchain for its version. Nothing is mounted.

    Example:
        ```python
        version = toolchain_version()
        print(version.release)
        ```
    """
    settings = settings if settings is not None else SandboxSettings()
    runtime = runtime if runtime is not None else DockerRuntime()
    preflight_validate_runtime(
        runtime,
        allow_unisolated=settings.allow_unisolated_runtime,
    )
    spec = LaunchSpec(
        image=settings.image,
        command=settings.version_command,
        workdir=settings.workdir,
        env={settings.timeout_env_var: str(settings.soft_timeout_seconds)},
        memory_limit_mb=settings.memory_limit_mb,
        memory_swap_mb=settings.memory_swap_mb,
        pids_limit=settings.pids_limit,
    )
    outcome = run_with_timeout(runtime, spec, settings.hard_timeout_seconds)
    stdout = decode_text(outcome.stdout, "stdout")
    if not outcome.succeeded:
        logger.warning(
            "Version command exited with %d: %s",
            outcome.returncode,
            decode_text(outcome.stderr, "stderr").strip(),
        )
    return parse_verbose_version(stdout)
