from __future__ import annotations

import logging
import os
import posixpath
import shlex
from pathlib import Path
from typing import Mapping, Sequence

from ..errors import ProcessLaunchFailed
from .capabilities import NO_ISOLATION
from .process import PopenHandle, spawn_process_group
from .types import LaunchSpec

logger = logging.getLogger(__name__)


class LocalRuntime:
    """Run the toolchain directly on the host without isolation.

    Meant for development and tests. Sandbox entrypoints are mapped to host
    argv prefixes and container paths in arguments are rewritten to the
    mounted host paths. Memory, process and network limits are not applied.

    Example:
        ```python
        runtime = LocalRuntime(entrypoints={"rustc-wasm": ["/opt/wasm/bin/rustc-wasm"]})
        ```
    """

    capabilities = NO_ISOLATION

    def __init__(self, *, entrypoints: Mapping[str, Sequence[str]]) -> None:
        """Store the entrypoint mapping.

        Example:
            ```python
            runtime = LocalRuntime(entrypoints={"rustc": ["rustc"]})
            ```
        """
        if not entrypoints:
            raise ValueError("LocalRuntime requires at least one entrypoint")
        for name, argv in entrypoints.items():
            if not argv:
                raise ValueError(f"Entrypoint '{name}' maps to an empty command")
        self._entrypoints = {name: list(argv) for name, argv in entrypoints.items()}

    def build_command(self, spec: LaunchSpec) -> list[str]:
        """Translate `spec.command` into a host argv.

        Example:
            ```python
            argv = runtime.build_command(spec)
            ```
        """
        entrypoint, *args = spec.command
        prefix = self._entrypoints.get(entrypoint)
        if prefix is None:
            raise ProcessLaunchFailed(f"Unable to execute the compiler: no local entrypoint for '{entrypoint}'")
        return [*prefix, *(self._host_path(spec, arg) for arg in args)]

    def launch(self, spec: LaunchSpec) -> PopenHandle:
        """Start the mapped toolchain in its own process group.

        Example:
            ```python
            handle = runtime.launch(spec)
            ```
        """
        cmd = self.build_command(spec)
        cwd = self._host_workdir(spec)
        logger.debug("Local compilation command is %s (cwd=%s)", shlex.join(cmd), cwd)
        return spawn_process_group(cmd, cwd=cwd, env={**os.environ, **spec.env})

    @staticmethod
    def _host_path(spec: LaunchSpec, arg: str) -> str:
        """Rewrite an argument under a container mount to the host path.

        Example:
            ```python
            host = LocalRuntime._host_path(spec, "/playground-result/result.wasm")
            ```
        """
        for mount in sorted(spec.mounts, key=lambda m: len(m.container_path), reverse=True):
            target = mount.container_path.rstrip("/")
            if arg == target:
                return str(mount.host_path)
            if arg.startswith(target + "/"):
                return str(mount.host_path / arg[len(target) + 1 :])
        return arg

    @staticmethod
    def _host_workdir(spec: LaunchSpec) -> str | None:
        """Return the host directory standing in for the sandbox workdir.

        Example:
            ```python
            cwd = LocalRuntime._host_workdir(spec)
            ```
        """
        workdir = spec.workdir.rstrip("/")
        for mount in spec.mounts:
            if mount.container_path.rstrip("/") == workdir:
                return str(mount.host_path)
        for mount in spec.mounts:
            if posixpath.dirname(mount.container_path.rstrip("/")) == workdir:
                return str(Path(mount.host_path).parent)
        return None
