from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess

from ..errors import ProcessLaunchFailed
from .capabilities import FULL_ISOLATION
from .config import (
    KILL_COMMAND_TIMEOUT_SECONDS,
    MANAGED_LABEL_VALUE,
    MANAGED_LABELS_BASE,
    CleanupSummary,
    ContainerInfo,
    new_container_name,
)
from .process import PopenHandle, spawn_process_group
from .types import LaunchSpec

logger = logging.getLogger(__name__)


def secure_run_arguments(spec: LaunchSpec) -> list[str]:
    """Return the hardened `docker run` flags for one invocation.

    The container is removed on exit, keeps only DAC_OVERRIDE so it can
    write into the host-owned output mount, cannot gain privileges through
    setuid binaries, has no network, and is capped on memory, swap and
    process count.

    Example:
        ```python
        args = secure_run_arguments(spec)
        ```
    """
    args = [
        "run",
        "--rm",
        "--cap-drop=ALL",
        "--cap-add=DAC_OVERRIDE",
        "--security-opt=no-new-privileges",
        "--workdir",
        spec.workdir,
        "--net",
        "none",
        "--memory",
        f"{spec.memory_limit_mb}m",
        "--memory-swap",
        f"{spec.memory_swap_mb}m",
    ]
    for key, value in sorted(spec.env.items()):
        args.extend(["--env", f"{key}={value}"])
    args.extend(["--pids-limit", str(spec.pids_limit)])
    return args


class DockerRuntime:
    """Run each sandboxed process in a fresh, locked-down Docker container.

    Example:
        ```python
        runtime = DockerRuntime(docker_context="build-farm")
        ```
    """

    capabilities = FULL_ISOLATION

    def __init__(
        self,
        *,
        docker_host: str | None = None,
        docker_context: str | None = None,
        ssh_host: str | None = None,
        ssh_user: str | None = None,
        ssh_port: int | None = None,
        ssh_key_path: str | None = None,
    ) -> None:
        """Initialize Docker connection strategy.

        Example:
            ```python
            runtime = DockerRuntime(ssh_host="server", ssh_user="ubuntu", ssh_port=22)
            ```
        """
        self._docker_host = docker_host
        self._docker_context = docker_context
        self._ssh_host = ssh_host
        self._ssh_user = ssh_user
        self._ssh_port = ssh_port
        self._ssh_key_path = ssh_key_path
        self._validate_connection_options()

    def build_command(self, spec: LaunchSpec, *, container_name: str) -> list[str]:
        """Build the full `docker run` argv for `spec`.

        Example:
            ```python
            argv = runtime.build_command(spec, container_name="playground-sandbox-1")
            ```
        """
        cmd = ["docker"]
        if self._docker_context:
            cmd.extend(["--context", self._docker_context])
        cmd.extend(secure_run_arguments(spec))
        cmd.extend(["--name", container_name])
        for key, value in MANAGED_LABELS_BASE.items():
            cmd.extend(["--label", f"{key}={value}"])
        for mount in spec.mounts:
            cmd.extend(["--volume", f"{mount.host_path}:{mount.container_path}"])
        cmd.append(spec.image)
        cmd.extend(spec.command)
        return cmd

    def launch(self, spec: LaunchSpec) -> PopenHandle:
        """Start one container for `spec` in its own process group.

        Example:
            ```python
            handle = runtime.launch(spec)
            ```
        """
        available, reason = self.check_available()
        if not available:
            raise ProcessLaunchFailed(f"Unable to execute the compiler: {reason}")

        container_name = new_container_name()
        cmd = self.build_command(spec, container_name=container_name)
        logger.debug("Compilation command is %s", shlex.join(cmd))
        return spawn_process_group(
            cmd,
            cwd=None,
            env=self._docker_env(),
            on_kill=lambda: self._force_remove(container_name),
        )

    def check_available(self) -> tuple[bool, str | None]:
        """Check Docker CLI and daemon accessibility for the configured target.

        Example:
            ```python
            ok, reason = runtime.check_available()
            ```
        """
        env = self._docker_env()
        if shutil.which("docker", path=env.get("PATH")) is None:
            return False, "Docker CLI was not found. Install Docker and ensure it is on PATH."
        try:
            probe = self._run_docker(["info"], timeout=KILL_COMMAND_TIMEOUT_SECONDS)
        except (ProcessLaunchFailed, subprocess.TimeoutExpired):
            probe = None
        if probe is None or probe.returncode != 0:
            return False, "Docker is installed but the daemon is not running or not accessible."
        return True, None

    def list_containers(self, all_states: bool = False) -> list[ContainerInfo]:
        """List managed containers visible to this runtime target.

        Example:
            ```python
            containers = runtime.list_containers(all_states=True)
            ```
        """
        fmt = "{{.ID}}|{{.Names}}|{{.Image}}|{{.State}}|{{.Status}}"
        cmd = ["ps", "--filter", f"label=playground_sandbox.managed={MANAGED_LABEL_VALUE}", "--format", fmt]
        if all_states:
            cmd.insert(1, "-a")
        out = self._run_docker(cmd)
        if out.returncode != 0:
            raise RuntimeError(f"Failed to list containers: {out.stderr.strip()}")
        items: list[ContainerInfo] = []
        for line in out.stdout.splitlines():
            if not line.strip():
                continue
            c_id, name, image, state, status = line.split("|", 4)
            items.append(ContainerInfo(c_id, name, image, state, status))
        return items

    def kill_container(self, container_id: str) -> None:
        """Force-remove a managed container.

        Example:
            ```python
            runtime.kill_container("abc123")
            ```
        """
        self._ensure_managed_container(container_id)
        killed = self._remove_container(container_id)
        if killed.returncode != 0:
            raise RuntimeError(f"Failed to kill container: {killed.stderr.strip()}")

    def cleanup_stale(self) -> CleanupSummary:
        """Delete managed containers that are no longer running.

        Example:
            ```python
            summary = runtime.cleanup_stale()
            ```
        """
        removed_containers = 0
        for container in self.list_containers(all_states=True):
            if container.state != "running":
                removed = self._remove_container(container.id)
                if removed.returncode == 0:
                    removed_containers += 1
        return CleanupSummary(removed_containers=removed_containers)

    def _force_remove(self, container_name: str) -> None:
        """Remove a timed-out container; killing the CLI client does not stop it.

        Example:
            ```python
            runtime._force_remove("playground-sandbox-1f2e")
            ```
        """
        try:
            removed = self._remove_container(container_name, timeout=KILL_COMMAND_TIMEOUT_SECONDS)
        except (ProcessLaunchFailed, subprocess.TimeoutExpired) as exc:
            logger.warning("Unable to remove container %s: %s", container_name, exc)
            return
        if removed.returncode != 0 and "No such container" not in removed.stderr:
            logger.warning("Unable to remove container %s: %s", container_name, removed.stderr.strip())

    def _remove_container(
        self, container: str, timeout: float | None = None
    ) -> subprocess.CompletedProcess[str]:
        """Force-remove a container by name or id, running or not.

        Example:
            ```python
            removed = runtime._remove_container("playground-sandbox-1f2e")
            ```
        """
        return self._run_docker(["rm", "-f", container], timeout=timeout)

    def _ensure_managed_container(self, container_id: str) -> None:
        """Ensure a container is labeled as playground-sandbox managed.

        Example:
            ```python
            runtime._ensure_managed_container("abc123")
            ```
        """
        check = self._run_docker(
            [
                "inspect",
                "-f",
                "{{ index .Config.Labels \"playground_sandbox.managed\" }}",
                container_id,
            ]
        )
        if check.returncode != 0 or check.stdout.strip() != MANAGED_LABEL_VALUE:
            raise ValueError(
                f"Container '{container_id}' is not managed by playground-sandbox and cannot be modified"
            )

    def _run_docker(self, args: list[str], timeout: float | None = None) -> subprocess.CompletedProcess[str]:
        """Run a Docker CLI command against the configured target.

        Example:
            ```python
            completed = runtime._run_docker(["ps"])
            ```
        """
        cmd = ["docker"]
        if self._docker_context:
            cmd.extend(["--context", self._docker_context])
        cmd.extend(args)
        try:
            return subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=False,
                env=self._docker_env(),
                timeout=timeout,
            )
        except FileNotFoundError as exc:
            raise ProcessLaunchFailed(f"Docker CLI was not found: {exc}") from exc

    def _docker_env(self) -> dict[str, str]:
        """Build environment variables for Docker CLI targeting.

        Example:
            ```python
            env = runtime._docker_env()
            ```
        """
        env = dict(os.environ)
        docker_host = self._docker_host
        if self._ssh_host:
            user = f"{self._ssh_user}@" if self._ssh_user else ""
            docker_host = f"ssh://{user}{self._ssh_host}"
        if docker_host:
            env["DOCKER_HOST"] = docker_host
        if self._ssh_host:
            parts = ["ssh"]
            if self._ssh_port:
                parts.extend(["-p", str(self._ssh_port)])
            if self._ssh_key_path:
                parts.extend(["-i", self._ssh_key_path])
            env["DOCKER_SSH_COMMAND"] = " ".join(parts)
        return env

    def _validate_connection_options(self) -> None:
        """Validate mutually exclusive Docker connection settings.

        Example:
            ```python
            runtime._validate_connection_options()
            ```
        """
        if self._docker_context and (self._docker_host or self._ssh_host):
            raise ValueError("Use either docker_context or docker_host/ssh settings, not both")
        if self._ssh_user and not self._ssh_host:
            raise ValueError("ssh_user requires ssh_host")
        if self._ssh_port and not self._ssh_host:
            raise ValueError("ssh_port requires ssh_host")
        if self._ssh_key_path and not self._ssh_host:
            raise ValueError("ssh_key_path requires ssh_host")
