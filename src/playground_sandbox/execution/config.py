from __future__ import annotations

import uuid
from dataclasses import dataclass

CONTAINER_NAME_PREFIX = "playground-sandbox"
MANAGED_LABEL_VALUE = "true"
MANAGED_LABELS_BASE = {
    "playground_sandbox.managed": MANAGED_LABEL_VALUE,
    "playground_sandbox.engine": "docker",
    "playground_sandbox.project": "playground-sandbox",
}
KILL_COMMAND_TIMEOUT_SECONDS = 10


@dataclass(frozen=True, slots=True)
class ContainerInfo:
    """Snapshot of a managed container returned by DockerRuntime.

    Example:
        ```python
        info = ContainerInfo("abc", "playground-sandbox-1f2e", "lowlvl/playground", "running", "Up 2s")
        ```
    """

    id: str
    name: str
    image: str
    state: str
    status: str


@dataclass(frozen=True, slots=True)
class CleanupSummary:
    """Result summary from Docker cleanup operations.

    Example:
        ```python
        summary = CleanupSummary(removed_containers=2)
        ```
    """

    removed_containers: int


def new_container_name() -> str:
    """Return a collision-free name for one sandboxed container.

    Example:
        ```python
        name = new_container_name()
        ```
    """
    return f"{CONTAINER_NAME_PREFIX}-{uuid.uuid4().hex}"
