import os
import shutil
import subprocess
import time
from pathlib import Path

import pytest

from playground_sandbox import DockerRuntime, ExecutionTimedOut, SandboxSettings, compile_source, toolchain_version
from playground_sandbox.execution.config import MANAGED_LABEL_VALUE


def _docker_ready() -> bool:
    if shutil.which("docker") is None:
        return False
    return os.getenv("RUN_DOCKER_TESTS") == "1"


pytestmark = pytest.mark.skipif(not _docker_ready(), reason="Docker integration tests disabled")


@pytest.fixture(scope="module")
def playground_image() -> str:
    image = os.getenv("PLAYGROUND_TEST_IMAGE", "lowlvl/playground")
    inspected = subprocess.run(["docker", "image", "inspect", image], capture_output=True, check=False)
    if inspected.returncode != 0:
        pulled = subprocess.run(["docker", "pull", image], capture_output=True, text=True, check=False)
        if pulled.returncode != 0:
            pytest.skip(f"Could not pull playground image: {pulled.stderr}")
    return image


@pytest.fixture
def settings(playground_image: str, tmp_path: Path) -> SandboxSettings:
    return SandboxSettings(image=playground_image, temp_root=str(tmp_path))


def _running_managed_containers() -> list[str]:
    listed = subprocess.run(
        [
            "docker",
            "ps",
            "-q",
            "--filter",
            f"label=playground_sandbox.managed={MANAGED_LABEL_VALUE}",
        ],
        capture_output=True,
        text=True,
        check=False,
    )
    return listed.stdout.split()


def test_empty_main_compiles(settings: SandboxSettings, tmp_path: Path) -> None:
    response = compile_source("fn main() {}", runtime=DockerRuntime(), settings=settings)

    assert response.success is True
    assert response.artifact
    assert response.stderr.strip() == ""
    assert list(tmp_path.iterdir()) == []


def test_syntax_error_is_reported(settings: SandboxSettings) -> None:
    response = compile_source("fn main( {", runtime=DockerRuntime(), settings=settings)

    assert response.success is False
    assert response.artifact is None
    assert "error" in response.stderr


def test_infinite_loop_times_out_and_leaves_nothing_running(playground_image: str, tmp_path: Path) -> None:
    settings = SandboxSettings(
        image=playground_image,
        temp_root=str(tmp_path),
        soft_timeout_seconds=2,
        hard_timeout_seconds=3,
    )
    source = "const fn spin() -> u32 { loop {} }\nconst X: u32 = spin();\nfn main() { let _ = X; }"

    start = time.monotonic()
    try:
        response = compile_source(source, runtime=DockerRuntime(), settings=settings)
    except ExecutionTimedOut:
        pass
    else:
        # Tooling that honours the soft timeout stops itself first.
        assert response.success is False

    assert time.monotonic() - start < settings.hard_timeout_seconds + 15
    assert _running_managed_containers() == []


def test_toolchain_version(settings: SandboxSettings) -> None:
    version = toolchain_version(runtime=DockerRuntime(), settings=settings)
    assert version.release
    assert version.commit_hash
