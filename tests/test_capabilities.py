import pytest

from playground_sandbox import DockerRuntime, LocalRuntime, Sandbox, SandboxSettings, UnsupportedRuntime
from playground_sandbox.execution.capabilities import (
    FULL_ISOLATION,
    capabilities_of,
    preflight_validate_runtime,
)


class _HardenedDockerRuntime(DockerRuntime):
    pass


class _MicroVmRuntime:
    capabilities = FULL_ISOLATION

    def launch(self, spec):
        raise AssertionError("not launched in this test")


class _BareRuntime:
    def launch(self, spec):
        raise AssertionError("not launched in this test")


def test_docker_runtime_is_fully_isolated() -> None:
    docker = capabilities_of(DockerRuntime())

    assert docker.ephemeral
    assert docker.network_isolated
    assert docker.resource_capped
    assert docker.filesystem_scoped
    assert docker.fully_isolated


def test_local_and_undeclared_runtimes_make_no_guarantees() -> None:
    assert not capabilities_of(LocalRuntime(entrypoints={"rustc": ["rustc"]})).fully_isolated
    assert not capabilities_of(_BareRuntime()).fully_isolated


def test_preflight_rejects_unisolated_runtime_without_opt_in() -> None:
    runtime = LocalRuntime(entrypoints={"rustc": ["rustc"]})
    with pytest.raises(UnsupportedRuntime, match="LocalRuntime"):
        preflight_validate_runtime(runtime, allow_unisolated=False)
    assert not preflight_validate_runtime(runtime, allow_unisolated=True).fully_isolated


def test_docker_subclass_inherits_isolation(tmp_path) -> None:
    with Sandbox(runtime=_HardenedDockerRuntime(), settings=SandboxSettings(temp_root=str(tmp_path))) as sandbox:
        assert sandbox.workspace.root.exists()


def test_custom_runtime_declaring_isolation_is_accepted(tmp_path) -> None:
    with Sandbox(runtime=_MicroVmRuntime(), settings=SandboxSettings(temp_root=str(tmp_path))) as sandbox:
        assert sandbox.workspace.root.exists()


def test_custom_runtime_without_declaration_is_refused(tmp_path) -> None:
    with pytest.raises(UnsupportedRuntime, match="_BareRuntime"):
        Sandbox(runtime=_BareRuntime(), settings=SandboxSettings(temp_root=str(tmp_path)))
    assert list(tmp_path.iterdir()) == []
