import pytest

from playground_sandbox import LocalRuntime, SandboxSettings, ToolchainVersion, UnsupportedRuntime, toolchain_version
from playground_sandbox.errors import VersionDateMissing, VersionHashMissing, VersionReleaseMissing
from playground_sandbox.version import parse_verbose_version

VERBOSE_OUTPUT = """rustc 1.50.0 (cb75ad5db 2021-02-10)
binary: rustc
commit-hash: cb75ad5db02783e8b0222fee363c5f63f7e2cf5b
commit-date: 2021-02-10
host: x86_64-unknown-linux-gnu
release: 1.50.0
LLVM version: 11.0.1
"""


def test_parse_verbose_version() -> None:
    assert parse_verbose_version(VERBOSE_OUTPUT) == ToolchainVersion(
        release="1.50.0",
        commit_hash="cb75ad5db02783e8b0222fee363c5f63f7e2cf5b",
        commit_date="2021-02-10",
    )


@pytest.mark.parametrize(
    ("dropped", "error"),
    [
        ("release:", VersionReleaseMissing),
        ("commit-hash:", VersionHashMissing),
        ("commit-date:", VersionDateMissing),
    ],
)
def test_missing_version_fields(dropped: str, error: type[Exception]) -> None:
    output = "\n".join(line for line in VERBOSE_OUTPUT.splitlines() if not line.startswith(dropped))
    with pytest.raises(error):
        parse_verbose_version(output)


def test_toolchain_version_runs_through_runtime(local_runtime: LocalRuntime, local_settings: SandboxSettings) -> None:
    version = toolchain_version(runtime=local_runtime, settings=local_settings)
    assert version.release == "1.50.0"
    assert version.commit_date == "2021-02-10"


def test_toolchain_version_refuses_unisolated_runtime(local_runtime: LocalRuntime) -> None:
    with pytest.raises(UnsupportedRuntime):
        toolchain_version(runtime=local_runtime, settings=SandboxSettings())
