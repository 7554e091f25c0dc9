from __future__ import annotations

from pathlib import Path

import pytest

from pgs import cli
from playground_sandbox import CompileResponse, ExecutionTimedOut, ToolchainVersion


class _FakeContainer:
    def __init__(self, c_id: str, name: str, state: str = "running") -> None:
        self.id = c_id
        self.name = name
        self.image = "img:tag"
        self.state = state
        self.status = "Up 10s"


class _FakeSummary:
    def __init__(self) -> None:
        self.removed_containers = 3


class _FakeRuntime:
    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs
        self.killed: str | None = None

    def list_containers(self, all_states: bool = False):
        return [_FakeContainer("abc123", "playground-sandbox-1f2e")]

    def kill_container(self, container_id: str) -> None:
        self.killed = container_id

    def cleanup_stale(self):
        return _FakeSummary()


@pytest.fixture(autouse=True)
def _patch_runtime(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "DockerRuntime", _FakeRuntime)
    monkeypatch.setattr(cli, "_configure_logging", lambda verbose: None)


@pytest.fixture
def source_file(tmp_path: Path) -> Path:
    path = tmp_path / "main.rs"
    path.write_text("fn main() {}", encoding="utf-8")
    return path


def test_cli_compile_writes_artifact(
    source_file: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    seen: dict[str, object] = {}

    def _fake_compile(source, runtime=None, settings=None):
        seen["source"] = source
        seen["runtime"] = runtime
        return CompileResponse(success=True, artifact=b"\0asm", stdout="", stderr="")

    monkeypatch.setattr(cli, "compile_source", _fake_compile)
    output = tmp_path / "main.wasm"

    code = cli.main(["compile", str(source_file), "-o", str(output)])

    assert code == 0
    assert seen["source"] == "fn main() {}"
    assert isinstance(seen["runtime"], _FakeRuntime)
    assert output.read_bytes() == b"\0asm"
    assert "Compilation succeeded" in capsys.readouterr().out


def test_cli_compile_failure_shows_diagnostics(
    source_file: Path, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(
        cli,
        "compile_source",
        lambda source, runtime=None, settings=None: CompileResponse(
            success=False,
            artifact=None,
            stdout="",
            stderr="error: expected `{`\nUnable to locate output file",
        ),
    )

    code = cli.main(["compile", str(source_file)])
    output = capsys.readouterr().out

    assert code == 1
    assert "expected `{`" in output
    assert "Compilation failed" in output


def test_cli_compile_sandbox_error_exits_one(
    source_file: Path, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    def _timeout(source, runtime=None, settings=None):
        raise ExecutionTimedOut(12.0)

    monkeypatch.setattr(cli, "compile_source", _timeout)

    code = cli.main(["compile", str(source_file)])

    assert code == 1
    assert "12000 ms" in capsys.readouterr().out


def test_cli_uses_config_file(
    source_file: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    config = tmp_path / "settings.toml"
    config.write_text("[sandbox]\nimage = \"registry.local/playground\"\n", encoding="utf-8")
    seen: dict[str, object] = {}

    def _fake_compile(source, runtime=None, settings=None):
        seen["settings"] = settings
        return CompileResponse(success=True, artifact=None, stdout="", stderr="")

    monkeypatch.setattr(cli, "compile_source", _fake_compile)

    assert cli.main(["--config", str(config), "compile", str(source_file)]) == 0
    assert seen["settings"].image == "registry.local/playground"  # type: ignore[attr-defined]


def test_cli_version(capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        cli,
        "toolchain_version",
        lambda runtime=None, settings=None: ToolchainVersion("1.50.0", "cb75ad5", "2021-02-10"),
    )
    code = cli.main(["version"])
    assert code == 0
    assert "1.50.0" in capsys.readouterr().out


def test_cli_list_containers(capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["list", "containers"])
    captured = capsys.readouterr()
    assert code == 0
    assert "playground-sandbox-1f2e" in captured.out


def test_cli_kill_container(capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["kill", "container", "abc123"])
    assert code == 0
    assert "Killed container abc123" in capsys.readouterr().out


def test_cli_cleanup(capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["cleanup"])
    assert code == 0
    assert "removed_containers" in capsys.readouterr().out


def test_cli_requires_command() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main([])
    assert excinfo.value.code == 2
