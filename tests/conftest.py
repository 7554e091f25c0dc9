import sys
from pathlib import Path

import pytest

from playground_sandbox import LocalRuntime, SandboxSettings

# Stands in for `rustc-wasm`: behaviour is picked by markers in the source.
FAKE_COMPILER = r'''
import os
import subprocess
import sys
import time

args = sys.argv[1:]
output = args[args.index("-o") + 1]
with open(args[-1], encoding="utf-8") as fh:
    source = fh.read()
print("soft-timeout=" + os.environ.get("PLAYGROUND_TIMEOUT", ""), flush=True)

if "fn main( {" in source:
    sys.stderr.write("error: this file contains an unclosed delimiter\n")
    sys.exit(1)
if "loop {}" in source:
    child = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(60)"])
    with open(os.environ["FAKE_COMPILER_PIDFILE"], "w") as fh:
        fh.write(f"{os.getpid()} {child.pid}")
    time.sleep(60)
if "binary-output" in source:
    os.write(1, b"\xff\xfe\xfd")
    sys.exit(0)
if "binary-stderr" in source:
    os.write(2, b"warning: \xc3\x28\n")
    sys.exit(1)
if "artifact-dir" in source:
    os.mkdir(output)
    sys.exit(0)
if "no-artifact" in source:
    sys.exit(0)

with open(output, "wb") as fh:
    fh.write(b"\0asm" + source.encode("utf-8"))
if "deny-warnings" in source:
    sys.stderr.write("error: unused variable `x`\n")
    sys.exit(1)
'''

FAKE_VERSION = r'''
print("rustc 1.50.0 (cb75ad5db 2021-02-10)")
print("binary: rustc")
print("commit-hash: cb75ad5db02783e8b0222fee363c5f63f7e2cf5b")
print("commit-date: 2021-02-10")
print("host: x86_64-unknown-linux-gnu")
print("release: 1.50.0")
print("LLVM version: 11.0.1")
'''


@pytest.fixture
def scratch_root(tmp_path: Path) -> Path:
    root = tmp_path / "scratch"
    root.mkdir()
    return root


@pytest.fixture
def local_settings(scratch_root: Path) -> SandboxSettings:
    return SandboxSettings(
        soft_timeout_seconds=1,
        hard_timeout_seconds=2,
        temp_root=str(scratch_root),
        allow_unisolated_runtime=True,
    )


@pytest.fixture
def local_runtime(tmp_path: Path) -> LocalRuntime:
    compiler = tmp_path / "fake_compiler.py"
    compiler.write_text(FAKE_COMPILER, encoding="utf-8")
    version = tmp_path / "fake_version.py"
    version.write_text(FAKE_VERSION, encoding="utf-8")
    return LocalRuntime(
        entrypoints={
            "rustc-wasm": [sys.executable, str(compiler)],
            "rustc": [sys.executable, str(version)],
        }
    )
