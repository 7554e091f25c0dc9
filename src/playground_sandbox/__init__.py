from .errors import (
    ExecutionTimedOut,
    InfrastructureError,
    OutputDirPermissionFailed,
    OutputNotText,
    OutputReadFailed,
    ProcessLaunchFailed,
    SandboxError,
    SandboxStateError,
    SourcePermissionFailed,
    SourceNotText,
    SourceTooLarge,
    SourceWriteFailed,
    UnsupportedRuntime,
    WorkspaceCreationFailed,
)
from .execution.docker_runtime import DockerRuntime
from .execution.local_runtime import LocalRuntime
from .sandbox import CompileRequest, CompileResponse, Sandbox, SandboxState, compile_source
from .settings import SandboxSettings
from .version import ToolchainVersion, toolchain_version
from .workspace import Workspace

__all__ = [
    "CompileRequest",
    "CompileResponse",
    "DockerRuntime",
    "ExecutionTimedOut",
    "InfrastructureError",
    "LocalRuntime",
    "OutputDirPermissionFailed",
    "OutputNotText",
    "OutputReadFailed",
    "ProcessLaunchFailed",
    "Sandbox",
    "SandboxError",
    "SandboxSettings",
    "SandboxState",
    "SandboxStateError",
    "SourcePermissionFailed",
    "SourceNotText",
    "SourceTooLarge",
    "SourceWriteFailed",
    "ToolchainVersion",
    "UnsupportedRuntime",
    "Workspace",
    "WorkspaceCreationFailed",
    "compile_source",
    "toolchain_version",
]
