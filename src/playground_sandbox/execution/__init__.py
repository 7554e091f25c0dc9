from .runtime import IsolationRuntime, ProcessHandle
from .types import ExecutionOutcome, LaunchSpec, Mount

__all__ = [
    "ExecutionOutcome",
    "IsolationRuntime",
    "LaunchSpec",
    "Mount",
    "ProcessHandle",
]
