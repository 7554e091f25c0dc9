from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any


def _default_settings_path() -> Path:
    """Return bundled default settings TOML path.

    Example:
        ```python
        path = _default_settings_path()
        ```
    """
    return Path(__file__).with_name("default_settings.toml")


def _read_settings_toml(path: Path) -> dict[str, Any]:
    """Read settings TOML and return the `[sandbox]` table.

    Example:
        ```python
        raw = _read_settings_toml(Path("/etc/playground/settings.toml"))
        ```
    """
    if not path.exists():
        return {
            "image": "lowlvl/playground",
            "entrypoint": "rustc-wasm",
            "version_command": ["rustc", "--version", "--verbose"],
            "workdir": "/playground",
            "input_name": "input.rs",
            "output_mount": "/playground-result",
            "artifact_name": "result.wasm",
            "timeout_env_var": "PLAYGROUND_TIMEOUT",
            "soft_timeout_seconds": 10,
            "hard_timeout_seconds": 12,
            "memory_limit_mb": 256,
            "memory_swap_mb": 320,
            "pids_limit": 512,
            "max_source_bytes": 262144,
            "temp_prefix": "playground",
            "allow_unisolated_runtime": False,
        }
    raw = tomllib.loads(path.read_text(encoding="utf-8"))
    settings_obj = raw.get("sandbox", raw)
    if not isinstance(settings_obj, dict):
        raise ValueError("Sandbox config must be a TOML table")
    return settings_obj


def _str_list(value: Any, field_name: str) -> tuple[str, ...]:
    """Validate a list-of-strings settings field.

    Example:
        ```python
        command = _str_list(["rustc", "--version"], "version_command")
        ```
    """
    if not isinstance(value, list) or not value:
        raise ValueError(f"'{field_name}' must be a non-empty list of strings")
    if not all(isinstance(item, str) for item in value):
        raise ValueError(f"'{field_name}' must contain only strings")
    return tuple(value)


_DEFAULT_SETTINGS_RAW = _read_settings_toml(_default_settings_path())
DEFAULT_IMAGE = str(_DEFAULT_SETTINGS_RAW.get("image", "lowlvl/playground"))
DEFAULT_ENTRYPOINT = str(_DEFAULT_SETTINGS_RAW.get("entrypoint", "rustc-wasm"))
DEFAULT_VERSION_COMMAND = _str_list(
    _DEFAULT_SETTINGS_RAW.get("version_command", ["rustc", "--version", "--verbose"]),
    "version_command",
)
DEFAULT_WORKDIR = str(_DEFAULT_SETTINGS_RAW.get("workdir", "/playground"))
DEFAULT_INPUT_NAME = str(_DEFAULT_SETTINGS_RAW.get("input_name", "input.rs"))
DEFAULT_OUTPUT_MOUNT = str(_DEFAULT_SETTINGS_RAW.get("output_mount", "/playground-result"))
DEFAULT_ARTIFACT_NAME = str(_DEFAULT_SETTINGS_RAW.get("artifact_name", "result.wasm"))
DEFAULT_TIMEOUT_ENV_VAR = str(_DEFAULT_SETTINGS_RAW.get("timeout_env_var", "PLAYGROUND_TIMEOUT"))
DEFAULT_SOFT_TIMEOUT_SECONDS = int(_DEFAULT_SETTINGS_RAW.get("soft_timeout_seconds", 10))
DEFAULT_HARD_TIMEOUT_SECONDS = float(_DEFAULT_SETTINGS_RAW.get("hard_timeout_seconds", 12))
DEFAULT_MEMORY_LIMIT_MB = int(_DEFAULT_SETTINGS_RAW.get("memory_limit_mb", 256))
DEFAULT_MEMORY_SWAP_MB = int(_DEFAULT_SETTINGS_RAW.get("memory_swap_mb", 320))
DEFAULT_PIDS_LIMIT = int(_DEFAULT_SETTINGS_RAW.get("pids_limit", 512))
DEFAULT_MAX_SOURCE_BYTES = int(_DEFAULT_SETTINGS_RAW.get("max_source_bytes", 262144))
DEFAULT_TEMP_PREFIX = str(_DEFAULT_SETTINGS_RAW.get("temp_prefix", "playground"))
DEFAULT_ALLOW_UNISOLATED_RUNTIME = bool(
    _DEFAULT_SETTINGS_RAW.get("allow_unisolated_runtime", False)
)


@dataclass(frozen=True, slots=True)
class SandboxSettings:
    """Limits, paths and toolchain identifiers for one sandboxed compile.

    Example:
        ```python
        settings = SandboxSettings(soft_timeout_seconds=5, hard_timeout_seconds=7)
        ```
    """

    image: str = DEFAULT_IMAGE
    entrypoint: str = DEFAULT_ENTRYPOINT
    version_command: tuple[str, ...] = DEFAULT_VERSION_COMMAND
    workdir: str = DEFAULT_WORKDIR
    input_name: str = DEFAULT_INPUT_NAME
    output_mount: str = DEFAULT_OUTPUT_MOUNT
    artifact_name: str = DEFAULT_ARTIFACT_NAME
    timeout_env_var: str = DEFAULT_TIMEOUT_ENV_VAR
    soft_timeout_seconds: int = DEFAULT_SOFT_TIMEOUT_SECONDS
    hard_timeout_seconds: float = DEFAULT_HARD_TIMEOUT_SECONDS
    memory_limit_mb: int = DEFAULT_MEMORY_LIMIT_MB
    memory_swap_mb: int = DEFAULT_MEMORY_SWAP_MB
    pids_limit: int = DEFAULT_PIDS_LIMIT
    max_source_bytes: int = DEFAULT_MAX_SOURCE_BYTES
    temp_prefix: str = DEFAULT_TEMP_PREFIX
    temp_root: str | None = None
    allow_unisolated_runtime: bool = DEFAULT_ALLOW_UNISOLATED_RUNTIME

    def __post_init__(self) -> None:
        """Validate limits after dataclass initialization.

        Example:
            ```python
            SandboxSettings(soft_timeout_seconds=10, hard_timeout_seconds=12)
            ```
        """
        if self.soft_timeout_seconds <= 0:
            raise ValueError("soft_timeout_seconds must be positive")
        if self.hard_timeout_seconds <= self.soft_timeout_seconds:
            raise ValueError("hard_timeout_seconds must be greater than soft_timeout_seconds")
        if self.memory_limit_mb <= 0 or self.pids_limit <= 0 or self.max_source_bytes <= 0:
            raise ValueError("memory_limit_mb, pids_limit and max_source_bytes must be positive")
        if self.memory_swap_mb < self.memory_limit_mb:
            raise ValueError("memory_swap_mb must be at least memory_limit_mb")
        for name in ("input_name", "artifact_name"):
            value = getattr(self, name)
            if not value or "/" in value or value in {".", ".."}:
                raise ValueError(f"'{name}' must be a plain file name")

    @property
    def artifact_container_path(self) -> str:
        """Return where the toolchain writes the artifact inside the sandbox.

        Example:
            ```python
            assert SandboxSettings().artifact_container_path == "/playground-result/result.wasm"
            ```
        """
        return f"{self.output_mount.rstrip('/')}/{self.artifact_name}"

    @property
    def input_container_path(self) -> str:
        """Return where the source file is mounted inside the sandbox.

        Example:
            ```python
            assert SandboxSettings().input_container_path == "/playground/input.rs"
            ```
        """
        return f"{self.workdir.rstrip('/')}/{self.input_name}"

    @classmethod
    def from_file(cls, config_path: str) -> "SandboxSettings":
        """Create settings from a TOML file, falling back to defaults per key.

        Example:
            ```python
            settings = SandboxSettings.from_file("/etc/playground/settings.toml")
            ```
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Settings file not found: {config_path}")
        raw = _read_settings_toml(path)
        temp_root = raw.get("temp_root")
        return cls(
            image=str(raw.get("image", DEFAULT_IMAGE)),
            entrypoint=str(raw.get("entrypoint", DEFAULT_ENTRYPOINT)),
            version_command=_str_list(
                raw.get("version_command", list(DEFAULT_VERSION_COMMAND)), "version_command"
            ),
            workdir=str(raw.get("workdir", DEFAULT_WORKDIR)),
            input_name=str(raw.get("input_name", DEFAULT_INPUT_NAME)),
            output_mount=str(raw.get("output_mount", DEFAULT_OUTPUT_MOUNT)),
            artifact_name=str(raw.get("artifact_name", DEFAULT_ARTIFACT_NAME)),
            timeout_env_var=str(raw.get("timeout_env_var", DEFAULT_TIMEOUT_ENV_VAR)),
            soft_timeout_seconds=int(raw.get("soft_timeout_seconds", DEFAULT_SOFT_TIMEOUT_SECONDS)),
            hard_timeout_seconds=float(raw.get("hard_timeout_seconds", DEFAULT_HARD_TIMEOUT_SECONDS)),
            memory_limit_mb=int(raw.get("memory_limit_mb", DEFAULT_MEMORY_LIMIT_MB)),
            memory_swap_mb=int(raw.get("memory_swap_mb", DEFAULT_MEMORY_SWAP_MB)),
            pids_limit=int(raw.get("pids_limit", DEFAULT_PIDS_LIMIT)),
            max_source_bytes=int(raw.get("max_source_bytes", DEFAULT_MAX_SOURCE_BYTES)),
            temp_prefix=str(raw.get("temp_prefix", DEFAULT_TEMP_PREFIX)),
            temp_root=str(temp_root) if temp_root is not None else None,
            allow_unisolated_runtime=bool(
                raw.get("allow_unisolated_runtime", DEFAULT_ALLOW_UNISOLATED_RUNTIME)
            ),
        )
