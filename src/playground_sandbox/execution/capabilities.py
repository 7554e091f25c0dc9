from __future__ import annotations

from dataclasses import dataclass

from ..errors import UnsupportedRuntime


@dataclass(frozen=True, slots=True)
class RuntimeCapabilities:
    """Isolation properties advertised by a runtime.

    Runtimes declare these in a `capabilities` class attribute.

    Example:
        ```python
        caps = RuntimeCapabilities(True, True, True, True)
        ```
    """

    ephemeral: bool
    network_isolated: bool
    resource_capped: bool
    filesystem_scoped: bool

    @property
    def fully_isolated(self) -> bool:
        """Return whether every isolation property holds.

        Example:
            ```python
            assert FULL_ISOLATION.fully_isolated
            ```
        """
        return self.ephemeral and self.network_isolated and self.resource_capped and self.filesystem_scoped


FULL_ISOLATION = RuntimeCapabilities(True, True, True, True)
NO_ISOLATION = RuntimeCapabilities(False, False, False, False)


def capabilities_of(runtime: object) -> RuntimeCapabilities:
    """Return the capabilities a runtime declares.

    Runtimes without a `capabilities` attribute make no isolation guarantees.

    Example:
        ```python
        caps = capabilities_of(DockerRuntime())
        ```
    """
    caps = getattr(runtime, "capabilities", None)
    if isinstance(caps, RuntimeCapabilities):
        return caps
    return NO_ISOLATION


def preflight_validate_runtime(runtime: object, *, allow_unisolated: bool) -> RuntimeCapabilities:
    """Refuse runtimes that cannot isolate untrusted code unless opted in.

    Example:
        ```python
        preflight_validate_runtime(LocalRuntime(entrypoints={"rustc": ["rustc"]}), allow_unisolated=True)
        ```
    """
    caps = capabilities_of(runtime)
    if not caps.fully_isolated and not allow_unisolated:
        raise UnsupportedRuntime(
            f"Runtime '{type(runtime).__name__}' does not isolate untrusted code; "
            "set allow_unisolated_runtime to use it"
        )
    return caps
