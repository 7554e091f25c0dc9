from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from types import TracebackType

from .errors import (
    OutputDirPermissionFailed,
    SourcePermissionFailed,
    SourceWriteFailed,
    WorkspaceCreationFailed,
)

logger = logging.getLogger(__name__)

# The compiler runs as a different user inside the container, so both the
# source file and the output directory must be world-writable.
WIDE_OPEN_MODE = 0o777
OUTPUT_DIR_NAME = "output"


class Workspace:
    """Per-request scratch directory holding the source file and output dir.

    Example:
        ```python
        with Workspace.create(prefix="playground") as workspace:
            workspace.write_source("fn main() {}")
        ```
    """

    def __init__(self, root: Path, input_name: str) -> None:
        """Wrap an already-allocated scratch root.

        Use `Workspace.create` instead of calling this directly.

        Example:
            ```python
            workspace = Workspace(Path("/tmp/playground1234"), "input.rs")
            ```
        """
        self.root = root
        self.input_file = root / input_name
        self.output_dir = root / OUTPUT_DIR_NAME
        self._closed = False

    @classmethod
    def create(
        cls,
        *,
        prefix: str = "playground",
        root: str | None = None,
        input_name: str = "input.rs",
    ) -> "Workspace":
        """Allocate a unique scratch directory with a world-writable output dir.

        Example:
            ```python
            workspace = Workspace.create(prefix="playground", root="/var/tmp")
            ```
        """
        try:
            scratch = Path(tempfile.mkdtemp(prefix=prefix, dir=root))
        except OSError as exc:
            raise WorkspaceCreationFailed(f"Unable to create temporary directory: {exc}") from exc

        workspace = cls(scratch, input_name)
        try:
            try:
                workspace.output_dir.mkdir()
            except OSError as exc:
                raise WorkspaceCreationFailed(f"Unable to create output directory: {exc}") from exc
            try:
                os.chmod(workspace.output_dir, WIDE_OPEN_MODE)
            except OSError as exc:
                raise OutputDirPermissionFailed(
                    f"Unable to set permissions for output directory: {exc}"
                ) from exc
        except BaseException:
            workspace.close()
            raise
        return workspace

    @property
    def closed(self) -> bool:
        """Return whether the scratch tree has been removed.

        Example:
            ```python
            assert not workspace.closed
            ```
        """
        return self._closed

    def write_source(self, code: str) -> None:
        """Write source text to the input file and widen its permissions.

        Example:
            ```python
            workspace.write_source("fn main() {}")
            ```
        """
        try:
            data = code.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise SourceWriteFailed(f"Unable to encode source file: {exc}") from exc
        try:
            self.input_file.write_bytes(data)
        except OSError as exc:
            raise SourceWriteFailed(f"Unable to create source file: {exc}") from exc
        try:
            os.chmod(self.input_file, WIDE_OPEN_MODE)
        except OSError as exc:
            raise SourcePermissionFailed(
                f"Unable to set permissions for source file: {exc}"
            ) from exc
        logger.debug("Wrote %d bytes of source to %s", len(data), self.input_file)

    def close(self) -> None:
        """Recursively remove the scratch tree. Safe to call more than once.

        Example:
            ```python
            workspace.close()
            assert not workspace.root.exists()
            ```
        """
        if self._closed:
            return
        self._closed = True
        shutil.rmtree(self.root, onexc=_log_cleanup_error)
        logger.debug("Removed workspace %s", self.root)

    def __enter__(self) -> "Workspace":
        """Return the workspace for use in a `with` block.

        Example:
            ```python
            with Workspace.create() as workspace:
                ...
            ```
        """
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Remove the scratch tree when the `with` block ends.

        Example:
            ```python
            workspace.__exit__(None, None, None)
            ```
        """
        self.close()


def _log_cleanup_error(function: object, path: str, exc: BaseException) -> None:
    """Log a file that could not be removed instead of aborting cleanup.

    Example:
        ```python
        shutil.rmtree(root, onexc=_log_cleanup_error)
        ```
    """
    if isinstance(exc, FileNotFoundError):
        return
    logger.warning("Unable to remove %s from workspace: %s", path, exc)
