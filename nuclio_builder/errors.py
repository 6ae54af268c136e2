"""Error taxonomy for the build pipeline.

Every stage raises one of these, chained (``raise ... from exc``) to the
underlying cause so the top-level caller sees the full context.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nuclio_builder.types import CleanupReport


class BuilderError(Exception):
    """Base class for all build failures."""


class ConfigError(BuilderError):
    def __init__(self, message: str, path: Path | str | None = None) -> None:
        self.path = str(path) if path is not None else None
        super().__init__(f"{message}: {path}" if path is not None else message)


class CommandError(BuilderError):
    """A shell command exited non-zero, could not start, or timed out."""

    def __init__(self, command: str, returncode: int | None, output: str = "") -> None:
        self.command = command
        self.returncode = returncode
        self.output = output
        detail = f"exit code {returncode}" if returncode is not None else "did not complete"
        super().__init__(f"Command failed ({detail}): {command}")


class SourceAcquisitionError(BuilderError):
    def __init__(self, operation: str, target: str, message: str | None = None) -> None:
        self.operation = operation
        self.target = target
        super().__init__(message or f"Unable to {operation} {target}")


class DiscoveryError(BuilderError):
    pass


class TemplateError(BuilderError):
    pass


class BuildStepError(BuilderError):
    """A named container-build stage failed.

    ``log_tail`` holds the last lines of the backend's build log, ``cleanup``
    the report of the cleanup that ran after the failure.
    """

    def __init__(self, step: str, message: str, log_tail: list[str] | None = None) -> None:
        self.step = step
        self.log_tail = list(log_tail or [])
        self.cleanup: CleanupReport | None = None
        super().__init__(f"Error while {step}: {message}")


class ExtractionError(BuilderError):
    def __init__(self, container_id: str, path: str, message: str) -> None:
        self.container_id = container_id
        self.path = path
        super().__init__(f"Can't copy {path} from container {container_id}: {message}")


class OutputError(BuilderError):
    pass


class BuildTimeoutError(BuilderError):
    pass
