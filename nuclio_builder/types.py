"""Shared Pydantic models."""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_NUCLIO_SOURCE_URL = "https://github.com/nuclio/nuclio.git"
ENV_PREFIX = "NUCLIO_BUILDER_"


class OutputType(str, Enum):
    docker = "docker"
    binary = "binary"


class BuildOptions(BaseModel):
    """A single build request, immutable once constructed."""

    model_config = ConfigDict(frozen=True)

    function_path: str
    output_type: Literal["docker", "binary"] = "docker"
    output_name: str = ""
    version: str = "latest"
    nuclio_source_dir: str | None = None
    nuclio_source_url: str = DEFAULT_NUCLIO_SOURCE_URL
    push_registry: str | None = None
    verbose: bool = False
    config_path: str | None = None
    keep_workspace: bool = False
    timeout: float | None = Field(default=None, gt=0)


class FunctionConfig(BaseModel):
    """Resolved function configuration (descriptor merged with build descriptor)."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    handler: str = ""
    image: str
    packages: tuple[str, ...] = ()


class BuildSettings(BaseModel):
    """Fixed names used by the workspace builder and the container orchestrator."""

    onbuild_image: str = "nuclio/nuclio:onbuild"
    onbuild_context: tuple[str, ...] = ("hack", "processor", "build", "onbuild")
    builder_image: str = "nuclio/builder-output"
    builder_dockerfile: str = "hack/processor/build/builder/Dockerfile"
    binary_path: str = "/go/bin/processor"
    binary_name: str = "processor"
    packages_dockerfile: str = "hack/processor/build/Dockerfile.jessie"
    minimal_dockerfile: str = "hack/processor/build/Dockerfile.alpine"
    user_functions_path: tuple[str, ...] = ("cmd", "processor", "user_functions")
    registry_path: tuple[str, ...] = ("cmd", "processor")
    default_build_image: str = "alpine"
    platform_module: str = "github.com/nuclio/nuclio"
    function_descriptor: str = "processor.yaml"
    build_descriptor: str = "build.yaml"
    log_tail_lines: int = 50

    @property
    def extracted_binary_name(self) -> str:
        """File name the builder binary lands under once copied out of the container."""
        return PurePosixPath(self.binary_path).name

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> BuildSettings:
        """Build settings overridden from ``NUCLIO_BUILDER_<FIELD>`` variables.

        Path-like tuple fields are given as slash-separated strings.
        """
        environ = dict(os.environ if environ is None else environ)
        overrides: dict[str, object] = {}
        for name, field in cls.model_fields.items():
            value = environ.get(ENV_PREFIX + name.upper())
            if value is None:
                continue
            if isinstance(field.default, tuple):
                overrides[name] = tuple(p for p in value.split("/") if p)
            else:
                overrides[name] = value
        return cls.model_validate(overrides)


class HandlerCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    package: str
    name: str


class CleanupReport(BaseModel):
    removed_containers: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    workspace_removed: bool = False


class BuildResult(BaseModel):
    output_type: Literal["docker", "binary"]
    output_name: str
    sha256: str | None = None
    pushed_image: str | None = None
    cleanup: CleanupReport = Field(default_factory=CleanupReport)


def function_dir(path: Path) -> Path:
    """Directory holding the function: the path itself, or a file's parent."""
    return path if path.is_dir() else path.parent
