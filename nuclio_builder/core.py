"""Build orchestration: config → workspace → docker stages → output."""

from __future__ import annotations

import hashlib
import shutil
import tempfile
from contextlib import ExitStack
from pathlib import Path

from nuclio_builder.config import resolve_config
from nuclio_builder.deadline import Deadline
from nuclio_builder.errors import OutputError
from nuclio_builder.logging import get_logger
from nuclio_builder.package.backend import ContainerBackend
from nuclio_builder.package.docker import run_build_steps
from nuclio_builder.runner import CommandRunner
from nuclio_builder.types import BuildOptions, BuildResult, BuildSettings, FunctionConfig, function_dir
from nuclio_builder.workspace.env import Workspace, build_workspace
from nuclio_builder.workspace.surfaces import resolve_function_path


class Builder:
    """Runs one build for a set of ``BuildOptions``.

    The backend and the command runner default to Docker and subprocess;
    tests pass fakes.
    """

    def __init__(
        self,
        options: BuildOptions,
        settings: BuildSettings | None = None,
        backend: ContainerBackend | None = None,
        runner: CommandRunner | None = None,
    ) -> None:
        self.options = options
        self.settings = settings or BuildSettings.from_env()
        self.deadline = Deadline(options.timeout)
        self.backend = backend
        self.runner = runner or CommandRunner(self.deadline)
        self.log = get_logger(verbose=options.verbose)

    def resolve_config(self, function_path: Path) -> FunctionConfig:
        base = function_dir(function_path)
        descriptor = (
            Path(self.options.config_path)
            if self.options.config_path
            else base / self.settings.function_descriptor
        )
        return resolve_config(
            descriptor,
            base / self.settings.build_descriptor,
            self.settings,
            missing_ok=not self.options.config_path,
        )

    def build(self) -> BuildResult:
        options = self.options

        with ExitStack() as stack:
            staging = Path(stack.enter_context(tempfile.TemporaryDirectory(prefix="nuclio-fetch-")))
            function_path = resolve_function_path(options.function_path, staging, self.deadline)

            config = self.resolve_config(function_path)

            self.log.info("Preparing environment")
            ws = stack.enter_context(
                build_workspace(
                    config,
                    options,
                    function_path=function_path,
                    settings=self.settings,
                    runner=self.runner,
                    deadline=self.deadline,
                )
            )

            cleanup, pushed_image = run_build_steps(
                ws,
                produce_image=options.output_type == "docker",
                backend=self.backend,
                settings=self.settings,
                deadline=self.deadline,
                push_registry=options.push_registry,
            )

            result = BuildResult(
                output_type=options.output_type,
                output_name=ws.output_name,
                pushed_image=pushed_image,
                cleanup=cleanup,
            )
            if options.output_type == "binary":
                result.sha256 = self.write_binary(ws)

        result.cleanup.workspace_removed = ws.removed
        self.log.info(
            "Build completed successfully",
            extra={"ctx": {"type": result.output_type, "name": result.output_name}},
        )
        return result

    def write_binary(self, ws: Workspace) -> str:
        dest = Path(ws.output_name)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(ws.binary_path, dest)
            shutil.copymode(ws.binary_path, dest)
        except OSError as exc:
            raise OutputError(f"Unable to copy {ws.binary_path} to {dest}") from exc
        return file_sha256(dest)


def file_sha256(path: Path) -> str:
    with open(path, "rb") as f:
        return hashlib.file_digest(f, "sha256").hexdigest()


def build(options: BuildOptions, **kwargs) -> BuildResult:
    return Builder(options, **kwargs).build()
