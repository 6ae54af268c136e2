"""Build workspace ("env"): an isolated temp dir holding the platform source
with the user function copied in and its harness registration generated.

Layout::

    <work_dir>/
        nuclio/                               platform source tree
            .deps                             OS packages, one per line
            cmd/processor/
                nuclio_user_functions__<name>.go
                user_functions/<name>/...      copy of the user function
        processor                             binary extracted from the builder

A ``Workspace`` is only returned once every step succeeded; on failure the
temp dir is removed before the error propagates. The returned workspace is a
context manager that deletes the temp dir on exit unless ``keep`` is set.
"""

from __future__ import annotations

import shutil
import stat
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from nuclio_builder.deadline import Deadline
from nuclio_builder.detect.base import complete_handler_info
from nuclio_builder.errors import BuilderError, CommandError, SourceAcquisitionError, TemplateError
from nuclio_builder.logging import get_logger
from nuclio_builder.runner import CommandRunner
from nuclio_builder.types import BuildOptions, BuildSettings, FunctionConfig
from nuclio_builder.workspace.surfaces import resolve_platform_source
from nuclio_builder.workspace.templates import registry_file_name, render_registry

log = get_logger().getChild("env")

WORKSPACE_PREFIX = "nuclio-build-"


@dataclass
class Workspace:
    work_dir: Path
    nuclio_dir: Path
    output_name: str
    config: FunctionConfig
    binary_path: Path
    user_function_path: Path | None = None
    function_package: str | None = None
    keep: bool = False
    removed: bool = False

    @property
    def function_dir(self) -> Path:
        """Where the user function was copied inside the platform tree."""
        if self.user_function_path is None:
            raise BuilderError("User function path has not been created")
        return self.user_function_path / self.config.name

    def cleanup(self) -> bool:
        """Delete the temp dir unless kept. Returns whether it was removed."""
        if self.keep:
            log.info("Keeping workspace", extra={"ctx": {"path": self.work_dir}})
            return False
        if not self.removed:
            shutil.rmtree(self.work_dir, ignore_errors=True)
            self.removed = True
            log.debug("Removed workspace", extra={"ctx": {"path": self.work_dir}})
        return self.removed

    def __enter__(self) -> Workspace:
        return self

    def __exit__(self, *exc_info) -> None:
        self.cleanup()


def get_output_name(options: BuildOptions, function_name: str, cwd: Path | None = None) -> str:
    version = options.version
    name = options.output_name

    if name:
        if options.output_type == "docker":
            return name if ":" in name else f"{name}:{version}"
        return f"{name}_{version}"

    if options.output_type == "docker":
        return f"nuclio_processor_{function_name}:{version}"

    binary_name = f"nuclio_processor_{function_name}_{version}"
    try:
        base = cwd or Path.cwd()
    except OSError:
        return binary_name
    return str(base / binary_name)


def _mkdirs_with_mode(root: Path, parts: tuple[str, ...], mode: int) -> Path:
    # every created level gets the mode, independent of umask
    current = root
    for part in parts:
        current = current / part
        if not current.exists():
            current.mkdir()
            current.chmod(mode)
    return current


class _EnvBuilder:
    def __init__(
        self,
        workspace: Workspace,
        options: BuildOptions,
        function_path: Path,
        settings: BuildSettings,
        runner: CommandRunner,
    ) -> None:
        self.ws = workspace
        self.options = options
        self.function_path = function_path
        self.settings = settings
        self.runner = runner

    def steps(self) -> list[tuple[str, Callable[[], None]]]:
        return [
            ("getting nuclio source", self.get_nuclio_source),
            ("creating user function path", self.create_user_function_path),
            ("creating deps file", self.create_deps_file),
        ]

    def get_nuclio_source(self) -> None:
        dest = self.ws.nuclio_dir
        surface = resolve_platform_source(self.options.nuclio_source_dir, self.options.nuclio_source_url)

        if surface.kind == "dir":
            src = surface.spec["path"]
            log.debug("Copying nuclio source", extra={"ctx": {"from": src, "to": dest}})
            try:
                shutil.copytree(src, dest, symlinks=True)
            except (OSError, shutil.Error) as exc:
                raise SourceAcquisitionError(
                    "copy", src, f"Unable to copy nuclio from local directory {src}"
                ) from exc
        else:
            repo, ref = surface.spec["repo"], surface.spec["ref"]
            try:
                self.runner.run(["git", "clone", repo, str(dest)])
            except CommandError as exc:
                raise SourceAcquisitionError("clone", repo, f"Unable to clone nuclio from {repo}") from exc
            if ref:
                try:
                    self.runner.run(["git", "checkout", ref], cwd=dest)
                except CommandError as exc:
                    raise SourceAcquisitionError(
                        "checkout", ref, f"Unable to checkout nuclio ref {ref}"
                    ) from exc

        log.debug("Completed getting nuclio source")

    def create_user_function_path(self) -> None:
        ws, settings = self.ws, self.settings
        mode = stat.S_IMODE(ws.nuclio_dir.stat().st_mode)
        ws.user_function_path = _mkdirs_with_mode(ws.nuclio_dir, settings.user_functions_path, mode)
        log.debug("Created user function path", extra={"ctx": {"path": ws.user_function_path}})

        dest = ws.function_dir
        log.debug("Copying user data", extra={"ctx": {"from": self.function_path, "to": dest}})
        try:
            if self.function_path.is_dir():
                shutil.copytree(self.function_path, dest, symlinks=True)
            else:
                dest.mkdir()
                shutil.copy2(self.function_path, dest / self.function_path.name)
        except (OSError, shutil.Error) as exc:
            raise SourceAcquisitionError(
                "copy", str(self.function_path), f"Error when copying from {self.function_path} to {dest}"
            ) from exc

        # the output image build COPYs the runtime descriptor, so it must exist
        descriptor = dest / settings.function_descriptor
        if not descriptor.exists():
            log.debug("Processor config doesn't exist. Creating", extra={"ctx": {"path": descriptor}})
            try:
                descriptor.touch()
            except OSError as exc:
                raise SourceAcquisitionError(
                    "create", str(descriptor), "Failed to create default processor config file"
                ) from exc

        self.write_registry_file()

    def write_registry_file(self) -> None:
        ws, settings = self.ws, self.settings
        content = render_registry(
            name=ws.config.name,
            handler=ws.config.handler,
            module=settings.platform_module,
            user_functions_path="/".join(settings.user_functions_path),
        )
        path = ws.nuclio_dir.joinpath(*settings.registry_path) / registry_file_name(ws.config.name)
        log.debug("Writing registry file", extra={"ctx": {"path": path}})
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise TemplateError(f"Unable to write registry file {path}") from exc

    def create_deps_file(self) -> None:
        packages = self.ws.config.packages
        if not packages:
            return

        path = self.ws.nuclio_dir / ".deps"
        log.debug("Outputting deps file", extra={"ctx": {"path": path, "packages": list(packages)}})
        try:
            path.write_text("".join(f"{p}\n" for p in packages), encoding="utf-8")
        except OSError as exc:
            raise BuilderError(f"Error outputting packages to {path}") from exc


def build_workspace(
    config: FunctionConfig,
    options: BuildOptions,
    *,
    function_path: Path | None = None,
    settings: BuildSettings | None = None,
    runner: CommandRunner | None = None,
    deadline: Deadline | None = None,
) -> Workspace:
    settings = settings or BuildSettings()
    deadline = deadline or Deadline(options.timeout)
    runner = runner or CommandRunner(deadline)
    source = function_path or Path(options.function_path).resolve()

    config, package = complete_handler_info(config, source)

    work_dir = Path(tempfile.mkdtemp(prefix=WORKSPACE_PREFIX))
    workspace = Workspace(
        work_dir=work_dir,
        nuclio_dir=work_dir / "nuclio",
        output_name=get_output_name(options, config.name),
        config=config,
        binary_path=work_dir / settings.extracted_binary_name,
        function_package=package,
        keep=options.keep_workspace,
    )
    log.debug("Initializing", extra={"ctx": {"work_dir": work_dir, "dest_dir": workspace.nuclio_dir}})

    try:
        for label, step in _EnvBuilder(workspace, options, source, settings, runner).steps():
            deadline.check(label)
            try:
                step()
            except BuilderError as exc:
                exc.add_note(f"while {label}")
                raise
    except BaseException:
        # partial workspaces are never handed out, even when kept for debugging
        shutil.rmtree(work_dir, ignore_errors=True)
        raise

    return workspace
