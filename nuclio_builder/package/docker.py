"""Docker packaging: the multi-stage image build sequence.

1. on-build image: the toolchain image, built from a static context.
2. builder image: compiles the harness-wrapped platform tree; the processor
   binary is then copied out of a throwaway container.
3. output image (optional): binary + user function files on a base image.
4. push (optional): tag with the registry prefix and push.

Containers created from the builder image are removed before stage 2 and
after the whole run, whatever its outcome.
"""

from __future__ import annotations

import shutil
from collections import deque
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from docker.utils import parse_repository_tag

from nuclio_builder.deadline import Deadline
from nuclio_builder.errors import BuilderError, BuildStepError
from nuclio_builder.logging import get_logger
from nuclio_builder.package.backend import ContainerBackend, DockerBackend
from nuclio_builder.package.extract import extract_binary
from nuclio_builder.package.steps import BuildStep, run_steps
from nuclio_builder.types import BuildSettings, CleanupReport, FunctionConfig
from nuclio_builder.workspace.env import Workspace


class DockerBuilder:
    def __init__(
        self,
        backend: ContainerBackend,
        settings: BuildSettings | None = None,
        deadline: Deadline | None = None,
        push_registry: str | None = None,
    ) -> None:
        self.backend = backend
        self.settings = settings or BuildSettings()
        self.deadline = deadline or Deadline()
        self.push_registry = push_registry
        self.pushed_image: str | None = None
        self.report = CleanupReport()
        self.log = get_logger().getChild("docker")

    # --- plan -------------------------------------------------------------

    def plan(self, ws: Workspace, produce_image: bool) -> list[BuildStep]:
        steps = [
            BuildStep("Preparing docker base images", lambda: self.create_onbuild_image(ws)),
            BuildStep("Building processor (in docker)", lambda: self.create_processor_binary(ws)),
        ]
        if produce_image:
            steps.append(
                BuildStep(
                    f"Dockerizing processor binary ({ws.output_name})",
                    lambda: self.create_processor_image(ws),
                )
            )
            if self.push_registry:
                steps.append(
                    BuildStep(
                        f"Pushing image ({self.registry_target(ws.output_name)})",
                        lambda: self.push_image(ws.output_name),
                    )
                )
        return steps

    def run(self, ws: Workspace, produce_image: bool) -> CleanupReport:
        """Run the plan, then clean up builder containers.

        Returns the cleanup report; on failure the report is attached to the
        raised ``BuildStepError`` as ``cleanup``.
        """
        self.report = CleanupReport()
        self.pushed_image = None
        try:
            self.backend.ping()
        except Exception as exc:
            raise BuilderError("No docker client found") from exc

        try:
            run_steps(self.plan(ws, produce_image), self.log, self.deadline)
        except BuildStepError as exc:
            self.cleanup_builder()
            exc.cleanup = self.report
            raise
        except BaseException:
            self.cleanup_builder()
            raise

        self.cleanup_builder()
        return self.report

    # --- stages -----------------------------------------------------------

    def create_onbuild_image(self, ws: Workspace) -> None:
        context = ws.nuclio_dir.joinpath(*self.settings.onbuild_context)
        self.build_image(context, "Dockerfile", self.settings.onbuild_image)

    def create_processor_binary(self, ws: Workspace) -> None:
        settings = self.settings
        self.cleanup_builder()
        self.build_image(ws.nuclio_dir, settings.builder_dockerfile, settings.builder_image)

        self.log.debug("Creating container for image", extra={"ctx": {"name": settings.builder_image}})
        container_id = self.backend.create_container(settings.builder_image)
        extract_binary(self.backend, container_id, settings.binary_path, ws.work_dir)

    def create_processor_image(self, ws: Workspace) -> None:
        settings = self.settings
        bin_dir = ws.nuclio_dir / "bin"
        bin_dir.mkdir(mode=0o755, parents=True, exist_ok=True)
        processor_output = bin_dir / settings.binary_name
        try:
            shutil.copy2(ws.binary_path, processor_output)
        except OSError as exc:
            raise BuilderError(f"Unable to copy file {ws.binary_path} to {processor_output}") from exc

        self.copy_files(ws.function_dir, ws.nuclio_dir)

        self.build_image(
            ws.nuclio_dir,
            self.processor_dockerfile(ws.config),
            ws.output_name,
            buildargs={"NUCLIO_BUILD_IMAGE": ws.config.image},
        )

    def push_image(self, image: str) -> None:
        target = self.registry_target(image)
        repository, tag = parse_repository_tag(target)
        self.log.info("Pushing image", extra={"ctx": {"from": image, "to": target}})
        self.backend.tag_image(image, repository, tag)
        self.follow(self.backend.push_image(repository, tag), f"pushing {target}")
        self.pushed_image = target

    # --- helpers ----------------------------------------------------------

    def registry_target(self, image: str) -> str:
        return f"{(self.push_registry or '').rstrip('/')}/{image}"

    def processor_dockerfile(self, config: FunctionConfig) -> str:
        if config.packages:
            return self.settings.packages_dockerfile
        return self.settings.minimal_dockerfile

    def copy_files(self, src: Path, dest: Path) -> None:
        """Copy only the top-level files of *src* into *dest*."""
        for entry in sorted(src.iterdir()):
            if entry.is_symlink():
                self.log.error("Symlink found", extra={"ctx": {"path": entry}})
                raise BuilderError(f"{entry.name!r} is a symlink")
            if entry.is_dir():
                self.log.info("Skipping directory copy", extra={"ctx": {"src": src, "name": entry.name}})
                continue
            try:
                shutil.copy2(entry, dest / entry.name)
            except OSError as exc:
                raise BuilderError(f"Can't copy {entry} to {dest}") from exc

    def build_image(
        self, context: Path, dockerfile: str, tag: str, buildargs: dict[str, str] | None = None
    ) -> None:
        self.log.debug(
            "Building image", extra={"ctx": {"image": tag, "context": context, "dockerfile": dockerfile}}
        )
        self.follow(self.backend.build_image(context, dockerfile, tag, buildargs), f"building {tag}")

    def follow(self, entries: Iterable[dict[str, Any]], action: str) -> None:
        """Consume a decoded JSON log stream; raise on its first error entry."""
        tail: deque[str] = deque(maxlen=self.settings.log_tail_lines)
        for entry in entries:
            self.deadline.check(action)
            if entry.get("error") or entry.get("errorDetail"):
                detail = entry.get("errorDetail") or {}
                message = detail.get("message") or entry.get("error") or "unknown error"
                raise BuildStepError(action, message, list(tail))

            text = entry.get("stream") or entry.get("status") or ""
            for line in text.splitlines():
                if line.strip():
                    tail.append(line)
                    self.log.debug(line, extra={"ctx": {"action": action}})

    def cleanup_builder(self) -> None:
        """Best-effort removal of containers created from the builder image."""
        image = self.settings.builder_image
        try:
            container_ids = self.backend.list_containers(image)
        except Exception as exc:
            self.log.warning("Can't list containers", extra={"ctx": {"image": image, "error": exc}})
            self.report.errors.append(f"list {image}: {exc}")
            return

        for container_id in container_ids:
            self.log.info("Deleting container", extra={"ctx": {"id": container_id}})
            try:
                self.backend.remove_container(container_id)
            except Exception as exc:
                self.log.warning("Can't delete container", extra={"ctx": {"id": container_id, "error": exc}})
                self.report.errors.append(f"remove {container_id}: {exc}")
            else:
                self.report.removed_containers.append(container_id)


def run_build_steps(
    ws: Workspace,
    produce_image: bool,
    *,
    backend: ContainerBackend | None = None,
    settings: BuildSettings | None = None,
    deadline: Deadline | None = None,
    push_registry: str | None = None,
) -> tuple[CleanupReport, str | None]:
    """Run the docker stages with a default backend; return the cleanup report and pushed image."""
    deadline = deadline or Deadline()
    backend = backend or DockerBackend(timeout=deadline.remaining())
    builder = DockerBuilder(backend, settings, deadline, push_registry)
    report = builder.run(ws, produce_image)
    return report, builder.pushed_image
