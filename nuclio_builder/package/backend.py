"""Container-build backend: the calls the orchestrator and extractor need.

Any object implementing ``ContainerBackend`` can stand in for Docker; the
default ``DockerBackend`` talks to the daemon through docker-py's low-level
API client so build and push logs arrive as decoded JSON entries.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any, Protocol

import docker
import docker.errors

from nuclio_builder.errors import BuilderError


class ContainerBackend(Protocol):
    def ping(self) -> None: ...

    def build_image(
        self, context: Path, dockerfile: str, tag: str, buildargs: dict[str, str] | None = None
    ) -> Iterable[dict[str, Any]]: ...

    def create_container(self, image: str) -> str: ...

    def get_archive(self, container_id: str, path: str) -> Iterable[bytes]: ...

    def list_containers(self, ancestor: str) -> list[str]: ...

    def remove_container(self, container_id: str) -> None: ...

    def tag_image(self, image: str, repository: str, tag: str | None = None) -> None: ...

    def push_image(self, repository: str, tag: str | None = None) -> Iterable[dict[str, Any]]: ...


class DockerBackend:
    def __init__(self, api: docker.APIClient | None = None, timeout: float | None = None) -> None:
        if api is None:
            kwargs: dict[str, Any] = {}
            if timeout is not None:
                kwargs["timeout"] = max(1, int(timeout))
            try:
                api = docker.from_env(**kwargs).api
            except docker.errors.DockerException as exc:
                raise BuilderError("No docker client found") from exc
        self.api = api

    def ping(self) -> None:
        self.api.ping()

    def build_image(
        self, context: Path, dockerfile: str, tag: str, buildargs: dict[str, str] | None = None
    ) -> Iterator[dict[str, Any]]:
        return self.api.build(
            path=str(context),
            dockerfile=dockerfile,
            tag=tag,
            buildargs=buildargs or None,
            rm=True,
            decode=True,
        )

    def create_container(self, image: str) -> str:
        return self.api.create_container(image=image)["Id"]

    def get_archive(self, container_id: str, path: str) -> Iterator[bytes]:
        stream, _stat = self.api.get_archive(container_id, path)
        return stream

    def list_containers(self, ancestor: str) -> list[str]:
        return [c["Id"] for c in self.api.containers(all=True, filters={"ancestor": ancestor})]

    def remove_container(self, container_id: str) -> None:
        self.api.remove_container(container_id, force=True)

    def tag_image(self, image: str, repository: str, tag: str | None = None) -> None:
        if not self.api.tag(image, repository, tag=tag):
            raise docker.errors.DockerException(f"Failed to tag {image} as {repository}:{tag}")

    def push_image(self, repository: str, tag: str | None = None) -> Iterator[dict[str, Any]]:
        return self.api.push(repository, tag=tag, stream=True, decode=True)
