from __future__ import annotations

import io
import shutil
import tarfile
from pathlib import Path

import pytest

FIXTURES = Path(__file__).parent / "fixtures"


def tar_chunks(name: str = "processor", data: bytes = b"\x7fELF-processor", mode: int = 0o755) -> list[bytes]:
    """An uncompressed tar with one file, split into small chunks like a docker stream."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        info = tarfile.TarInfo(name)
        info.size = len(data)
        info.mode = mode
        tar.addfile(info, io.BytesIO(data))
    raw = buf.getvalue()
    return [raw[i : i + 300] for i in range(0, len(raw), 300)]


class FakeRunner:
    """Records commands; ``git clone`` creates a minimal platform tree."""

    def __init__(self, fail_on: str | None = None) -> None:
        self.calls: list[tuple[list[str], str | None]] = []
        self.fail_on = fail_on

    def run(self, args, *, cwd=None, env=None) -> str:
        from nuclio_builder.errors import CommandError

        args = list(args)
        self.calls.append((args, str(cwd) if cwd is not None else None))
        if self.fail_on and self.fail_on in args:
            raise CommandError(" ".join(args), 128, "fatal: nope")
        if args[:2] == ["git", "clone"]:
            make_nuclio_tree(Path(args[3]))
        return ""


class FakeBackend:
    """In-memory ContainerBackend.

    ``build_logs`` maps an image tag to the JSON entries its build emits.
    """

    def __init__(self, containers: dict[str, str] | None = None, ping_error: Exception | None = None) -> None:
        self.containers: dict[str, str] = dict(containers or {})
        self.ping_error = ping_error
        self.build_logs: dict[str, list[dict]] = {}
        self.builds: list[dict] = []
        self.tags: list[tuple[str, str, str | None]] = []
        self.pushes: list[tuple[str, str | None]] = []
        self.archive = tar_chunks()
        self.remove_errors: dict[str, Exception] = {}
        self._next = 0

    def ping(self) -> None:
        if self.ping_error is not None:
            raise self.ping_error

    def build_image(self, context, dockerfile, tag, buildargs=None):
        self.builds.append(
            {"context": Path(context), "dockerfile": dockerfile, "tag": tag, "buildargs": buildargs}
        )
        return iter(self.build_logs.get(tag, [{"stream": f"Successfully tagged {tag}\n"}]))

    def create_container(self, image: str) -> str:
        self._next += 1
        container_id = f"c{self._next}"
        self.containers[container_id] = image
        return container_id

    def get_archive(self, container_id: str, path: str):
        return iter(self.archive)

    def list_containers(self, ancestor: str) -> list[str]:
        return [cid for cid, image in self.containers.items() if image == ancestor]

    def remove_container(self, container_id: str) -> None:
        if container_id in self.remove_errors:
            raise self.remove_errors[container_id]
        del self.containers[container_id]

    def tag_image(self, image: str, repository: str, tag: str | None = None) -> None:
        self.tags.append((image, repository, tag))

    def push_image(self, repository: str, tag: str | None = None):
        self.pushes.append((repository, tag))
        return iter([{"status": "The push refers to repository"}, {"status": "latest: digest: sha256:abc"}])


def make_nuclio_tree(root: Path) -> Path:
    """Smallest platform tree the workspace and docker stages touch."""
    (root / "hack" / "processor" / "build" / "onbuild").mkdir(parents=True)
    (root / "hack" / "processor" / "build" / "onbuild" / "Dockerfile").write_text("FROM golang\n")
    (root / "hack" / "processor" / "build" / "builder").mkdir(parents=True)
    (root / "hack" / "processor" / "build" / "builder" / "Dockerfile").write_text("FROM nuclio/nuclio:onbuild\n")
    (root / "cmd" / "processor").mkdir(parents=True)
    (root / "cmd" / "processor" / "main.go").write_text("package main\n")
    return root


@pytest.fixture
def nuclio_src(tmp_path: Path) -> Path:
    return make_nuclio_tree(tmp_path / "nuclio-src")


@pytest.fixture
def function_dir(tmp_path: Path) -> Path:
    dest = tmp_path / "fn"
    shutil.copytree(FIXTURES / "hello-go", dest)
    return dest


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()
