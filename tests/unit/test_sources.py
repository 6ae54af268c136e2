from __future__ import annotations

import sys
from pathlib import Path

import httpx
import pytest

from nuclio_builder.deadline import Deadline
from nuclio_builder.errors import BuildTimeoutError, CommandError, SourceAcquisitionError
from nuclio_builder.runner import CommandRunner
from nuclio_builder.workspace import surfaces
from nuclio_builder.workspace.surfaces import (
    is_url,
    parse_git_url,
    resolve_function_path,
    resolve_platform_source,
)


def _mock_stream(monkeypatch, handler) -> None:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    monkeypatch.setattr(surfaces.httpx, "stream", client.stream)


def test_parse_git_url() -> None:
    assert parse_git_url("https://github.com/nuclio/nuclio.git") == ("https://github.com/nuclio/nuclio.git", None)
    assert parse_git_url("https://github.com/nuclio/nuclio.git#dev") == ("https://github.com/nuclio/nuclio.git", "dev")
    assert parse_git_url("https://github.com/nuclio/nuclio.git#") == ("https://github.com/nuclio/nuclio.git", None)


def test_local_source_wins_over_url(tmp_path: Path) -> None:
    surface = resolve_platform_source(str(tmp_path), "https://example.com/nuclio.git#v1")
    assert surface.kind == "dir"
    assert surface.spec["path"] == str(tmp_path.resolve())

    surface = resolve_platform_source(None, "https://example.com/nuclio.git#v1")
    assert surface.kind == "git"
    assert surface.spec == {"repo": "https://example.com/nuclio.git", "ref": "v1"}


def test_is_url() -> None:
    assert is_url("https://example.com/handler.go")
    assert not is_url("/tmp/handler.go")
    assert not is_url("file:///tmp/handler.go")


def test_url_function_is_downloaded_as_handler(tmp_path: Path, monkeypatch) -> None:
    _mock_stream(monkeypatch, lambda request: httpx.Response(200, content=b"package handler\n"))
    path = resolve_function_path("https://example.com/fn/main.go", tmp_path / "staging")
    assert path == tmp_path / "staging"
    assert (path / "handler.go").read_bytes() == b"package handler\n"


def test_download_failure(tmp_path: Path, monkeypatch) -> None:
    _mock_stream(monkeypatch, lambda request: httpx.Response(404))
    with pytest.raises(SourceAcquisitionError, match="Unable to download") as exc_info:
        resolve_function_path("https://example.com/missing.go", tmp_path)
    assert exc_info.value.operation == "download"


def test_local_function_path_is_resolved(tmp_path: Path) -> None:
    assert resolve_function_path(str(tmp_path), tmp_path / "unused") == tmp_path.resolve()


# --- command runner ---------------------------------------------------------


def test_runner_returns_combined_output() -> None:
    code = "import sys; print('out'); print('err', file=sys.stderr)"
    output = CommandRunner().run([sys.executable, "-c", code])
    assert "out" in output
    assert "err" in output


def test_runner_applies_cwd_and_env(tmp_path: Path) -> None:
    code = "import os; print(os.getcwd()); print(os.environ['NUCLIO_TEST_VALUE'])"
    output = CommandRunner().run([sys.executable, "-c", code], cwd=tmp_path, env={"NUCLIO_TEST_VALUE": "42"})
    lines = output.splitlines()
    assert Path(lines[0]).resolve() == tmp_path.resolve()
    assert lines[1] == "42"


def test_runner_non_zero_exit() -> None:
    with pytest.raises(CommandError) as exc_info:
        CommandRunner().run([sys.executable, "-c", "import sys; print('nope'); sys.exit(3)"])
    assert exc_info.value.returncode == 3
    assert "nope" in exc_info.value.output


def test_runner_missing_executable() -> None:
    with pytest.raises(CommandError) as exc_info:
        CommandRunner().run(["definitely-not-a-real-command-nuclio"])
    assert exc_info.value.returncode is None


def test_runner_expired_deadline() -> None:
    with pytest.raises(BuildTimeoutError):
        CommandRunner(Deadline(0)).run([sys.executable, "-c", "pass"])


def test_runner_timeout_mid_command() -> None:
    with pytest.raises(CommandError, match="did not complete"):
        CommandRunner(Deadline(0.5)).run([sys.executable, "-c", "import time; time.sleep(5)"])


class _FixedDeadline:
    def __init__(self, remaining: float | None) -> None:
        self._remaining = remaining

    def check(self, operation: str) -> None:
        pass

    def remaining(self) -> float | None:
        return self._remaining


@pytest.mark.parametrize("remaining, expected", [(None, 60), (0.0, 0.0), (2.5, 2.5)])
def test_download_timeout_follows_deadline(tmp_path: Path, monkeypatch, remaining, expected) -> None:
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"package p\n")))
    seen: list[float] = []

    def stream(method, url, **kwargs):
        seen.append(kwargs["timeout"])
        return client.stream(method, url, **kwargs)

    monkeypatch.setattr(surfaces.httpx, "stream", stream)
    surfaces.download_function("https://example.com/h.go", tmp_path, _FixedDeadline(remaining))
    assert seen == [expected]
