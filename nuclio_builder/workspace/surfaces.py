"""Source resolvers: where the platform source and the user function come from.

Platform source is either a local directory or a git URL with an optional
``#ref`` suffix, e.g.:
- https://github.com/nuclio/nuclio.git
- https://github.com/nuclio/nuclio.git#development
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

import httpx

from nuclio_builder.deadline import Deadline
from nuclio_builder.errors import SourceAcquisitionError
from nuclio_builder.logging import get_logger

log = get_logger().getChild("env")


@dataclass(frozen=True)
class Surface:
    kind: str  # "dir" | "git"
    spec: dict


def parse_git_url(url: str) -> tuple[str, str | None]:
    repo, sep, ref = url.partition("#")
    return repo, (ref if sep and ref else None)


def resolve_platform_source(source_dir: str | None, source_url: str) -> Surface:
    if source_dir:
        return Surface("dir", {"path": str(Path(source_dir).resolve())})
    repo, ref = parse_git_url(source_url)
    return Surface("git", {"repo": repo, "ref": ref})


def is_url(s: str) -> bool:
    u = urlparse(s)
    return u.scheme in {"http", "https"} and bool(u.netloc)


def download_function(url: str, dest_dir: Path, deadline: Deadline | None = None) -> Path:
    """Download a single-file function into *dest_dir* and return that directory."""
    deadline = deadline or Deadline()
    deadline.check(f"downloading {url}")
    dest_dir.mkdir(parents=True, exist_ok=True)
    target = dest_dir / "handler.go"

    log.debug("Downloading function", extra={"ctx": {"url": url, "target": target}})
    remaining = deadline.remaining()
    timeout = 60 if remaining is None else remaining
    try:
        with httpx.stream("GET", url, timeout=timeout, follow_redirects=True) as r:
            r.raise_for_status()
            with open(target, "wb") as out:
                for chunk in r.iter_bytes():
                    out.write(chunk)
    except (httpx.HTTPError, OSError) as exc:
        raise SourceAcquisitionError("download", url, f"Unable to download function from {url}: {exc}") from exc
    return dest_dir


def resolve_function_path(function_path: str, staging: Path, deadline: Deadline | None = None) -> Path:
    """Return a local path for *function_path*, downloading it if it is a URL."""
    if is_url(function_path):
        return download_function(function_path, staging, deadline)
    return Path(function_path).expanduser().resolve()
