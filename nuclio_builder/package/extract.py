"""Copy a compiled artifact out of a builder container."""

from __future__ import annotations

from pathlib import Path, PurePosixPath

from nuclio_builder.errors import ExtractionError
from nuclio_builder.logging import get_logger
from nuclio_builder.package.backend import ContainerBackend
from nuclio_builder.security.archive import safe_extract_tar_stream

log = get_logger().getChild("docker")


def extract_binary(backend: ContainerBackend, container_id: str, source_path: str, dest_dir: Path) -> Path:
    """Unpack *source_path* from the container into *dest_dir*; return the host path."""
    log.debug(
        "Copying binary from container",
        extra={"ctx": {"container": container_id, "path": source_path, "target": dest_dir}},
    )
    try:
        stream = backend.get_archive(container_id, source_path)
        safe_extract_tar_stream(stream, dest_dir)
    except Exception as exc:
        raise ExtractionError(container_id, source_path, str(exc)) from exc

    extracted = dest_dir / PurePosixPath(source_path).name
    if not extracted.is_file():
        raise ExtractionError(container_id, source_path, "archive did not contain the file")
    return extracted
