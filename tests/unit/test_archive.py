from __future__ import annotations

import io
import stat
import tarfile
from pathlib import Path

import pytest
from conftest import tar_chunks

from nuclio_builder.security.archive import UnsafeArchiveError, safe_extract_tar_stream


def _tar_with(*members: tarfile.TarInfo) -> list[bytes]:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        for info in members:
            tar.addfile(info, io.BytesIO(b"x" * info.size) if info.isfile() else None)
    return [buf.getvalue()]


def test_extracts_file_with_mode(tmp_path: Path) -> None:
    written = safe_extract_tar_stream(tar_chunks(mode=0o755), tmp_path)
    assert written == [(tmp_path / "processor").resolve()]
    assert (tmp_path / "processor").read_bytes() == b"\x7fELF-processor"
    assert stat.S_IMODE((tmp_path / "processor").stat().st_mode) == 0o755


def test_setuid_bit_is_stripped(tmp_path: Path) -> None:
    safe_extract_tar_stream(tar_chunks(mode=0o4755), tmp_path)
    assert stat.S_IMODE((tmp_path / "processor").stat().st_mode) == 0o755


def test_rejects_traversal(tmp_path: Path) -> None:
    info = tarfile.TarInfo("../evil")
    info.size = 1
    with pytest.raises(UnsafeArchiveError, match="Unsafe member path"):
        safe_extract_tar_stream(_tar_with(info), tmp_path / "dest")
    assert not (tmp_path / "evil").exists()


def test_rejects_symlinks(tmp_path: Path) -> None:
    info = tarfile.TarInfo("processor")
    info.type = tarfile.SYMTYPE
    info.linkname = "/etc/passwd"
    with pytest.raises(UnsafeArchiveError, match="Unsupported member type"):
        safe_extract_tar_stream(_tar_with(info), tmp_path)
