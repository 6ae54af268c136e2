"""Safe tar extraction for archives streamed out of containers.

Guards against common archive attacks:
- Tar Slip (../ traversal)
- Absolute paths
- Link members (symlinks and hardlinks are rejected)
- Device and fifo members
- Oversized files (basic cap)
"""

from __future__ import annotations

import io
import os
import stat
import tarfile
from collections.abc import Iterable
from pathlib import Path

MAX_MEMBER_BYTES = 512 * 1024 * 1024  # 512 MiB per member


class UnsafeArchiveError(RuntimeError):
    pass


def _is_within(base: Path, target: Path) -> bool:
    try:
        target.relative_to(base)
        return True
    except ValueError:
        return False


class _ChunkStream(io.RawIOBase):
    """Read-only file object over an iterable of byte chunks."""

    def __init__(self, chunks: Iterable[bytes]) -> None:
        self._chunks = iter(chunks)
        self._buffer = b""

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        while not self._buffer:
            try:
                self._buffer = next(self._chunks)
            except StopIteration:
                return 0
        n = min(len(b), len(self._buffer))
        b[:n] = self._buffer[:n]
        self._buffer = self._buffer[n:]
        return n


def safe_extract_tar_stream(chunks: Iterable[bytes], dest: Path) -> list[Path]:
    """Unpack a streamed (uncompressed) tar archive into *dest*."""
    with tarfile.open(fileobj=io.BufferedReader(_ChunkStream(chunks)), mode="r|") as tar:
        return _extract_members(tar, dest)


def _extract_members(tar: tarfile.TarFile, dest: Path) -> list[Path]:
    dest.mkdir(parents=True, exist_ok=True)
    base = dest.resolve()
    written: list[Path] = []

    for m in tar:
        fn = Path(m.name)
        if fn.name in {"", "."} and not m.isdir():
            continue
        # Disallow absolute paths and traversal
        if fn.is_absolute() or ".." in fn.parts:
            raise UnsafeArchiveError(f"Unsafe member path: {m.name}")
        target = (base / fn).resolve()
        if not _is_within(base, target):
            raise UnsafeArchiveError(f"Member escapes destination: {m.name}")

        mode = stat.S_IMODE(m.mode) & ~stat.S_ISUID & ~stat.S_ISGID

        if m.isdir():
            target.mkdir(parents=True, exist_ok=True)
            os.chmod(target, mode)
            continue
        if not m.isfile():
            raise UnsafeArchiveError(f"Unsupported member type: {m.name}")
        if m.size > MAX_MEMBER_BYTES:
            raise UnsafeArchiveError(f"Member too large: {m.name} ({m.size} bytes)")

        target.parent.mkdir(parents=True, exist_ok=True)
        src = tar.extractfile(m)
        if src is None:
            raise UnsafeArchiveError(f"Unreadable member: {m.name}")
        with src, open(target, "wb") as out:
            while chunk := src.read(1024 * 1024):
                out.write(chunk)
        os.chmod(target, mode)
        written.append(target)

    return written
