from __future__ import annotations

from typing import BinaryIO, Optional

from .constants import BLOCK_SIZE, COPY_CHUNK_SIZE, FOOTER_SIZE
from .errors import IoFailure
from .header import TarHeader, header_for_path


def padded_size(size: int) -> int:
    """Round ``size`` up to the next multiple of the block size."""
    return (size + BLOCK_SIZE - 1) // BLOCK_SIZE * BLOCK_SIZE


def padding_for(size: int) -> int:
    return padded_size(size) - size


def _write(fh: BinaryIO, data: bytes, what: str) -> None:
    try:
        fh.write(data)
    except OSError as exc:
        raise IoFailure(f"Failed to write {what}: {exc}") from exc


def write_entry(
    fh: BinaryIO,
    fs_path: str,
    *,
    arcname: Optional[str] = None,
    identity=None,
    chunk_size: int = COPY_CHUNK_SIZE,
) -> TarHeader:
    """Write the header block and zero-padded content of one regular file.

    Content is streamed in ``chunk_size`` pieces. The number of bytes copied
    must match the size recorded in the header; a file that shrinks or grows
    while being archived is reported as an ``IoFailure``.
    """
    header = header_for_path(fs_path, arcname=arcname, identity=identity)
    try:
        rf = open(fs_path, "rb")
    except OSError as exc:
        raise IoFailure(f"Failed to open file {fs_path}: {exc}") from exc
    with rf:
        _write(fh, header.pack(), f"header for {fs_path}")
        remaining = header.size
        try:
            while remaining:
                raw = rf.read(min(chunk_size, remaining))
                if not raw:
                    raise IoFailure(f"File {fs_path} shrank while being archived")
                _write(fh, raw, f"content of {fs_path}")
                remaining -= len(raw)
            if rf.read(1):
                raise IoFailure(f"File {fs_path} grew while being archived")
        except OSError as exc:
            raise IoFailure(f"Failed to read file {fs_path}: {exc}") from exc
        pad = padding_for(header.size)
        if pad:
            _write(fh, b"\x00" * pad, f"padding for {fs_path}")
    return header


def write_footer(fh: BinaryIO) -> None:
    _write(fh, b"\x00" * FOOTER_SIZE, "archive footer")
