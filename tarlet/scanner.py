from __future__ import annotations

import errno
import os
from dataclasses import dataclass
from typing import BinaryIO, Iterator, List

from .constants import BLOCK_SIZE, FIELD_NAME
from .errors import ContainerNotFound, IoFailure, MalformedHeader
from .header import TarHeader, decode_header, is_zero_block


@dataclass(frozen=True)
class EntryDescriptor:
    header: TarHeader
    header_offset: int

    @property
    def name(self) -> str:
        return self.header.name

    @property
    def size(self) -> int:
        return self.header.size

    @property
    def content_offset(self) -> int:
        return self.header_offset + BLOCK_SIZE

    @property
    def end_offset(self) -> int:
        """Offset of the block following this entry's padded content."""
        return self.header_offset + blocks_for(self.size) * BLOCK_SIZE


def blocks_for(size: int) -> int:
    """Blocks occupied by an entry of ``size`` content bytes, header included."""
    return (size + BLOCK_SIZE - 1) // BLOCK_SIZE + 1


def iter_entries(fh: BinaryIO, *, verify: bool = False) -> Iterator[EntryDescriptor]:
    """Walk an archive stream header by header without reading content.

    Each header's size field is used to seek to the next header. Scanning stops
    at the first header whose name field is all zero (the footer) or at end of
    file. The stream is re-positioned before every header read, so callers may
    read content between iterations.

    Raises:
        MalformedHeader: On a truncated header block or a non-octal size field.
        ChecksumMismatch: When ``verify`` is set and a header checksum is wrong.
    """
    name_width = FIELD_NAME[1]
    offset = 0
    while True:
        try:
            fh.seek(offset)
            raw = fh.read(BLOCK_SIZE)
        except OSError as exc:
            raise IoFailure(f"Failed to read header at offset {offset}: {exc}") from exc
        if is_zero_block(raw[:name_width]):
            return
        if len(raw) < BLOCK_SIZE:
            raise MalformedHeader(f"Truncated header at offset {offset}")
        try:
            header = decode_header(raw, verify=verify)
        except MalformedHeader as exc:
            raise type(exc)(f"{exc} (header at offset {offset})") from exc
        entry = EntryDescriptor(header=header, header_offset=offset)
        if entry.end_offset <= offset:
            raise MalformedHeader(f"Entry {entry.name!r} does not advance past offset {offset}")
        yield entry
        offset = entry.end_offset


def open_archive(path: str) -> BinaryIO:
    """Open an existing archive for reading, mapping a missing file to ``ContainerNotFound``."""
    if not os.path.exists(path):
        raise ContainerNotFound(errno.ENOENT, os.strerror(errno.ENOENT), str(path))
    try:
        return open(path, "rb")
    except OSError as exc:
        raise IoFailure(f"Failed to open archive {path}: {exc}") from exc


def scan_archive(path: str, *, verify: bool = False) -> List[EntryDescriptor]:
    with open_archive(path) as fh:
        return list(iter_entries(fh, verify=verify))
