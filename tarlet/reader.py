from __future__ import annotations

import os
import sys
from typing import BinaryIO, Dict, List, Optional

from .constants import COPY_CHUNK_SIZE, FOOTER_SIZE, MAGIC
from .errors import IoFailure, MalformedHeader
from .pathutil import member_path
from .scanner import EntryDescriptor, iter_entries, open_archive


def _safe_chmod(path: str, mode: Optional[int]) -> None:
    """Best-effort chmod; failures are reported on stderr and otherwise ignored."""
    if mode is None:
        return
    try:
        os.chmod(path, mode)
    except OSError as exc:
        print(f"Warning: failed to set mode on {path}: {exc}", file=sys.stderr)


def _safe_utime(path: str, mtime: Optional[int]) -> None:
    if mtime is None:
        return
    try:
        os.utime(path, (mtime, mtime))
    except OSError as exc:
        print(f"Warning: failed to set timestamps on {path}: {exc}", file=sys.stderr)


class ArchiveReader:
    """Sequential reader over a ustar archive.

    Entries are discovered by walking headers from the start of the file; the
    reader keeps no index between calls. With ``verify`` set (the default),
    every header checksum is checked as it is scanned.
    """

    def __init__(self, path: str, *, verify: bool = True):
        self.path = str(path)
        self.verify_checksums = verify
        self.f: Optional[BinaryIO] = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def open(self):
        if self.f is not None:
            return
        self.f = open_archive(self.path)

    def close(self):
        if self.f is not None:
            self.f.close()
            self.f = None

    def entries(self) -> List[EntryDescriptor]:
        if self.f is None:
            raise RuntimeError("Archive not open")
        return list(iter_entries(self.f, verify=self.verify_checksums))

    def list(self) -> List[str]:
        """Entry names in archive order, stacked duplicates included."""
        return [e.name for e in self.entries()]

    def latest_entries(self) -> List[EntryDescriptor]:
        """One entry per name, the last one written wins.

        Names keep the position of their first appearance.
        """
        latest: Dict[str, EntryDescriptor] = {}
        for e in self.entries():
            latest[e.name] = e
        return list(latest.values())

    def read(self, entry: EntryDescriptor) -> bytes:
        return b"".join(self._iter_content(entry))

    def extract(self, entry: EntryDescriptor, out_path: str, *, restore_metadata: bool = True):
        """Copy the content of ``entry`` to ``out_path``, replacing any existing file."""
        os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
        if os.path.lexists(out_path) and not os.path.isdir(out_path):
            os.unlink(out_path)
        try:
            wf = open(out_path, "wb")
        except OSError as exc:
            raise IoFailure(f"Failed to create file {out_path}: {exc}") from exc
        with wf:
            for raw in self._iter_content(entry):
                try:
                    wf.write(raw)
                except OSError as exc:
                    raise IoFailure(f"Failed to write file {out_path}: {exc}") from exc
        if restore_metadata:
            _safe_chmod(out_path, entry.header.mode)
            _safe_utime(out_path, entry.header.mtime)

    def extract_all(self, outdir: str = ".", *, restore_metadata: bool = True) -> List[str]:
        """Extract every entry in archive order; later duplicates overwrite earlier ones.

        Returns:
            The filesystem paths written, in extraction order.
        """
        written: List[str] = []
        for e in self.entries():
            dst = self.destination(e, outdir)
            self.extract(e, dst, restore_metadata=restore_metadata)
            written.append(dst)
        return written

    def destination(self, entry: EntryDescriptor, outdir: str = ".") -> str:
        """Filesystem path under ``outdir`` that ``entry`` extracts to."""
        try:
            rel = member_path(entry.name)
        except ValueError as exc:
            raise MalformedHeader(f"Unsafe member name: {exc}") from exc
        return os.path.join(outdir or ".", rel)

    def verify(self) -> bool:
        """Check header checksums, magic and the presence of the zero footer."""
        if self.f is None:
            raise RuntimeError("Archive not open")
        end = 0
        try:
            for e in iter_entries(self.f, verify=True):
                if e.header.magic[:5] != MAGIC[:5]:
                    return False
                end = e.end_offset
        except MalformedHeader:
            return False
        size = os.fstat(self.f.fileno()).st_size
        if size < end + FOOTER_SIZE:
            return False
        self.f.seek(end)
        return not any(self.f.read(FOOTER_SIZE))

    # internals
    def _iter_content(self, entry: EntryDescriptor):
        if self.f is None:
            raise RuntimeError("Archive not open")
        remaining = entry.size
        try:
            self.f.seek(entry.content_offset)
            while remaining:
                raw = self.f.read(min(COPY_CHUNK_SIZE, remaining))
                if not raw:
                    raise MalformedHeader(
                        f"Archive ends inside content of {entry.name!r} "
                        f"({remaining} of {entry.size} bytes missing)"
                    )
                remaining -= len(raw)
                yield raw
        except OSError as exc:
            raise IoFailure(f"Failed to read content of {entry.name!r}: {exc}") from exc


def list_archive(archive_path: str, *, verify: bool = True) -> List[str]:
    """Return entry names of ``archive_path`` in archive order."""
    with ArchiveReader(archive_path, verify=verify) as r:
        return r.list()


def extract_archive(archive_path: str, outdir: str = ".", *, verify: bool = True) -> List[str]:
    """Extract every entry of ``archive_path`` under ``outdir``."""
    with ArchiveReader(archive_path, verify=verify) as r:
        return r.extract_all(outdir)
