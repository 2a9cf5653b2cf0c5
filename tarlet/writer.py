from __future__ import annotations

import os
import stat
import tempfile
from pathlib import Path
from typing import BinaryIO, Iterable, List, Optional

from .blocks import write_entry, write_footer
from .constants import COPY_CHUNK_SIZE, FOOTER_SIZE
from .errors import IoFailure, TarletError
from .header import TarHeader


def _default_file_mode() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


class ArchiveWriter:
    """Writer that stages a ustar archive next to its target and swaps it in.

    Nothing at ``out_path`` changes until ``finalize`` succeeds: entries and
    the footer go to a temporary file in the same directory which then
    atomically replaces the target. Leaving the context without finalizing
    (including on error) discards the staged file.

    When ``base_path`` is given, its content minus the trailing footer is
    copied first, so new entries extend the existing archive.
    """

    def __init__(self, out_path: str, *, identity=None, base_path: Optional[str] = None):
        self.out_path = str(out_path)
        self.identity = identity
        self.base_path = base_path
        self.f: Optional[BinaryIO] = None
        self.temp_path: Optional[str] = None
        self.headers: List[TarHeader] = []
        self.bytes_written = 0

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def open(self):
        if self.f is not None:
            return
        archive_dir = os.path.dirname(os.path.abspath(self.out_path))
        try:
            fd, self.temp_path = tempfile.mkstemp(
                prefix=".tarlet-", suffix=".tmp", dir=archive_dir
            )
            self.f = os.fdopen(fd, "wb")
        except OSError as exc:
            raise IoFailure(f"Failed to create staging file for {self.out_path}: {exc}") from exc
        try:
            if self.base_path is not None:
                self._copy_base()
        except (TarletError, OSError):
            self.close()
            raise

    def close(self):
        """Release the staging handle, discarding the staged file unless committed."""
        if self.f is not None:
            self.f.close()
            self.f = None
        if self.temp_path is not None:
            Path(self.temp_path).unlink(missing_ok=True)
            self.temp_path = None

    def add_file(self, fs_path: str, arcname: Optional[str] = None) -> TarHeader:
        """Append one regular file as a header plus padded content."""
        if self.f is None:
            raise RuntimeError("Archive not open")
        header = write_entry(self.f, fs_path, arcname=arcname, identity=self.identity)
        self.headers.append(header)
        self.bytes_written += header.size
        return header

    def finalize(self):
        """Write the footer, flush to disk and replace the target archive."""
        if self.f is None:
            raise RuntimeError("Archive not open")
        write_footer(self.f)
        try:
            self.f.flush()
            os.fsync(self.f.fileno())
            self.f.close()
        except OSError as exc:
            raise IoFailure(f"Failed to flush archive {self.out_path}: {exc}") from exc
        finally:
            self.f = None
        try:
            os.chmod(self.temp_path, self._target_mode())
            os.replace(self.temp_path, self.out_path)
        except OSError as exc:
            raise IoFailure(f"Failed to replace archive {self.out_path}: {exc}") from exc
        self.temp_path = None

    # internals
    def _target_mode(self) -> int:
        try:
            return stat.S_IMODE(os.stat(self.out_path).st_mode)
        except FileNotFoundError:
            return _default_file_mode()

    def _copy_base(self):
        """Stream the base archive minus its footer into the staging file."""
        assert self.f is not None
        try:
            with open(self.base_path, "rb") as src:
                keep = max(os.fstat(src.fileno()).st_size - FOOTER_SIZE, 0)
                remaining = keep
                while remaining:
                    raw = src.read(min(COPY_CHUNK_SIZE, remaining))
                    if not raw:
                        raise IoFailure(f"Archive {self.base_path} shrank while being copied")
                    self.f.write(raw)
                    remaining -= len(raw)
        except OSError as exc:
            raise IoFailure(f"Failed to copy archive {self.base_path}: {exc}") from exc


def create_archive(archive_path: str, names: Iterable[str], *, identity=None) -> List[TarHeader]:
    """Create (or replace) ``archive_path`` holding ``names`` in order.

    Returns:
        The headers written, one per name.
    """
    with ArchiveWriter(archive_path, identity=identity) as w:
        for name in names:
            w.add_file(name)
        w.finalize()
    return w.headers
