from __future__ import annotations

import errno
import os
from typing import Iterable, List

from .errors import ContainerNotFound
from .header import TarHeader
from .writer import ArchiveWriter


def append_to_archive(archive_path: str, names: Iterable[str], *, identity=None) -> List[TarHeader]:
    """Append ``names`` to an existing archive.

    The trailing 1024-byte footer is dropped (or everything, for an archive
    shorter than the footer), the new entries are added in order and a fresh
    footer is written. Existing entries with the same names are kept; there is
    no de-duplication.

    Raises:
        ContainerNotFound: If ``archive_path`` does not exist.
    """
    if not os.path.exists(archive_path):
        raise ContainerNotFound(errno.ENOENT, os.strerror(errno.ENOENT), str(archive_path))
    with ArchiveWriter(archive_path, identity=identity, base_path=archive_path) as w:
        for name in names:
            w.add_file(name)
        w.finalize()
    return w.headers
