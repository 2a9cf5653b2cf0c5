"""
tarlet — a small ustar archive codec.

Features:

- Fixed 512-byte ustar headers with octal ASCII fields and embedded checksums.
- Sequential, index-free scanning: each header's size field locates the next.
- create / append / list / update / extract, plus header checksum verification.
- Crash-safe writes: archives are staged in a temporary file and swapped in
  atomically once the footer is on disk.

Only regular files are archived; directories, links, long names, PAX headers
and compression are out of scope.
"""

__version__ = "0.1"

from .writer import ArchiveWriter, create_archive
from .append import append_to_archive
from .update import update_archive
from .reader import ArchiveReader, list_archive, extract_archive

__all__ = [
    "ArchiveWriter",
    "ArchiveReader",
    "create_archive",
    "append_to_archive",
    "update_archive",
    "list_archive",
    "extract_archive",
]
