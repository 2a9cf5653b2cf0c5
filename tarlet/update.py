from __future__ import annotations

from typing import Iterable, List

from .append import append_to_archive
from .errors import MembershipViolation
from .header import TarHeader
from .scanner import scan_archive


def update_archive(archive_path: str, names: Iterable[str], *, identity=None) -> List[TarHeader]:
    """Append fresh copies of files that are already archived.

    Every name must match an existing entry, otherwise nothing is written.
    Older entries stay in place; readers treat the last entry for a name as
    current.

    Raises:
        ContainerNotFound: If ``archive_path`` does not exist.
        MembershipViolation: If any name is not already an entry name.
    """
    names = list(names)
    present = {e.name for e in scan_archive(archive_path)}
    missing = [n for n in names if n not in present]
    if missing:
        raise MembershipViolation(missing)
    return append_to_archive(archive_path, names, identity=identity)
