from __future__ import annotations

try:  # pragma: no cover - availability depends on platform
    import grp as _grp
    import pwd as _pwd
    _HAS_PWD = True
except ImportError:  # pragma: no cover - non-POSIX hosts
    _grp = None  # type: ignore
    _pwd = None  # type: ignore
    _HAS_PWD = False

from .errors import GroupLookupFailed, OwnerLookupFailed


class NumericIdentity:
    """Identity resolver that never names anything.

    ustar permits numeric ids with empty uname/gname, so this is a valid
    fallback for hosts or ids without a user database entry.
    """

    def owner_name(self, uid: int) -> str:
        return ""

    def group_name(self, gid: int) -> str:
        return ""


class SystemIdentity:
    """Resolve numeric owner/group ids through the host user database.

    With ``strict=True`` (the default) an id without a matching name raises
    ``OwnerLookupFailed``/``GroupLookupFailed``. Otherwise the name is left
    empty and only the numeric id is recorded.
    """

    def __init__(self, strict: bool = True):
        self.strict = strict

    def owner_name(self, uid: int) -> str:
        if _HAS_PWD:
            try:
                return _pwd.getpwuid(uid).pw_name
            except KeyError:
                pass
        if self.strict:
            raise OwnerLookupFailed(f"No user name for uid {uid}")
        return ""

    def group_name(self, gid: int) -> str:
        if _HAS_PWD:
            try:
                return _grp.getgrgid(gid).gr_name
            except KeyError:
                pass
        if self.strict:
            raise GroupLookupFailed(f"No group name for gid {gid}")
        return ""


def default_identity() -> SystemIdentity:
    return SystemIdentity(strict=True)
