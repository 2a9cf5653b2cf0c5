from __future__ import annotations

import os
import stat
import struct
from dataclasses import dataclass
from typing import Optional

from .constants import (
    BLOCK_SIZE,
    MAGIC,
    VERSION,
    REGTYPE,
    UINT32_MASK,
    FIELD_NAME,
    FIELD_MODE,
    FIELD_UID,
    FIELD_GID,
    FIELD_SIZE,
    FIELD_MTIME,
    FIELD_CHKSUM,
    FIELD_TYPEFLAG,
    FIELD_MAGIC,
    FIELD_VERSION,
    FIELD_UNAME,
    FIELD_GNAME,
    FIELD_DEVMAJOR,
    FIELD_DEVMINOR,
)
from .errors import ChecksumMismatch, MalformedHeader, MetadataUnavailable


_CHKSUM_BLANK = b" " * FIELD_CHKSUM[1]
_OCTAL_DIGITS = b"01234567"
# Header bytes around the checksum field, read as signed chars
_SIGNED_LAYOUT = "%db%dx%db" % (
    FIELD_CHKSUM[0],
    FIELD_CHKSUM[1],
    BLOCK_SIZE - FIELD_CHKSUM[0] - FIELD_CHKSUM[1],
)


def format_octal(value: int, width: int) -> bytes:
    """Render ``value`` as zero-padded octal ASCII filling ``width`` bytes.

    The last byte is a NUL terminator, so ``width - 1`` digits are available.
    """
    if value < 0:
        raise ValueError(f"negative value {value} cannot be stored as octal")
    digits = format(value, "0%do" % (width - 1))
    if len(digits) > width - 1:
        raise ValueError(f"value {value} does not fit in a {width}-byte octal field")
    return digits.encode("ascii") + b"\x00"


def parse_octal(field: bytes) -> int:
    """Parse a NUL/space terminated octal ASCII field.

    Raises:
        MalformedHeader: If the field is empty or contains non-octal digits.
    """
    text = field.split(b"\x00", 1)[0].strip(b" ")
    if not text:
        raise MalformedHeader("Empty octal field")
    # int() would also take signs, underscores and other whitespace
    if text.strip(_OCTAL_DIGITS):
        raise MalformedHeader(f"Invalid octal field {text!r}")
    return int(text, 8)


def _parse_octal_lenient(field: bytes) -> Optional[int]:
    try:
        return parse_octal(field)
    except MalformedHeader:
        return None


def _field(raw: bytes, layout) -> bytes:
    off, width = layout
    return raw[off : off + width]


def _cstr(field: bytes) -> str:
    return os.fsdecode(field.split(b"\x00", 1)[0])


def _put(buf: bytearray, layout, value: bytes) -> None:
    off, width = layout
    value = value[:width]
    buf[off : off + len(value)] = value


def compute_checksum(block: bytes) -> int:
    """Unsigned byte sum of a header block with the checksum field read as spaces."""
    if len(block) != BLOCK_SIZE:
        raise MalformedHeader(f"Header block must be {BLOCK_SIZE} bytes, got {len(block)}")
    off, width = FIELD_CHKSUM
    return sum(block[:off]) + sum(_CHKSUM_BLANK) + sum(block[off + width :])


def compute_signed_checksum(block: bytes) -> int:
    """Checksum as written by tars that sum header bytes as signed chars.

    Differs from ``compute_checksum`` only when a byte has its high bit set,
    e.g. in a non-ASCII name.
    """
    if len(block) != BLOCK_SIZE:
        raise MalformedHeader(f"Header block must be {BLOCK_SIZE} bytes, got {len(block)}")
    return sum(struct.unpack_from(_SIGNED_LAYOUT, block)) + sum(_CHKSUM_BLANK)


def is_zero_block(raw: bytes) -> bool:
    return not any(raw)


@dataclass
class TarHeader:
    name: str
    size: int = 0
    mode: Optional[int] = 0o644
    uid: Optional[int] = 0
    gid: Optional[int] = 0
    mtime: Optional[int] = 0
    typeflag: bytes = REGTYPE
    uname: str = ""
    gname: str = ""
    devmajor: Optional[int] = 0
    devminor: Optional[int] = 0
    magic: bytes = MAGIC
    chksum: Optional[int] = None

    def pack(self) -> bytes:
        """Serialize to a 512-byte ustar block, embedding the checksum last."""
        buf = bytearray(BLOCK_SIZE)
        _put(buf, FIELD_NAME, os.fsencode(self.name))
        _put(buf, FIELD_MODE, format_octal((self.mode or 0) & 0o7777, FIELD_MODE[1]))
        _put(buf, FIELD_UID, format_octal(self.uid or 0, FIELD_UID[1]))
        _put(buf, FIELD_GID, format_octal(self.gid or 0, FIELD_GID[1]))
        _put(buf, FIELD_SIZE, format_octal(self.size & UINT32_MASK, FIELD_SIZE[1]))
        _put(buf, FIELD_MTIME, format_octal((self.mtime or 0) & UINT32_MASK, FIELD_MTIME[1]))
        _put(buf, FIELD_TYPEFLAG, self.typeflag)
        _put(buf, FIELD_MAGIC, MAGIC)
        _put(buf, FIELD_VERSION, VERSION)
        _put(buf, FIELD_UNAME, os.fsencode(self.uname))
        _put(buf, FIELD_GNAME, os.fsencode(self.gname))
        _put(buf, FIELD_DEVMAJOR, format_octal(self.devmajor or 0, FIELD_DEVMAJOR[1]))
        _put(buf, FIELD_DEVMINOR, format_octal(self.devminor or 0, FIELD_DEVMINOR[1]))
        self.chksum = compute_checksum(bytes(buf))
        _put(buf, FIELD_CHKSUM, format_octal(self.chksum, FIELD_CHKSUM[1]))
        return bytes(buf)


def header_for_path(path: str, *, arcname: Optional[str] = None, identity=None) -> TarHeader:
    """Build the header describing the regular file at ``path``.

    Args:
        path: Filesystem path to stat.
        arcname: Name stored in the archive; defaults to ``path`` as given.
        identity: Owner/group resolver (see ``tarlet.identity``); defaults to a
            strict ``SystemIdentity``.

    Raises:
        MetadataUnavailable: If the file cannot be stat'ed or its metadata does
            not fit the ustar fields.
        OwnerLookupFailed, GroupLookupFailed: If ``identity`` cannot name the ids.
    """
    if identity is None:
        from .identity import default_identity

        identity = default_identity()
    try:
        st = os.stat(path)
    except OSError as exc:
        raise MetadataUnavailable(f"Failed to stat file {path}: {exc}") from exc
    if not stat.S_ISREG(st.st_mode):
        raise MetadataUnavailable(f"{path} is not a regular file")
    if st.st_size > UINT32_MASK:
        raise MetadataUnavailable(f"File {path} is too large for a ustar size field ({st.st_size} bytes)")
    header = TarHeader(
        name=arcname if arcname is not None else path,
        size=st.st_size,
        mode=st.st_mode & 0o7777,
        uid=st.st_uid,
        gid=st.st_gid,
        mtime=int(st.st_mtime) & UINT32_MASK,
        typeflag=REGTYPE,
        uname=identity.owner_name(st.st_uid),
        gname=identity.group_name(st.st_gid),
        devmajor=os.major(st.st_dev),
        devminor=os.minor(st.st_dev),
    )
    # Surface field overflow (e.g. very large uids) as a metadata problem
    try:
        header.pack()
    except ValueError as exc:
        raise MetadataUnavailable(f"Metadata of {path} does not fit a ustar header: {exc}") from exc
    return header


def encode_header(path: str, *, arcname: Optional[str] = None, identity=None) -> bytes:
    return header_for_path(path, arcname=arcname, identity=identity).pack()


def verify_checksum(raw: bytes) -> bool:
    """True if the stored checksum matches the unsigned or the signed byte sum."""
    stored = _parse_octal_lenient(_field(raw, FIELD_CHKSUM))
    if stored is None:
        return False
    return stored == compute_checksum(raw) or stored == compute_signed_checksum(raw)


def decode_header(raw: bytes, *, verify: bool = False) -> TarHeader:
    """Parse a 512-byte header block.

    Only ``name`` and ``size`` are required to be well formed; the remaining
    numeric fields are decoded leniently and left as ``None`` when unreadable.

    Raises:
        MalformedHeader: On a short block or a non-octal size field.
        ChecksumMismatch: When ``verify`` is set and the stored checksum is wrong.
    """
    if len(raw) != BLOCK_SIZE:
        raise MalformedHeader(f"Truncated header block ({len(raw)} of {BLOCK_SIZE} bytes)")
    if verify and not verify_checksum(raw):
        raise ChecksumMismatch(f"Header checksum mismatch for {_cstr(_field(raw, FIELD_NAME))!r}")
    return TarHeader(
        name=_cstr(_field(raw, FIELD_NAME)),
        size=parse_octal(_field(raw, FIELD_SIZE)),
        mode=_parse_octal_lenient(_field(raw, FIELD_MODE)),
        uid=_parse_octal_lenient(_field(raw, FIELD_UID)),
        gid=_parse_octal_lenient(_field(raw, FIELD_GID)),
        mtime=_parse_octal_lenient(_field(raw, FIELD_MTIME)),
        typeflag=_field(raw, FIELD_TYPEFLAG),
        uname=_cstr(_field(raw, FIELD_UNAME)),
        gname=_cstr(_field(raw, FIELD_GNAME)),
        devmajor=_parse_octal_lenient(_field(raw, FIELD_DEVMAJOR)),
        devminor=_parse_octal_lenient(_field(raw, FIELD_DEVMINOR)),
        magic=_field(raw, FIELD_MAGIC),
        chksum=_parse_octal_lenient(_field(raw, FIELD_CHKSUM)),
    )
