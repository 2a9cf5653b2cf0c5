from __future__ import annotations

import io
import os
import tarfile
import tempfile
import unittest
from pathlib import Path

from tarlet.blocks import padded_size, write_entry
from tarlet.constants import BLOCK_SIZE, FIELD_CHKSUM, FIELD_SIZE, MAGIC, REGTYPE
from tarlet.errors import (
    ChecksumMismatch,
    GroupLookupFailed,
    IdentityLookupFailed,
    MalformedHeader,
    MetadataUnavailable,
    OwnerLookupFailed,
)
from tarlet.header import (
    TarHeader,
    compute_checksum,
    compute_signed_checksum,
    decode_header,
    encode_header,
    format_octal,
    parse_octal,
    verify_checksum,
)
from tarlet.identity import NumericIdentity, SystemIdentity, _HAS_PWD


class _FixedIdentity:
    def owner_name(self, uid: int) -> str:
        return "alice"

    def group_name(self, gid: int) -> str:
        return "staff"


class _NoGroupIdentity(_FixedIdentity):
    def group_name(self, gid: int) -> str:
        raise GroupLookupFailed(f"No group name for gid {gid}")


def _write(path: Path, size: int) -> Path:
    path.write_bytes(os.urandom(size))
    return path


def _reseal(raw: bytearray, checksum=compute_checksum) -> bytes:
    raw[148:156] = format_octal(checksum(bytes(raw)), 8)
    return bytes(raw)


class HeaderCodecTests(unittest.TestCase):
    def run_with_tmpdir(self, func):
        with tempfile.TemporaryDirectory() as tmp:
            func(Path(tmp))

    def test_size_field_fidelity(self):
        def scenario(tmp_path: Path):
            for n in (0, 1, 511, 512, 513, 1048576):
                src = _write(tmp_path / f"f{n}.bin", n)
                raw = encode_header(str(src), identity=NumericIdentity())
                self.assertEqual(len(raw), BLOCK_SIZE)
                self.assertEqual(decode_header(raw).size, n)
                off, width = FIELD_SIZE
                self.assertEqual(raw[off : off + width], b"%011o\x00" % n)

        self.run_with_tmpdir(scenario)

    def test_checksum_matches_blanked_sum(self):
        def scenario(tmp_path: Path):
            for n in (0, 10, 4096):
                src = _write(tmp_path / f"c{n}.bin", n)
                raw = encode_header(str(src), identity=_FixedIdentity())
                off, width = FIELD_CHKSUM
                blanked = raw[:off] + b" " * width + raw[off + width :]
                expected = sum(blanked)
                self.assertEqual(int(raw[off : off + 7], 8), expected)
                self.assertEqual(raw[off + 7 : off + 8], b"\x00")
                self.assertEqual(compute_checksum(raw), expected)
                self.assertTrue(verify_checksum(raw))

        self.run_with_tmpdir(scenario)

    def test_field_layout(self):
        def scenario(tmp_path: Path):
            src = _write(tmp_path / "layout.txt", 5)
            os.chmod(src, 0o640)
            st = os.stat(src)
            raw = encode_header(str(src), arcname="layout.txt", identity=_FixedIdentity())
            self.assertEqual(raw[0:10], b"layout.txt")
            self.assertFalse(any(raw[10:100]))
            self.assertEqual(raw[100:108], b"0000640\x00")
            self.assertEqual(raw[108:116], b"%07o\x00" % st.st_uid)
            self.assertEqual(raw[116:124], b"%07o\x00" % st.st_gid)
            self.assertEqual(raw[136:148], b"%011o\x00" % (int(st.st_mtime) & 0xFFFFFFFF))
            self.assertEqual(raw[156:157], REGTYPE)
            self.assertFalse(any(raw[157:257]))
            self.assertEqual(raw[257:263], MAGIC)
            self.assertEqual(raw[263:265], b"00")
            self.assertEqual(raw[265:270], b"alice")
            self.assertEqual(raw[297:302], b"staff")
            self.assertEqual(raw[329:337], b"%07o\x00" % os.major(st.st_dev))
            self.assertEqual(raw[337:345], b"%07o\x00" % os.minor(st.st_dev))
            self.assertFalse(any(raw[345:512]))

            header = decode_header(raw, verify=True)
            self.assertEqual(header.name, "layout.txt")
            self.assertEqual(header.mode, 0o640)
            self.assertEqual(header.uname, "alice")
            self.assertEqual(header.gname, "staff")
            self.assertEqual(header.magic, MAGIC)

        self.run_with_tmpdir(scenario)

    def test_name_truncated_to_field(self):
        h = TarHeader(name="n" * 150, size=3)
        raw = h.pack()
        self.assertEqual(decode_header(raw).name, "n" * 100)
        self.assertNotEqual(raw[100:101], b"n")

    def test_decode_rejects_bad_size(self):
        raw = bytearray(TarHeader(name="bad.txt", size=12).pack())
        raw[124:136] = b"not-octal!!\x00"
        with self.assertRaises(MalformedHeader):
            decode_header(bytes(raw))

    def test_decode_rejects_signed_and_separated_sizes(self):
        for field in (b"-0000001130\x00", b"+0000001130\x00", b"0000000_001\x00", b"\t0000000001\x00"):
            raw = bytearray(TarHeader(name="neg.txt", size=12).pack())
            raw[124:136] = field
            sealed = _reseal(raw)
            self.assertTrue(verify_checksum(sealed))
            with self.assertRaises(MalformedHeader):
                decode_header(sealed)
            with self.assertRaises(MalformedHeader):
                decode_header(sealed, verify=True)

    def test_signed_checksum_accepted(self):
        raw = bytearray(TarHeader(name="café.txt", size=4).pack())
        self.assertNotEqual(compute_signed_checksum(bytes(raw)), compute_checksum(bytes(raw)))
        sealed = _reseal(raw, compute_signed_checksum)
        self.assertTrue(verify_checksum(sealed))
        header = decode_header(sealed, verify=True)
        self.assertEqual(header.name, "café.txt")
        self.assertEqual(header.size, 4)
        # Any other value is still a mismatch
        raw[148:156] = format_octal(compute_signed_checksum(bytes(raw)) + 1, 8)
        with self.assertRaises(ChecksumMismatch):
            decode_header(bytes(raw), verify=True)

    def test_only_regular_files_are_encoded(self):
        def scenario(tmp_path: Path):
            with self.assertRaises(MetadataUnavailable):
                encode_header(str(tmp_path), identity=NumericIdentity())
            if hasattr(os, "mkfifo"):
                fifo = tmp_path / "pipe"
                os.mkfifo(fifo)
                with self.assertRaises(MetadataUnavailable):
                    encode_header(str(fifo), identity=NumericIdentity())
                with self.assertRaises(MetadataUnavailable):
                    write_entry(io.BytesIO(), str(fifo), identity=NumericIdentity())

        self.run_with_tmpdir(scenario)

    def test_decode_rejects_short_block(self):
        raw = TarHeader(name="short.txt").pack()
        with self.assertRaises(MalformedHeader):
            decode_header(raw[:300])

    def test_verify_detects_checksum_mismatch(self):
        raw = bytearray(TarHeader(name="flip.txt", size=7).pack())
        raw[0] ^= 0x01
        self.assertFalse(verify_checksum(bytes(raw)))
        with self.assertRaises(ChecksumMismatch):
            decode_header(bytes(raw), verify=True)
        # Without verification the header still decodes
        self.assertEqual(decode_header(bytes(raw)).size, 7)

    def test_octal_helpers(self):
        self.assertEqual(format_octal(8, 8), b"0000010\x00")
        self.assertEqual(parse_octal(b"0000010\x00"), 8)
        self.assertEqual(parse_octal(b"   17 \x00"), 15)
        with self.assertRaises(ValueError):
            format_octal(0o10000000, 8)
        with self.assertRaises(MalformedHeader):
            parse_octal(b"\x00" * 12)

    def test_missing_file_is_metadata_error(self):
        def scenario(tmp_path: Path):
            with self.assertRaises(MetadataUnavailable):
                encode_header(str(tmp_path / "nope.txt"), identity=NumericIdentity())

        self.run_with_tmpdir(scenario)

    def test_identity_failures_propagate(self):
        def scenario(tmp_path: Path):
            src = _write(tmp_path / "who.txt", 1)
            with self.assertRaises(IdentityLookupFailed):
                encode_header(str(src), identity=_NoGroupIdentity())
            raw = encode_header(str(src), identity=NumericIdentity())
            self.assertFalse(any(raw[265:329]))

        self.run_with_tmpdir(scenario)

    def test_system_identity_strict_and_fallback(self):
        if not _HAS_PWD:
            self.skipTest("pwd/grp not available")
        unused = 0o7777770  # fits a ustar id field; not expected in any user database
        with self.assertRaises(OwnerLookupFailed):
            SystemIdentity(strict=True).owner_name(unused)
        with self.assertRaises(GroupLookupFailed):
            SystemIdentity(strict=True).group_name(unused)
        self.assertEqual(SystemIdentity(strict=False).owner_name(unused), "")
        self.assertEqual(SystemIdentity(strict=False).group_name(unused), "")

    def test_block_writer_streams_and_pads(self):
        def scenario(tmp_path: Path):
            data = os.urandom(1300)
            src = tmp_path / "stream.bin"
            src.write_bytes(data)
            out = io.BytesIO()
            header = write_entry(out, str(src), arcname="stream.bin", identity=NumericIdentity(), chunk_size=100)
            blob = out.getvalue()
            self.assertEqual(header.size, 1300)
            self.assertEqual(len(blob), BLOCK_SIZE + padded_size(1300))
            self.assertEqual(blob[BLOCK_SIZE : BLOCK_SIZE + 1300], data)
            self.assertFalse(any(blob[BLOCK_SIZE + 1300 :]))

        self.run_with_tmpdir(scenario)

    def test_stdlib_tarfile_reads_header(self):
        def scenario(tmp_path: Path):
            data = b"interop payload\n"
            src = tmp_path / "interop.txt"
            src.write_bytes(data)
            out = io.BytesIO()
            write_entry(out, str(src), arcname="interop.txt", identity=_FixedIdentity())
            out.write(b"\x00" * 1024)
            out.seek(0)
            with tarfile.open(fileobj=out, mode="r:") as tf:
                member = tf.getmember("interop.txt")
                self.assertTrue(member.isreg())
                self.assertEqual(member.size, len(data))
                self.assertEqual(member.uname, "alice")
                self.assertEqual(tf.extractfile(member).read(), data)

        self.run_with_tmpdir(scenario)


if __name__ == "__main__":
    unittest.main()
