from __future__ import annotations

import sys
import time
import argparse

from typing import List, Optional

from tarlet.append import append_to_archive
from tarlet.errors import TarletError, MembershipViolation
from tarlet.identity import NumericIdentity, SystemIdentity
from tarlet.reader import ArchiveReader
from tarlet.update import update_archive
from tarlet.writer import ArchiveWriter


def _identity(numeric_owner: bool):
    return NumericIdentity() if numeric_owner else SystemIdentity(strict=True)


def _summary(verb: str, n_files: int, n_bytes: int, t0: float) -> str:
    dt = max(0.000001, time.time() - t0)
    mib = n_bytes / (1024.0 * 1024.0)
    return f"Done: {verb} {n_files} files ({mib:.2f} MiB) in {dt:.1f}s"


def cmd_create(archive: str, inputs: List[str], *, numeric_owner: bool = False, quiet: bool = False) -> bool:
    """Create (or replace) an archive from regular files.

    Args:
        archive: Path to the archive to write.
        inputs: Files to store, in order; names are recorded as given.
        numeric_owner: Record numeric ids only instead of failing on ids
            without a user/group name.
    """
    t0 = time.time()
    with ArchiveWriter(archive, identity=_identity(numeric_owner)) as w:
        for name in inputs:
            w.add_file(name)
            if not quiet:
                print(f"    adding: {name}")
        w.finalize()
    if not quiet:
        print(_summary("archived", len(w.headers), w.bytes_written, t0))
    return True


def cmd_append(archive: str, inputs: List[str], *, numeric_owner: bool = False, quiet: bool = False) -> bool:
    """Append files to an existing archive, rewriting its footer."""
    t0 = time.time()
    headers = append_to_archive(archive, inputs, identity=_identity(numeric_owner))
    if not quiet:
        for h in headers:
            print(f" appending: {h.name}")
        print(_summary("appended", len(headers), sum(h.size for h in headers), t0))
    return True


def cmd_update(archive: str, inputs: List[str], *, numeric_owner: bool = False, quiet: bool = False) -> bool:
    """Append new copies of files that are already present in the archive."""
    t0 = time.time()
    headers = update_archive(archive, inputs, identity=_identity(numeric_owner))
    if not quiet:
        for h in headers:
            print(f"  updating: {h.name}")
        print(_summary("updated", len(headers), sum(h.size for h in headers), t0))
    return True


def cmd_list(archive: str) -> bool:
    """Print entry names, one per line, in archive order."""
    with ArchiveReader(archive) as r:
        names = r.list()
    for name in names:
        print(name)
    return True


def cmd_extract(archive: str, *, outdir: str = ".", quiet: bool = False) -> bool:
    """Extract every entry into ``outdir``; later duplicates overwrite earlier ones."""
    t0 = time.time()
    with ArchiveReader(archive) as r:
        entries = r.entries()
        total = len(entries)
        processed_bytes = 0
        for i, e in enumerate(entries, 1):
            if not quiet:
                print(f"extracting: {i:>4}/{total:<4} {e.name}")
            r.extract(e, r.destination(e, outdir))
            processed_bytes += e.size
    if not quiet:
        print(_summary("extracted", total, processed_bytes, t0))
    return True


def cmd_verify(archive: str) -> bool:
    """Check header checksums and the footer.

    Prints:
        "OK" when the archive is well formed, "FAIL" otherwise.
    """
    with ArchiveReader(archive) as r:
        ok = r.verify()
    print("OK" if ok else "FAIL")
    return ok


def main(argv: Optional[List[str]] = None):
    ap = argparse.ArgumentParser(
        prog="tarlet",
        description="Minimal ustar archive tool (regular files only)",
    )
    sub = ap.add_subparsers(dest="cmd", required=True)

    def _writer_parser(name: str, help_text: str, inputs_help: str):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("archive", help="Archive path")
        p.add_argument("inputs", nargs="+", help=inputs_help)
        p.add_argument(
            "--numeric-owner",
            action="store_true",
            help="Store numeric owner/group ids only; do not fail when an id has no name",
        )
        p.add_argument("--quiet", help="limit outputs to errors only", action="store_true")
        return p

    _writer_parser("create", "Create an archive", "Files to archive")
    _writer_parser("append", "Append files to an existing archive", "Files to append")
    _writer_parser("update", "Append newer copies of files already in the archive", "Files to update")

    ap_list = sub.add_parser("list", help="List archive contents")
    ap_list.add_argument("archive", help="Archive path")

    ap_extract = sub.add_parser("extract", help="Extract all files")
    ap_extract.add_argument("archive", help="Archive path")
    ap_extract.add_argument("--outdir", default=".", help="Output directory (default: current directory)")
    ap_extract.add_argument("--quiet", help="limit outputs to errors only", action="store_true")

    ap_verify = sub.add_parser("verify", help="Verify header checksums and footer")
    ap_verify.add_argument("archive", help="Archive path")

    args = ap.parse_args(argv)
    try:
        if args.cmd == "create":
            cmd_create(args.archive, args.inputs, numeric_owner=args.numeric_owner, quiet=args.quiet)
        elif args.cmd == "append":
            cmd_append(args.archive, args.inputs, numeric_owner=args.numeric_owner, quiet=args.quiet)
        elif args.cmd == "update":
            cmd_update(args.archive, args.inputs, numeric_owner=args.numeric_owner, quiet=args.quiet)
        elif args.cmd == "list":
            cmd_list(args.archive)
        elif args.cmd == "extract":
            cmd_extract(args.archive, outdir=args.outdir, quiet=args.quiet)
        elif args.cmd == "verify":
            if not cmd_verify(args.archive):
                sys.exit(1)
        else:
            raise RuntimeError("Unknown command")
    except MembershipViolation as e:
        print(
            "Error: One or more of the specified files is not already present in archive: "
            + ", ".join(e.missing),
            file=sys.stderr,
        )
        sys.exit(2)
    except (TarletError, OSError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
