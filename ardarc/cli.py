from __future__ import annotations

import argparse
import sys
import time
from collections import Counter
from typing import List, Optional

from ardarc.archive import FileArchive
from ardarc.codec import PayloadCodec
from ardarc.diagnostics import StderrSink
from ardarc.errors import ArdarcError, CorruptHeader, EntryNotFound


def _open(header: str, data: str, *, level: Optional[int] = None) -> FileArchive:
    return FileArchive(header, data, sink=StderrSink(), codec=PayloadCodec(level))


def cmd_list(header: str, data: str) -> bool:
    """List named entries as ``type<TAB>size<TAB>name`` lines.

    Args:
        header: Path to the header (.arh) file.
        data: Path to the data (.ard) file.
    """
    with _open(header, data) as a:
        for e in a.list():
            if e.filename:
                print(f"{e.type}\t{e.size}\t{e.filename}")
    return True


def cmd_info(header: str, data: str) -> bool:
    with _open(header, data) as a:
        h = a.header
        entries = a.list()
        print(f"Archive: {header} + {data}")
        if h is not None:
            print(f"  Field4: {h.field4}")
            print(f"  Nodes: {h.node_count}")
            print(f"  String table: offset={h.string_table_offset} length={h.string_table_length}")
            print(f"  Node table: offset={h.node_table_offset} length={h.node_table_length}")
            print(f"  File table: offset={h.file_table_offset} count={h.file_count}")
            print(f"  Key: 0x{h.key:08X}")
        print(f"  Data file size: {a.data_length}")
        print(f"  Entries: {len(entries)}")
        print(f"    Named: {len([e for e in entries if e.filename])}")
        for etype, n in sorted(Counter(e.type for e in entries).items()):
            print(f"    Type {etype}: {n}")
    return True


def cmd_extract(header: str, data: str, *, outdir: str = ".", quiet: bool = False) -> bool:
    """Extract every named entry below ``outdir``.

    Returns:
        True when every entry was written, False if any failed.
    """
    t0 = time.time()
    with _open(header, data) as a:
        named = [e for e in a.list() if e.filename]

        def _progress(done: int, total: int) -> None:
            if not quiet:
                print(f" extracting: {done:>4}/{total:<4} {named[done - 1].filename}")

        res = a.extract_all(outdir, progress=_progress)
    dt = max(0.000001, time.time() - t0)
    print(f"Done: extracted {res.succeeded}/{res.attempted} files in {dt:.1f}s; failed={res.failures}")
    return res.failures == 0


def cmd_cat(header: str, data: str, name: str, *, output: Optional[str] = None) -> bool:
    with _open(header, data) as a:
        payload = a.read_file(name)
        if payload is None:
            raise ArdarcError(f"Entry {name} lies outside the data file")
    if output:
        with open(output, "wb") as wf:
            wf.write(payload)
    else:
        sys.stdout.buffer.write(payload)
        sys.stdout.buffer.flush()
    return True


def cmd_find(header: str, data: str, pattern: str) -> bool:
    with _open(header, data) as a:
        names = a.find_files(pattern)
    for n in names:
        print(n)
    return bool(names)


def cmd_replace(header: str, data: str, name: str, source: str, *, level: Optional[int] = None) -> bool:
    """Replace one entry in place with the contents of ``source``."""
    with open(source, "rb") as sf:
        payload = sf.read()
    with _open(header, data, level=level) as a:
        entry = a.lookup(name)
        if entry is None:
            raise EntryNotFound(name)
        old = entry.compressed_size
        a.replace(entry, payload)
        print(f"Replaced {entry.filename}: {len(payload)} bytes ({entry.compressed_size}/{old} compressed)")
    return True


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="ardarc",
        description="Header/data (.arh/.ard) archive tool",
    )
    sub = ap.add_subparsers(dest="cmd", required=True)

    def _add_archive_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("header", help="Header (.arh) path")
        p.add_argument("data", help="Data (.ard) path")

    ap_list = sub.add_parser("list", help="List archive contents")
    _add_archive_args(ap_list)

    ap_info = sub.add_parser("info", help="Show archive information")
    _add_archive_args(ap_info)

    ap_extract = sub.add_parser("extract", help="Extract all named files")
    _add_archive_args(ap_extract)
    ap_extract.add_argument("--outdir", default=".", help="Output directory")
    ap_extract.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    ap_cat = sub.add_parser("cat", help="Write one file to stdout")
    _add_archive_args(ap_cat)
    ap_cat.add_argument("name", help="Archive filename")
    ap_cat.add_argument("--output", "-o", help="Write to this path instead of stdout")

    ap_find = sub.add_parser("find", help="List filenames matching a glob pattern (case-insensitive)")
    _add_archive_args(ap_find)
    ap_find.add_argument("pattern", help="Glob pattern, e.g. '/menu/**/*.wilay'; '*' stays within one path segment")

    ap_replace = sub.add_parser("replace", help="Replace a file in place (compressed size must not grow)")
    _add_archive_args(ap_replace)
    ap_replace.add_argument("name", help="Archive filename")
    ap_replace.add_argument("source", help="File holding the new contents")
    ap_replace.add_argument("--level", type=int, default=None, help="zstd level (default: maximum)")

    args = ap.parse_args(argv)
    try:
        if args.cmd == "list":
            cmd_list(args.header, args.data)
        elif args.cmd == "info":
            cmd_info(args.header, args.data)
        elif args.cmd == "extract":
            ok = cmd_extract(args.header, args.data, outdir=args.outdir, quiet=args.quiet)
            sys.exit(0 if ok else 1)
        elif args.cmd == "cat":
            cmd_cat(args.header, args.data, args.name, output=args.output)
        elif args.cmd == "find":
            ok = cmd_find(args.header, args.data, args.pattern)
            sys.exit(0 if ok else 1)
        elif args.cmd == "replace":
            cmd_replace(args.header, args.data, args.name, args.source, level=args.level)
        else:
            raise RuntimeError("Unknown command")
    except EntryNotFound as e:
        print(f"Error: no such file in archive: {e}", file=sys.stderr)
        sys.exit(2)
    except CorruptHeader as e:
        print(f"Error: header file is corrupt: {e}", file=sys.stderr)
        sys.exit(2)
    except (ArdarcError, OSError, ValueError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
