"""Build small header/data archive pairs for tests.

Archive creation is not part of the library, so the double-array builder and
payload layout used by the tests live here.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import zstandard

from ardarc.constants import (
    ENTRY_TYPE_REPLACEABLE,
    ENTRY_TYPE_STORED,
    FILE_RECORD_STRUCT,
    HEADER_KEY_SENTINEL,
    HEADER_SIZE,
    HEADER_STRUCT,
    NODE_STRUCT,
    PAYLOAD_PREFIX_SIZE,
    PAYLOAD_SIZES_OFFSET,
    PAYLOAD_SIZES_STRUCT,
    ROOT_NODE,
)
from ardarc.header import HeaderInfo, encrypt_header
from ardarc.trie import TrieIndex, TrieNode


FIXTURE_MAGIC = b"arh1"
FIXTURE_KEY = 0x5A17C3E9
FIXTURE_LEVEL = 3
_STRING_TABLE_PAD = 4  # keeps every suffix offset > 0 so -offset is never the root sentinel


@dataclass
class FixtureFile:
    name: str
    data: bytes
    type: int = ENTRY_TYPE_REPLACEABLE
    truncate: bool = False  # halve the compressed stream to make it undecodable
    named: bool = True


def _find_base(nodes: Dict[int, List[int]], chars: Iterable[int]) -> int:
    chars = list(chars)
    base = 1
    while any((base ^ c) in nodes for c in chars):
        base += 1
    return base


def build_trie(names: Sequence[Tuple[bytes, int]]) -> Tuple[List[Tuple[int, int]], bytes]:
    """Return ``(nodes, string_table)`` for ``(lower-cased name, file id)`` pairs."""
    nodes: Dict[int, List[int]] = {ROOT_NODE: [0, -1]}
    strings = bytearray(_STRING_TABLE_PAD)

    def place(state: int, items: List[Tuple[bytes, int]], depth: int) -> None:
        if state != ROOT_NODE and len(items) == 1:
            name, fid = items[0]
            off = len(strings)
            strings.extend(name[depth:] + b"\x00" + struct.pack("<i", fid))
            nodes[state][0] = -off
            return
        groups: Dict[int, List[Tuple[bytes, int]]] = {}
        for name, fid in items:
            if len(name) <= depth:
                raise ValueError(f"{name!r} is a prefix of another name")
            groups.setdefault(name[depth], []).append((name, fid))
        base = 0 if state == ROOT_NODE else _find_base(nodes, groups)
        nodes[state][0] = base
        for c in sorted(groups):
            nodes[base ^ c] = [0, state]
        for c in sorted(groups):
            place(base ^ c, groups[c], depth + 1)

    if names:
        place(ROOT_NODE, sorted(names), 0)
    size = max(nodes) + 1
    out = [tuple(nodes[i]) if i in nodes else (0, -1) for i in range(size)]
    while len(strings) % 4:
        strings.append(0)
    return out, bytes(strings)  # type: ignore[return-value]


def build_index(names: Sequence[str]) -> TrieIndex:
    nodes, strings = build_trie([(n.lower().encode("utf-8"), i) for i, n in enumerate(names)])
    return TrieIndex([TrieNode(n, p) for n, p in nodes], strings)


def build_header(
    files: Sequence[FixtureFile],
    records: Sequence[Tuple[int, int, int, int, int]],
    key: int,
    names: Optional[Sequence[Tuple[bytes, int]]] = None,
) -> bytes:
    """Protected header bytes. ``names`` overrides the trie's ``(name bytes, file id)`` pairs."""
    if names is None:
        names = [(f.name.lower().encode("utf-8"), fid) for fid, f in enumerate(files) if f.named]
    nodes, strings = build_trie(names)
    node_bytes = b"".join(NODE_STRUCT.pack(n, p) for n, p in nodes)
    file_bytes = b"".join(FILE_RECORD_STRUCT.pack(*r) for r in records)
    st_off = HEADER_SIZE + 8
    nt_off = st_off + len(strings)
    ft_off = nt_off + len(node_bytes)
    plain = bytearray(st_off)
    HEADER_STRUCT.pack_into(
        plain, 0, FIXTURE_MAGIC, 0, len(nodes), st_off, len(strings), nt_off, len(node_bytes), ft_off, len(files), HEADER_KEY_SENTINEL
    )
    plain += strings + node_bytes + file_bytes
    info = HeaderInfo(
        magic=FIXTURE_MAGIC,
        field4=0,
        node_count=len(nodes),
        string_table_offset=st_off,
        string_table_length=len(strings),
        node_table_offset=nt_off,
        node_table_length=len(node_bytes),
        file_table_offset=ft_off,
        file_count=len(files),
        key=key,
    )
    return encrypt_header(plain, info)


def build_data(files: Sequence[FixtureFile]) -> Tuple[bytes, List[Tuple[int, int, int, int, int]]]:
    data = bytearray()
    records = []
    for fid, f in enumerate(files):
        off = len(data)
        if f.type == ENTRY_TYPE_STORED:
            data += f.data
            records.append((off, len(f.data), len(f.data), f.type, fid))
            continue
        comp = zstandard.ZstdCompressor(level=FIXTURE_LEVEL).compress(f.data)
        if f.truncate:
            comp = comp[: len(comp) // 2]
        prefix = bytearray(PAYLOAD_PREFIX_SIZE)
        PAYLOAD_SIZES_STRUCT.pack_into(prefix, PAYLOAD_SIZES_OFFSET, len(f.data), len(comp))
        data += prefix + comp
        records.append((off, len(comp), len(f.data), f.type, fid))
    return bytes(data), records


def write_archive(base: Path, files: Sequence[FixtureFile], *, key: int = FIXTURE_KEY, stem: str = "sample") -> Tuple[Path, Path]:
    data, records = build_data(files)
    header = build_header(files, records, key)
    arh = base / f"{stem}.arh"
    ard = base / f"{stem}.ard"
    arh.write_bytes(header)
    ard.write_bytes(data)
    return arh, ard
