from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Tuple

from Cryptodome.Util.strxor import strxor

from .constants import (
    FILE_RECORD_STRUCT,
    HEADER_KEY_SENTINEL,
    HEADER_KEY_WORD,
    HEADER_SIZE,
    HEADER_STRUCT,
    HEADER_WORD_SIZE,
    NODE_STRUCT,
)
from .errors import CorruptHeader


_KEY_STRUCT = struct.Struct("<I")


@dataclass
class HeaderInfo:
    magic: bytes
    field4: int
    node_count: int
    string_table_offset: int
    string_table_length: int
    node_table_offset: int
    node_table_length: int
    file_table_offset: int
    file_count: int
    key: int


def _word_range(offset: int, length: int) -> Tuple[int, int]:
    """Return the [start, end) byte span of the words covering a protected table."""
    start = offset // HEADER_WORD_SIZE
    end = start + length // HEADER_WORD_SIZE
    return start * HEADER_WORD_SIZE, end * HEADER_WORD_SIZE


def _xor_region(buf: bytearray, offset: int, length: int, key: int) -> None:
    lo, hi = _word_range(offset, length)
    if hi <= lo:
        return
    keystream = _KEY_STRUCT.pack(key) * ((hi - lo) // HEADER_WORD_SIZE)
    buf[lo:hi] = strxor(bytes(buf[lo:hi]), keystream)


def _check_layout(info: HeaderInfo, size: int) -> None:
    scalars = (
        info.field4,
        info.node_count,
        info.string_table_offset,
        info.string_table_length,
        info.node_table_offset,
        info.node_table_length,
        info.file_table_offset,
        info.file_count,
    )
    if any(v < 0 for v in scalars):
        raise CorruptHeader("Negative header field")
    for name, off, length in (
        ("string table", info.string_table_offset, info.string_table_length),
        ("node table", info.node_table_offset, info.node_table_length),
    ):
        lo, hi = _word_range(off, length)
        if off + length > size or hi > size:
            raise CorruptHeader(f"{name.capitalize()} out of range")
        if length and lo < HEADER_SIZE:
            raise CorruptHeader(f"{name.capitalize()} overlaps header fields")
    if info.node_table_offset + info.node_count * NODE_STRUCT.size > size:
        raise CorruptHeader("Node records out of range")
    if info.file_table_offset + info.file_count * FILE_RECORD_STRUCT.size > size:
        raise CorruptHeader("File table out of range")


def parse_header_info(raw: bytes) -> HeaderInfo:
    """Parse the scalar header; the key is recovered from the protected word 9."""
    if len(raw) < HEADER_SIZE:
        raise CorruptHeader("Header file too short")
    (magic, field4, node_count, st_off, st_len, nt_off, nt_len, ft_off, file_count, stored_key) = HEADER_STRUCT.unpack_from(raw, 0)
    info = HeaderInfo(
        magic=magic,
        field4=field4,
        node_count=node_count,
        string_table_offset=st_off,
        string_table_length=st_len,
        node_table_offset=nt_off,
        node_table_length=nt_len,
        file_table_offset=ft_off,
        file_count=file_count,
        key=stored_key ^ HEADER_KEY_SENTINEL,
    )
    _check_layout(info, len(raw))
    return info


def decrypt_header(raw: bytes) -> Tuple[bytearray, HeaderInfo]:
    """
    Decrypt the protected regions of a header file.

    Only the string table and node table are XOR-protected with the 32-bit key;
    every other word (scalar fields, file table) is stored in the clear. Word 9
    is reset to the sentinel to mark the buffer as decrypted.

    Returns:
        (decrypted buffer, parsed HeaderInfo)
    """
    info = parse_header_info(raw)
    buf = bytearray(raw)
    _KEY_STRUCT.pack_into(buf, HEADER_KEY_WORD * HEADER_WORD_SIZE, HEADER_KEY_SENTINEL)
    _xor_region(buf, info.string_table_offset, info.string_table_length, info.key)
    _xor_region(buf, info.node_table_offset, info.node_table_length, info.key)
    return buf, info


def encrypt_header(buf: bytes, info: HeaderInfo) -> bytes:
    """Inverse of decrypt_header: re-protect both tables and restore word 9."""
    out = bytearray(buf)
    _xor_region(out, info.string_table_offset, info.string_table_length, info.key)
    _xor_region(out, info.node_table_offset, info.node_table_length, info.key)
    _KEY_STRUCT.pack_into(out, HEADER_KEY_WORD * HEADER_WORD_SIZE, info.key ^ HEADER_KEY_SENTINEL)
    return bytes(out)
