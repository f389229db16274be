from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO, Optional

import zstandard

from .constants import (
    COPY_BUFFER_SIZE,
    ENTRY_TYPE_REPLACEABLE,
    PAYLOAD_PREFIX_SIZE,
    PAYLOAD_SIZES_OFFSET,
    PAYLOAD_SIZES_STRUCT,
)
from .errors import PayloadCorrupt, PayloadTooLarge, UnsupportedEntryType
from .filetable import FileEntry


def compress_bound(size: int) -> int:
    """Worst-case zstd output size for ``size`` input bytes (ZSTD_COMPRESSBOUND)."""
    margin = ((128 << 10) - size) >> 11 if size < (128 << 10) else 0
    return size + (size >> 8) + margin


class PayloadCodec:
    def __init__(self, level: Optional[int] = None):
        self.level = level if level is not None else zstandard.MAX_COMPRESSION_LEVEL

    def compress(self, data: bytes) -> bytes:
        c = zstandard.ZstdCompressor(level=self.level)
        return c.compress(data)

    def decompress(self, data: bytes, expected_size: int) -> bytes:
        try:
            d = zstandard.ZstdDecompressor()
            out = d.decompress(data, max_output_size=expected_size)
        except zstandard.ZstdError as e:
            raise PayloadCorrupt(f"zstd decompression failed: {e}")
        if len(out) != expected_size:
            raise PayloadCorrupt(f"Decompressed size {len(out)} does not match expected {expected_size}")
        return out


@dataclass
class StagedReplace:
    entry: FileEntry
    compressed: bytes
    uncompressed_size: int


def _read_exact(fh: BinaryIO, n: int) -> bytes:
    b = fh.read(n)
    if len(b) != n:
        raise PayloadCorrupt("Unexpected EOF in entry payload")
    return b


def output_payload(fh: BinaryIO, entry: FileEntry, out: BinaryIO, codec: PayloadCodec) -> int:
    """Stream the decoded bytes of ``entry`` into ``out``; returns the number written."""
    fh.seek(entry.offset)
    if not entry.is_compressed:
        remaining = entry.compressed_size
        while remaining > 0:
            block = _read_exact(fh, min(COPY_BUFFER_SIZE, remaining))
            out.write(block)
            remaining -= len(block)
        return entry.compressed_size
    fh.seek(entry.offset + PAYLOAD_PREFIX_SIZE)
    compressed = _read_exact(fh, entry.compressed_size)
    raw = codec.decompress(compressed, entry.uncompressed_size)
    out.write(raw)
    return len(raw)


def read_payload(fh: BinaryIO, entry: FileEntry, data_length: int, codec: PayloadCodec) -> Optional[bytes]:
    """Return the decoded bytes of ``entry``, or None when it lies past the end of the data file."""
    if entry.offset + entry.compressed_size > data_length:
        return None
    fh.seek(entry.offset)
    if not entry.is_compressed:
        return _read_exact(fh, entry.compressed_size)
    fh.seek(entry.offset + PAYLOAD_PREFIX_SIZE)
    compressed = _read_exact(fh, entry.compressed_size)
    return codec.decompress(compressed, entry.uncompressed_size)


def stage_replace(entry: FileEntry, data: bytes, codec: PayloadCodec) -> StagedReplace:
    """
    Compress replacement bytes and check they fit the entry's existing slot.

    Nothing is written here; the caller commits the header and then the data
    file. Slots are never grown or relocated.
    """
    if entry.type != ENTRY_TYPE_REPLACEABLE:
        raise UnsupportedEntryType(f"Entry type {entry.type} cannot be replaced in place")
    compressed = codec.compress(data)
    if len(compressed) > entry.compressed_size:
        raise PayloadTooLarge(
            f"Compressed replacement is {len(compressed)} bytes; slot holds {entry.compressed_size}"
        )
    return StagedReplace(entry=entry, compressed=compressed, uncompressed_size=len(data))


def commit_payload(fh: BinaryIO, staged: StagedReplace) -> None:
    entry = staged.entry
    fh.seek(entry.offset + PAYLOAD_SIZES_OFFSET)
    fh.write(PAYLOAD_SIZES_STRUCT.pack(staged.uncompressed_size, len(staged.compressed)))
    fh.seek(entry.offset + PAYLOAD_PREFIX_SIZE)
    fh.write(staged.compressed)
    fh.flush()
