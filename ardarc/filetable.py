from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import List, Optional

from .constants import (
    ENTRY_TYPE_STORED,
    FILE_RECORD_COMPRESSED_FIELD,
    FILE_RECORD_STRUCT,
    FILE_RECORD_UNCOMPRESSED_FIELD,
)
from .errors import CorruptHeader


_I32 = struct.Struct("<i")


@dataclass
class FileEntry:
    offset: int
    compressed_size: int
    uncompressed_size: int
    type: int
    file_id: int
    header_offset: int
    filename: Optional[str] = None

    @property
    def is_compressed(self) -> bool:
        return self.type != ENTRY_TYPE_STORED

    @property
    def size(self) -> int:
        # Decoded size of the entry
        return self.uncompressed_size if self.is_compressed else self.compressed_size


def read_file_table(buf: bytes, offset: int, count: int) -> List[FileEntry]:
    """Parse ``count`` fixed 24-byte records starting at ``offset``."""
    end = offset + count * FILE_RECORD_STRUCT.size
    if offset < 0 or end > len(buf):
        raise CorruptHeader("File table truncated")
    entries: List[FileEntry] = []
    seen = set()
    for i in range(count):
        rec_off = offset + i * FILE_RECORD_STRUCT.size
        data_off, csize, usize, etype, file_id = FILE_RECORD_STRUCT.unpack_from(buf, rec_off)
        if data_off < 0 or csize < 0 or usize < 0:
            raise CorruptHeader(f"Negative offset or size in file record {i}")
        if file_id in seen:
            raise CorruptHeader(f"Duplicate file identifier {file_id}")
        seen.add(file_id)
        entries.append(
            FileEntry(
                offset=data_off,
                compressed_size=csize,
                uncompressed_size=usize,
                type=etype,
                file_id=file_id,
                header_offset=rec_off,
            )
        )
    return entries


def patch_entry_sizes(buf: bytearray, entry: FileEntry, compressed_size: int, uncompressed_size: int) -> None:
    _I32.pack_into(buf, entry.header_offset + FILE_RECORD_COMPRESSED_FIELD, compressed_size)
    _I32.pack_into(buf, entry.header_offset + FILE_RECORD_UNCOMPRESSED_FIELD, uncompressed_size)
