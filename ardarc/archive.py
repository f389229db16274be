from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import BinaryIO, Callable, List, Optional

from .codec import PayloadCodec, commit_payload, output_payload, read_payload, stage_replace
from .constants import NODE_STRUCT, STATE_CLOSED, STATE_OPEN, STATE_UNOPENED
from .diagnostics import SEVERITY_ERROR, DiagnosticSink, StderrSink
from .errors import (
    ArchiveClosed,
    ArdarcError,
    CorruptHeader,
    EntryNotFound,
    IoFailure,
)
from .filetable import FileEntry, patch_entry_sizes, read_file_table
from .header import HeaderInfo, decrypt_header, encrypt_header
from .pathutil import glob_match, output_path
from .trie import TrieIndex


ProgressCallback = Callable[[int, int], None]


@dataclass
class ExtractResult:
    attempted: int = 0
    succeeded: int = 0
    failed: List[str] = field(default_factory=list)

    @property
    def failures(self) -> int:
        return len(self.failed)


class FileArchive:
    """
    A header/data archive pair (``.arh`` + ``.ard``).

    The header holds the protected trie index and file table; the data file
    holds raw or zstd-compressed payloads. Entries can be looked up by name,
    read, extracted, and replaced in place when the new compressed bytes fit
    the existing slot.
    """

    def __init__(
        self,
        header_path: str,
        data_path: str,
        *,
        sink: Optional[DiagnosticSink] = None,
        codec: Optional[PayloadCodec] = None,
    ):
        self.header_path = header_path
        self.data_path = data_path
        self.sink: DiagnosticSink = sink if sink is not None else StderrSink()
        self.codec = codec if codec is not None else PayloadCodec()
        self.state = STATE_UNOPENED
        self.f: Optional[BinaryIO] = None
        self.header: Optional[HeaderInfo] = None
        self.index: Optional[TrieIndex] = None
        self.entries: List[FileEntry] = []
        self.data_length: int = 0
        self._header_plain: Optional[bytearray] = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def open(self):
        """
        Load the header and open the data file for reading and writing.

        The data handle is owned by this instance until close(). No OS-level
        lock is taken, so other processes are not kept out of the files.
        """
        if self.state == STATE_OPEN:
            return
        if self.state == STATE_CLOSED:
            raise ArchiveClosed("Archive has been closed")
        try:
            with open(self.header_path, "rb") as hf:
                raw = hf.read()
            self._load_header(raw)
            self.f = open(self.data_path, "r+b")
            self.data_length = os.fstat(self.f.fileno()).st_size
        except OSError as exc:
            self._reset()
            raise IoFailure(f"Unable to open archive: {exc}") from exc
        except (ArdarcError, ValueError):
            # Leave the archive unopened
            self._reset()
            raise
        self.state = STATE_OPEN

    def close(self):
        if self.f is not None:
            self.f.close()
            self.f = None
        if self.state == STATE_OPEN:
            self.state = STATE_CLOSED

    @property
    def is_open(self) -> bool:
        return self.state == STATE_OPEN

    def list(self) -> List[FileEntry]:
        self._require_open()
        return self.entries

    def lookup(self, filename: str) -> Optional[FileEntry]:
        self._require_open()
        assert self.index is not None
        file_id = self.index.lookup(filename)
        if file_id is None or not 0 <= file_id < len(self.entries):
            return None
        return self.entries[file_id]

    def exists(self, filename: str) -> bool:
        return self.lookup(filename) is not None

    def read(self, entry: FileEntry) -> Optional[bytes]:
        self._require_open()
        assert self.f is not None
        try:
            return read_payload(self.f, entry, self.data_length, self.codec)
        except OSError as exc:
            raise IoFailure(f"Unable to read {entry.filename or entry.file_id}: {exc}") from exc

    def read_file(self, filename: str) -> Optional[bytes]:
        return self.read(self._require_entry(filename))

    def output_file(self, entry: FileEntry, stream: BinaryIO) -> int:
        self._require_open()
        assert self.f is not None
        return output_payload(self.f, entry, stream, self.codec)

    def replace(self, entry: FileEntry, data: bytes) -> None:
        """
        Replace an entry's contents in place.

        Three steps: stage (compress and size-check, nothing written), commit
        the header file, commit the data file. There is no journal: a crash
        between the two commits leaves the files inconsistent.
        """
        self._require_open()
        assert self.f is not None
        staged = stage_replace(entry, data, self.codec)
        try:
            self._commit_header(entry, len(staged.compressed), staged.uncompressed_size)
            # The in-memory entry follows the persisted header from here on
            entry.compressed_size = len(staged.compressed)
            entry.uncompressed_size = staged.uncompressed_size
            commit_payload(self.f, staged)
        except OSError as exc:
            raise IoFailure(f"Unable to replace {entry.filename or entry.file_id}: {exc}") from exc
        self.data_length = os.fstat(self.f.fileno()).st_size

    def replace_file(self, filename: str, data: bytes) -> None:
        self.replace(self._require_entry(filename), data)

    def children(self, prefix: str) -> List[FileEntry]:
        """Entries whose filename starts with ``prefix`` (case-insensitive linear scan)."""
        self._require_open()
        p = prefix.lower()
        return [e for e in self.entries if e.filename and e.filename.lower().startswith(p)]

    def find_by_pattern(self, pattern: str) -> List[FileEntry]:
        self._require_open()
        return [e for e in self.entries if e.filename and glob_match(pattern, e.filename)]

    def find_files(self, pattern: str) -> List[str]:
        return [e.filename for e in self.find_by_pattern(pattern) if e.filename]

    def extract_all(self, outdir: str, progress: Optional[ProgressCallback] = None) -> ExtractResult:
        """
        Extract every named entry below ``outdir``.

        A failing entry is reported to the sink and its partial output is
        removed; extraction continues with the remaining entries.
        """
        self._require_open()
        named = [e for e in self.entries if e.filename]
        result = ExtractResult()
        total = len(named)
        for done, e in enumerate(named, 1):
            result.attempted += 1
            dst = None
            try:
                dst = output_path(outdir, e.filename)
                os.makedirs(os.path.dirname(dst) or ".", exist_ok=True)
                with open(dst, "wb") as wf:
                    self.output_file(e, wf)
                result.succeeded += 1
            except (ArdarcError, OSError, ValueError) as exc:
                self.sink.report(SEVERITY_ERROR, f"Unable to output file: {e.filename}: {exc}")
                result.failed.append(e.filename)
                if dst is not None and os.path.isfile(dst):
                    os.remove(dst)
            if progress is not None:
                progress(done, total)
        return result

    # internals
    def _require_open(self):
        if self.state == STATE_UNOPENED:
            raise ArchiveClosed("Archive not open")
        if self.state == STATE_CLOSED:
            raise ArchiveClosed("Archive has been closed")

    def _require_entry(self, filename: str) -> FileEntry:
        entry = self.lookup(filename)
        if entry is None:
            raise EntryNotFound(filename)
        return entry

    def _reset(self):
        if self.f is not None:
            self.f.close()
            self.f = None
        self.header = None
        self.index = None
        self.entries = []
        self._header_plain = None
        self.state = STATE_UNOPENED

    def _load_header(self, raw: bytes):
        """
        Decrypt the header and build the trie index and file table.

        Every terminal node is walked back to the root once so that each
        FileEntry carries its full filename.
        """
        plain, info = decrypt_header(raw)
        st = info.string_table_offset
        nt = info.node_table_offset
        index = TrieIndex.from_bytes(
            plain[nt : nt + info.node_count * NODE_STRUCT.size],
            info.node_count,
            plain[st : st + info.string_table_length],
        )
        entries = read_file_table(plain, info.file_table_offset, info.file_count)
        for node in index.terminals():
            _suffix, file_id = index.suffix_at(node)
            if not 0 <= file_id < len(entries):
                raise CorruptHeader(f"Node {node} references unknown file id {file_id}")
            name = index.filename_of(node)
            try:
                entries[file_id].filename = name.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise CorruptHeader(f"Filename for file id {file_id} is not valid UTF-8") from exc
        self.header = info
        self.index = index
        self.entries = entries
        self._header_plain = plain

    def _commit_header(self, entry: FileEntry, compressed_size: int, uncompressed_size: int):
        assert self._header_plain is not None and self.header is not None
        plain = bytearray(self._header_plain)
        patch_entry_sizes(plain, entry, compressed_size, uncompressed_size)
        with open(self.header_path, "wb") as hf:
            hf.write(encrypt_header(plain, self.header))
        self._header_plain = plain
