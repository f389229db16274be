"""
ardarc: random-access header/data archive engine.

An archive is a pair of files:

- a small header file (.arh) with an XOR-protected string table and
  double-array trie index, plus a clear-text file table;
- a large data file (.ard) holding raw or zstd-compressed payloads.

Features:

- Filename lookup in time proportional to the name length (double-array trie)
- Transparent zstd decompression of compressed entries
- In-place replacement of an entry whose recompressed bytes fit its slot
- Bulk extraction that isolates per-entry failures

The programmatic API is ardarc.archive.FileArchive; the `ardarc` console
script lives in ardarc.cli.
"""

__version__ = "0.1"

__all__ = [
    "constants",
    "header",
    "trie",
    "filetable",
    "codec",
    "archive",
]
