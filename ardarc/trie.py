from __future__ import annotations

from typing import Iterator, List, NamedTuple, Optional, Tuple

from .constants import FILE_ID_STRUCT, NODE_STRUCT, ROOT_NODE
from .errors import CorruptHeader


class TrieNode(NamedTuple):
    next: int
    prev: int

    @property
    def is_terminal(self) -> bool:
        return self.next < 0


def fold_byte(c: int) -> int:
    """ASCII-only lower-casing; bytes outside A-Z are returned unchanged."""
    if 0x41 <= c <= 0x5A:
        return c | 0x20
    return c


def fold_bytes(data: bytes) -> bytes:
    return bytes(fold_byte(c) for c in data)


class TrieIndex:
    """
    Double-array automaton mapping filenames to file identifiers.

    Each slot holds ``(next, prev)``. From an internal node ``s`` the edge
    labelled ``c`` leads to slot ``nodes[s].next ^ c``, which is only valid
    when that slot's ``prev`` points back at ``s``. A terminal node
    (``next < 0``) stores the rest of the filename in the string table at
    offset ``-next``, followed by the int32 file identifier.
    """

    def __init__(self, nodes: List[TrieNode], string_table: bytes):
        self.nodes = nodes
        self.string_table = string_table

    @classmethod
    def from_bytes(cls, node_bytes: bytes, node_count: int, string_table: bytes) -> "TrieIndex":
        need = node_count * NODE_STRUCT.size
        if len(node_bytes) < need:
            raise CorruptHeader("Node table truncated")
        nodes = [TrieNode(n, p) for n, p in NODE_STRUCT.iter_unpack(bytes(node_bytes[:need]))]
        return cls(nodes, bytes(string_table))

    def __len__(self) -> int:
        return len(self.nodes)

    def node(self, state: int) -> TrieNode:
        if state < 0 or state >= len(self.nodes):
            raise CorruptHeader(f"Node index {state} out of range")
        return self.nodes[state]

    def transition(self, state: int, char: int) -> Optional[int]:
        cur = self.node(state)
        if cur.is_terminal:
            return None
        target = cur.next ^ char
        if target < 0 or target >= len(self.nodes):
            return None
        if self.nodes[target].prev != state:
            return None
        return target

    def parent_edge_char(self, state: int) -> int:
        prev = self.node(state).prev
        return state ^ self.node(prev).next

    def suffix_at(self, state: int) -> Tuple[bytes, int]:
        """Return the literal suffix and file identifier stored for a terminal node."""
        cur = self.node(state)
        if not cur.is_terminal:
            raise ValueError(f"Node {state} is not terminal")
        start = -cur.next
        end = self.string_table.find(b"\x00", start)
        if start >= len(self.string_table) or end < 0:
            raise CorruptHeader(f"Unterminated suffix for node {state}")
        if end + 1 + FILE_ID_STRUCT.size > len(self.string_table):
            raise CorruptHeader(f"File identifier for node {state} out of range")
        (file_id,) = FILE_ID_STRUCT.unpack_from(self.string_table, end + 1)
        return self.string_table[start:end], file_id

    def lookup(self, filename: str) -> Optional[int]:
        """Return the file identifier for ``filename`` (case-insensitive), or None."""
        if not self.nodes:
            return None
        key = filename.encode("utf-8")
        state = ROOT_NODE
        consumed = 0
        for c in key:
            if self.nodes[state].is_terminal:
                break
            nxt = self.transition(state, fold_byte(c))
            if nxt is None:
                return None
            state = nxt
            consumed += 1
        if not self.nodes[state].is_terminal:
            return None
        suffix, file_id = self.suffix_at(state)
        if fold_bytes(suffix) != fold_bytes(key[consumed:]):
            return None
        return file_id

    def filename_of(self, state: int) -> bytes:
        """Rebuild the full filename of a terminal node by walking prev links to the root."""
        suffix, _ = self.suffix_at(state)
        chars: List[int] = []
        cur = state
        steps = 0
        while self.node(cur).next != 0:
            steps += 1
            if steps > len(self.nodes):
                raise CorruptHeader(f"Cycle in trie parent links from node {state}")
            c = self.parent_edge_char(cur)
            if not 0 <= c <= 0xFF:
                raise CorruptHeader(f"Invalid edge label {c} at node {cur}")
            chars.append(c)
            cur = self.node(cur).prev
        chars.reverse()
        return bytes(chars) + suffix

    def terminals(self) -> Iterator[int]:
        for idx, n in enumerate(self.nodes):
            if n.next < 0 and n.prev >= 0:
                yield idx
