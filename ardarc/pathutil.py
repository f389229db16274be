from __future__ import annotations

import fnmatch
import os


def output_path(outdir: str, name: str) -> str:
    """Map an archive filename to a path under ``outdir``.

    Rules:
    - Convert backslashes to slashes
    - Strip the leading '/' archive names carry
    - Remove empty and '.' segments
    - Reject '..' segments
    """
    p = name.replace("\\", "/").strip("/")
    parts = [q for q in p.split("/") if q not in ("", ".")]
    if not parts:
        raise ValueError(f"Empty archive path: {name!r}")
    for q in parts:
        if q == "..":
            raise ValueError("Path may not contain '..'")
    return os.path.join(outdir, *parts)


def _match_segments(parts, pats) -> bool:
    if not pats:
        return not parts
    if pats[0] == "**":
        return any(_match_segments(parts[i:], pats[1:]) for i in range(len(parts) + 1))
    if not parts or not fnmatch.fnmatchcase(parts[0], pats[0]):
        return False
    return _match_segments(parts[1:], pats[1:])


def glob_match(pattern: str, name: str) -> bool:
    """Case-insensitive glob over '/'-separated archive names.

    ``*``, ``?`` and ``[...]`` match within one segment; a ``**`` segment
    matches zero or more whole segments.
    """
    return _match_segments(name.lower().split("/"), pattern.lower().split("/"))
