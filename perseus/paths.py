"""Sanitized path resolution for Perseus.

Every filesystem location the pipeline touches (source files, output files,
cache entries, component templates) is built through :func:`resolve`, which
refuses to hand back a path outside of the directory it was anchored to.

Key functions:
    resolve: Join segments onto a base and normalize, rejecting traversal.
    relative_segments: Strip a base back off a resolved path.
"""

from __future__ import annotations

import os
from pathlib import Path, PurePosixPath


class InvalidPathError(ValueError):
    """Error raised when a path would escape its permitted base directory.

    Attributes:
        base: The directory the path was anchored to.
        segments: The segments that were requested.
    """

    def __init__(self, base: Path, segments: tuple[str, ...]):
        self.base = base
        self.segments = segments
        joined = "/".join(segments)
        super().__init__(f"Path '{joined}' escapes base directory {base}")


def _absolute(base: str | os.PathLike[str]) -> Path:
    return Path(os.path.normpath(os.path.abspath(os.fspath(base))))


def resolve(base: str | os.PathLike[str], *segments: str | os.PathLike[str]) -> Path:
    """Join segments onto base and normalize to an absolute path.

    Segments are always treated as relative to ``base``: a leading ``/`` (as
    found on URLs such as ``/fr/about/``) does not reset the join to the
    filesystem root. Normalization happens lexically, so the filesystem is
    never consulted.

    Args:
        base: Directory that the result must stay within.
        *segments: Path segments to append.

    Returns:
        Absolute, normalized path inside ``base``.

    Raises:
        InvalidPathError: If ``..`` segments climb above ``base``.

    Examples:
        >>> resolve("/srv/site", "posts", "hello.md")
        PosixPath('/srv/site/posts/hello.md')
    """
    root = _absolute(base)
    parts = [os.fspath(s).replace("\\", "/").lstrip("/") for s in segments]
    candidate = Path(os.path.normpath(os.path.join(root, *parts))) if parts else root
    if candidate != root and root not in candidate.parents:
        raise InvalidPathError(root, tuple(os.fspath(s) for s in segments))
    return candidate


def relative_segments(base: str | os.PathLike[str], path: str | os.PathLike[str]) -> str:
    """Return the POSIX remainder of ``path`` once ``base`` is stripped.

    Args:
        base: Directory the path was resolved against.
        path: A path previously produced by :func:`resolve`.

    Returns:
        Relative POSIX path, or ``""`` when ``path`` is ``base`` itself.
    """
    rel = _absolute(path).relative_to(_absolute(base))
    text = PurePosixPath(*rel.parts).as_posix()
    return "" if text == "." else text
