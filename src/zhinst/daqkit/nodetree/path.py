# Copyright (C) 2021 Zurich Instruments
#
# This software may be modified and distributed under the terms
# of the MIT license. See the LICENSE file for details.

"""Hierarchical node path of the LabOne parameter tree."""
import re
import fnmatch
from typing import Iterable, Tuple, Union

WILDCARD_SYMBOLS = ("*", "?", "[")

# Leaves may carry a signal suffix (e.g. ``sample.r`` or ``sample.auxin0.avg``).
_SEGMENT_PATTERN = re.compile(r"^[a-z0-9_\-*?\[\]!]+(\.[a-z0-9_\-*?\[\]!]+)*$")


class NodePath:
    """Path to a node in the parameter tree of a device or module.

    A path consists of segments separated by a slash, e.g.
    ``/dev1234/demods/0/rate``. Paths are case insensitive and therefore
    always stored in lower case. Any segment may contain the unix shell-style
    wildcards ``*``, ``?`` and ``[...]``. A path without wildcards (concrete
    path) addresses exactly one node, a wildcard path expands to zero or more
    concrete paths.

    Args:
        segments (Iterable[str]): Segments of the path, without slashes.

    Raises:
        ValueError: if the path is empty or a segment is invalid.
    """

    __slots__ = ("_segments",)

    def __init__(self, segments: Iterable[str]):
        self._segments = tuple(str(segment).lower() for segment in segments)
        if not self._segments:
            raise ValueError("A node path needs at least one segment.")
        for segment in self._segments:
            if not _SEGMENT_PATTERN.match(segment):
                raise ValueError(f"Invalid segment {segment!r} in node path {self}.")

    @classmethod
    def parse(cls, path: Union[str, "NodePath"]) -> "NodePath":
        """Create a path from its string representation.

        Args:
            path (str): absolute path, e.g. ``/dev1234/demods/0/rate``

        Raises:
            ValueError: if the path is not absolute or contains empty segments.
        """
        if isinstance(path, NodePath):
            return path
        if not path.startswith("/"):
            raise ValueError(f"{path}: Leading slash not found")
        return cls(path[1:].rstrip("/").split("/"))

    def __str__(self):
        return "/" + "/".join(self._segments)

    def __repr__(self):
        return f"NodePath({str(self)!r})"

    def __eq__(self, other):
        if isinstance(other, str):
            return str(self) == other.lower()
        if isinstance(other, NodePath):
            return self._segments == other.segments
        return NotImplemented

    def __hash__(self):
        return hash(str(self))

    def __truediv__(self, other) -> "NodePath":
        return NodePath(self._segments + tuple(str(other).strip("/").split("/")))

    def __len__(self):
        return len(self._segments)

    def matches(self, concrete: Union[str, "NodePath"]) -> bool:
        """Check if a concrete path is matched by this (wildcard) path."""
        return fnmatch.fnmatchcase(str(concrete).lower(), str(self))

    @property
    def segments(self) -> Tuple[str, ...]:
        """Segments of the path."""
        return self._segments

    @property
    def device(self) -> str:
        """First segment of the path (device id, ``zi`` or a module key)."""
        return self._segments[0]

    @property
    def leaf(self) -> str:
        """Last segment of the path without the signal suffix."""
        return self._segments[-1].split(".")[0]

    @property
    def signal(self) -> str:
        """Signal suffix of the leaf (e.g. ``r`` for ``sample.r``) or ''."""
        return self._segments[-1].partition(".")[2]

    @property
    def is_wildcard(self) -> bool:
        """Flag if the path contains wildcard symbols."""
        return any(symbol in str(self) for symbol in WILDCARD_SYMBOLS)
