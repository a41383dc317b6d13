"""
Path addressing over configuration trees.

A path is a dotted sequence of segments.  Each segment names a field and may
carry bracket directives: ``[n]`` picks a list element and ``[]`` expands a
list (or the values of an object).  A bare ``*`` field stands for the only
field of the current object.

Examples::

    server.port
    servers[1].host
    backends.*.url
    servers[]
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Union

from .exceptions import (
    AddressingError,
    BadPathError,
    NotFoundError,
    OutOfRangeError,
    TypeMismatchError,
)
from .tree import NodeKind, TreeNode

logger = logging.getLogger(__name__)

WILDCARD_FIELD = "*"

_SEGMENT_RE = re.compile(r"^(?P<key>[^\[\]]*)(?P<directives>(?:\[[^\[\]]*\])*)$")
_DIRECTIVE_RE = re.compile(r"\[([^\[\]]*)\]")
_INDEX_RE = re.compile(r"^-?\d+$")


@dataclass(frozen=True)
class Directive:
    """A bracket directive; ``index`` is None for the ``[]`` wildcard."""

    index: Optional[int] = None

    @property
    def is_wildcard(self) -> bool:
        return self.index is None

    def __str__(self) -> str:
        return "[]" if self.index is None else f"[{self.index}]"


@dataclass(frozen=True)
class Segment:
    key: str
    directives: Tuple[Directive, ...] = ()

    @property
    def is_sole_field(self) -> bool:
        return self.key == WILDCARD_FIELD

    @property
    def is_plain(self) -> bool:
        """True when the segment is a bare field name usable as a file name."""
        return not self.directives and not self.is_sole_field

    def __str__(self) -> str:
        return self.key + "".join(str(d) for d in self.directives)


@dataclass(frozen=True)
class ConfigPath:
    segments: Tuple[Segment, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.segments

    def __len__(self) -> int:
        return len(self.segments)

    def __str__(self) -> str:
        return ".".join(str(s) for s in self.segments)

    def split(self, count: int) -> Tuple["ConfigPath", "ConfigPath"]:
        return ConfigPath(self.segments[:count]), ConfigPath(self.segments[count:])

    def plain_prefix_length(self) -> int:
        """Number of leading segments that are bare field names."""
        count = 0
        for segment in self.segments:
            if not segment.is_plain:
                break
            count += 1
        return count


def parse_path(text: Union[str, ConfigPath]) -> ConfigPath:
    """
    Parse path text into a :class:`ConfigPath`.

    Raises:
        BadPathError: If the text is malformed or places ``[]`` anywhere but
            as the final directive of the final segment.
    """
    if isinstance(text, ConfigPath):
        return text
    if not isinstance(text, str):
        raise BadPathError(f"Path must be a string, got {type(text).__name__}", path=repr(text))

    # every remainder has its leading dots stripped, so "a..b" reads as "a.b"
    # and a trailing dot ends the path
    segments = []
    for raw in text.split("."):
        if raw:
            segments.append(_parse_segment(raw, text))
    if not segments:
        return ConfigPath()

    wildcards = [
        (i, j)
        for i, segment in enumerate(segments)
        for j, directive in enumerate(segment.directives)
        if directive.is_wildcard
    ]
    if len(wildcards) > 1:
        raise BadPathError(f"Path '{text}' uses the [] wildcard more than once", path=text)
    if wildcards:
        i, j = wildcards[0]
        if i != len(segments) - 1 or j != len(segments[i].directives) - 1:
            raise BadPathError(
                f"Path '{text}' uses the [] wildcard before the end of the path",
                path=text
            )

    return ConfigPath(tuple(segments))


def _parse_segment(raw: str, text: str) -> Segment:
    match = _SEGMENT_RE.match(raw)
    if match is None:
        raise BadPathError(f"Malformed segment '{raw}' in path '{text}'", path=text)

    key = match.group("key")
    if not key:
        raise BadPathError(f"Empty field name in path '{text}'", path=text)

    directives = []
    for content in _DIRECTIVE_RE.findall(match.group("directives")):
        content = content.strip()
        if not content:
            directives.append(Directive())
        elif _INDEX_RE.match(content):
            directives.append(Directive(int(content)))
        else:
            raise BadPathError(f"Index '{content}' in path '{text}' is not an integer", path=text)

    return Segment(key, tuple(directives))


def resolve(root: TreeNode, path: Union[str, ConfigPath]) -> TreeNode:
    """
    Resolve ``path`` against ``root``.

    The empty path returns ``root`` itself.

    Raises:
        BadPathError: The path is malformed.
        NotFoundError: A named field does not exist.
        TypeMismatchError: The path expects a different node kind.
        OutOfRangeError: A list index lies outside the list.
    """
    parsed = parse_path(path)
    text = str(parsed)
    current = root

    for position, segment in enumerate(parsed.segments):
        if current.kind is not NodeKind.OBJECT:
            where = ".".join(str(s) for s in parsed.segments[:position]) or "<root>"
            raise TypeMismatchError(
                f"Cannot look up '{segment.key}' in path '{text}': "
                f"'{where}' is {current.kind.value}, not an object",
                path=text
            )

        key = segment.key
        if segment.is_sole_field:
            if len(current.value) != 1:
                raise TypeMismatchError(
                    f"Wildcard '*' in path '{text}' needs an object with exactly one field, "
                    f"found {len(current.value)}",
                    path=text
                )
            key = next(iter(current.value))

        if key not in current.value:
            raise NotFoundError(f"Field '{key}' not found for path '{text}'", path=text)
        current = current.value[key]

        for directive in segment.directives:
            current = _apply_directive(current, directive, text)

    return current


def _apply_directive(node: TreeNode, directive: Directive, text: str) -> TreeNode:
    if directive.is_wildcard:
        if node.kind is NodeKind.LIST:
            return node
        if node.kind is NodeKind.OBJECT:
            return TreeNode.of_list(node.value[k] for k in sorted(node.value))
        raise TypeMismatchError(
            f"Wildcard [] in path '{text}' applied to {node.kind.value}",
            path=text
        )

    if node.kind is not NodeKind.LIST:
        raise TypeMismatchError(
            f"Index [{directive.index}] in path '{text}' applied to {node.kind.value}, not a list",
            path=text
        )
    if directive.index < 0 or directive.index >= len(node.value):
        raise OutOfRangeError(
            f"Index [{directive.index}] in path '{text}' is out of range for a list of {len(node.value)}",
            path=text
        )
    return node.value[directive.index]


def lookup(root: TreeNode, path: Union[str, ConfigPath]) -> Optional[TreeNode]:
    """Like :func:`resolve`, but returns None when the data is absent.

    Malformed paths still raise :class:`BadPathError`.
    """
    try:
        return resolve(root, path)
    except BadPathError:
        raise
    except AddressingError as e:
        logger.debug(f"Lookup of '{path}' found nothing: {e}")
        return None


def select(list_node: TreeNode, field_path: Union[str, ConfigPath], value: Any) -> Optional[TreeNode]:
    """
    Return the first object in ``list_node`` whose ``field_path`` equals ``value``.

    Entries that are not objects, or that do not carry the field, are skipped.
    """
    if list_node.kind is not NodeKind.LIST:
        raise TypeMismatchError(
            f"select() needs a list, got {list_node.kind.value}",
            path=str(field_path)
        )

    parsed = parse_path(field_path)
    wanted = TreeNode.from_python(value)
    found: List[TreeNode] = []
    for item in list_node.value:
        if item.kind is not NodeKind.OBJECT:
            continue
        candidate = lookup(item, parsed)
        if candidate is not None and candidate == wanted:
            found.append(item)

    if not found:
        return None
    if len(found) > 1:
        logger.debug(f"select() matched {len(found)} entries on '{parsed}', using the first")
    return found[0]
