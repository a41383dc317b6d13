"""
Tree nodes: the decoded, format-independent shape of configuration data.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Iterator, Mapping, Optional, Tuple


class NodeKind(Enum):
    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    OBJECT = "object"
    LIST = "list"


@dataclass(frozen=True)
class TreeNode:
    """
    A single node of a configuration tree.

    OBJECT nodes hold a ``Dict[str, TreeNode]``; LIST nodes hold a
    ``Tuple[TreeNode, ...]``; scalars hold the plain Python value.
    """

    kind: NodeKind
    value: Any = None

    # ----------------------------- construction -----------------------------

    @classmethod
    def null(cls) -> "TreeNode":
        return cls(NodeKind.NULL, None)

    @classmethod
    def boolean(cls, value: bool) -> "TreeNode":
        return cls(NodeKind.BOOL, bool(value))

    @classmethod
    def number(cls, value) -> "TreeNode":
        return cls(NodeKind.NUMBER, value)

    @classmethod
    def string(cls, value: str) -> "TreeNode":
        return cls(NodeKind.STRING, value)

    @classmethod
    def of_object(cls, fields: Mapping[str, "TreeNode"]) -> "TreeNode":
        return cls(NodeKind.OBJECT, dict(fields))

    @classmethod
    def of_list(cls, items) -> "TreeNode":
        return cls(NodeKind.LIST, tuple(items))

    @classmethod
    def from_python(cls, data: Any) -> "TreeNode":
        """Build a tree from plain decoded data (dicts, lists, scalars)."""
        if isinstance(data, TreeNode):
            return data
        if data is None:
            return cls.null()
        # bool is a subclass of int
        if isinstance(data, bool):
            return cls.boolean(data)
        if isinstance(data, (int, float)):
            return cls.number(data)
        if isinstance(data, str):
            return cls.string(data)
        if isinstance(data, (datetime, date, time)):
            return cls.string(data.isoformat())
        if isinstance(data, Mapping):
            fields = {}
            for k, v in data.items():
                key = str(k)
                # YAML keys such as 1 and "1" both become "1"
                if key in fields:
                    raise TypeError(f"Duplicate object key {key!r}")
                fields[key] = cls.from_python(v)
            return cls.of_object(fields)
        if isinstance(data, (list, tuple)):
            return cls.of_list(cls.from_python(item) for item in data)
        raise TypeError(f"Cannot convert {type(data).__name__} to a configuration tree")

    # ----------------------------- inspection -----------------------------

    @property
    def is_null(self) -> bool:
        return self.kind is NodeKind.NULL

    @property
    def is_object(self) -> bool:
        return self.kind is NodeKind.OBJECT

    @property
    def is_list(self) -> bool:
        return self.kind is NodeKind.LIST

    @property
    def is_scalar(self) -> bool:
        return self.kind not in (NodeKind.OBJECT, NodeKind.LIST)

    def get(self, key: str) -> Optional["TreeNode"]:
        """Field lookup on an OBJECT node; None for missing keys or other kinds."""
        if self.kind is not NodeKind.OBJECT:
            return None
        return self.value.get(key)

    def keys(self) -> Tuple[str, ...]:
        if self.kind is not NodeKind.OBJECT:
            return ()
        return tuple(sorted(self.value))

    def __len__(self) -> int:
        if self.kind in (NodeKind.OBJECT, NodeKind.LIST):
            return len(self.value)
        return 0

    def __bool__(self) -> bool:
        return True

    def __iter__(self) -> Iterator["TreeNode"]:
        if self.kind is NodeKind.LIST:
            return iter(self.value)
        if self.kind is NodeKind.OBJECT:
            return iter(self.value[k] for k in sorted(self.value))
        return iter(())

    def to_python(self) -> Any:
        """Convert the tree back into plain Python data."""
        if self.kind is NodeKind.OBJECT:
            return {k: v.to_python() for k, v in self.value.items()}
        if self.kind is NodeKind.LIST:
            return [item.to_python() for item in self.value]
        return self.value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TreeNode):
            return NotImplemented
        if self.kind is not other.kind:
            return False
        return self.value == other.value

    def __hash__(self) -> int:
        if self.kind is NodeKind.OBJECT:
            return hash((self.kind, frozenset(self.value.items())))
        return hash((self.kind, self.value))

    def __repr__(self) -> str:
        return f"TreeNode({self.kind.value}, {self.to_python()!r})"


def as_tree(data: Any) -> TreeNode:
    """Shorthand for :meth:`TreeNode.from_python`."""
    return TreeNode.from_python(data)

