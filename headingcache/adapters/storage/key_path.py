"""Key path helpers shared by the document store adapters.

Both the in-memory tree and the DuckDB table store the same logical tree:
successive string segments, numeric-first collation, and the same rules for
turning a subtree into a native document. Keeping those rules here means
the two adapters cannot drift apart.
"""

import re
from typing import Any, Iterator, Optional, Union

from headingcache.domain.ports import KeyPath, StorageError

# Separator used when a key path is serialized to a single string (DuckDB).
SEPARATOR = "\x1f"

# Escape marker for document keys that cannot be stored verbatim. A lone
# marker is the empty key; otherwise "\x1e0" is a literal marker and
# "\x1e1" a literal separator.
ESCAPE = "\x1e"

_NUMERIC_SEGMENT_RE = re.compile(r"^-?\d+(\.\d+)?$")
_ESCAPED_RE = re.compile(ESCAPE + "([01])")
_SCALAR_TYPES = (str, int, float, bool)


class TreeNode:
    """One node of the keyed tree: an optional value plus ordered children."""

    __slots__ = ("value", "has_value", "children")

    def __init__(self):
        self.value: Any = None
        self.has_value = False
        self.children: dict[str, "TreeNode"] = {}

    def set_value(self, value: Any) -> None:
        self.value = value
        self.has_value = True

    def is_empty(self) -> bool:
        return not self.has_value and not self.children


def normalize_segment(segment: Union[str, int]) -> str:
    """Canonicalise a single path segment to its string form."""
    if isinstance(segment, bool) or not isinstance(segment, (str, int)):
        raise StorageError(
            f"Unsupported key segment type: {type(segment).__name__}",
            operation="normalize",
            details={"segment": repr(segment)}
        )

    text = str(segment)
    if text == "":
        raise StorageError("Key segments cannot be empty", operation="normalize")
    if SEPARATOR in text or ESCAPE in text:
        raise StorageError("Key segments cannot contain control separators", operation="normalize")
    return text


def encode_key(key: Union[str, int]) -> str:
    """Map an arbitrary document key to a storable, reversible segment."""
    if isinstance(key, bool) or not isinstance(key, (str, int)):
        raise StorageError(
            f"Unsupported document key type: {type(key).__name__}",
            operation="put_document",
            details={"key": repr(key)}
        )

    text = str(key)
    if text == "":
        return ESCAPE
    return text.replace(ESCAPE, ESCAPE + "0").replace(SEPARATOR, ESCAPE + "1")


def decode_key(segment: str) -> str:
    if segment == ESCAPE:
        return ""
    return _ESCAPED_RE.sub(lambda m: ESCAPE if m.group(1) == "0" else SEPARATOR, segment)


def normalize_path(path: KeyPath) -> tuple[str, ...]:
    """Canonicalise a key path to a tuple of string segments."""
    if isinstance(path, (str, int)):
        path = [path]
    return tuple(normalize_segment(segment) for segment in path)


def is_numeric_segment(segment: str) -> bool:
    return bool(_NUMERIC_SEGMENT_RE.match(segment))


def collation_key(segment: str) -> tuple:
    """Numeric segments sort first by value, string segments after them."""
    if is_numeric_segment(segment):
        return (0, float(segment), segment)
    return (1, 0.0, segment)


def sort_segments(segments, reverse: bool = False) -> list[str]:
    return sorted(segments, key=collation_key, reverse=reverse)


def serialize_path(keys: tuple[str, ...]) -> str:
    return SEPARATOR.join(keys)


def subtree_prefix(keys: tuple[str, ...]) -> str:
    """String prefix shared by every serialized path strictly below keys."""
    return serialize_path(keys) + SEPARATOR if keys else ""


def is_array_node(keys: list[str]) -> bool:
    """True when the (collated) child keys are exactly 0..n-1."""
    return bool(keys) and keys == [str(i) for i in range(len(keys))]


def node_to_document(node: TreeNode, preserve_arrays: bool = False) -> Any:
    """Convert a subtree to a native document.

    A leaf yields its value. An inner node yields a dict keyed by the decoded
    document keys, or a list when preserve_arrays is False and its children
    are 0..n-1.
    """
    if not node.children:
        return leaf_value(node.value) if node.has_value else {}

    keys = sort_segments(node.children.keys())
    if not preserve_arrays and is_array_node(keys):
        return [node_to_document(node.children[k], preserve_arrays) for k in keys]

    return {decode_key(k): node_to_document(node.children[k], preserve_arrays) for k in keys}


def leaf_value(value: Any) -> Any:
    """Return a stored leaf value; empty containers are handed out fresh."""
    if isinstance(value, (dict, list)):
        return type(value)()
    return value


def iter_leaves(document: Any, prefix: tuple[str, ...] = ()) -> Iterator[tuple[tuple[str, ...], Any]]:
    """Yield (relative key path, value) pairs for every leaf of a document.

    Lists become children 0..n-1. Below the top level, None and empty
    objects or arrays are leaves of their own so they survive a round trip.
    """
    if document is None:
        if prefix:
            yield prefix, None
        return

    if isinstance(document, dict):
        if not document and prefix:
            yield prefix, {}
        for key, value in document.items():
            yield from iter_leaves(value, prefix + (encode_key(key),))
    elif isinstance(document, (list, tuple)):
        if not document and prefix:
            yield prefix, []
        for index, value in enumerate(document):
            yield from iter_leaves(value, prefix + (str(index),))
    elif isinstance(document, _SCALAR_TYPES):
        if not prefix:
            raise StorageError("Documents must be objects or arrays", operation="put_document")
        yield prefix, document
    else:
        raise StorageError(
            f"Unsupported document value type: {type(document).__name__}",
            operation="put_document",
            details={"path": list(prefix)}
        )


def check_document(document: Any) -> None:
    """Raise StorageError if any part of a document cannot be stored."""
    for _ in iter_leaves(document):
        pass


def check_scalar(value: Any) -> None:
    if not isinstance(value, _SCALAR_TYPES):
        raise StorageError(
            f"Unsupported scalar value type: {type(value).__name__}",
            operation="put"
        )


def find_child(node: TreeNode, keys: tuple[str, ...]) -> Optional[TreeNode]:
    for key in keys:
        node = node.children.get(key)
        if node is None:
            return None
    return node


_INTEGER_RE = re.compile(r"^-?\d+$")


def as_counter(value: Any, keys: tuple[str, ...]) -> int:
    """Read an existing counter value, rejecting anything that is not an integer."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and _INTEGER_RE.match(value):
        return int(value)
    raise StorageError(
        "Cannot increment a non-integer value",
        operation="increment",
        details={"path": list(keys), "value": repr(value)}
    )
