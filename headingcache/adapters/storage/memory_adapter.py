"""In-Memory Document Store Adapter.

This adapter implements DocumentStorePort over a tree of nodes held in
process memory. It is the default store for tests and for single-process
deployments where the cache does not need to survive a restart.

Architecture:
    - Implements DocumentStorePort (Hexagonal Architecture)
    - A single re-entrant lock serializes every read and write
    - Deleting a subtree prunes ancestors that are left empty
"""

import logging
import threading
from typing import Optional, Union

from headingcache.adapters.storage.key_path import (
    TreeNode,
    as_counter,
    check_scalar,
    find_child,
    iter_leaves,
    leaf_value,
    node_to_document,
    normalize_path,
    sort_segments,
)
from headingcache.domain.ports import DocumentStorePort, KeyPath, Scalar, StorageError

logger = logging.getLogger(__name__)


class InMemoryDocumentStore(DocumentStorePort):
    """Thread-safe in-memory implementation of DocumentStorePort.

    Example Usage:
        ```python
        store = InMemoryDocumentStore()
        store.put_document(['bySourceId', 'ethercis-1'], {'heading': 'procedures'})
        store.get(['bySourceId', 'ethercis-1', 'heading'])  # 'procedures'
        ```
    """

    def __init__(self):
        self._root = TreeNode()
        self._lock = threading.RLock()

    def exists(self, path: KeyPath) -> bool:
        keys = normalize_path(path)
        with self._lock:
            node = find_child(self._root, keys)
            return node is not None and not node.is_empty()

    def get(self, path: KeyPath) -> Optional[Scalar]:
        keys = normalize_path(path)
        with self._lock:
            node = find_child(self._root, keys)
            if node is None or not node.has_value:
                return None
            return leaf_value(node.value)

    def get_document(self, path: KeyPath, preserve_arrays: bool = False) -> Optional[Union[dict, list]]:
        keys = normalize_path(path)
        with self._lock:
            node = find_child(self._root, keys)
            if node is None or node.is_empty():
                return None
            if not node.children:
                return {}
            return node_to_document(node, preserve_arrays)

    def put(self, path: KeyPath, value: Scalar) -> None:
        keys = normalize_path(path)
        if not keys:
            raise StorageError("Cannot put a value at the root", operation="put")
        check_scalar(value)
        with self._lock:
            self._ensure_node(keys).set_value(value)

    def put_document(self, path: KeyPath, document: Union[dict, list]) -> None:
        keys = normalize_path(path)
        # Materialise first so a bad value leaves nothing half-written
        leaves = list(iter_leaves(document))
        with self._lock:
            for relative, value in leaves:
                self._ensure_node(keys + relative).set_value(value)

    def delete(self, path: KeyPath) -> None:
        keys = normalize_path(path)
        with self._lock:
            if not keys:
                self._root = TreeNode()
                return

            trail: list[tuple[TreeNode, str]] = []
            node = self._root
            for key in keys:
                child = node.children.get(key)
                if child is None:
                    return
                trail.append((node, key))
                node = child

            parent, key = trail.pop()
            del parent.children[key]

            while trail:
                grandparent, parent_key = trail.pop()
                if not parent.is_empty():
                    break
                del grandparent.children[parent_key]
                parent = grandparent

    def increment(self, path: KeyPath) -> int:
        keys = normalize_path(path)
        if not keys:
            raise StorageError("Cannot increment the root", operation="increment")
        with self._lock:
            node = self._ensure_node(keys)
            current = as_counter(node.value if node.has_value else 0, keys)
            node.set_value(current + 1)
            return current + 1

    def children(self, path: KeyPath, reverse: bool = False) -> list[str]:
        keys = normalize_path(path)
        with self._lock:
            node = find_child(self._root, keys)
            if node is None:
                return []
            return sort_segments(node.children.keys(), reverse=reverse)

    def _ensure_node(self, keys: tuple[str, ...]) -> TreeNode:
        node = self._root
        for key in keys:
            child = node.children.get(key)
            if child is None:
                child = TreeNode()
                node.children[key] = child
            node = child
        return node

