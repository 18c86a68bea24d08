"""Prefixed view over another document store.

Session partitions and the global record cache share one physical store;
each sees it through a PrefixedDocumentStore rooted at its own key path.
"""

from typing import Optional, Union

from headingcache.adapters.storage.key_path import normalize_path
from headingcache.domain.ports import DocumentStorePort, KeyPath, Scalar


class PrefixedDocumentStore(DocumentStorePort):
    """Delegates every operation to `store` with `prefix` prepended.

    The view does not own the underlying store; close() is a no-op.
    """

    def __init__(self, store: DocumentStorePort, prefix: KeyPath):
        self._store = store
        self.prefix = normalize_path(prefix)

    def _path(self, path: KeyPath) -> tuple[str, ...]:
        return self.prefix + normalize_path(path)

    def exists(self, path: KeyPath) -> bool:
        return self._store.exists(self._path(path))

    def get(self, path: KeyPath) -> Optional[Scalar]:
        return self._store.get(self._path(path))

    def get_document(self, path: KeyPath, preserve_arrays: bool = False) -> Optional[Union[dict, list]]:
        return self._store.get_document(self._path(path), preserve_arrays=preserve_arrays)

    def put(self, path: KeyPath, value: Scalar) -> None:
        self._store.put(self._path(path), value)

    def put_document(self, path: KeyPath, document: Union[dict, list]) -> None:
        self._store.put_document(self._path(path), document)

    def delete(self, path: KeyPath) -> None:
        self._store.delete(self._path(path))

    def increment(self, path: KeyPath) -> int:
        return self._store.increment(self._path(path))

    def children(self, path: KeyPath, reverse: bool = False) -> list[str]:
        return self._store.children(self._path(path), reverse=reverse)
