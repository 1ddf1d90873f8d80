from __future__ import annotations

import copy
import threading
import uuid
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from .store import Document, DocumentStore, MissingDocument, WriteConflict, WriteKind, WriteOp, apply_op_to_data


class InMemoryDocumentStore(DocumentStore):
    """Process-local document store used for development and tests.

    A single lock serializes batches, which gives the same all-or-nothing
    semantics as the MySQL adapter's transactions.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._collections: Dict[str, Dict[str, Tuple[Dict[str, Any], int]]] = {}

    def _coll(self, collection: str) -> Dict[str, Tuple[Dict[str, Any], int]]:
        return self._collections.setdefault(collection, {})

    @staticmethod
    def _doc(doc_id: str, entry: Tuple[Dict[str, Any], int]) -> Document:
        data, version = entry
        return Document(id=doc_id, data=copy.deepcopy(data), version=version)

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        with self._lock:
            entry = self._coll(collection).get(doc_id)
            return self._doc(doc_id, entry) if entry else None

    def query(self, collection: str, *, where: Optional[Mapping[str, Any]] = None) -> Sequence[Document]:
        where = dict(where or {})
        with self._lock:
            return [
                self._doc(doc_id, entry)
                for doc_id, entry in self._coll(collection).items()
                if all(entry[0].get(k) == v for k, v in where.items())
            ]

    def query_ordered(
        self,
        collection: str,
        *,
        order_by: str,
        descending: bool = False,
        limit: Optional[int] = None,
        where: Optional[Mapping[str, Any]] = None,
    ) -> Sequence[Document]:
        docs = list(self.query(collection, where=where))
        # None sorts first ascending, matching MySQL's NULL ordering.
        docs.sort(key=lambda d: (d.data.get(order_by) is not None, d.data.get(order_by)), reverse=descending)
        return docs[:limit] if limit is not None else docs

    def query_array_contains(self, collection: str, field_name: str, value: Any) -> Sequence[Document]:
        with self._lock:
            return [
                self._doc(doc_id, entry)
                for doc_id, entry in self._coll(collection).items()
                if value in (entry[0].get(field_name) or [])
            ]

    def create(self, collection: str, data: Mapping[str, Any], *, doc_id: Optional[str] = None) -> str:
        doc_id = doc_id or uuid.uuid4().hex
        self.commit([WriteOp.create(collection, doc_id, data)])
        return doc_id

    def update(
        self, collection: str, doc_id: str, fields: Mapping[str, Any], *, expected_version: Optional[int] = None
    ) -> int:
        with self._lock:
            self.commit([WriteOp.update(collection, doc_id, fields, expected_version=expected_version)])
            return self._coll(collection)[doc_id][1]

    def array_union(self, collection: str, doc_id: str, field_name: str, values: Sequence[Any]) -> None:
        self.commit([WriteOp.array_union(collection, doc_id, field_name, values)])

    def array_remove(self, collection: str, doc_id: str, field_name: str, values: Sequence[Any]) -> None:
        self.commit([WriteOp.array_remove(collection, doc_id, field_name, values)])

    def delete(self, collection: str, doc_id: str) -> None:
        self.commit([WriteOp.delete(collection, doc_id)])

    def commit(self, ops: Sequence[WriteOp]) -> None:
        with self._lock:
            # Stage on a copy so a failing op leaves nothing applied.
            staged = {name: dict(docs) for name, docs in self._collections.items()}
            for op in ops:
                docs = staged.setdefault(op.collection, {})
                entry = docs.get(op.doc_id)

                if op.expected_version is not None:
                    current = entry[1] if entry else 0
                    if current != op.expected_version:
                        raise WriteConflict(
                            op.collection, op.doc_id, f"version {current} != expected {op.expected_version}"
                        )

                if op.kind == WriteKind.CREATE:
                    if entry is not None:
                        raise WriteConflict(op.collection, op.doc_id, "document already exists")
                    docs[op.doc_id] = (copy.deepcopy(dict(op.fields)), 1)
                elif op.kind == WriteKind.DELETE:
                    docs.pop(op.doc_id, None)
                else:
                    if entry is None:
                        raise MissingDocument(op.collection, op.doc_id)
                    docs[op.doc_id] = (copy.deepcopy(apply_op_to_data(op, entry[0])), entry[1] + 1)

            self._collections = staged
