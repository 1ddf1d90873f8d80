"""Document-store contract the core depends on.

Every document carries a version that starts at 1 and is bumped on each
write, so callers can make read-modify-write sequences conditional.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Protocol, Sequence


@dataclass(frozen=True)
class Document:
    id: str
    data: Dict[str, Any]
    version: int


class WriteKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    ARRAY_UNION = "array_union"
    ARRAY_REMOVE = "array_remove"


@dataclass(frozen=True)
class WriteOp:
    """One write inside an atomic batch.

    CREATE fails when the document exists; UPDATE/ARRAY_* fail when it is
    missing; DELETE of a missing document is a no-op unless a version is
    expected.
    """

    kind: WriteKind
    collection: str
    doc_id: str
    fields: Mapping[str, Any] = field(default_factory=dict)
    expected_version: Optional[int] = None

    @classmethod
    def create(cls, collection: str, doc_id: str, data: Mapping[str, Any]) -> "WriteOp":
        return cls(WriteKind.CREATE, collection, doc_id, dict(data))

    @classmethod
    def update(
        cls, collection: str, doc_id: str, fields: Mapping[str, Any], *, expected_version: Optional[int] = None
    ) -> "WriteOp":
        return cls(WriteKind.UPDATE, collection, doc_id, dict(fields), expected_version)

    @classmethod
    def delete(cls, collection: str, doc_id: str, *, expected_version: Optional[int] = None) -> "WriteOp":
        return cls(WriteKind.DELETE, collection, doc_id, {}, expected_version)

    @classmethod
    def array_union(cls, collection: str, doc_id: str, field_name: str, values: Sequence[Any]) -> "WriteOp":
        return cls(WriteKind.ARRAY_UNION, collection, doc_id, {field_name: list(values)})

    @classmethod
    def array_remove(cls, collection: str, doc_id: str, field_name: str, values: Sequence[Any]) -> "WriteOp":
        return cls(WriteKind.ARRAY_REMOVE, collection, doc_id, {field_name: list(values)})


class WriteConflict(Exception):
    """A conditional write lost: stale version, or create over an existing document."""

    def __init__(self, collection: str, doc_id: str, reason: str):
        super().__init__(f"{collection}/{doc_id}: {reason}")
        self.collection = collection
        self.doc_id = doc_id
        self.reason = reason


class MissingDocument(Exception):
    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"{collection}/{doc_id} does not exist")
        self.collection = collection
        self.doc_id = doc_id


class DocumentStore(Protocol):
    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        raise NotImplementedError

    def query(self, collection: str, *, where: Optional[Mapping[str, Any]] = None) -> Sequence[Document]:
        """Equality filter on top-level fields (all must match)."""

        raise NotImplementedError

    def query_ordered(
        self,
        collection: str,
        *,
        order_by: str,
        descending: bool = False,
        limit: Optional[int] = None,
        where: Optional[Mapping[str, Any]] = None,
    ) -> Sequence[Document]:
        raise NotImplementedError

    def query_array_contains(self, collection: str, field_name: str, value: Any) -> Sequence[Document]:
        raise NotImplementedError

    def create(self, collection: str, data: Mapping[str, Any], *, doc_id: Optional[str] = None) -> str:
        raise NotImplementedError

    def update(
        self, collection: str, doc_id: str, fields: Mapping[str, Any], *, expected_version: Optional[int] = None
    ) -> int:
        """Partial update; returns the new version."""

        raise NotImplementedError

    def array_union(self, collection: str, doc_id: str, field_name: str, values: Sequence[Any]) -> None:
        raise NotImplementedError

    def array_remove(self, collection: str, doc_id: str, field_name: str, values: Sequence[Any]) -> None:
        raise NotImplementedError

    def delete(self, collection: str, doc_id: str) -> None:
        raise NotImplementedError

    def commit(self, ops: Sequence[WriteOp]) -> None:
        """Apply all ops atomically: either every op is applied or none is."""

        raise NotImplementedError


def merge_array_union(current: Any, values: Sequence[Any]) -> list:
    out = list(current or [])
    for v in values:
        if v not in out:
            out.append(v)
    return out


def merge_array_remove(current: Any, values: Sequence[Any]) -> list:
    drop = list(values)
    return [v for v in (current or []) if v not in drop]


def apply_op_to_data(op: WriteOp, data: Dict[str, Any]) -> Dict[str, Any]:
    """Return the new body of a document after UPDATE/ARRAY_* op."""

    out = dict(data)
    if op.kind == WriteKind.UPDATE:
        out.update(op.fields)
    elif op.kind == WriteKind.ARRAY_UNION:
        for name, values in op.fields.items():
            out[name] = merge_array_union(out.get(name), values)
    elif op.kind == WriteKind.ARRAY_REMOVE:
        for name, values in op.fields.items():
            out[name] = merge_array_remove(out.get(name), values)
    else:
        raise ValueError(f"Op {op.kind} does not modify a document body")
    return out
