from __future__ import annotations

import json
import re
import uuid
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence

import mysql.connector

from .connection import DatabaseConnection
from .mysql_base import db_cursor, fetchall, fetchone
from .store import Document, DocumentStore, MissingDocument, WriteConflict, WriteKind, WriteOp, apply_op_to_data

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _json_default(value: Any):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_body(data: Mapping[str, Any]) -> str:
    return json.dumps(dict(data), default=_json_default, ensure_ascii=False, sort_keys=True)


def decode_body(raw: Any) -> Dict[str, Any]:
    if raw is None:
        return {}
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        return json.loads(raw)
    return dict(raw)


def json_path(field_name: str) -> str:
    if not _FIELD_RE.match(field_name or ""):
        raise ValueError(f"Invalid document field name: {field_name!r}")
    return f"$.{field_name}"


class MySQLDocumentStore(DocumentStore):
    """Documents stored as JSON rows in a single `documents` table.

    Equality and array-contains filters run as JSON_CONTAINS scans over one
    collection, so they cost O(documents in the collection).
    """

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @staticmethod
    def _row_to_doc(row: Dict[str, Any]) -> Document:
        return Document(id=str(row["doc_id"]), data=decode_body(row["body"]), version=int(row["version"]))

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT doc_id, body, version
                FROM documents
                WHERE collection=%s AND doc_id=%s
                """,
                (collection, doc_id),
            )
            row = fetchone(cur)
            return self._row_to_doc(row) if row else None

    def _select(
        self,
        collection: str,
        *,
        where: Optional[Mapping[str, Any]] = None,
        extra_clause: str = "",
        extra_params: Sequence[Any] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> Sequence[Document]:
        clauses = ["collection=%s"]
        params: list[object] = [collection]

        if where:
            clauses.append("JSON_CONTAINS(body, %s)")
            params.append(encode_body(where))
        if extra_clause:
            clauses.append(extra_clause)
            params.extend(extra_params)

        sql = f"SELECT doc_id, body, version FROM documents WHERE {' AND '.join(clauses)}"
        if order_by:
            sql += f" ORDER BY JSON_EXTRACT(body, '{json_path(order_by)}') {'DESC' if descending else 'ASC'}"
        if limit is not None:
            sql += " LIMIT %s"
            params.append(int(limit))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return [self._row_to_doc(r) for r in fetchall(cur)]

    def query(self, collection: str, *, where: Optional[Mapping[str, Any]] = None) -> Sequence[Document]:
        return self._select(collection, where=where)

    def query_ordered(
        self,
        collection: str,
        *,
        order_by: str,
        descending: bool = False,
        limit: Optional[int] = None,
        where: Optional[Mapping[str, Any]] = None,
    ) -> Sequence[Document]:
        return self._select(collection, where=where, order_by=order_by, descending=descending, limit=limit)

    def query_array_contains(self, collection: str, field_name: str, value: Any) -> Sequence[Document]:
        return self._select(
            collection,
            extra_clause="JSON_CONTAINS(body, %s, %s)",
            extra_params=(json.dumps(value, default=_json_default), json_path(field_name)),
        )

    def create(self, collection: str, data: Mapping[str, Any], *, doc_id: Optional[str] = None) -> str:
        doc_id = doc_id or uuid.uuid4().hex
        self.commit([WriteOp.create(collection, doc_id, data)])
        return doc_id

    def update(
        self, collection: str, doc_id: str, fields: Mapping[str, Any], *, expected_version: Optional[int] = None
    ) -> int:
        op = WriteOp.update(collection, doc_id, fields, expected_version=expected_version)
        with db_cursor(self._conn_factory) as (_, cur):
            return self._apply(cur, op)

    def array_union(self, collection: str, doc_id: str, field_name: str, values: Sequence[Any]) -> None:
        self.commit([WriteOp.array_union(collection, doc_id, field_name, values)])

    def array_remove(self, collection: str, doc_id: str, field_name: str, values: Sequence[Any]) -> None:
        self.commit([WriteOp.array_remove(collection, doc_id, field_name, values)])

    def delete(self, collection: str, doc_id: str) -> None:
        self.commit([WriteOp.delete(collection, doc_id)])

    def commit(self, ops: Sequence[WriteOp]) -> None:
        if not ops:
            return
        with db_cursor(self._conn_factory) as (_, cur):
            for op in ops:
                self._apply(cur, op)

    def _apply(self, cur, op: WriteOp) -> int:
        """Apply one op inside the caller's transaction; returns the resulting version."""

        cur.execute(
            """
            SELECT body, version
            FROM documents
            WHERE collection=%s AND doc_id=%s
            FOR UPDATE
            """,
            (op.collection, op.doc_id),
        )
        row = fetchone(cur)
        current_version = int(row["version"]) if row else 0

        if op.expected_version is not None and current_version != op.expected_version:
            raise WriteConflict(
                op.collection, op.doc_id, f"version {current_version} != expected {op.expected_version}"
            )

        if op.kind == WriteKind.CREATE:
            if row:
                raise WriteConflict(op.collection, op.doc_id, "document already exists")
            try:
                cur.execute(
                    """
                    INSERT INTO documents(collection, doc_id, body, version)
                    VALUES(%s,%s,%s,1)
                    """,
                    (op.collection, op.doc_id, encode_body(op.fields)),
                )
            except mysql.connector.IntegrityError as exc:
                raise WriteConflict(op.collection, op.doc_id, "document already exists") from exc
            return 1

        if op.kind == WriteKind.DELETE:
            if row:
                cur.execute(
                    "DELETE FROM documents WHERE collection=%s AND doc_id=%s",
                    (op.collection, op.doc_id),
                )
            return 0

        if not row:
            raise MissingDocument(op.collection, op.doc_id)

        body = apply_op_to_data(op, decode_body(row["body"]))
        cur.execute(
            """
            UPDATE documents
            SET body=%s, version=version+1
            WHERE collection=%s AND doc_id=%s
            """,
            (encode_body(body), op.collection, op.doc_id),
        )
        return current_version + 1
