"""Scalar metadata encoding shared by the hosted vector stores.

ChromaDB and Pinecone accept only scalar metadata values.  Record metadata
is flattened on the way in (non-scalars become JSON strings under a
``json:`` key prefix, ``None`` values are dropped) and restored on the way
out.
"""

from __future__ import annotations

import json
from typing import Any

from ragpipe.models.rag import VectorRecord

_JSON_PREFIX = "json:"

Scalar = str | int | float | bool


def flatten_metadata(record: VectorRecord) -> dict[str, Scalar]:
    """Return *record*'s metadata plus ``document_id`` and ``chunk_index`` as scalars."""
    meta: dict[str, Scalar] = {
        "document_id": record.document_id,
        "chunk_index": record.chunk_index,
    }
    for key, value in record.metadata.items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            meta[key] = value
        else:
            meta[f"{_JSON_PREFIX}{key}"] = json.dumps(value, default=str)
    return meta


def restore_metadata(meta: dict[str, Any] | None) -> dict[str, Any]:
    restored: dict[str, Any] = {}
    for key, value in (meta or {}).items():
        if key.startswith(_JSON_PREFIX) and isinstance(value, str):
            restored[key[len(_JSON_PREFIX) :]] = json.loads(value)
        else:
            restored[key] = value
    return restored
