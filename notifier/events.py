"""
Inbound document change events.

The Firestore trigger relay posts one envelope per document write:

    {
        "collection": "calls" | "requests",
        "id": "<document id>",
        "before": {...} | null,   # absent on creation
        "after": {...} | null     # absent on deletion
    }
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class ChangeEvent:
    collection: str
    document_id: str
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "ChangeEvent":
        """Raises ValueError on a malformed envelope."""
        collection = data.get("collection")
        document_id = data.get("id") or data.get("documentId")
        if not isinstance(collection, str) or not collection:
            raise ValueError("collection is required")
        if not isinstance(document_id, str) or not document_id:
            raise ValueError("id is required")

        snapshots = {}
        for key in ("before", "after"):
            value = data.get(key)
            if value is not None and not isinstance(value, dict):
                raise ValueError(f"{key} must be an object or null")
            snapshots[key] = value

        return cls(
            collection=collection,
            document_id=document_id,
            before=snapshots["before"],
            after=snapshots["after"],
        )
