from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse ``value`` as an ObjectId, returning None for anything malformed."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def utc_now() -> datetime:
    # BSON dates keep milliseconds only; truncate up front so the value we
    # hand back equals the one read back later.
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def normalize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Turn ObjectIds into strings for the API layer."""
    if doc is None:
        return None
    for key in ("_id", "conversation_id"):
        if isinstance(doc.get(key), ObjectId):
            doc[key] = str(doc[key])
    return doc
