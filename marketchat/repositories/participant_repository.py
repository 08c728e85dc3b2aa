from typing import Dict, Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from marketchat.models.user import ParticipantSummary, UserDocument
from marketchat.utils.mongo import to_object_id


PARTICIPANT_FIELDS = {
    "email": 1,
    "first_name": 1,
    "last_name": 1,
    "business_name": 1,
    "store_logo": 1,
    "is_seller": 1,
}


def display_name(user: UserDocument) -> str:
    if user.get("business_name"):
        return user["business_name"]
    full_name = " ".join(p for p in (user.get("first_name"), user.get("last_name")) if p)
    return full_name or user.get("email") or "Unknown user"


def to_summary(user: UserDocument) -> ParticipantSummary:
    return {
        "_id": str(user["_id"]),
        "display_name": display_name(user),
        "first_name": user.get("first_name"),
        "last_name": user.get("last_name"),
        "business_name": user.get("business_name"),
        "store_logo": user.get("store_logo"),
        "is_seller": bool(user.get("is_seller", False)),
    }


class ParticipantRepository:
    """Read-only view over the marketplace accounts (buyers and sellers)."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db.get_collection("users")

    async def get_participant(self, participant_id: str) -> Optional[ParticipantSummary]:
        oid = to_object_id(participant_id)
        if oid is None:
            return None
        user = await self._collection.find_one({"_id": oid}, PARTICIPANT_FIELDS)
        return to_summary(user) if user else None

    async def get_participants(self, participant_ids: Iterable[str]) -> Dict[str, ParticipantSummary]:
        oids = [oid for oid in (to_object_id(pid) for pid in set(participant_ids)) if oid is not None]
        if not oids:
            return {}
        users: List[dict] = await self._collection.find({"_id": {"$in": oids}}, PARTICIPANT_FIELDS).to_list(length=None)
        return {str(u["_id"]): to_summary(u) for u in users}
