import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from marketchat.models.conversation import ConversationDocument
from marketchat.utils.errors import ValidationError
from marketchat.utils.mongo import normalize, to_object_id, utc_now


logger = logging.getLogger(__name__)


def pair_key(id_a: str, id_b: str) -> str:
    low, high = sorted([id_a, id_b])
    return f"{low}:{high}"


class ConversationRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["conversations"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("participants", ASCENDING)])
        await self.collection.create_index([("last_message_at", DESCENDING)])
        await self.collection.create_index(
            [("pair_key", ASCENDING), ("product_id", ASCENDING)], unique=True
        )

    async def find_by_participants(self, id_a: str, id_b: str, product_id: Optional[str] = None) -> Optional[ConversationDocument]:
        doc = await self.collection.find_one({"pair_key": pair_key(id_a, id_b), "product_id": product_id or None})
        return normalize(doc)

    async def create(
        self,
        initiator_id: str,
        counterpart_id: str,
        product_id: Optional[str] = None,
        subject: Optional[str] = None,
    ) -> ConversationDocument:
        if initiator_id == counterpart_id:
            raise ValidationError("You cannot start a conversation with yourself")
        now = utc_now()
        doc: Dict[str, Any] = {
            "initiator_id": initiator_id,
            "counterpart_id": counterpart_id,
            "participants": sorted([initiator_id, counterpart_id]),
            "pair_key": pair_key(initiator_id, counterpart_id),
            "product_id": product_id or None,
            "subject": subject,
            "created_at": now,
            "last_message_at": now,
            "unread_counters": {initiator_id: 0, counterpart_id: 0},
        }
        try:
            result = await self.collection.insert_one(doc)
        except DuplicateKeyError:
            # lost a race against a concurrent create for the same pair
            existing = await self.find_by_participants(initiator_id, counterpart_id, product_id)
            if existing is None:
                raise
            logger.info("Conversation %s created concurrently, reusing it", existing["_id"])
            return existing
        doc["_id"] = str(result.inserted_id)
        return doc

    async def get_by_id(self, conversation_id: str) -> Optional[ConversationDocument]:
        oid = to_object_id(conversation_id)
        if oid is None:
            return None
        return normalize(await self.collection.find_one({"_id": oid}))

    async def touch_on_message(self, conversation_id: str, timestamp: datetime, recipient_id: str) -> Optional[ConversationDocument]:
        # single atomic update: $max keeps last_message_at monotonic when two
        # sends race, $inc avoids lost counter updates.
        doc = await self.collection.find_one_and_update(
            {"_id": to_object_id(conversation_id), "participants": recipient_id},
            {
                "$max": {"last_message_at": timestamp},
                "$inc": {f"unread_counters.{recipient_id}": 1},
            },
            return_document=ReturnDocument.AFTER,
        )
        return normalize(doc)

    async def reset_unread(self, conversation_id: str, participant_id: str) -> bool:
        result = await self.collection.update_one(
            {"_id": to_object_id(conversation_id), "participants": participant_id},
            {"$set": {f"unread_counters.{participant_id}": 0}},
        )
        return result.matched_count > 0

    async def delete(self, conversation_id: str) -> bool:
        oid = to_object_id(conversation_id)
        if oid is None:
            return False
        result = await self.collection.delete_one({"_id": oid})
        return result.deleted_count > 0

    async def list_for_participant(self, participant_id: str) -> List[ConversationDocument]:
        query = {"participants": participant_id}
        sort = [("last_message_at", DESCENDING), ("_id", DESCENDING)]
        items = await self.collection.find(query).sort(sort).to_list(length=None)
        return [normalize(it) for it in items]
