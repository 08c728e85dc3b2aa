from datetime import datetime
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from marketchat.models.message import MessageDocument
from marketchat.utils.mongo import normalize, to_object_id, utc_now


class MessageRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["messages"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("conversation_id", ASCENDING), ("created_at", ASCENDING)])

    async def append(self, conversation_id: str, sender_id: str, content: str) -> MessageDocument:
        doc: Dict[str, Any] = {
            "conversation_id": to_object_id(conversation_id),
            "sender_id": sender_id,
            "content": content,
            "is_read": False,
            "created_at": utc_now(),
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return normalize(doc)

    async def list_by_conversation(self, conversation_id: str) -> List[MessageDocument]:
        query = {"conversation_id": to_object_id(conversation_id)}
        sort = [("created_at", ASCENDING), ("_id", ASCENDING)]
        items = await self.collection.find(query).sort(sort).to_list(length=None)
        return [normalize(it) for it in items]

    async def latest_for_conversation(self, conversation_id: str) -> Optional[MessageDocument]:
        cur = self.collection.find({"conversation_id": to_object_id(conversation_id)})
        items = await cur.sort([("created_at", DESCENDING), ("_id", DESCENDING)]).limit(1).to_list(length=1)
        return normalize(items[0]) if items else None

    async def mark_read_from(self, conversation_id: str, exclude_sender_id: str, before: Optional[datetime] = None) -> int:
        query: Dict[str, Any] = {
            "conversation_id": to_object_id(conversation_id),
            "sender_id": {"$ne": exclude_sender_id},
            "is_read": False,
        }
        if before is not None:
            query["created_at"] = {"$lte": before}
        result = await self.collection.update_many(
            query,
            {"$set": {"is_read": True}},
        )
        return result.modified_count or 0

    async def count_unread_for(self, conversation_id: str, reader_id: str) -> int:
        return await self.collection.count_documents(
            {
                "conversation_id": to_object_id(conversation_id),
                "sender_id": {"$ne": reader_id},
                "is_read": False,
            }
        )

    async def delete(self, message_id: str) -> bool:
        result = await self.collection.delete_one({"_id": to_object_id(message_id)})
        return bool(result.deleted_count)

    async def delete_for_conversation(self, conversation_id: str) -> int:
        result = await self.collection.delete_many({"conversation_id": to_object_id(conversation_id)})
        return result.deleted_count or 0
