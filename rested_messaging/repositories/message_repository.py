from typing import Any, Dict, Iterable, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING


class MessageRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["messages"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("conversationId", ASCENDING), ("logId", ASCENDING)])
        await self.collection.create_index([("childId", ASCENDING), ("logId", ASCENDING)])
        await self.collection.create_index([("logId", ASCENDING)])

    async def mark_unread_for(
        self,
        message_id: str,
        user_ids: Iterable[str],
        message: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Flag the message unread for each user, storing the record if it is not there yet."""
        flags = {f"readBy.{user_id}": False for user_id in user_ids}
        if not flags:
            return False
        update: Dict[str, Any] = {"$set": flags}
        # readBy is owned by the flags above
        record = {k: v for k, v in (message or {}).items() if k not in ("_id", "readBy")}
        if record:
            update["$setOnInsert"] = record
        result = await self.collection.update_one({"_id": message_id}, update, upsert=True)
        return bool(result.matched_count or result.upserted_id is not None)

    async def _mark_read(self, query: Dict[str, Any], user_id: str) -> int:
        result = await self.collection.update_many(query, {"$set": {f"readBy.{user_id}": True}})
        return result.matched_count or 0

    async def mark_chat_read(self, user_id: str, conversation_id: str) -> int:
        # chat messages carry no logId
        return await self._mark_read({"conversationId": conversation_id, "logId": None}, user_id)

    async def mark_log_read(self, user_id: str, log_id: str) -> int:
        return await self._mark_read({"logId": log_id}, user_id)

    async def mark_all_logs_read(self, user_id: str, child_id: str) -> int:
        return await self._mark_read({"childId": child_id, "logId": {"$ne": None}}, user_id)
