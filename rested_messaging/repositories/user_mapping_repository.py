from datetime import datetime, timezone
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING

from rested_messaging.models.user_mapping import UserMappingDocument


class UserMappingRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db.get_collection("user_mappings")

    async def ensure_indexes(self) -> None:
        await self._collection.create_index([("newUserId", ASCENDING)])
        await self._collection.create_index([("email", ASCENDING)])

    async def get_by_old_user_id(self, old_user_id: str) -> Optional[UserMappingDocument]:
        return await self._collection.find_one({"_id": old_user_id})

    async def get_by_new_user_id(self, new_user_id: str) -> Optional[UserMappingDocument]:
        return await self._collection.find_one({"newUserId": new_user_id})

    async def get_by_email(self, email: str) -> Optional[UserMappingDocument]:
        return await self._collection.find_one({"email": email})

    async def upsert(self, old_user_id: str, new_user_id: str, email: Optional[str] = None, name: Optional[str] = None) -> bool:
        """Create or update the mapping keyed by the old user id; True when created."""
        now = datetime.now(timezone.utc)
        fields: Dict[str, Any] = {"oldUserId": old_user_id, "newUserId": new_user_id, "lastUpdated": now}
        if email:
            fields["email"] = email
        if name:
            fields["name"] = name
        result = await self._collection.update_one(
            {"_id": old_user_id},
            {"$set": fields, "$setOnInsert": {"createdAt": now}},
            upsert=True,
        )
        return result.upserted_id is not None
