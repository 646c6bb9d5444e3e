from datetime import datetime, timezone
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from rested_messaging.models.push import SyncedTokenDocument


class SyncedTokenRepository:
    """Locally synced legacy push tokens, one document per user."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["fcm_tokens"]

    async def upsert(self, user_id: str, token: str, app: Optional[str] = None) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        fields: Dict[str, Any] = {"userId": user_id, "token": token, "syncedAt": now, "lastUpdated": now}
        update: Dict[str, Any] = {"$set": fields}
        if app:
            fields["app"] = app
        else:
            # a re-sync without a tag must not inherit the previous token's app
            update["$unset"] = {"app": ""}
        await self.collection.update_one({"_id": user_id}, update, upsert=True)
        return {"userId": user_id, "token": token, "app": app}

    async def get(self, user_id: str) -> Optional[SyncedTokenDocument]:
        return await self.collection.find_one({"_id": user_id})
