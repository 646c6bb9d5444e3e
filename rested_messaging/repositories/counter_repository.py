import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, UpdateOne

from rested_messaging.models.counter import FamilyUnreadCounterDocument, UnreadCounterDocument, counter_key, family_key


logger = logging.getLogger(__name__)

# Attempts at a guarded reset before giving up on a counter that keeps moving.
MAX_RESET_ATTEMPTS = 3


class CounterContentionError(RuntimeError):
    """A guarded reset kept losing to concurrent increments."""


def _zero_counter(user_id: str, child_id: str) -> Dict[str, Any]:
    return {
        "userId": user_id,
        "childId": child_id,
        "chatUnreadCount": 0,
        "logUnreadCount": 0,
        "logUnreadByLogId": {},
        "totalUnreadCount": 0,
    }


def _counter_view(user_id: str, child_id: str, doc: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    doc = doc or {}
    return {
        "userId": user_id,
        "childId": child_id,
        "chatUnreadCount": doc.get("chatUnreadCount", 0),
        "logUnreadCount": doc.get("logUnreadCount", 0),
        "logUnreadByLogId": doc.get("logUnreadByLogId", {}),
        "totalUnreadCount": doc.get("totalUnreadCount", 0),
    }


class CounterRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["unread_counters"]

    @property
    def family_collection(self):
        return self._db["family_unread_counters"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("userId", ASCENDING), ("childId", ASCENDING)])
        await self.family_collection.create_index([("userId", ASCENDING)])

    # ---- increments ----

    def ensure_counter_op(self, user_id: str, child_id: str) -> UpdateOne:
        doc = _zero_counter(user_id, child_id)
        doc["lastUpdated"] = datetime.now(timezone.utc)
        return UpdateOne({"_id": counter_key(user_id, child_id)}, {"$setOnInsert": doc}, upsert=True)

    def increment_op(self, user_id: str, child_id: str, log_id: Optional[str] = None) -> UpdateOne:
        if log_id:
            inc = {"logUnreadCount": 1, f"logUnreadByLogId.{log_id}": 1, "totalUnreadCount": 1}
        else:
            inc = {"chatUnreadCount": 1, "totalUnreadCount": 1}
        return UpdateOne(
            {"_id": counter_key(user_id, child_id)},
            {"$inc": inc, "$set": {"lastUpdated": datetime.now(timezone.utc)}},
        )

    async def ensure_counter(self, user_id: str, child_id: str) -> None:
        await self.collection.bulk_write([self.ensure_counter_op(user_id, child_id)])

    async def increment_for_message(self, user_id: str, child_id: str, log_id: Optional[str] = None) -> None:
        await self.increment_for_recipients([user_id], child_id, log_id)

    async def increment_for_recipients(self, user_ids: Iterable[str], child_id: str, log_id: Optional[str] = None) -> int:
        """Count one new message for every user in a single ordered batch."""
        ops: List[UpdateOne] = []
        counted = 0
        for user_id in user_ids:
            ops.append(self.ensure_counter_op(user_id, child_id))
            ops.append(self.increment_op(user_id, child_id, log_id))
            counted += 1
        if ops:
            await self.collection.bulk_write(ops, ordered=True)
        return counted

    # ---- reads ----

    async def get_counter(self, user_id: str, child_id: str) -> Optional[UnreadCounterDocument]:
        return await self.collection.find_one({"_id": counter_key(user_id, child_id)})

    async def get_counters(self, user_id: str, child_id: str) -> Dict[str, Any]:
        doc = await self.get_counter(user_id, child_id)
        return _counter_view(user_id, child_id, doc)

    # ---- guarded resets ----

    async def _compare_and_reset(
        self,
        key: str,
        guard_field: str,
        read_unread: Callable[[Dict[str, Any]], int],
        build_update: Callable[[int], Dict[str, Any]],
    ) -> int:
        # The update only lands if the counter still holds the value we read,
        # so an increment racing the reset is never erased.
        for _ in range(MAX_RESET_ATTEMPTS):
            doc = await self.collection.find_one({"_id": key})
            if not doc:
                return 0
            unread = read_unread(doc)
            if not unread:
                return 0
            result = await self.collection.update_one({"_id": key, guard_field: unread}, build_update(unread))
            if result.matched_count:
                return unread
            logger.info("Counter %s changed while resetting %s, re-reading", key, guard_field)
        logger.warning("Gave up resetting %s on %s after %d attempts", guard_field, key, MAX_RESET_ATTEMPTS)
        raise CounterContentionError(f"{key} kept changing while resetting {guard_field}")

    async def reset_chat(self, user_id: str, child_id: str) -> int:
        """Zero the chat counter; returns how many unread chat messages it held."""
        return await self._compare_and_reset(
            counter_key(user_id, child_id),
            "chatUnreadCount",
            lambda doc: doc.get("chatUnreadCount", 0),
            lambda n: {
                "$set": {"chatUnreadCount": 0, "lastUpdated": datetime.now(timezone.utc)},
                "$inc": {"totalUnreadCount": -n},
            },
        )

    async def reset_log(self, user_id: str, child_id: str, log_id: str) -> int:
        field = f"logUnreadByLogId.{log_id}"
        return await self._compare_and_reset(
            counter_key(user_id, child_id),
            field,
            lambda doc: doc.get("logUnreadByLogId", {}).get(log_id, 0),
            lambda n: {
                "$set": {field: 0, "lastUpdated": datetime.now(timezone.utc)},
                "$inc": {"logUnreadCount": -n, "totalUnreadCount": -n},
            },
        )

    async def reset_all_logs(self, user_id: str, child_id: str) -> int:
        return await self._compare_and_reset(
            counter_key(user_id, child_id),
            "logUnreadCount",
            lambda doc: doc.get("logUnreadCount", 0),
            lambda n: {
                "$set": {"logUnreadCount": 0, "logUnreadByLogId": {}, "lastUpdated": datetime.now(timezone.utc)},
                "$inc": {"totalUnreadCount": -n},
            },
        )

    # ---- family aggregates ----

    async def recompute_family(self, user_id: str, original_child_id: str, siblings: List[str]) -> FamilyUnreadCounterDocument:
        sibling_keys = [counter_key(user_id, s) for s in dict.fromkeys(siblings)]
        original_key = counter_key(user_id, original_child_id)
        docs: Dict[str, Dict[str, Any]] = {}
        async for doc in self.collection.find({"_id": {"$in": list({*sibling_keys, original_key})}}):
            docs[doc["_id"]] = doc
        # chat is shared through the original child, logs are per child
        log_total = sum(docs.get(k, {}).get("logUnreadCount", 0) for k in sibling_keys)
        chat_total = docs.get(original_key, {}).get("chatUnreadCount", 0)
        return {
            "_id": family_key(user_id, original_child_id),
            "userId": user_id,
            "originalChildId": original_child_id,
            "familyChatUnreadCount": chat_total,
            "familyLogUnreadCount": log_total,
            "familyTotalUnreadCount": chat_total + log_total,
        }

    async def mirror_family(self, user_id: str, child_id: str) -> Optional[FamilyUnreadCounterDocument]:
        """Single-child family: the aggregate equals the child's own counter."""
        doc = await self.get_counter(user_id, child_id)
        if not doc:
            return None
        return {
            "_id": family_key(user_id, child_id),
            "userId": user_id,
            "originalChildId": child_id,
            "familyChatUnreadCount": doc.get("chatUnreadCount", 0),
            "familyLogUnreadCount": doc.get("logUnreadCount", 0),
            "familyTotalUnreadCount": doc.get("totalUnreadCount", 0),
        }

    async def build_family(
        self,
        user_id: str,
        child_id: str,
        original_child_id: Optional[str] = None,
        siblings: Optional[List[str]] = None,
    ) -> Optional[FamilyUnreadCounterDocument]:
        if original_child_id and siblings:
            return await self.recompute_family(user_id, original_child_id, siblings)
        return await self.mirror_family(user_id, child_id)

    def family_update_op(self, family: Dict[str, Any]) -> UpdateOne:
        fields = {k: v for k, v in family.items() if k != "_id"}
        fields["lastUpdated"] = datetime.now(timezone.utc)
        return UpdateOne({"_id": family["_id"]}, {"$set": fields}, upsert=True)

    async def save_families(self, families: Iterable[Dict[str, Any]]) -> int:
        ops = [self.family_update_op(f) for f in families]
        if ops:
            await self.family_collection.bulk_write(ops, ordered=True)
        return len(ops)

    async def get_family_counters(self, user_id: str, original_child_id: str) -> Dict[str, Any]:
        doc = await self.family_collection.find_one({"_id": family_key(user_id, original_child_id)}) or {}
        return {
            "userId": user_id,
            "originalChildId": original_child_id,
            "familyChatUnreadCount": doc.get("familyChatUnreadCount", 0),
            "familyLogUnreadCount": doc.get("familyLogUnreadCount", 0),
            "familyTotalUnreadCount": doc.get("familyTotalUnreadCount", 0),
        }
