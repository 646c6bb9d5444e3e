import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from rested_messaging.repositories.counter_repository import CounterRepository
from rested_messaging.repositories.message_repository import MessageRepository


logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def _result(marked: int, message: str) -> Dict[str, Any]:
    return {"success": True, "messagesMarkedRead": marked, "message": message}


class UnreadService:
    """Read-state operations; a repeat call after success changes nothing."""

    def __init__(self, counter_repo: CounterRepository, message_repo: MessageRepository, bus) -> None:
        self._counters = counter_repo
        self._messages = message_repo
        self._bus = bus

    async def get_counters(self, user_id: str, child_id: str) -> Dict[str, Any]:
        counters = await self._counters.get_counters(user_id, child_id)
        counters["timestamp"] = _now_ms()
        return counters

    async def get_family_counters(
        self,
        user_id: str,
        original_child_id: str,
        siblings: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        if siblings:
            family = await self._counters.recompute_family(user_id, original_child_id, siblings)
            await self._counters.save_families([family])
        counters = await self._counters.get_family_counters(user_id, original_child_id)
        counters["timestamp"] = _now_ms()
        return counters

    async def mark_chat_read(
        self,
        user_id: str,
        child_id: str,
        conversation_id: str,
        original_child_id: Optional[str] = None,
        siblings: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        cleared = await self._counters.reset_chat(user_id, child_id)
        if not cleared:
            return _result(0, "No unread chat messages")
        marked = await self._messages.mark_chat_read(user_id, conversation_id)
        await self._after_mutation(user_id, child_id, original_child_id, siblings)
        return _result(marked, "Chat messages marked as read")

    async def mark_log_read(
        self,
        user_id: str,
        child_id: str,
        log_id: str,
        original_child_id: Optional[str] = None,
        siblings: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        cleared = await self._counters.reset_log(user_id, child_id, log_id)
        if not cleared:
            return _result(0, "No unread messages for this log")
        marked = await self._messages.mark_log_read(user_id, log_id)
        await self._after_mutation(user_id, child_id, original_child_id, siblings)
        return _result(marked, "Log comments marked as read")

    async def mark_all_logs_read(
        self,
        user_id: str,
        child_id: str,
        original_child_id: Optional[str] = None,
        siblings: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        cleared = await self._counters.reset_all_logs(user_id, child_id)
        if not cleared:
            return _result(0, "No unread log comments")
        marked = await self._messages.mark_all_logs_read(user_id, child_id)
        await self._after_mutation(user_id, child_id, original_child_id, siblings)
        return _result(marked, "All log comments marked as read")

    async def _after_mutation(
        self,
        user_id: str,
        child_id: str,
        original_child_id: Optional[str],
        siblings: Optional[List[str]],
    ) -> None:
        # The counter is already committed; family refresh and publish are best effort.
        try:
            family = await self._counters.build_family(user_id, child_id, original_child_id, siblings)
            if family:
                await self._counters.save_families([family])
        except Exception:
            logger.exception("Error updating family counters for user %s child %s", user_id, child_id)
        if getattr(self._bus, "enabled", False):
            try:
                counters = await self._counters.get_counters(user_id, child_id)
                await self._bus.publish_counters(user_id, counters)
            except Exception:
                logger.warning("Failed to publish counters for user %s", user_id, exc_info=True)
