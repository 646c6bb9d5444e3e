from datetime import datetime
from typing import Dict, TypedDict


def counter_key(user_id: str, child_id: str) -> str:
    return f"user_{user_id}_child_{child_id}"


def family_key(user_id: str, original_child_id: str) -> str:
    return f"user_{user_id}_family_{original_child_id}"


class UnreadCounterDocument(TypedDict, total=False):
    _id: str
    userId: str
    childId: str
    chatUnreadCount: int
    logUnreadCount: int
    # log_id -> unread comments on that log
    logUnreadByLogId: Dict[str, int]
    totalUnreadCount: int
    lastUpdated: datetime


class FamilyUnreadCounterDocument(TypedDict, total=False):
    _id: str
    userId: str
    originalChildId: str
    familyChatUnreadCount: int
    familyLogUnreadCount: int
    familyTotalUnreadCount: int
    lastUpdated: datetime
