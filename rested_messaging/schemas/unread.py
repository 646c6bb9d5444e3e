from typing import Dict

from rested_messaging.schemas.base import ApiModel, FamilyContextFields, RequiredStr


class CounterQuery(ApiModel):

    user_id: RequiredStr
    child_id: RequiredStr


class FamilyCounterQuery(FamilyContextFields):

    user_id: RequiredStr
    original_child_id: RequiredStr


class MarkChatReadRequest(FamilyContextFields):

    user_id: RequiredStr
    child_id: RequiredStr
    conversation_id: RequiredStr


class MarkLogReadRequest(FamilyContextFields):

    user_id: RequiredStr
    child_id: RequiredStr
    log_id: RequiredStr


class MarkAllLogsReadRequest(FamilyContextFields):

    user_id: RequiredStr
    child_id: RequiredStr


class UnreadCountersResponse(ApiModel):

    user_id: str
    child_id: str
    chat_unread_count: int = 0
    log_unread_count: int = 0
    log_unread_by_log_id: Dict[str, int] = {}
    total_unread_count: int = 0
    timestamp: int


class FamilyUnreadCountersResponse(ApiModel):

    user_id: str
    original_child_id: str
    family_chat_unread_count: int = 0
    family_log_unread_count: int = 0
    family_total_unread_count: int = 0
    timestamp: int


class MarkReadResponse(ApiModel):

    success: bool
    messages_marked_read: int = 0
    message: str
