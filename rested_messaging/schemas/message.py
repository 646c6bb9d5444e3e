from typing import Dict, List, Optional

from pydantic import ConfigDict

from rested_messaging.schemas.base import ApiModel, RequiredStr


class FamilyContext(ApiModel):

    original_child_id: RequiredStr
    siblings: List[str] = []


class MessageCreated(ApiModel):
    """Message document as written by the client, delivered once on creation."""

    model_config = ConfigDict(extra="allow")

    sender_id: RequiredStr
    conversation_id: RequiredStr
    child_id: RequiredStr
    sender_name: Optional[str] = None
    log_id: Optional[str] = None
    text: Optional[str] = None
    content: Optional[str] = None
    image_id: Optional[str] = None
    image_url: Optional[str] = None
    audio_id: Optional[str] = None
    audio_url: Optional[str] = None
    app_version: Optional[str] = None
    family_context: Optional[FamilyContext] = None
    read_by: Dict[str, bool] = {}


class MessageCreatedResponse(ApiModel):

    accepted: bool = True
    message_id: str
    recipients: int = 0
    counters_updated: int = 0
    families_updated: int = 0
    notified: int = 0
