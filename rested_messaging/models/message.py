from typing import Dict, List, Optional, TypedDict


class FamilyContext(TypedDict, total=False):
    originalChildId: str
    siblings: List[str]


class MessageDocument(TypedDict, total=False):
    _id: str
    senderId: str
    senderName: Optional[str]
    conversationId: str
    childId: str
    # present only on log comments
    logId: Optional[str]
    text: Optional[str]
    content: Optional[str]
    imageId: Optional[str]
    imageUrl: Optional[str]
    audioId: Optional[str]
    audioUrl: Optional[str]
    appVersion: Optional[str]
    familyContext: Optional[FamilyContext]
    # recipient user_id -> has read
    readBy: Dict[str, bool]
