from datetime import datetime
from typing import List, Literal, Optional, TypedDict


PushApp = Literal["rested", "doulaconnect"]

PUSH_APPS: tuple[PushApp, ...] = ("rested", "doulaconnect")


class FcmTokens(TypedDict, total=False):
    rested: str
    doulaconnect: str


class PlayerIds(TypedDict, total=False):
    rested: List[str]
    doulaconnect: List[str]


class SyncedTokenDocument(TypedDict, total=False):
    _id: str
    userId: str
    token: str
    # app the token was issued by, when the client told us
    app: Optional[PushApp]
    syncedAt: datetime
    lastUpdated: datetime
