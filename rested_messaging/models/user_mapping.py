from datetime import datetime
from typing import Optional, TypedDict


class UserMappingDocument(TypedDict, total=False):
    _id: str
    oldUserId: str
    newUserId: str
    email: Optional[str]
    name: Optional[str]
    createdAt: datetime
    lastUpdated: datetime
