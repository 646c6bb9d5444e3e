from datetime import datetime
from typing import Optional

from pydantic import model_validator

from rested_messaging.schemas.base import ApiModel, RequiredStr


class UserMappingQuery(ApiModel):

    old_user_id: Optional[str] = None
    new_user_id: Optional[str] = None
    email: Optional[str] = None

    @model_validator(mode="after")
    def require_identifier(self) -> "UserMappingQuery":
        if not self.old_user_id and not self.new_user_id and not self.email:
            raise ValueError("Must provide oldUserId, newUserId, or email")
        return self


class UserMapping(ApiModel):

    old_user_id: str
    new_user_id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    created_at: Optional[datetime] = None
    last_updated: Optional[datetime] = None


class UserMappingLookupResponse(ApiModel):

    found: bool
    mapping: Optional[UserMapping] = None
    message: Optional[str] = None


class CreateUserMappingRequest(ApiModel):

    old_user_id: RequiredStr
    new_user_id: RequiredStr
    email: Optional[str] = None
    name: Optional[str] = None


class CreateUserMappingResponse(ApiModel):

    success: bool
    message: str
    mapping: UserMapping
