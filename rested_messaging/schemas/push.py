from typing import Optional

from pydantic import model_validator

from rested_messaging.models.push import PushApp
from rested_messaging.schemas.base import ApiModel, RequiredStr


class TestPushRequest(ApiModel):

    user_id: Optional[str] = None
    fcm_token: Optional[str] = None
    title: Optional[str] = None
    body: Optional[str] = None

    @model_validator(mode="after")
    def require_target(self) -> "TestPushRequest":
        if not self.user_id and not self.fcm_token:
            raise ValueError("Must provide either fcmToken or userId")
        return self


class TestPushResponse(ApiModel):

    success: bool
    message: str
    fcm_token: Optional[str] = None


class SyncTokenRequest(ApiModel):

    user_id: RequiredStr
    fcm_token: RequiredStr
    # app that issued the token; untagged tokens fall back to the configured default
    app: Optional[PushApp] = None


class SyncTokenResponse(ApiModel):

    success: bool
    message: str
    user_id: str


class ExploreQuery(ApiModel):

    project: PushApp
