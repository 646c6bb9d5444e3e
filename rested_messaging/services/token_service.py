import logging
from typing import Any, Dict, Optional

from rested_messaging.repositories.synced_token_repository import SyncedTokenRepository
from rested_messaging.services.push_service import PushDispatcher
from rested_messaging.services.token_resolver import TokenResolver


logger = logging.getLogger(__name__)

DEFAULT_TEST_TITLE = "Test Notification"
DEFAULT_TEST_BODY = "This is a test message from the new Firebase messaging system"


class TokenService:

    def __init__(self, synced_tokens: SyncedTokenRepository, resolver: TokenResolver, dispatcher: PushDispatcher) -> None:
        self._synced_tokens = synced_tokens
        self._resolver = resolver
        self._dispatcher = dispatcher

    async def sync_token(self, user_id: str, fcm_token: str, app: Optional[str] = None) -> Dict[str, Any]:
        await self._synced_tokens.upsert(user_id, fcm_token, app=app)
        # the next resolution must see the new token
        self._resolver.clear_cache(user_id)
        if not app:
            logger.warning("Token synced for user %s without an app tag", user_id)
        return {"success": True, "message": "FCM token synced successfully", "userId": user_id}

    async def send_test_push(
        self,
        user_id: Optional[str] = None,
        fcm_token: Optional[str] = None,
        title: Optional[str] = None,
        body: Optional[str] = None,
    ) -> Dict[str, Any]:
        token = fcm_token
        if not token and user_id:
            token = await self._resolver.resolve_single(user_id)
            if not token:
                return {"success": False, "message": "No FCM token found for user", "fcmToken": None}

        success = await self._dispatcher.send_via_legacy_project(
            token,
            title or DEFAULT_TEST_TITLE,
            body or DEFAULT_TEST_BODY,
        )
        return {
            "success": success,
            "message": "Push notification sent" if success else "Failed to send push notification",
            "fcmToken": token,
        }
