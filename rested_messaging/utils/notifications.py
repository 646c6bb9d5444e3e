import asyncio
import logging
from typing import Dict, Optional

from pyfcm import FCMNotification


logger = logging.getLogger(__name__)


class NoopPush:

    enabled = False

    def __init__(self, name: str = "noop") -> None:
        self.name = name

    async def send_fcm(self, token: str, title: str, body: str, data: Optional[Dict[str, str]] = None) -> bool:
        return False


class FcmPush:
    """Sends single-token FCM messages through one legacy Firebase project."""

    enabled = True

    def __init__(self, name: str, client: FCMNotification) -> None:
        self.name = name
        self._client = client

    async def send_fcm(self, token: str, title: str, body: str, data: Optional[Dict[str, str]] = None) -> bool:
        if not token:
            return False
        # pyfcm is sync
        try:
            await asyncio.to_thread(
                self._client.notify,
                fcm_token=token,
                notification_title=title,
                notification_body=body,
                data_payload=data or None,
            )
        except Exception:
            logger.exception("FCM send via %s failed", self.name)
            return False
        logger.info("FCM message sent via %s", self.name)
        return True


def build_push(name: str, service_account_file: str, project_id: str):
    if not service_account_file or not project_id:
        logger.warning("%s FCM project not configured", name)
        return NoopPush(name)
    try:
        client = FCMNotification(service_account_file=service_account_file, project_id=project_id)
    except Exception:
        logger.exception("Failed to initialise %s FCM project", name)
        return NoopPush(name)
    logger.info("%s FCM project initialised", name)
    return FcmPush(name, client)
