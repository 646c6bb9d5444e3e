import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from rested_messaging.models.message import MessageDocument
from rested_messaging.repositories.counter_repository import CounterRepository
from rested_messaging.repositories.message_repository import MessageRepository
from rested_messaging.services.push_service import PushDispatcher
from rested_messaging.services.recipient_directory import DEFAULT_SENDER_NAME, RecipientDirectory, RecipientInfo


logger = logging.getLogger(__name__)

MAX_BODY_LENGTH = 100


def notification_title(sender_name: Optional[str]) -> str:
    return (sender_name or "").strip() or DEFAULT_SENDER_NAME


def notification_body(message: Dict[str, Any]) -> str:
    if message.get("imageId") or message.get("imageUrl"):
        return "Sent an image"
    if message.get("audioId") or message.get("audioUrl"):
        return "Audio message"
    body = message.get("text") or message.get("content") or ""
    if len(body) > MAX_BODY_LENGTH:
        body = body[: MAX_BODY_LENGTH - 3] + "..."
    return body


@dataclass(frozen=True)
class DeepLinkBuilder:
    base_url: str = "https://app.rested.family"
    dev_path: str = "/version-62es1"
    test_path: str = "/version-test"

    @classmethod
    def from_settings(cls, settings) -> "DeepLinkBuilder":
        return cls(settings.DEEP_LINK_BASE_URL, settings.DEEP_LINK_DEV_PATH, settings.DEEP_LINK_TEST_PATH)

    def build(
        self,
        app_version: Optional[str],
        primary_caregiver_id: str,
        alt_org: str,
        log_id: Optional[str] = None,
    ) -> str:
        base = self.base_url
        if app_version == "dev":
            base += self.dev_path
        elif app_version == "test":
            base += self.test_path
        page = "log2" if log_id else "chat2"
        url = f"{base}/{page}?Sel_Par={primary_caregiver_id}&alt_org={alt_org}"
        if log_id:
            url += f"&sleep_ev={log_id}"
        return url


@dataclass
class FanoutReport:
    message_id: str
    recipients: List[str] = field(default_factory=list)
    counters_updated: int = 0
    families_updated: int = 0
    notified: int = 0


class MessageFanoutService:
    """Runs once per created message: resolve, count, aggregate, notify."""

    def __init__(
        self,
        counter_repo: CounterRepository,
        message_repo: MessageRepository,
        directory: RecipientDirectory,
        dispatcher: PushDispatcher,
        bus,
        deep_links: DeepLinkBuilder,
    ) -> None:
        self._counters = counter_repo
        self._messages = message_repo
        self._directory = directory
        self._dispatcher = dispatcher
        self._bus = bus
        self._deep_links = deep_links

    async def handle_message_created(self, message_id: str, message: MessageDocument) -> FanoutReport:
        report = FanoutReport(message_id=message_id)
        sender_id = message.get("senderId")
        child_id = message.get("childId")
        logger.info(
            "New message created: id=%s sender=%s child=%s log=%s conversation=%s",
            message_id,
            sender_id,
            child_id,
            message.get("logId"),
            message.get("conversationId"),
        )

        try:
            info = await self._directory.resolve(child_id, sender_id)
        except Exception:
            logger.exception("Recipient lookup failed for message %s", message_id)
            return report

        recipients = [r for r in dict.fromkeys(info.recipients) if r != sender_id]
        if not recipients:
            logger.warning(
                "No recipients for message %s (child %s); counters and notifications skipped",
                message_id,
                child_id,
            )
            return report
        report.recipients = recipients

        report.counters_updated = await self._count(message_id, message, recipients)
        report.families_updated = await self._aggregate_families(message_id, message, recipients)
        report.notified = await self._notify(message_id, message, info, recipients)
        return report

    async def _count(self, message_id: str, message: Dict[str, Any], recipients: List[str]) -> int:
        child_id = message["childId"]
        try:
            counted = await self._counters.increment_for_recipients(recipients, child_id, message.get("logId"))
        except Exception:
            logger.exception("Error updating unread counters for message %s", message_id)
            return 0
        logger.info("Updated unread counters for message %s", message_id)
        # counters are committed at this point
        try:
            await self._messages.mark_unread_for(message_id, recipients, message)
        except Exception:
            logger.exception("Error flagging message %s unread for its recipients", message_id)
        if getattr(self._bus, "enabled", False):
            for user_id in recipients:
                try:
                    counters = await self._counters.get_counters(user_id, child_id)
                    await self._bus.publish_counters(user_id, counters)
                except Exception:
                    logger.warning("Failed to publish counters for user %s", user_id, exc_info=True)
        return counted

    async def _aggregate_families(self, message_id: str, message: Dict[str, Any], recipients: List[str]) -> int:
        family_context = message.get("familyContext") or {}
        try:
            families = []
            for user_id in recipients:
                family = await self._counters.build_family(
                    user_id,
                    message["childId"],
                    family_context.get("originalChildId"),
                    family_context.get("siblings"),
                )
                if family:
                    families.append(family)
            saved = await self._counters.save_families(families)
        except Exception:
            logger.exception("Error updating family counters for message %s", message_id)
            return 0
        logger.info("Updated %d family counters for message %s", saved, message_id)
        return saved

    async def _notify(self, message_id: str, message: Dict[str, Any], info: RecipientInfo, recipients: List[str]) -> int:
        try:
            log_id = message.get("logId")
            title = notification_title(info.sender_name)
            body = notification_body(message)
            deep_link = self._deep_links.build(message.get("appVersion"), info.primary_caregiver_id, info.alt_org, log_id)
            data = {
                "messageId": message_id,
                "conversationId": message.get("conversationId") or "",
                "childId": message.get("childId") or "",
                "logId": log_id or "",
                "type": "log_comment" if log_id else "chat_message",
                "deepLink": deep_link,
            }
            logger.info("Notifying %d recipients: title=%r body=%r link=%s", len(recipients), title, body, deep_link)

            outcomes = await asyncio.gather(
                *(self._notify_recipient(user_id, title, body, data) for user_id in recipients),
                return_exceptions=True,
            )
        except Exception:
            logger.exception("Error sending push notifications for message %s", message_id)
            return 0

        for user_id, outcome in zip(recipients, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("Notification to user %s failed: %r", user_id, outcome)
        sent = sum(1 for outcome in outcomes if outcome is True)
        logger.info("Sent push notifications to %d users for message %s", sent, message_id)
        return sent

    async def _notify_recipient(self, user_id: str, title: str, body: str, data: Dict[str, str]) -> bool:
        player_ids = await self._directory.get_player_ids(user_id)
        if not any(player_ids.values()):
            logger.info("No player ids found for user %s, skipping notification", user_id)
            return False
        summary = await self._dispatcher.dispatch_to_all_apps(player_ids, title, body, data)
        return summary.sent
