import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

import httpx

from rested_messaging.models.push import PlayerIds


logger = logging.getLogger(__name__)

DEFAULT_SENDER_NAME = "Someone"
RECIPIENTS_WORKFLOW = "wf/firebase_message_recipients"


@dataclass
class RecipientInfo:
    recipients: List[str] = field(default_factory=list)
    sender_name: str = DEFAULT_SENDER_NAME
    primary_caregiver_id: str = ""
    alt_org: str = ""


def _empty_player_ids() -> PlayerIds:
    return {"rested": [], "doulaconnect": []}


class RecipientDirectory:
    """Bubble workflow/data API: who should hear about a child's messages."""

    def __init__(self, http: httpx.AsyncClient, api_token: str, api_urls: Sequence[str]) -> None:
        self._http = http
        self._api_token = api_token
        self._api_urls = [u.rstrip("/") for u in api_urls if u]

    @classmethod
    def from_registry(cls, registry, settings) -> "RecipientDirectory":
        return cls(registry.http, settings.BUBBLE_API_TOKEN, settings.bubble_api_urls)

    @property
    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._api_token}"}

    async def resolve(self, child_id: str, sender_id: str) -> RecipientInfo:
        if not self._api_token or not self._api_urls:
            logger.error("Bubble API not configured for push recipients")
            return RecipientInfo()

        # workflow endpoints live beside the data API, not under /obj
        url = f"{self._api_urls[0].replace('/obj', '')}/{RECIPIENTS_WORKFLOW}"
        try:
            response = await self._http.post(url, json={"childId": child_id, "senderId": sender_id}, headers=self._headers)
            if not response.is_success:
                logger.error("Bubble API error for push recipients: %s %s", response.status_code, response.text)
                return RecipientInfo()
            data: Dict[str, Any] = response.json().get("response") or {}
        except Exception:
            logger.exception("Error getting push recipients from Bubble for child %s", child_id)
            return RecipientInfo()

        recipients = data.get("userIds") or data.get("users") or []
        info = RecipientInfo(
            recipients=[str(r) for r in recipients if r],
            sender_name=data.get("senderName") or DEFAULT_SENDER_NAME,
            primary_caregiver_id=data.get("primaryCaregiverId") or "",
            alt_org=data.get("altOrg") or data.get("alt_org") or "",
        )
        logger.info(
            "Found %d push recipients for child %s (sender name=%s, primary caregiver=%s, alt org=%s)",
            len(info.recipients),
            child_id,
            info.sender_name,
            info.primary_caregiver_id,
            info.alt_org,
        )
        return info

    async def get_player_ids(self, user_id: str) -> PlayerIds:
        """OneSignal player ids for a user; both apps get the same list."""
        if not self._api_token or not self._api_urls:
            logger.warning("Bubble API not configured - cannot retrieve player ids")
            return _empty_player_ids()

        for api_url in self._api_urls:
            try:
                response = await self._http.get(f"{api_url}/user/{user_id}", headers=self._headers)
                if not response.is_success:
                    logger.info("User %s not found at %s, trying next endpoint", user_id, api_url)
                    continue
                data = response.json().get("response") or {}
            except Exception as exc:
                logger.warning("Error looking up user %s at %s: %s", user_id, api_url, exc)
                continue

            player_ids = data.get("Player ID(s)") or data.get("PlayerIDs") or data.get("player_ids") or []
            if not isinstance(player_ids, list) or not player_ids:
                logger.info("No player ids found for user %s", user_id)
                return _empty_player_ids()
            # The provider only delivers to devices registered with each app.
            return {"rested": list(player_ids), "doulaconnect": list(player_ids)}

        logger.info("User %s not found in any Bubble API endpoint", user_id)
        return _empty_player_ids()
