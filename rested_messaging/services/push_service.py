import asyncio
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import httpx

from rested_messaging.models.push import PUSH_APPS, PlayerIds


logger = logging.getLogger(__name__)

MISSING_CREDENTIALS = "Missing credentials"


@dataclass(frozen=True)
class OneSignalCredentials:
    app_id: str
    api_key: str


@dataclass
class AppDispatchResult:
    app: str
    success: bool
    id: Optional[str] = None
    recipients: Optional[int] = None
    error: Any = None

    def as_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class DispatchSummary:
    sent: bool
    results: List[AppDispatchResult] = field(default_factory=list)


def credentials_from_settings(settings) -> Dict[str, OneSignalCredentials]:
    creds: Dict[str, OneSignalCredentials] = {}
    for app in PUSH_APPS:
        app_id = getattr(settings, f"ONESIGNAL_{app.upper()}_APP_ID")
        api_key = getattr(settings, f"ONESIGNAL_{app.upper()}_API_KEY")
        if app_id and api_key:
            creds[app] = OneSignalCredentials(app_id=app_id, api_key=api_key)
    return creds


class PushDispatcher:
    """Broadcasts to each app's OneSignal tenant; carries the legacy FCM path too."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        credentials: Mapping[str, OneSignalCredentials],
        api_url: str = "https://onesignal.com/api/v1/notifications",
        legacy: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self._http = http
        self._credentials = dict(credentials)
        self._api_url = api_url
        self._legacy = dict(legacy or {})

    @classmethod
    def from_registry(cls, registry, settings) -> "PushDispatcher":
        return cls(
            registry.http,
            credentials_from_settings(settings),
            api_url=settings.ONESIGNAL_API_URL,
            legacy=registry.legacy,
        )

    async def send_one_signal(
        self,
        app: str,
        player_ids: List[str],
        title: str,
        body: str,
        data: Optional[Dict[str, str]] = None,
    ) -> AppDispatchResult:
        creds = self._credentials.get(app)
        if creds is None:
            logger.error("OneSignal credentials not configured for %s", app)
            return AppDispatchResult(app=app, success=False, error=MISSING_CREDENTIALS)

        payload = {
            "app_id": creds.app_id,
            "include_player_ids": player_ids,
            "headings": {"en": title},
            "contents": {"en": body},
            # key the native wrapper reads to navigate on open
            "data": {"onLoadUrl": (data or {}).get("deepLink", "")},
        }
        try:
            response = await self._http.post(
                self._api_url,
                json=payload,
                headers={"Authorization": f"Basic {creds.api_key}"},
            )
        except httpx.HTTPError as exc:
            logger.error("Error sending OneSignal notification to %s: %s", app, exc)
            return AppDispatchResult(app=app, success=False, error=str(exc))

        try:
            result = response.json()
        except ValueError:
            result = {"body": response.text}
        if not isinstance(result, dict):
            result = {"body": result}

        if response.is_success:
            logger.info("OneSignal notification sent to %s: %s", app, result.get("id"))
            return AppDispatchResult(app=app, success=True, id=result.get("id"), recipients=result.get("recipients"))
        logger.error("OneSignal notification failed for %s (%s): %s", app, response.status_code, result)
        return AppDispatchResult(app=app, success=False, error=result)

    async def dispatch_to_all_apps(
        self,
        player_ids: PlayerIds,
        title: str,
        body: str,
        data: Optional[Dict[str, str]] = None,
    ) -> DispatchSummary:
        results: List[AppDispatchResult] = []
        pending = []
        for app in PUSH_APPS:
            if app not in player_ids:
                continue
            ids = player_ids.get(app) or []
            if app not in self._credentials:
                logger.error("OneSignal credentials not configured for %s", app)
                results.append(AppDispatchResult(app=app, success=False, error=MISSING_CREDENTIALS))
            elif ids:
                pending.append((app, self.send_one_signal(app, ids, title, body, data)))

        outcomes = await asyncio.gather(*(coro for _, coro in pending), return_exceptions=True)
        for (app, _), outcome in zip(pending, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("OneSignal dispatch to %s raised: %r", app, outcome)
                outcome = AppDispatchResult(app=app, success=False, error=str(outcome))
            results.append(outcome)

        success_count = sum(1 for r in results if r.success)
        logger.info("Sent %d/%d OneSignal notifications successfully", success_count, len(results))
        return DispatchSummary(sent=success_count > 0, results=results)

    async def send_via_legacy_project(
        self,
        token: str,
        title: str,
        body: str,
        data: Optional[Dict[str, str]] = None,
    ) -> bool:
        """Single-token FCM send through the first configured legacy project."""
        for app in PUSH_APPS:
            project = self._legacy.get(app)
            if project is not None and project.push.enabled:
                return await project.push.send_fcm(token, title, body, data)
        logger.warning("No legacy FCM project available - skipping push notification")
        return False
