import logging
import time
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING

from rested_messaging.models.push import PUSH_APPS, FcmTokens
from rested_messaging.repositories.synced_token_repository import SyncedTokenRepository


logger = logging.getLogger(__name__)

USER_DOCUMENT_FIELDS = ("fcmToken", "playerID", "deviceToken", "pushToken")
TOKEN_DOCUMENT_FIELDS = ("token", "fcmToken", "playerID")
TOKEN_ENTRY_FIELDS = ("token", "fcmToken")


def first_token(doc: Optional[Dict[str, Any]], fields: Sequence[str]) -> Optional[str]:
    if not doc:
        return None
    for field in fields:
        value = doc.get(field)
        if value:
            return value
    return None


class TokenProbe(Protocol):

    name: str

    async def try_resolve(self, user_id: str) -> Optional[str]:
        ...


class UserDocumentProbe:
    """``users/{user_id}`` carrying the token under one of several names."""

    name = "users"

    def __init__(self, db: AsyncIOMotorDatabase, fields: Sequence[str] = USER_DOCUMENT_FIELDS) -> None:
        self._db = db
        self._fields = fields

    async def try_resolve(self, user_id: str) -> Optional[str]:
        doc = await self._db["users"].find_one({"_id": user_id})
        return first_token(doc, self._fields)


class TokenDocumentProbe:
    """Dedicated ``fcmTokens/{user_id}`` document."""

    name = "fcmTokens"

    def __init__(self, db: AsyncIOMotorDatabase, fields: Sequence[str] = TOKEN_DOCUMENT_FIELDS) -> None:
        self._db = db
        self._fields = fields

    async def try_resolve(self, user_id: str) -> Optional[str]:
        doc = await self._db["fcmTokens"].find_one({"_id": user_id})
        return first_token(doc, self._fields)


class LatestTokenEntryProbe:
    """Newest entry among the user's token history."""

    name = "user_tokens"

    def __init__(self, db: AsyncIOMotorDatabase, fields: Sequence[str] = TOKEN_ENTRY_FIELDS) -> None:
        self._db = db
        self._fields = fields

    async def try_resolve(self, user_id: str) -> Optional[str]:
        cursor = self._db["user_tokens"].find({"userId": user_id}).sort("timestamp", DESCENDING).limit(1)
        entries = await cursor.to_list(length=1)
        return first_token(entries[0] if entries else None, self._fields)


def legacy_probes(db: AsyncIOMotorDatabase) -> List[TokenProbe]:
    return [UserDocumentProbe(db), TokenDocumentProbe(db), LatestTokenEntryProbe(db)]


class TokenResolver:
    """Resolves a user to the legacy push token of each app.

    Each app's probes run in order and stop at the first token. When no app
    yields anything, the locally synced token is used for the app it was
    tagged with, or ``default_app`` when the sync carried no tag. Lookups
    never raise; the worst case is an empty result.
    """

    def __init__(
        self,
        probes: Dict[str, Sequence[TokenProbe]],
        synced_tokens: Optional[SyncedTokenRepository] = None,
        default_app: str = "rested",
        cache_seconds: int = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if default_app not in PUSH_APPS:
            raise ValueError(f"Unknown default app for synced tokens: {default_app}")
        self._probes = probes
        self._synced_tokens = synced_tokens
        self._default_app = default_app
        self._cache_seconds = cache_seconds
        self._clock = clock
        self._cache: Dict[str, Tuple[FcmTokens, float]] = {}

    @classmethod
    def from_registry(cls, registry, settings) -> "TokenResolver":
        probes: Dict[str, Sequence[TokenProbe]] = {}
        for app in PUSH_APPS:
            project = registry.legacy_project(app)
            if project is not None and project.db is not None:
                probes[app] = legacy_probes(project.db)
        return cls(
            probes,
            SyncedTokenRepository(registry.db),
            default_app=settings.SYNCED_TOKEN_DEFAULT_APP,
            cache_seconds=settings.TOKEN_CACHE_SECONDS,
        )

    async def _probe_app(self, app: str, user_id: str) -> Optional[str]:
        probes = self._probes.get(app)
        if not probes:
            logger.warning("%s identity store not available", app)
            return None
        for probe in probes:
            try:
                token = await probe.try_resolve(user_id)
            except Exception:
                logger.warning("Token probe %s failed for user %s in %s", probe.name, user_id, app, exc_info=True)
                continue
            if token:
                logger.info("Found push token for user %s in %s %s", user_id, app, probe.name)
                return token
        logger.warning("No push token found for user %s in %s", user_id, app)
        return None

    async def _synced_token(self, user_id: str) -> Optional[Dict[str, Any]]:
        if self._synced_tokens is None:
            return None
        try:
            return await self._synced_tokens.get(user_id)
        except Exception:
            logger.warning("Failed to read synced token for user %s", user_id, exc_info=True)
            return None

    async def resolve(self, user_id: str) -> FcmTokens:
        cached = self._cache.get(user_id)
        if cached and cached[1] > self._clock():
            return FcmTokens(**cached[0])

        tokens: FcmTokens = {}
        for app in PUSH_APPS:
            token = await self._probe_app(app, user_id)
            if token:
                tokens[app] = token

        if not tokens:
            synced = await self._synced_token(user_id)
            if synced and synced.get("token"):
                app = synced.get("app")
                if app not in PUSH_APPS:
                    logger.warning(
                        "Synced token for user %s has no app tag, assigning it to %s",
                        user_id,
                        self._default_app,
                    )
                    app = self._default_app
                tokens[app] = synced["token"]

        logger.info("Found %d push tokens for user %s", len(tokens), user_id)
        if tokens and self._cache_seconds > 0:
            self._cache[user_id] = (FcmTokens(**tokens), self._clock() + self._cache_seconds)
        return tokens

    async def resolve_single(self, user_id: str) -> Optional[str]:
        tokens = await self.resolve(user_id)
        for app in PUSH_APPS:
            if tokens.get(app):
                return tokens[app]
        return None

    def clear_cache(self, user_id: str) -> None:
        self._cache.pop(user_id, None)

    def clear_all_cache(self) -> None:
        self._cache.clear()
