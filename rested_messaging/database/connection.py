import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from rested_messaging.core.config import Settings
from rested_messaging.models.push import PUSH_APPS, PushApp
from rested_messaging.utils.notifications import build_push
from rested_messaging.utils.realtime_bus import build_bus


logger = logging.getLogger(__name__)


@dataclass
class LegacyProject:
    """One app's legacy identity store plus its FCM sender."""

    name: PushApp
    db: Optional[AsyncIOMotorDatabase]
    push: Any


@dataclass
class ConnectionRegistry:
    """Every external connection the service uses, built once per process."""

    db: AsyncIOMotorDatabase
    http: httpx.AsyncClient
    bus: Any
    legacy: Dict[str, LegacyProject] = field(default_factory=dict)
    _clients: List[AsyncIOMotorClient] = field(default_factory=list)

    def legacy_project(self, name: str) -> Optional[LegacyProject]:
        return self.legacy.get(name)

    async def close(self) -> None:
        await self.http.aclose()
        await self.bus.close()
        for client in self._clients:
            client.close()


def _legacy_settings(settings: Settings, app: PushApp) -> Dict[str, str]:
    prefix = app.upper()
    return {
        "uri": getattr(settings, f"{prefix}_LEGACY_MONGO_URI"),
        "db_name": getattr(settings, f"{prefix}_LEGACY_DB_NAME"),
        "service_account_file": getattr(settings, f"{prefix}_FCM_SERVICE_ACCOUNT_FILE"),
        "project_id": getattr(settings, f"{prefix}_FCM_PROJECT_ID"),
    }


def connect(settings: Settings) -> ConnectionRegistry:
    client = AsyncIOMotorClient(settings.MONGO_URI)
    clients = [client]
    legacy: Dict[str, LegacyProject] = {}
    for app in PUSH_APPS:
        conf = _legacy_settings(settings, app)
        legacy_db = None
        if conf["uri"]:
            legacy_client = AsyncIOMotorClient(conf["uri"])
            clients.append(legacy_client)
            legacy_db = legacy_client[conf["db_name"]]
            logger.info("%s legacy identity store configured", app)
        else:
            logger.warning("%s legacy identity store not configured", app)
        legacy[app] = LegacyProject(
            name=app,
            db=legacy_db,
            push=build_push(app, conf["service_account_file"], conf["project_id"]),
        )
    return ConnectionRegistry(
        db=client[settings.MONGO_DB_NAME],
        http=httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS),
        bus=build_bus(settings.REDIS_URL),
        legacy=legacy,
        _clients=clients,
    )


def registry_dependency(request: Request) -> ConnectionRegistry:
    return request.app.state.registry
