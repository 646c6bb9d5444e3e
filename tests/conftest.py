import uuid

import httpx
import pytest
from fastapi import FastAPI
from mongomock_motor import AsyncMongoMockClient

from rested_messaging.core.config import Settings
from rested_messaging.database.connection import ConnectionRegistry, LegacyProject
from rested_messaging.routers.push import router as push_router
from rested_messaging.routers.triggers import router as triggers_router
from rested_messaging.routers.unread import router as unread_router
from rested_messaging.routers.users import router as users_router
from rested_messaging.services.token_resolver import TokenResolver
from rested_messaging.utils.http import install_http_surface
from rested_messaging.utils.notifications import NoopPush


class RecordingBus:

    enabled = True

    def __init__(self):
        self.published = []

    async def publish_counters(self, user_id, payload):
        self.published.append((user_id, dict(payload)))

    async def close(self):
        return


class RecordingPush:

    enabled = True

    def __init__(self, name, ok=True):
        self.name = name
        self.ok = ok
        self.sent = []

    async def send_fcm(self, token, title, body, data=None):
        self.sent.append((token, title, body, data))
        return self.ok


def mock_http(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def unreachable(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected HTTP call: {request.method} {request.url}")


@pytest.fixture
def db():
    return AsyncMongoMockClient()[f"rested_{uuid.uuid4().hex}"]


@pytest.fixture
def settings():
    return Settings(
        BUBBLE_API_TOKEN="bubble-token",
        BUBBLE_API_URL_DEV="https://bubble.test/version-test/api/1.1/obj",
        ONESIGNAL_RESTED_APP_ID="rested-app",
        ONESIGNAL_RESTED_API_KEY="rested-key",
        ONESIGNAL_DOULACONNECT_APP_ID="doula-app",
        ONESIGNAL_DOULACONNECT_API_KEY="doula-key",
    )


def build_registry(db, http=None, bus=None, legacy=None) -> ConnectionRegistry:
    return ConnectionRegistry(
        db=db,
        http=http or mock_http(unreachable),
        bus=bus or RecordingBus(),
        legacy=legacy or {
            "rested": LegacyProject(name="rested", db=None, push=NoopPush("rested")),
            "doulaconnect": LegacyProject(name="doulaconnect", db=None, push=NoopPush("doulaconnect")),
        },
    )


def build_app(registry, settings, resolver=None) -> FastAPI:
    app = FastAPI()
    install_http_surface(app)
    app.include_router(unread_router)
    app.include_router(triggers_router)
    app.include_router(push_router)
    app.include_router(users_router)
    app.state.registry = registry
    app.state.settings = settings
    app.state.token_resolver = resolver or TokenResolver.from_registry(registry, settings)
    return app
