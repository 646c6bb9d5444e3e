import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from rested_messaging.core.config import settings
from rested_messaging.database.connection import connect
from rested_messaging.repositories.counter_repository import CounterRepository
from rested_messaging.repositories.message_repository import MessageRepository
from rested_messaging.repositories.user_mapping_repository import UserMappingRepository
from rested_messaging.routers.push import router as push_router
from rested_messaging.routers.triggers import router as triggers_router
from rested_messaging.routers.unread import router as unread_router
from rested_messaging.routers.users import router as users_router
from rested_messaging.services.token_resolver import TokenResolver
from rested_messaging.utils.http import install_http_surface


logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(settings.SERVICE_NAME)


async def ensure_indexes(db) -> None:
    try:
        await CounterRepository(db).ensure_indexes()
        await MessageRepository(db).ensure_indexes()
        await UserMappingRepository(db).ensure_indexes()
    except Exception:
        logger.warning("Could not create indexes at startup", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):

    registry = connect(settings)
    app.state.settings = settings
    app.state.registry = registry
    app.state.token_resolver = TokenResolver.from_registry(registry, settings)
    await ensure_indexes(registry.db)
    logger.info("%s %s started", settings.SERVICE_NAME, settings.SERVICE_VERSION)
    try:
        yield
    finally:
        await registry.close()


app = FastAPI(title="Rested messaging", version=settings.SERVICE_VERSION, lifespan=lifespan)
install_http_surface(app)


app.include_router(unread_router)
app.include_router(triggers_router)
app.include_router(push_router)
app.include_router(users_router)


@app.get("/health")
async def health():

    return {"ok": True, "service": settings.SERVICE_NAME, "version": settings.SERVICE_VERSION}
