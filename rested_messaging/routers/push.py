from fastapi import APIRouter, Depends, HTTPException

from rested_messaging.database.connection import ConnectionRegistry, registry_dependency
from rested_messaging.repositories.synced_token_repository import SyncedTokenRepository
from rested_messaging.schemas.push import ExploreQuery, SyncTokenRequest, SyncTokenResponse, TestPushRequest, TestPushResponse
from rested_messaging.services.diagnostics_service import explore_token_storage
from rested_messaging.services.push_service import PushDispatcher
from rested_messaging.services.token_resolver import TokenResolver
from rested_messaging.services.token_service import TokenService
from rested_messaging.utils.dependencies import payload_model, settings_dependency, token_resolver_dependency


router = APIRouter(tags=["push"])


def get_token_service(
    registry: ConnectionRegistry = Depends(registry_dependency),
    resolver: TokenResolver = Depends(token_resolver_dependency),
    settings = Depends(settings_dependency),
) -> TokenService:
    dispatcher = PushDispatcher.from_registry(registry, settings)
    return TokenService(SyncedTokenRepository(registry.db), resolver, dispatcher)


@router.post("/testPushNotification", response_model=TestPushResponse)
async def test_push_notification(body: TestPushRequest, service: TokenService = Depends(get_token_service)):
    return await service.send_test_push(body.user_id, body.fcm_token, body.title, body.body)


@router.post("/syncFCMTokens", response_model=SyncTokenResponse)
async def sync_fcm_tokens(body: SyncTokenRequest, service: TokenService = Depends(get_token_service)):
    return await service.sync_token(body.user_id, body.fcm_token, body.app)


@router.api_route("/exploreFCMTokenStorage", methods=["GET", "POST"])
async def explore_fcm_token_storage(
    query: ExploreQuery = Depends(payload_model(ExploreQuery)),
    registry: ConnectionRegistry = Depends(registry_dependency),
    settings = Depends(settings_dependency),
):
    project = registry.legacy_project(query.project)
    if project is None or project.db is None:
        raise HTTPException(status_code=400, detail=f"{query.project} legacy project not configured")
    return await explore_token_storage(project, timeout=settings.EXPLORE_TIMEOUT_SECONDS)
