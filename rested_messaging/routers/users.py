from fastapi import APIRouter, Depends

from rested_messaging.database.connection import ConnectionRegistry, registry_dependency
from rested_messaging.repositories.user_mapping_repository import UserMappingRepository
from rested_messaging.schemas.users import (
    CreateUserMappingRequest,
    CreateUserMappingResponse,
    UserMappingLookupResponse,
    UserMappingQuery,
)
from rested_messaging.services.user_service import UserService
from rested_messaging.utils.dependencies import payload_model


router = APIRouter(tags=["users"])


def get_user_service(registry: ConnectionRegistry = Depends(registry_dependency)) -> UserService:
    return UserService(UserMappingRepository(registry.db))


@router.api_route(
    "/getUserMapping",
    methods=["GET", "POST"],
    response_model=UserMappingLookupResponse,
    response_model_exclude_none=True,
)
async def get_user_mapping(query: UserMappingQuery = Depends(payload_model(UserMappingQuery)), service: UserService = Depends(get_user_service)):
    return await service.get_mapping(query.old_user_id, query.new_user_id, query.email)


@router.post("/createUserMapping", response_model=CreateUserMappingResponse, response_model_exclude_none=True)
async def create_user_mapping(body: CreateUserMappingRequest, service: UserService = Depends(get_user_service)):
    return await service.create_mapping(body.old_user_id, body.new_user_id, body.email, body.name)
