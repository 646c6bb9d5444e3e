from fastapi import APIRouter, Depends, HTTPException, status

from rested_messaging.database.connection import ConnectionRegistry, registry_dependency
from rested_messaging.repositories.counter_repository import CounterContentionError, CounterRepository
from rested_messaging.repositories.message_repository import MessageRepository
from rested_messaging.schemas.unread import (
    CounterQuery,
    FamilyCounterQuery,
    FamilyUnreadCountersResponse,
    MarkAllLogsReadRequest,
    MarkChatReadRequest,
    MarkLogReadRequest,
    MarkReadResponse,
    UnreadCountersResponse,
)
from rested_messaging.services.unread_service import UnreadService
from rested_messaging.utils.dependencies import payload_model


router = APIRouter(tags=["unread"])

CONTENTION_DETAIL = "Unread counters changed while marking as read, please retry"


def get_unread_service(registry: ConnectionRegistry = Depends(registry_dependency)) -> UnreadService:
    return UnreadService(CounterRepository(registry.db), MessageRepository(registry.db), registry.bus)


@router.api_route("/getUnreadCounters", methods=["GET", "POST"], response_model=UnreadCountersResponse)
async def get_unread_counters(query: CounterQuery = Depends(payload_model(CounterQuery)), service: UnreadService = Depends(get_unread_service)):
    return await service.get_counters(query.user_id, query.child_id)


@router.api_route("/getFamilyUnreadCounters", methods=["GET", "POST"], response_model=FamilyUnreadCountersResponse)
async def get_family_unread_counters(query: FamilyCounterQuery = Depends(payload_model(FamilyCounterQuery)), service: UnreadService = Depends(get_unread_service)):
    return await service.get_family_counters(query.user_id, query.original_child_id, query.siblings)


@router.post("/markChatAsRead", response_model=MarkReadResponse)
async def mark_chat_as_read(body: MarkChatReadRequest, service: UnreadService = Depends(get_unread_service)):
    try:
        return await service.mark_chat_read(body.user_id, body.child_id, body.conversation_id, body.original_child_id, body.siblings)
    except CounterContentionError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=CONTENTION_DETAIL)


@router.post("/markLogAsRead", response_model=MarkReadResponse)
async def mark_log_as_read(body: MarkLogReadRequest, service: UnreadService = Depends(get_unread_service)):
    try:
        return await service.mark_log_read(body.user_id, body.child_id, body.log_id, body.original_child_id, body.siblings)
    except CounterContentionError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=CONTENTION_DETAIL)


@router.post("/markAllLogsAsRead", response_model=MarkReadResponse)
async def mark_all_logs_as_read(body: MarkAllLogsReadRequest, service: UnreadService = Depends(get_unread_service)):
    try:
        return await service.mark_all_logs_read(body.user_id, body.child_id, body.original_child_id, body.siblings)
    except CounterContentionError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=CONTENTION_DETAIL)
