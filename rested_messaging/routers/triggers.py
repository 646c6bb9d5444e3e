from fastapi import APIRouter, Depends

from rested_messaging.database.connection import ConnectionRegistry, registry_dependency
from rested_messaging.repositories.counter_repository import CounterRepository
from rested_messaging.repositories.message_repository import MessageRepository
from rested_messaging.schemas.message import MessageCreated, MessageCreatedResponse
from rested_messaging.services.fanout_service import DeepLinkBuilder, MessageFanoutService
from rested_messaging.services.push_service import PushDispatcher
from rested_messaging.services.recipient_directory import RecipientDirectory
from rested_messaging.utils.dependencies import settings_dependency


router = APIRouter(tags=["triggers"])


def get_fanout_service(
    registry: ConnectionRegistry = Depends(registry_dependency),
    settings = Depends(settings_dependency),
) -> MessageFanoutService:
    return MessageFanoutService(
        CounterRepository(registry.db),
        MessageRepository(registry.db),
        RecipientDirectory.from_registry(registry, settings),
        PushDispatcher.from_registry(registry, settings),
        registry.bus,
        DeepLinkBuilder.from_settings(settings),
    )


@router.post("/onMessageCreated/{message_id}", response_model=MessageCreatedResponse)
async def on_message_created(message_id: str, message: MessageCreated, service: MessageFanoutService = Depends(get_fanout_service)):
    # message creation is not reversible, so the fan-out never fails the caller
    report = await service.handle_message_created(message_id, message.model_dump(by_alias=True, exclude_none=True))
    return {
        "message_id": message_id,
        "recipients": len(report.recipients),
        "counters_updated": report.counters_updated,
        "families_updated": report.families_updated,
        "notified": report.notified,
    }
