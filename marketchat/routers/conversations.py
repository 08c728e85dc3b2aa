from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder

from marketchat.database.connection import mongo_db_dependency
from marketchat.repositories.conversation_repository import ConversationRepository
from marketchat.repositories.message_repository import MessageRepository
from marketchat.repositories.participant_repository import ParticipantRepository
from marketchat.repositories.product_repository import ProductRepository
from marketchat.schemas.conversation import MarkReadRequest, SendMessageRequest, StartConversationRequest
from marketchat.services.conversation_service import ConversationService


router = APIRouter(prefix="/conversations", tags=["conversations"])


def get_conversation_service(db = Depends(mongo_db_dependency)) -> ConversationService:
    return ConversationService(
        ConversationRepository(db),
        MessageRepository(db),
        ParticipantRepository(db),
        ProductRepository(db),
    )


def success(data: dict | None = None, message: str | None = None) -> dict:
    body: dict = {"status": "success"}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body


@router.get("")
async def list_conversations(participant_id: str = Query(..., min_length=1), role: Optional[Literal["buyer", "seller"]] = None, service: ConversationService = Depends(get_conversation_service)):
    conversations = await service.list_conversations_for(participant_id, role=role)
    return success({"conversations": conversations, "count": len(conversations)})


@router.get("/unread")
async def unread_summary(participant_id: str = Query(..., min_length=1), service: ConversationService = Depends(get_conversation_service)):
    return success(await service.unread_summary(participant_id))


@router.post("")
async def start_conversation(body: StartConversationRequest, service: ConversationService = Depends(get_conversation_service)):
    conversation, created = await service.start_or_get_conversation(
        body.initiator_id, body.counterpart_id, product_id=body.product_id, subject=body.subject
    )
    payload = success({"conversation": conversation}, "Conversation created" if created else "Conversation found")
    return JSONResponse(
        status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        content=jsonable_encoder(payload),
    )


@router.get("/{conversation_id}")
async def get_conversation(conversation_id: str, service: ConversationService = Depends(get_conversation_service)):
    return success({"conversation": await service.get_conversation(conversation_id)})


@router.put("/{conversation_id}")
async def mark_conversation_read(conversation_id: str, body: MarkReadRequest, service: ConversationService = Depends(get_conversation_service)):
    updated = await service.mark_conversation_read(conversation_id, body.reader_id)
    return success({"updated": updated}, "Messages marked as read")


@router.delete("/{conversation_id}")
async def delete_conversation(conversation_id: str, participant_id: str = Query(..., min_length=1), service: ConversationService = Depends(get_conversation_service)):
    await service.delete_conversation(conversation_id, participant_id)
    return success(message="Conversation deleted")


@router.get("/{conversation_id}/messages")
async def list_messages(conversation_id: str, service: ConversationService = Depends(get_conversation_service)):
    messages = await service.list_messages(conversation_id)
    return success({"messages": messages, "count": len(messages)})


@router.post("/{conversation_id}/messages", status_code=status.HTTP_201_CREATED)
async def send_message(conversation_id: str, body: SendMessageRequest, service: ConversationService = Depends(get_conversation_service)):
    message = await service.send_message(conversation_id, body.sender_id, body.content)
    return success({"message": message}, "Message sent")
