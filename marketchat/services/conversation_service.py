import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from pymongo.errors import PyMongoError

from marketchat.repositories.conversation_repository import ConversationRepository
from marketchat.repositories.message_repository import MessageRepository
from marketchat.repositories.participant_repository import ParticipantRepository
from marketchat.repositories.product_repository import ProductRepository
from marketchat.utils.errors import AuthorizationError, NotFoundError, StorageError, ValidationError
from marketchat.utils.mongo import utc_now
from marketchat.utils.realtime_bus import notify_participant


logger = logging.getLogger(__name__)


def other_participant(conversation: Dict[str, Any], participant_id: str) -> str:
    if conversation["initiator_id"] == participant_id:
        return conversation["counterpart_id"]
    return conversation["initiator_id"]


def is_participant(conversation: Dict[str, Any], participant_id: str) -> bool:
    return participant_id in (conversation["initiator_id"], conversation["counterpart_id"])


ROLES = ("buyer", "seller")


def side_of(conversation: Dict[str, Any], participant_id: str, directory: Dict[str, Dict[str, Any]]) -> Optional[str]:
    """Role ``participant_id`` plays in ``conversation``, from the directory.

    The seller side is the only participant flagged as a seller, or the
    counterpart when both are. With no seller involved there are no sides.
    """
    sellers = [
        pid for pid in (conversation["initiator_id"], conversation["counterpart_id"])
        if (directory.get(pid) or {}).get("is_seller")
    ]
    if not sellers:
        return None
    seller_id = sellers[0] if len(sellers) == 1 else conversation["counterpart_id"]
    return "seller" if participant_id == seller_id else "buyer"


class ConversationService:
    """Buyer/seller conversations: lookup-or-create, messaging and read state.

    Unread state is kept per participant as a denormalised counter on the
    conversation. A send increments the recipient's counter and a read resets
    the reader's counter to zero; the two participants never touch each
    other's counter otherwise.
    """

    def __init__(
        self,
        conversation_repo: ConversationRepository,
        message_repo: MessageRepository,
        participant_repo: ParticipantRepository,
        product_repo: ProductRepository,
    ) -> None:
        self._conversation_repo = conversation_repo
        self._message_repo = message_repo
        self._participant_repo = participant_repo
        self._product_repo = product_repo

    async def _require_conversation(self, conversation_id: str) -> Dict[str, Any]:
        convo = await self._conversation_repo.get_by_id(conversation_id)
        if convo is None:
            raise NotFoundError("Conversation not found")
        return convo

    async def _require_participant(self, conversation_id: str, participant_id: str) -> Dict[str, Any]:
        convo = await self._require_conversation(conversation_id)
        if not is_participant(convo, participant_id):
            raise AuthorizationError("Participant is not part of this conversation")
        return convo

    async def _enrich(self, convo: Dict[str, Any]) -> Dict[str, Any]:
        participants = await self._participant_repo.get_participants(convo["participants"])
        product = None
        if convo.get("product_id"):
            product = await self._product_repo.get_product(convo["product_id"])
        return {
            **convo,
            "initiator": participants.get(convo["initiator_id"]),
            "counterpart": participants.get(convo["counterpart_id"]),
            "product": product,
        }

    async def start_or_get_conversation(
        self,
        initiator_id: str,
        counterpart_id: str,
        product_id: Optional[str] = None,
        subject: Optional[str] = None,
    ) -> Tuple[Dict[str, Any], bool]:
        if not initiator_id or not counterpart_id:
            raise ValidationError("Initiator ID and counterpart ID are required")
        if initiator_id == counterpart_id:
            raise ValidationError("You cannot start a conversation with yourself")

        existing = await self._conversation_repo.find_by_participants(initiator_id, counterpart_id, product_id)
        if existing:
            logger.info("Found existing conversation %s", existing["_id"])
            return await self._enrich(existing), False

        initiator, counterpart = await asyncio.gather(
            self._participant_repo.get_participant(initiator_id),
            self._participant_repo.get_participant(counterpart_id),
        )
        if initiator is None:
            raise NotFoundError("Initiator not found")
        if counterpart is None:
            raise NotFoundError("Counterpart not found")
        if product_id and await self._product_repo.get_product(product_id) is None:
            raise NotFoundError("Product not found")

        convo = await self._conversation_repo.create(
            initiator_id,
            counterpart_id,
            product_id=product_id,
            subject=subject or f"Chat with {counterpart['display_name']}",
        )
        logger.info("Created conversation %s between %s and %s", convo["_id"], initiator_id, counterpart_id)
        return await self._enrich(convo), True

    async def list_conversations_for(self, participant_id: str, role: Optional[str] = None) -> List[Dict[str, Any]]:
        if not participant_id:
            raise ValidationError("Participant ID is required")
        if role is not None and role not in ROLES:
            raise ValidationError(f"Role must be one of: {', '.join(ROLES)}")
        conversations = await self._conversation_repo.list_for_participant(participant_id)
        if not conversations:
            return []

        participant_ids = {pid for c in conversations for pid in c["participants"]}
        participants = await self._participant_repo.get_participants(participant_ids)
        if role is not None:
            conversations = [c for c in conversations if side_of(c, participant_id, participants) == role]

        product_ids = {c["product_id"] for c in conversations if c.get("product_id")}
        products, latest = await asyncio.gather(
            self._product_repo.get_products(product_ids),
            asyncio.gather(*(self._message_repo.latest_for_conversation(c["_id"]) for c in conversations)),
        )

        items = []
        for convo, last in zip(conversations, latest):
            items.append({
                **convo,
                "counterpart": participants.get(other_participant(convo, participant_id)),
                "product": products.get(convo["product_id"]) if convo.get("product_id") else None,
                "last_message": {
                    "content": last["content"],
                    "created_at": last["created_at"],
                    "sender_id": last["sender_id"],
                } if last else None,
                "unread_count": convo.get("unread_counters", {}).get(participant_id, 0),
            })
        return items

    async def get_conversation(self, conversation_id: str) -> Dict[str, Any]:
        convo = await self._require_conversation(conversation_id)
        enriched = await self._enrich(convo)
        enriched["messages"] = await self._message_repo.list_by_conversation(convo["_id"])
        return enriched

    async def list_messages(self, conversation_id: str) -> List[Dict[str, Any]]:
        convo = await self._require_conversation(conversation_id)
        return await self._message_repo.list_by_conversation(convo["_id"])

    async def send_message(self, conversation_id: str, sender_id: str, content: str) -> Dict[str, Any]:
        if not sender_id:
            raise ValidationError("Sender ID is required")
        if not content or not content.strip():
            raise ValidationError("Message content cannot be empty")
        convo = await self._require_participant(conversation_id, sender_id)
        recipient_id = other_participant(convo, sender_id)

        message = await self._message_repo.append(convo["_id"], sender_id, content.strip())
        try:
            touched = await self._conversation_repo.touch_on_message(convo["_id"], message["created_at"], recipient_id)
        except PyMongoError as exc:
            await self._rollback_message(message)
            raise StorageError(f"Failed to update conversation after send: {exc}") from exc
        if touched is None:
            # conversation deleted between the lookup and the update
            await self._rollback_message(message)
            raise NotFoundError("Conversation not found")

        logger.info("Message %s sent in conversation %s", message["_id"], convo["_id"])
        await notify_participant(recipient_id, {
            "type": "message",
            "conversation_id": convo["_id"],
            "message": message,
            "unread_count": touched["unread_counters"].get(recipient_id, 0),
        })
        return message

    async def _rollback_message(self, message: Dict[str, Any]) -> None:
        logger.warning("Rolling back message %s in conversation %s", message["_id"], message["conversation_id"])
        await self._message_repo.delete(message["_id"])

    async def mark_conversation_read(self, conversation_id: str, reader_id: str) -> int:
        if not reader_id:
            raise ValidationError("Reader ID is required")
        convo = await self._require_participant(conversation_id, reader_id)
        # Reset first, then mark only what existed at the snapshot. A message
        # sent after the snapshot stays unread and keeps its increment.
        snapshot = utc_now()
        await self._conversation_repo.reset_unread(convo["_id"], reader_id)
        updated = await self._message_repo.mark_read_from(convo["_id"], reader_id, before=snapshot)
        logger.info("Marked %d message(s) read for %s in conversation %s", updated, reader_id, convo["_id"])
        if updated:
            await notify_participant(other_participant(convo, reader_id), {
                "type": "read",
                "conversation_id": convo["_id"],
                "reader_id": reader_id,
            })
        return updated

    async def delete_conversation(self, conversation_id: str, requester_id: str) -> None:
        if not requester_id:
            raise ValidationError("Participant ID is required")
        convo = await self._require_participant(conversation_id, requester_id)
        if not await self._conversation_repo.delete(convo["_id"]):
            raise NotFoundError("Conversation not found")
        removed = await self._message_repo.delete_for_conversation(convo["_id"])
        logger.info("Deleted conversation %s and %d message(s)", convo["_id"], removed)

    async def unread_summary(self, participant_id: str) -> Dict[str, int]:
        if not participant_id:
            raise ValidationError("Participant ID is required")
        conversations = await self._conversation_repo.list_for_participant(participant_id)
        counts = [c.get("unread_counters", {}).get(participant_id, 0) for c in conversations]
        return {
            "total_unread": sum(counts),
            "conversations_with_unread": sum(1 for n in counts if n > 0),
        }
