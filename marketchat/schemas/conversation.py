from typing import Optional

from pydantic import BaseModel, Field


class StartConversationRequest(BaseModel):

    initiator_id: str = Field(min_length=1)
    counterpart_id: str = Field(min_length=1)
    product_id: Optional[str] = None
    subject: Optional[str] = None


class SendMessageRequest(BaseModel):

    sender_id: str = Field(min_length=1)
    content: str = Field(min_length=1)


class MarkReadRequest(BaseModel):

    reader_id: str = Field(min_length=1)
