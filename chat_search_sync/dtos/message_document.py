from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class AttachmentDTO(BaseModel):
    """A DTO for a file attached to a chat message."""

    name: str
    size: Optional[int] = None
    mimeType: Optional[str] = None
    url: str


class MessageDocument(BaseModel):
    """A DTO for chat messages to be indexed in OpenSearch."""

    message_id: str
    room_id: str
    user_id: str
    content: str
    message_type: str = "TEXT"

    timestamp: int
    created_at: str
    edited_at: Optional[str] = None

    reply_to_message_id: Optional[str] = None
    attachments: List[AttachmentDTO] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    content_length: int
    token_count: int
    has_attachments: bool
    has_reply: bool

    source_version: int

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class MessagePatch(BaseModel):
    """Partial document merged into an existing message.

    Only fields explicitly set are sent to the index.
    """

    message_id: str
    source_version: int

    content: Optional[str] = None
    message_type: Optional[str] = None
    edited_at: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    content_length: Optional[int] = None
    token_count: Optional[int] = None

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True)
