import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from chat_search_sync.dtos.attribute_value import (
    AttributeValue,
    MapValue,
    NumberValue,
    RecordImage,
    StringValue,
    to_python,
)
from chat_search_sync.dtos.message_document import AttachmentDTO, MessageDocument, MessagePatch
from chat_search_sync.errors import InvalidRecordError, ShapingError

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

REQUIRED_FIELDS = ("room_id", "user_id", "content", "timestamp")

ATTACHMENT_ALIASES = {
    "name": ("name", "fileName", "file_name"),
    "size": ("size", "fileSize", "file_size"),
    "mimeType": ("mimeType", "mime_type", "contentType", "content_type"),
    "url": ("url", "fileUrl", "file_url"),
}


def epoch_ms_to_iso(epoch_ms: int) -> str:
    """Format epoch milliseconds as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    try:
        moment = EPOCH + timedelta(milliseconds=epoch_ms)
    except OverflowError as e:
        raise ShapingError(f"timestamp out of range: {epoch_ms}") from e
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def iso_to_epoch_ms(value: str) -> int:
    """Parse an ISO-8601 string; naive values are taken as UTC."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        moment = datetime.fromisoformat(text)
    except ValueError as e:
        raise ShapingError(f"unparsable date: {value!r}") from e
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - EPOCH) // timedelta(milliseconds=1)


def count_tokens(content: str) -> int:
    return len(content.split())


class DocumentShaper:
    """Turn record snapshots into the documents stored in the search index.

    Shaping is pure: the same snapshot always produces the same document, so
    re-applying a redelivered event converges on the same stored state.
    """

    def __init__(self, default_message_type: str = "TEXT"):
        """
        Args:
            default_message_type (str): value used when a record carries no
                ``message_type``.
        """
        self.default_message_type = default_message_type

    def shape(
        self,
        record_id: str,
        after: RecordImage,
    ) -> MessageDocument:
        """Build the full index document for a record.

        Args:
            record_id (str): id of the record, used as the document id.
            after (RecordImage): current snapshot of the record.

        Returns:
            MessageDocument: the document with its derived fields.

        Raises:
            InvalidRecordError: an identity or content field is missing.
            ShapingError: a field is present but malformed.
        """
        missing = [name for name in REQUIRED_FIELDS if not after.has(name)]
        if not record_id or missing:
            raise InvalidRecordError(
                f"record {record_id!r} is missing required fields: {', '.join(missing) or 'message_id'}"
            )

        content = after.string("content")
        timestamp = after.number("timestamp")
        edited_ms = self._edit_time(after)
        reply_to = after.string("reply_to_message_id") or None
        attachments = self.parse_attachments(after.items("attachments"))

        return MessageDocument(
            message_id=record_id,
            room_id=after.string("room_id"),
            user_id=after.string("user_id"),
            content=content,
            message_type=after.string("message_type") or self.default_message_type,
            timestamp=timestamp,
            created_at=epoch_ms_to_iso(timestamp),
            edited_at=epoch_ms_to_iso(edited_ms) if edited_ms is not None else None,
            reply_to_message_id=reply_to,
            attachments=attachments,
            metadata=self.parse_metadata(after.get("metadata")),
            content_length=len(content),
            token_count=count_tokens(content),
            has_attachments=len(attachments) > 0,
            has_reply=reply_to is not None,
            source_version=edited_ms if edited_ms is not None else timestamp,
        )

    def shape_patch(
        self,
        record_id: str,
        before: RecordImage | None,
        after: RecordImage,
        event_time: int | None = None,
    ) -> MessagePatch:
        """Build the partial document for an update.

        Only top-level fields that differ between ``before`` and ``after`` are
        included, together with the derived fields that depend on them.

        Args:
            record_id (str): id of the record.
            before (RecordImage | None): previous snapshot, if the stream has one.
            after (RecordImage): current snapshot.
            event_time (int | None): epoch ms at which the change was captured,
                used as edit time when the snapshot does not carry one.

        Returns:
            MessagePatch: the patch; unset fields are not sent to the index.

        Raises:
            InvalidRecordError: content is missing, or no version can be derived.
        """
        if not record_id or not after.has("content"):
            raise InvalidRecordError(f"update for {record_id!r} has no content")

        def changed(name: str) -> bool:
            return before is None or before.get(name) != after.get(name)

        edited_ms = self._edit_time(after)
        fields: dict[str, Any] = {}

        if changed("content"):
            content = after.string("content")
            fields["content"] = content
            fields["content_length"] = len(content)
            fields["token_count"] = count_tokens(content)
            if edited_ms is None:
                edited_ms = event_time

        if edited_ms is not None and (changed("edited_at") or "content" in fields):
            fields["edited_at"] = epoch_ms_to_iso(edited_ms)
        if changed("metadata"):
            fields["metadata"] = self.parse_metadata(after.get("metadata"))
        if changed("message_type"):
            fields["message_type"] = after.string("message_type") or self.default_message_type

        # A patch never ranks below the snapshot's own creation time.
        candidates = [ms for ms in (edited_ms, after.number("timestamp")) if ms is not None]
        if not candidates:
            raise InvalidRecordError(f"update for {record_id!r} carries neither timestamp nor edit time")
        return MessagePatch(message_id=record_id, source_version=max(candidates), **fields)

    def parse_attachments(self, items: tuple[AttributeValue, ...]) -> list[AttachmentDTO]:
        """Normalize attachment maps, dropping the ones that cannot be read."""
        attachments = []
        for position, item in enumerate(items):
            attachment = self._normalize_attachment(item)
            if attachment is None:
                logger.debug("Dropping attachment %d: cannot be normalized", position)
                continue
            attachments.append(attachment)
        return attachments

    def parse_metadata(self, value: AttributeValue | None) -> dict[str, Any]:
        """Decode the free-form metadata field.

        A JSON string and a native map are both accepted.
        """
        if value is None:
            return {}
        if isinstance(value, MapValue):
            return to_python(value)
        if not isinstance(value, StringValue):
            raise ShapingError(f"metadata must be a JSON string or a map, got {value.tag}")
        try:
            metadata = json.loads(value.value) if value.value else {}
        except json.JSONDecodeError as e:
            raise ShapingError(f"metadata is not valid JSON: {e}") from e
        if not isinstance(metadata, dict):
            raise ShapingError("metadata must decode to a JSON object")
        return metadata

    def _edit_time(self, image: RecordImage) -> int | None:
        value = image.get("edited_at")
        if value is None:
            return None
        if isinstance(value, NumberValue):
            return value.as_int()
        if isinstance(value, StringValue):
            return iso_to_epoch_ms(value.value) if value.value else None
        raise ShapingError(f"edited_at must be a date string or epoch number, got {value.tag}")

    def _normalize_attachment(self, item: AttributeValue) -> AttachmentDTO | None:
        if not isinstance(item, MapValue):
            return None

        def pick(key: str) -> AttributeValue | None:
            for alias in ATTACHMENT_ALIASES[key]:
                if alias in item.value:
                    return item.value[alias]
            return None

        name, url, mime_type, size = pick("name"), pick("url"), pick("mimeType"), pick("size")
        if not isinstance(name, StringValue) or not isinstance(url, StringValue):
            return None

        try:
            if isinstance(size, NumberValue):
                size_bytes = size.as_int()
            elif isinstance(size, StringValue) and size.value.strip():
                size_bytes = NumberValue(value=size.value.strip()).as_int()
            else:
                size_bytes = None
        except ShapingError:
            return None

        return AttachmentDTO(
            name=name.value,
            size=size_bytes,
            mimeType=mime_type.value if isinstance(mime_type, StringValue) else None,
            url=url.value,
        )
