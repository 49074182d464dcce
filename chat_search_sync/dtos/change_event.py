from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from chat_search_sync.dtos.attribute_value import RecordImage, StringValue, parse_attribute_map
from chat_search_sync.errors import ShapingError

RECORD_ID_FIELD = "message_id"


class ChangeKind(str, Enum):
    """Mutation kind, valued by the stream's event names."""

    CREATED = "INSERT"
    UPDATED = "MODIFY"
    DELETED = "REMOVE"


class ChangeEvent(BaseModel):
    """One record mutation delivered by the change stream."""

    model_config = ConfigDict(frozen=True)

    record_id: Optional[str] = None
    kind: ChangeKind
    before: Optional[RecordImage] = None
    after: Optional[RecordImage] = None

    sequence_number: Optional[str] = None
    approximate_created_at: Optional[int] = None


def parse_stream_record(raw: Mapping[str, Any]) -> ChangeEvent | None:
    """Build a ChangeEvent from one DynamoDB stream record.

    Args:
        raw (Mapping[str, Any]): a single entry of the stream event's ``Records``.

    Returns:
        ChangeEvent | None: the event, or None when the event name is not a
        record mutation this pipeline handles.

    Raises:
        ShapingError: the record's images cannot be decoded.
    """
    try:
        kind = ChangeKind(raw.get("eventName"))
    except ValueError:
        return None

    dynamodb = raw.get("dynamodb") or {}
    if not isinstance(dynamodb, Mapping):
        raise ShapingError("stream record has no 'dynamodb' section")

    after = RecordImage.from_stream(dynamodb["NewImage"]) if dynamodb.get("NewImage") else None
    before = RecordImage.from_stream(dynamodb["OldImage"]) if dynamodb.get("OldImage") else None

    approximate = dynamodb.get("ApproximateCreationDateTime")
    return ChangeEvent(
        record_id=_record_id(kind, before, after, dynamodb.get("Keys")),
        kind=kind,
        before=before,
        after=after,
        sequence_number=dynamodb.get("SequenceNumber"),
        approximate_created_at=int(float(approximate) * 1000) if approximate is not None else None,
    )


def stream_record_id(raw: Mapping[str, Any]) -> str:
    """Best-effort id of a raw record, used when the record cannot be parsed."""
    if not isinstance(raw, Mapping):
        return "<unknown>"
    dynamodb = raw.get("dynamodb")
    if isinstance(dynamodb, Mapping):
        for section in ("Keys", "NewImage", "OldImage"):
            image = dynamodb.get(section)
            value = image.get(RECORD_ID_FIELD) if isinstance(image, Mapping) else None
            if isinstance(value, Mapping) and isinstance(value.get("S"), str):
                return value["S"]
    return raw.get("eventID") or "<unknown>"


def _record_id(
    kind: ChangeKind,
    before: RecordImage | None,
    after: RecordImage | None,
    keys: Mapping[str, Any] | None,
) -> str | None:
    image = before if kind is ChangeKind.DELETED else after
    if image is not None and isinstance(image.get(RECORD_ID_FIELD), StringValue):
        return image.string(RECORD_ID_FIELD)
    if keys:
        value = parse_attribute_map(keys).get(RECORD_ID_FIELD)
        if isinstance(value, StringValue):
            return value.value
    return None
