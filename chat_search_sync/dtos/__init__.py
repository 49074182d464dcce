from .attribute_value import AttributeValue, RecordImage, parse_attribute_value
from .batch_result import BatchProcessingResult, FailedRecord
from .change_event import ChangeEvent, ChangeKind, parse_stream_record
from .message_document import AttachmentDTO, MessageDocument, MessagePatch

__all__ = [
    "AttachmentDTO",
    "AttributeValue",
    "BatchProcessingResult",
    "ChangeEvent",
    "ChangeKind",
    "FailedRecord",
    "MessageDocument",
    "MessagePatch",
    "RecordImage",
    "parse_attribute_value",
    "parse_stream_record",
]
