from .batch_processor import BatchProcessor, EventOutcome, validate_event
from .document_shaper import DocumentShaper
from .schema_manager import IndexSchemaManager

__all__ = [
    "BatchProcessor",
    "DocumentShaper",
    "EventOutcome",
    "IndexSchemaManager",
    "validate_event",
]
