import logging
from enum import Enum
from typing import Any, Iterable, Mapping

from chat_search_sync.dtos.batch_result import BatchProcessingResult
from chat_search_sync.dtos.change_event import ChangeEvent, ChangeKind, parse_stream_record, stream_record_id
from chat_search_sync.errors import InvalidRecordError, SearchSyncError
from chat_search_sync.opensearch.abstract_classes import ABCIndexClient
from chat_search_sync.services.document_shaper import DocumentShaper

logger = logging.getLogger(__name__)


class EventOutcome(str, Enum):
    """Result of validating a change event before dispatch."""

    SKIP = "skip"
    PROCEED = "proceed"
    INVALID = "invalid"


def validate_event(event: ChangeEvent) -> EventOutcome:
    """Decide whether an event should reach the index.

    INVALID events lack their identity or content; SKIP events are well formed
    but carry nothing the index cares about, like an update that leaves the
    content untouched.
    """
    if not event.record_id:
        return EventOutcome.INVALID

    if event.kind is ChangeKind.DELETED:
        return EventOutcome.PROCEED

    if event.after is None or not event.after.has("content"):
        return EventOutcome.INVALID

    if event.kind is ChangeKind.UPDATED and event.before is not None:
        if event.before.get("content") == event.after.get("content"):
            return EventOutcome.SKIP

    return EventOutcome.PROCEED


class BatchProcessor:
    """
    Applies batches of change events to the search index.

    Events are applied one at a time in delivery order, which keeps the order
    of operations on a given record. Every event succeeds, is skipped, or fails
    on its own; nothing raised while handling one event escapes the batch.
    """

    def __init__(self, index_client: ABCIndexClient, shaper: DocumentShaper):
        """
        Args:
            index_client (ABCIndexClient): the search backend.
            shaper (DocumentShaper): builds documents from record snapshots.
        """
        self._index_client = index_client
        self._shaper = shaper

    def process_batch(self, events: Iterable[ChangeEvent]) -> BatchProcessingResult:
        """Apply already parsed events and report the aggregate result."""
        result = BatchProcessingResult()
        for event in events:
            result.processed += 1
            self._apply(event, result)
        self._log_summary(result)
        return result

    def process_stream_records(self, records: Iterable[Mapping[str, Any]]) -> BatchProcessingResult:
        """Parse and apply raw stream records.

        A record that cannot be decoded is reported as a failure of that record.
        """
        result = BatchProcessingResult()
        for raw in records:
            result.processed += 1
            try:
                event = parse_stream_record(raw)
            except Exception as e:
                logger.error("Failed to decode stream record %s: %s", stream_record_id(raw), e)
                result.record_failure(stream_record_id(raw), e, _sequence_number(raw))
                continue

            if event is None:
                logger.debug("Ignoring event type %s", raw.get("eventName"))
                result.record_skip()
                continue
            self._apply(event, result)
        self._log_summary(result)
        return result

    def _apply(self, event: ChangeEvent, result: BatchProcessingResult) -> None:
        outcome = validate_event(event)
        if outcome is EventOutcome.INVALID:
            logger.debug("Skipping %s record without required fields: id=%s", event.kind.name, event.record_id)
            result.record_skip()
            return
        if outcome is EventOutcome.SKIP:
            logger.debug("No content change detected, skipping update: id=%s", event.record_id)
            result.record_skip()
            return

        try:
            self._dispatch(event)
        except InvalidRecordError as e:
            logger.debug("Skipping invalid record: %s", e)
            result.record_skip()
            return
        except SearchSyncError as e:
            logger.error("Failed to process record %s (%s): %s", event.record_id, event.kind.name, e)
            result.record_failure(event.record_id, e, event.sequence_number)
            return
        except Exception as e:
            logger.error("Unexpected error processing record %s", event.record_id, exc_info=True)
            result.record_failure(event.record_id, e, event.sequence_number)
            return

        result.record_success(event.record_id)

    def _dispatch(self, event: ChangeEvent) -> None:
        if event.kind is ChangeKind.CREATED:
            document = self._shaper.shape(event.record_id, event.after)
            self._index_client.upsert_full(event.record_id, document.to_document())
        elif event.kind is ChangeKind.UPDATED:
            patch = self._shaper.shape_patch(
                event.record_id,
                event.before,
                event.after,
                event_time=event.approximate_created_at,
            )
            self._index_client.merge_upsert(event.record_id, patch.to_document())
        else:
            self._index_client.delete(event.record_id)

    def _log_summary(self, result: BatchProcessingResult) -> None:
        logger.info(
            "Stream batch processed: processed=%d succeeded=%d failed=%d skipped=%d",
            result.processed,
            len(result.succeeded),
            len(result.failed),
            result.skipped,
        )


def _sequence_number(raw: Mapping[str, Any]) -> str | None:
    dynamodb = raw.get("dynamodb") if isinstance(raw, Mapping) else None
    return dynamodb.get("SequenceNumber") if isinstance(dynamodb, Mapping) else None
