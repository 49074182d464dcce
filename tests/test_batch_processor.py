"""Unit tests for BatchProcessor."""

import pytest

from chat_search_sync.dtos.attribute_value import RecordImage
from chat_search_sync.dtos.change_event import ChangeEvent, ChangeKind
from chat_search_sync.errors import IndexRejectedError, IndexUnavailableError
from chat_search_sync.services.batch_processor import BatchProcessor, EventOutcome, validate_event


@pytest.fixture
def processor(index_client, shaper) -> BatchProcessor:
    return BatchProcessor(index_client, shaper)


@pytest.fixture
def created(message_image):
    def build(message_id: str = "msg-1", content: str | None = "hello world", **extra) -> ChangeEvent:
        return ChangeEvent(
            record_id=message_id,
            kind=ChangeKind.CREATED,
            after=RecordImage.from_stream(message_image(message_id, content, **extra)),
        )

    return build


@pytest.fixture
def updated(message_image):
    def build(old: str, new: str, message_id: str = "msg-1", **extra) -> ChangeEvent:
        return ChangeEvent(
            record_id=message_id,
            kind=ChangeKind.UPDATED,
            before=RecordImage.from_stream(message_image(message_id, old)),
            after=RecordImage.from_stream(message_image(message_id, new, **extra)),
        )

    return build


def deleted(message_id: str | None = "msg-1") -> ChangeEvent:
    return ChangeEvent(record_id=message_id, kind=ChangeKind.DELETED)


class TestValidateEvent:
    """Tests for the single validation step."""

    def test_outcomes(self, created, updated):
        assert validate_event(created()) is EventOutcome.PROCEED
        assert validate_event(created(content=None)) is EventOutcome.INVALID
        assert validate_event(updated("same", "same")) is EventOutcome.SKIP
        assert validate_event(updated("old", "new")) is EventOutcome.PROCEED
        assert validate_event(deleted()) is EventOutcome.PROCEED
        assert validate_event(deleted(None)) is EventOutcome.INVALID


class TestProcessBatch:
    """Tests for applying batches of change events."""

    def test_created_twice_yields_one_identical_document(self, processor, index_client, created):
        processor.process_batch([created()])
        once = dict(index_client.documents)

        result = processor.process_batch([created()])

        assert index_client.documents == once
        assert len(index_client.documents) == 1
        assert result.succeeded == ["msg-1"]

    def test_update_before_create_converges(self, created, updated, shaper, make_index_client):
        """Both delivery orders of a create/update pair end in the same document."""
        create = created(content="hello")
        update = updated("hello", "hello world", edited_at={"N": "1700000009000"})

        in_order = make_index_client()
        BatchProcessor(in_order, shaper).process_batch([create, update])
        reversed_order = make_index_client()
        BatchProcessor(reversed_order, shaper).process_batch([update, create])

        assert in_order.documents == reversed_order.documents
        document = in_order.documents["msg-1"]
        assert document["content"] == "hello world"
        assert document["token_count"] == 2
        assert document["room_id"] == "room-1"
        assert document["edited_at"] == "2023-11-14T22:13:29.000Z"

    def test_delete_is_absorbing(self, processor, index_client, created):
        never_indexed = processor.process_batch([deleted("ghost")])
        twice = processor.process_batch([created(), deleted(), deleted()])

        assert never_indexed.succeeded == ["ghost"]
        assert twice.succeeded == ["msg-1"]
        assert twice.failed == []
        assert index_client.documents == {}

    def test_unchanged_content_makes_no_index_calls(self, processor, index_client, updated):
        result = processor.process_batch([updated("same", "same")])

        assert index_client.calls == []
        assert result.skipped == 1
        assert result.succeeded == []

    def test_failure_of_one_event_is_isolated(self, processor, index_client, created):
        index_client.failures["msg-3"] = IndexUnavailableError("timed out")
        events = [created(f"msg-{n}") for n in range(1, 6)]

        result = processor.process_batch(events)

        assert len(result.succeeded) == 4
        assert "msg-3" not in result.succeeded
        assert [f.record_id for f in result.failed] == ["msg-3"]
        assert result.failed[0].error_type == "IndexUnavailableError"
        assert result.failed[0].retryable is True
        assert set(index_client.documents) == {"msg-1", "msg-2", "msg-4", "msg-5"}

    def test_created_without_record_id_is_skipped(self, processor, index_client, created):
        event = created().model_copy(update={"record_id": None})

        result = processor.process_batch([event])

        assert index_client.calls == []
        assert result.succeeded == []
        assert result.failed == []
        assert result.skipped == 1
        assert result.processed == 1

    def test_shaper_invalid_record_is_skipped(self, processor, index_client, message_image):
        raw = message_image()
        del raw["room_id"]
        event = ChangeEvent(record_id="msg-1", kind=ChangeKind.CREATED, after=RecordImage.from_stream(raw))

        result = processor.process_batch([event])

        assert index_client.calls == []
        assert result.skipped == 1

    def test_shaping_error_is_a_failure(self, processor, created):
        result = processor.process_batch([created(metadata={"S": "{broken"})])

        assert [f.error_type for f in result.failed] == ["ShapingError"]
        assert result.failed[0].retryable is False

    def test_update_without_any_time_is_skipped(self, processor, index_client, created, message_image):
        processor.process_batch([created(content="hello")])
        after = message_image(content="hello edited")
        del after["timestamp"]
        event = ChangeEvent(
            record_id="msg-1",
            kind=ChangeKind.UPDATED,
            before=RecordImage.from_stream(message_image(content="hello")),
            after=RecordImage.from_stream(after),
        )

        result = processor.process_batch([event])

        assert result.skipped == 1
        assert result.succeeded == []
        assert index_client.documents["msg-1"]["content"] == "hello"

    def test_permanent_rejection_is_not_retryable(self, processor, index_client, created):
        index_client.failures["msg-1"] = IndexRejectedError("mapper_parsing_exception")

        result = processor.process_batch([created()])

        assert result.failed[0].retryable is False

    def test_unexpected_exception_is_recorded(self, processor, index_client, created):
        index_client.failures["msg-1"] = RuntimeError("boom")

        result = processor.process_batch([created(), created("msg-2")])

        assert result.failed[0].error == "boom"
        assert result.failed[0].retryable is True
        assert result.succeeded == ["msg-2"]


class TestProcessStreamRecords:
    """Tests for processing raw stream records."""

    def test_mixed_batch_report(self, processor, index_client, stream_record, message_image):
        index_client.failures["msg-3"] = IndexUnavailableError("throttled")
        records = [
            stream_record("INSERT", new_image=message_image("msg-1"), sequence_number="1"),
            stream_record("INSERT", new_image={"content": {"Q": "?"}}, sequence_number="2"),
            stream_record("INSERT", new_image=message_image("msg-3"), sequence_number="3"),
            stream_record("TTL_EXPIRE", sequence_number="4"),
            stream_record("REMOVE", old_image=message_image("msg-5"), sequence_number="5"),
        ]

        result = processor.process_stream_records(records)

        assert result.to_report() == {
            "processedRecords": 5,
            "succeededRecords": 2,
            "failedRecords": 2,
            "skippedRecords": 1,
            "errors": [
                {"recordId": "evt-2", "error": "ShapingError: unsupported attribute value 'Q': '?'"},
                {"recordId": "msg-3", "error": "IndexUnavailableError: throttled"},
            ],
        }
        assert result.batch_item_failures() == [{"itemIdentifier": "2"}, {"itemIdentifier": "3"}]

    def test_edit_captured_in_the_creation_second_is_applied(
        self, processor, index_client, stream_record, message_image
    ):
        """The capture time is whole seconds and may fall before the message's own timestamp."""
        timestamp = 1_700_000_100_500
        records = [
            stream_record("INSERT", new_image=message_image(content="hello", timestamp=timestamp), sequence_number="1"),
            stream_record(
                "MODIFY",
                new_image=message_image(content="hello edited", timestamp=timestamp),
                old_image=message_image(content="hello", timestamp=timestamp),
                sequence_number="2",
            ),
        ]

        result = processor.process_stream_records(records)

        assert result.succeeded == ["msg-1"]
        document = index_client.documents["msg-1"]
        assert document["content"] == "hello edited"
        assert document["source_version"] == timestamp

    def test_unrelated_binary_attribute_does_not_fail_the_record(
        self, processor, index_client, stream_record, message_image
    ):
        image = message_image(thumbnail={"B": "aGVsbG8="}, checksums={"BS": ["aGk="]})

        result = processor.process_stream_records([stream_record("INSERT", new_image=image)])

        assert result.failed == []
        assert result.succeeded == ["msg-1"]
        assert "thumbnail" not in index_client.documents["msg-1"]
