"""Global test fixtures."""

import copy
from typing import Any, Callable

import pytest

from chat_search_sync.opensearch.abstract_classes import ABCIndexClient
from chat_search_sync.services.document_shaper import DocumentShaper


class FakeIndexClient(ABCIndexClient):
    """In-memory index honouring the same versioned upsert rules as OpenSearch."""

    def __init__(self):
        self.documents: dict[str, dict[str, Any]] = {}
        self.indexes: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[str, Exception] = {}

    def upsert_full(self, document_id: str, document: dict[str, Any]) -> None:
        self._record("upsert_full", document_id)
        current = self.documents.get(document_id)
        if current is None or current.get("source_version") is None or (
            current["source_version"] < document["source_version"]
        ):
            self.documents[document_id] = copy.deepcopy(document)
        else:
            self._fill_missing(current, document)

    def merge_upsert(self, document_id: str, partial_document: dict[str, Any]) -> None:
        self._record("merge_upsert", document_id)
        current = self.documents.setdefault(document_id, {})
        if current.get("source_version") is None or current["source_version"] <= partial_document["source_version"]:
            current.update(copy.deepcopy(partial_document))
        else:
            self._fill_missing(current, partial_document)

    def delete(self, document_id: str) -> None:
        self._record("delete", document_id)
        self.documents.pop(document_id, None)

    def ensure_index(self, name: str, configurations: dict[str, Any]) -> bool:
        self._record("ensure_index", name)
        if name in self.indexes:
            return False
        self.indexes[name] = configurations
        return True

    def _record(self, operation: str, document_id: str) -> None:
        self.calls.append((operation, document_id))
        if document_id in self.failures:
            raise self.failures[document_id]

    @staticmethod
    def _fill_missing(current: dict[str, Any], document: dict[str, Any]) -> None:
        for key, value in document.items():
            current.setdefault(key, copy.deepcopy(value))


@pytest.fixture
def index_client() -> FakeIndexClient:
    return FakeIndexClient()


@pytest.fixture
def shaper() -> DocumentShaper:
    return DocumentShaper()


@pytest.fixture
def message_image() -> Callable[..., dict[str, Any]]:
    """Factory for a stream-encoded chat message snapshot."""

    def build(
        message_id: str = "msg-1",
        content: str | None = "hello world",
        timestamp: int = 1_700_000_000_000,
        **extra: Any,
    ) -> dict[str, Any]:
        image: dict[str, Any] = {
            "message_id": {"S": message_id},
            "room_id": {"S": "room-1"},
            "user_id": {"S": "user-1"},
            "timestamp": {"N": str(timestamp)},
        }
        if content is not None:
            image["content"] = {"S": content}
        image.update(extra)
        return image

    return build


@pytest.fixture
def stream_record() -> Callable[..., dict[str, Any]]:
    """Factory for a raw DynamoDB stream record."""

    def build(
        event_name: str,
        new_image: dict[str, Any] | None = None,
        old_image: dict[str, Any] | None = None,
        sequence_number: str = "100",
        keys: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        dynamodb: dict[str, Any] = {
            "Keys": keys if keys is not None else {},
            "SequenceNumber": sequence_number,
            "ApproximateCreationDateTime": 1_700_000_100,
        }
        if new_image is not None:
            dynamodb["NewImage"] = new_image
        if old_image is not None:
            dynamodb["OldImage"] = old_image
        return {"eventID": f"evt-{sequence_number}", "eventName": event_name, "dynamodb": dynamodb}

    return build


@pytest.fixture
def make_index_client() -> Callable[[], FakeIndexClient]:
    return FakeIndexClient
