import logging
from typing import Any, Callable, Dict, TypeVar

from opensearchpy import exceptions as opensearch_exceptions

from chat_search_sync.errors import IndexClientError, IndexRejectedError, IndexUnavailableError

from .abstract_classes import ABCClient, ABCIndexClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

VERSION_FIELD = "source_version"

# Painless bodies for the versioned upserts. ``params.doc`` is the incoming
# document, ``params.version`` its source_version.
FILL_MISSING = """
boolean changed = false;
for (entry in params.doc.entrySet()) {
  if (!ctx._source.containsKey(entry.getKey())) {
    ctx._source.put(entry.getKey(), entry.getValue());
    changed = true;
  }
}
if (!changed) { ctx.op = 'none'; }
"""

REPLACE_SCRIPT = (
    "def current = ctx._source." + VERSION_FIELD + ";\n"
    "if (current == null || current < params.version) {\n"
    "  ctx._source.clear();\n"
    "  ctx._source.putAll(params.doc);\n"
    "} else {" + FILL_MISSING + "}"
)

MERGE_SCRIPT = (
    "def current = ctx._source." + VERSION_FIELD + ";\n"
    "if (current == null || current <= params.version) {\n"
    "  ctx._source.putAll(params.doc);\n"
    "} else {" + FILL_MISSING + "}"
)

TRANSIENT_STATUSES = {408, 409, 429}


class OpenSearchIndexClient(ABCIndexClient):
    """
    Index client backed by opensearch-py.

    Writes are scripted upserts so that a document's ``source_version`` decides
    which write wins, whatever order the stream delivers them in.
    """

    def __init__(
        self,
        index: str,
        client: ABCClient,
        refresh: bool = True,
        retry_on_conflict: int = 3,
    ):
        """
        Inject the required dependencies through the constructor parameters.

        Args:
            index (str): The name of the index to operate on.
            client (ABCClient): An instance of ABCClient to interact with OpenSearch.
            refresh (bool): make each write visible to search immediately.
            retry_on_conflict (int): retries of a scripted update racing another
                writer on the same document.
        """
        self._client = client
        self._index = index
        self._refresh = refresh
        self._retry_on_conflict = retry_on_conflict

    def upsert_full(self, document_id: str, document: Dict[str, Any]) -> None:
        response = self._call(lambda es: self._scripted_upsert(es, document_id, document, REPLACE_SCRIPT))
        logger.info("Message indexed in OpenSearch: id=%s result=%s", document_id, _result(response))

    def merge_upsert(self, document_id: str, partial_document: Dict[str, Any]) -> None:
        response = self._call(lambda es: self._scripted_upsert(es, document_id, partial_document, MERGE_SCRIPT))
        logger.info("Message updated in OpenSearch: id=%s result=%s", document_id, _result(response))

    def delete(self, document_id: str) -> None:
        try:
            response = self._call(
                lambda es: es.delete(index=self._index, id=document_id, refresh=self._refresh),
                passthrough=(opensearch_exceptions.NotFoundError,),
            )
        except opensearch_exceptions.NotFoundError:
            logger.debug("Message not found in OpenSearch (already deleted): id=%s", document_id)
            return
        logger.info("Message deleted from OpenSearch: id=%s result=%s", document_id, _result(response))

    def ensure_index(self, name: str, configurations: Dict[str, Any]) -> bool:
        """Create the index unless it exists.

        A failed existence check does not block creation, and losing a creation
        race to another worker counts as success.
        """
        try:
            if self._call(lambda es: es.indices.exists(index=name)):
                logger.info("OpenSearch index already exists: %s", name)
                return False
        except IndexClientError as e:
            logger.debug("Index existence check failed, proceeding with creation: %s", e)

        try:
            response = self._call(
                lambda es: es.indices.create(index=name, body=configurations),
                passthrough=(opensearch_exceptions.RequestError,),
            )
        except opensearch_exceptions.RequestError as e:
            if e.error == "resource_already_exists_exception":
                logger.info("OpenSearch index was created concurrently: %s", name)
                return False
            raise _classify(e) from e

        logger.info(
            "OpenSearch index created: %s acknowledged=%s",
            name,
            response.get("acknowledged") if isinstance(response, dict) else response,
        )
        return True

    def _scripted_upsert(self, es, document_id: str, document: Dict[str, Any], source: str):
        return es.update(
            index=self._index,
            id=document_id,
            body={
                "scripted_upsert": True,
                "script": {
                    "lang": "painless",
                    "source": source,
                    "params": {"doc": document, "version": document.get(VERSION_FIELD, 0)},
                },
                "upsert": {},
            },
            refresh=self._refresh,
            retry_on_conflict=self._retry_on_conflict,
        )

    def _call(self, operation: Callable[[Any], T], passthrough: tuple = ()) -> T:
        """Run one backend call, normalizing its errors into the index taxonomy."""
        try:
            return operation(self._client.get_client())
        except passthrough:
            raise
        except Exception as e:
            raise _classify(e) from e


def _classify(error: Exception) -> IndexClientError:
    """Map any backend exception to IndexUnavailableError or IndexRejectedError."""
    if isinstance(error, opensearch_exceptions.ConnectionError):
        return IndexUnavailableError(f"OpenSearch unreachable: {error}")
    if isinstance(error, opensearch_exceptions.TransportError):
        status = error.status_code
        if isinstance(status, int) and 400 <= status < 500 and status not in TRANSIENT_STATUSES:
            return IndexRejectedError(f"OpenSearch rejected the request ({status} {error.error})")
        return IndexUnavailableError(f"OpenSearch request failed ({status} {error.error})")
    return IndexUnavailableError(f"{type(error).__name__}: {error}")


def _result(response: Any) -> Any:
    return response.get("result") if isinstance(response, dict) else response
