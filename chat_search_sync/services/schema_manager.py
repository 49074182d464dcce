import logging

from chat_search_sync.errors import IndexInitializationError
from chat_search_sync.opensearch.abstract_classes import ABCIndexClient
from chat_search_sync.opensearch.mapping import ChatMessageMapping

logger = logging.getLogger(__name__)


class IndexSchemaManager:
    """
    Makes sure the target index exists with the chat message mapping.

    Safe to call on every cold start: an existing index is left untouched, and
    creation tolerates another worker winning the race.
    """

    def __init__(self, index_client: ABCIndexClient, index_name: str, mapping: ChatMessageMapping):
        self._index_client = index_client
        self._index_name = index_name
        self._mapping = mapping

    def ensure_index(self) -> bool:
        """
        Ensure the index exists.

        Returns:
            bool: True when the index was created by this call.

        Raises:
            IndexInitializationError: the index could not be ensured; the worker
                must not process batches.
        """
        try:
            created = self._index_client.ensure_index(self._index_name, self._mapping.create_configurations())
        except Exception as e:
            logger.error("Failed to ensure OpenSearch index %s: %s", self._index_name, e, exc_info=True)
            raise IndexInitializationError(f"cannot ensure index {self._index_name!r}: {e}") from e

        if created:
            logger.info("Index %s created with chat message mapping", self._index_name)
        return created
