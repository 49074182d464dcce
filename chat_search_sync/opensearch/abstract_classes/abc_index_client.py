from abc import ABC, abstractmethod
from typing import Any, Dict


class ABCIndexClient(ABC):
    """
    Capability interface over the search backend.

    Every operation must be safe to repeat with the same arguments, because
    the change stream may redeliver a batch. Implementations report failures
    only as ``IndexUnavailableError`` (transient) or ``IndexRejectedError``
    (permanent) so callers never inspect backend-specific errors.

    Documents carry a ``source_version`` field (epoch ms of the snapshot they
    were shaped from). Writes are ordered by it:

    - ``upsert_full`` replaces the stored document only when it is strictly
      newer, otherwise it only fills in fields the stored document lacks;
    - ``merge_upsert`` merges when the patch is at least as new, otherwise it
      only fills in missing fields.
    """

    @abstractmethod
    def upsert_full(self, document_id: str, document: Dict[str, Any]) -> None:
        """
        Create the document, or replace the stored one.

        Args:
            document_id (str): id of the document in the index.
            document (dict): the complete document.
        """
        raise NotImplementedError

    @abstractmethod
    def merge_upsert(self, document_id: str, partial_document: Dict[str, Any]) -> None:
        """
        Merge fields into the stored document, creating it if absent.

        Args:
            document_id (str): id of the document in the index.
            partial_document (dict): the fields to set.
        """
        raise NotImplementedError

    @abstractmethod
    def delete(self, document_id: str) -> None:
        """
        Remove the document. Deleting a missing document succeeds.

        Args:
            document_id (str): id of the document in the index.
        """
        raise NotImplementedError

    @abstractmethod
    def ensure_index(self, name: str, configurations: Dict[str, Any]) -> bool:
        """
        Create the index with the given settings and mappings unless it exists.

        Args:
            name (str): the index name.
            configurations (dict): the index body (``settings`` and ``mappings``).

        Returns:
            bool: True when this call created the index.
        """
        raise NotImplementedError
