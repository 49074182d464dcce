from opensearchpy import OpenSearch
from abc import ABC, abstractmethod


class ABCClient(ABC):
    """Abstract base class for factories of the shared OpenSearch connection."""

    @abstractmethod
    def get_client(self) -> OpenSearch:
        """Return the long-lived OpenSearch client, creating it on first use."""
        raise NotImplementedError
