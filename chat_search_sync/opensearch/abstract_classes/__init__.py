from .ABC_client import ABCClient
from .abc_index_client import ABCIndexClient

__all__ = [
    "ABCClient",
    "ABCIndexClient",
]
