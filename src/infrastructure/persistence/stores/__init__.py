"""DocumentStore adapters.

SqlDocumentStore is the production adapter; InMemoryDocumentStore backs
tests, fixtures and local seeding.
"""

from .memory import InMemoryDocumentStore
from .sql import SqlDocumentStore

__all__ = [
    "InMemoryDocumentStore",
    "SqlDocumentStore",
]
