"""Domain repository layer.

DocumentStore is the abstract persistence capability; Resource is the generic
repository built on top of it.  Concrete stores live in
src/infrastructure/persistence/stores/ and are wired at the application
boundary via dependency injection.
"""

from .resource import Resource
from .store import DocumentStore, StoreError

__all__ = [
    "DocumentStore",
    "Resource",
    "StoreError",
]
