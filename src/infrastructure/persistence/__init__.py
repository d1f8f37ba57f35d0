"""Persistence package.

Importing this package registers every ORM mapper with Base.metadata
(required for Alembic autogenerate and SQLAlchemy mapper configuration)
and exports the store adapters and the DI factory.
"""

from src.infrastructure.persistence.models import *  # noqa: F401, F403
from src.infrastructure.persistence.models import __all__ as _orm_all
from src.infrastructure.persistence.resources import Resources, get_resources
from src.infrastructure.persistence.stores import InMemoryDocumentStore, SqlDocumentStore

__all__ = _orm_all + [
    "InMemoryDocumentStore",
    "SqlDocumentStore",
    "Resources",
    "get_resources",
]
