"""Resource wiring for the application boundary.

Exports the Resources bundle and the get_resources() factory used as a
request-scoped dependency.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.models.documents import DriveItem
from src.domain.repositories.resource import Resource
from src.domain.services.analytics import VideoAnalyticsEnricher
from src.domain.validators import ModelValidator
from src.infrastructure.analytics import HttpAnalyticsClient
from src.infrastructure.persistence.stores.sql import SqlDocumentStore
from src.infrastructure.settings import Settings
from src.infrastructure.settings import settings as default_settings

DRIVE_ITEMS = "drive_items"


@dataclass
class Resources:
    """All resources bound to a single AsyncSession and app scope."""

    drive_items: Resource[DriveItem]


def get_resources(
    session: AsyncSession,
    app_id: str | None,
    settings: Settings | None = None,
) -> Resources:
    """Construct all resources bound to the given session and app_id.

    Intended for use as a request dependency:

        async def handler(session: AsyncSession = Depends(get_session)) -> ...:
            resources = get_resources(session, app_id=request_app_id)
            result = await resources.drive_items.get_by_id(item_id)
    """
    settings = settings or default_settings
    enricher = VideoAnalyticsEnricher(HttpAnalyticsClient.from_settings(settings))
    return Resources(
        drive_items=Resource(
            SqlDocumentStore(session, DRIVE_ITEMS),
            DriveItem,
            app_id=app_id,
            validator=ModelValidator(DriveItem),
            enricher=enricher,
        ),
    )


__all__ = [
    "DRIVE_ITEMS",
    "Resources",
    "get_resources",
]
