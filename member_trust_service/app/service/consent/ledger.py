import datetime
import logging
from typing import Iterable, List, Optional, Set

from motor.motor_asyncio import AsyncIOMotorDatabase

from member_trust_service.app.config import settings
from member_trust_service.app.models.contact_access_db import (
    AccessMethod,
    AccessType,
    ContactAccessGrantDB,
    ContactType,
)
from member_trust_service.infrastructure.database import contact_access_grant_store as grant_store

logger = logging.getLogger(__name__)


class AccessLedger:
    """
    Append-only record of contact-field disclosures.

    Validity is evaluated when reading: a grant authorizes its field for
    ``validity_days`` after it was written and then simply stops counting.
    """

    def __init__(self, db: AsyncIOMotorDatabase, validity_days: Optional[int] = None):
        self.db = db
        self.validity_days = validity_days if validity_days is not None else settings.DISCLOSURE_VALIDITY_DAYS

    async def record_grant(
        self,
        viewer_id: str,
        subject_id: str,
        contact_type: ContactType,
        request_id: Optional[str],
        granted_by: str,
        granted_at: Optional[datetime.datetime] = None,
    ) -> bool:
        grant = ContactAccessGrantDB(
            viewer_id=viewer_id,
            subject_id=subject_id,
            contact_type=contact_type,
            access_type=AccessType.DIRECT_VIEW,
            access_method=AccessMethod.WEB_VIEW,
            request_id=request_id,
            granted_by=granted_by,
        )
        if granted_at is not None:
            grant.created_at = granted_at
        return await grant_store.upsert_grant(self.db, grant)

    async def active_grants(self, viewer_id: str, subject_id: str, now: datetime.datetime) -> List[ContactAccessGrantDB]:
        window_start = now - datetime.timedelta(days=self.validity_days)
        return await grant_store.list_grants_since(self.db, viewer_id, subject_id, window_start)

    async def granted_fields(self, viewer_id: str, subject_id: str, now: datetime.datetime) -> Set[ContactType]:
        grants = await self.active_grants(viewer_id, subject_id, now)
        return {ContactType(grant.contact_type) for grant in grants}

    async def list_for_viewer(self, viewer_id: str) -> List[ContactAccessGrantDB]:
        return await grant_store.list_grants_for_viewer(self.db, viewer_id)

    async def list_for_subject(self, subject_id: str) -> List[ContactAccessGrantDB]:
        return await grant_store.list_grants_for_subject(self.db, subject_id)

    async def discard_for_request(self, request_id: str, keep_contact_types: Optional[Iterable[ContactType]] = None) -> int:
        return await grant_store.delete_grants_for_request(self.db, request_id, keep_contact_types)
