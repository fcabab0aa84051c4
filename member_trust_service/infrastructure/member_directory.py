# Mongo-backed adapters over the members collection
import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from member_trust_service.app.models.contact_access_db import MemberContact
from member_trust_service.app.service.interfaces.account_client import AbstractAccountClient
from member_trust_service.app.service.interfaces.contact_directory import AbstractContactDirectory
from member_trust_service.infrastructure.database import member_store

logger = logging.getLogger(__name__)

ACTIVE_MEMBER_STATUS = "ACTIVE"


class MongoContactDirectory(AbstractContactDirectory):
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def get_member(self, member_id: str) -> Optional[MemberContact]:
        doc = await member_store.get_member_document(self.db, member_id)
        if doc is None:
            return None
        return MemberContact(
            member_id=doc["id"],
            display_name=doc.get("display_name"),
            graduation_year=doc.get("graduation_year"),
            email=doc.get("email"),
            phone_number=doc.get("phone_number"),
            address=doc.get("address"),
        )


class MongoAccountClient(AbstractAccountClient):
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def activate(self, member_id: str) -> None:
        if not await member_store.set_member_status(self.db, member_id, ACTIVE_MEMBER_STATUS):
            logger.warning(f"Activation requested for unknown member {member_id}.")
