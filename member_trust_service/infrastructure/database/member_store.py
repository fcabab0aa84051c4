# Operations for the members collection (owned by the account service; read here, status written on activation)
import logging
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

logger = logging.getLogger(__name__)
MEMBERS_COLLECTION = "members"


async def get_member_document(db: AsyncIOMotorDatabase, member_id: str) -> Optional[Dict[str, Any]]:
    return await db[MEMBERS_COLLECTION].find_one({"id": member_id})

async def set_member_status(db: AsyncIOMotorDatabase, member_id: str, status: str) -> bool:
    result = await db[MEMBERS_COLLECTION].update_one({"id": member_id}, {"$set": {"status": status}})
    if result.matched_count == 0:
        logger.warning(f"Member {member_id} not found while setting status to {status}.")
        return False
    logger.info(f"Member {member_id} status set to {status}.")
    return True
