from abc import ABC, abstractmethod
from typing import Optional

from member_trust_service.app.models.contact_access_db import MemberContact


class AbstractContactDirectory(ABC):
    @abstractmethod
    async def get_member(self, member_id: str) -> Optional[MemberContact]:
        """
        Looks up a member's profile and disclosable contact fields.

        Returns:
            The member's contact view, or None if no such member exists.
        """
        pass
