from abc import ABC, abstractmethod
from typing import Any, Dict

CONTACT_ACCESS_REQUESTED = "CONTACT_ACCESS_REQUESTED"


class AbstractNotifier(ABC):
    @abstractmethod
    async def notify(self, recipient_id: str, template_kind: str, payload: Dict[str, Any]) -> bool:
        """
        Delivers a templated notification (email/SMS) to a member.

        Args:
            recipient_id: Member to notify; the delivery service resolves the address.
            template_kind: Template identifier, e.g. CONTACT_ACCESS_REQUESTED.
            payload: Template data.

        Returns:
            True if the notification was accepted for delivery, False if it was skipped.

        Raises:
            NotificationFailure: if delivery was attempted and failed.
        """
        pass
