# Client for the external notification (email/SMS) service
import logging
from typing import Any, Dict, Optional

import httpx
from fastapi import Depends

from member_trust_service.app.config import settings
from member_trust_service.app.dependencies.http_client import get_http_client
from member_trust_service.app.service.exceptions import NotificationFailure
from member_trust_service.app.service.interfaces.notifier import AbstractNotifier

logger = logging.getLogger(__name__)


class HttpNotifier(AbstractNotifier):
    def __init__(self, http_client: httpx.AsyncClient, service_url: Optional[str] = None):
        self.http_client = http_client
        self.service_url = service_url if service_url is not None else settings.NOTIFICATION_SERVICE_URL

    async def notify(self, recipient_id: str, template_kind: str, payload: Dict[str, Any]) -> bool:
        if not self.service_url:
            logger.warning(f"NOTIFICATION_SERVICE_URL not set. Skipping {template_kind} notification to {recipient_id}.")
            return False

        request_url = f"{self.service_url.rstrip('/')}/notifications"
        body = {
            "recipient_id": recipient_id,
            "template": template_kind,
            "payload": payload,
        }
        logger.debug(f"Sending {template_kind} notification to {recipient_id} via {request_url}")
        try:
            response = await self.http_client.post(request_url, json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error calling notification service: {e.response.status_code} - {e.response.text}")
            raise NotificationFailure() from e
        except httpx.RequestError as e:
            logger.error(f"Request error calling notification service: {e}")
            raise NotificationFailure() from e
        logger.info(f"{template_kind} notification accepted for {recipient_id}.")
        return True


# DI provider for HttpNotifier
def get_notifier(http_client: httpx.AsyncClient = Depends(get_http_client)) -> AbstractNotifier:
    return HttpNotifier(http_client=http_client)
