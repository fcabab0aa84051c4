# Application Configuration using Pydantic BaseSettings
from pydantic_settings import BaseSettings
from typing import Optional

class AppSettings(BaseSettings):
    # MongoDB
    MONGO_DETAILS: str = "mongodb://mongo:27017"
    DB_NAME: str = "member_trust_db"

    # Observability
    LOG_LEVEL: str = "INFO"
    OTEL_EXPORTER_OTLP_TRACES_ENDPOINT: Optional[str] = None
    OTEL_EXPORTER_OTLP_METRICS_ENDPOINT: Optional[str] = None
    SERVICE_NAME_API: str = "member-trust-api"
    SERVICE_NAME_SCHEDULER: str = "member-trust-scheduler"

    # Outbound HTTP (object store gateway, notification service)
    DEFAULT_HTTP_TIMEOUT: float = 10.0

    # Object storage gateway
    OBJECT_STORE_URL: Optional[str] = None # e.g., http://storage-gateway:8080
    OBJECT_STORE_BUCKET: str = "reunion-documents"
    OBJECT_STORE_TOKEN: Optional[str] = None

    # Notification service (email/SMS fan-out lives behind it)
    NOTIFICATION_SERVICE_URL: Optional[str] = None # e.g., http://notifier:8082/api/v1/notifications
    NOTIFICATION_TIMEOUT_SECONDS: float = 5.0
    FRONTEND_URL: str = "http://localhost:3000"

    # Verification documents
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024
    SIGNED_URL_TTL_SECONDS: int = 300
    DOCUMENT_RETENTION_DAYS: int = 30

    # Contact access
    CONTACT_REQUEST_EXPIRY_DAYS: int = 30
    DISCLOSURE_VALIDITY_DAYS: int = 365

    # Audit
    AUDIT_MAX_PAGE_SIZE: int = 200

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

# Instantiate settings to be imported by other modules
settings = AppSettings()

import logging
logger = logging.getLogger(__name__)
# Avoid logging the settings themselves: OBJECT_STORE_TOKEN is a secret.
logger.info("Application settings module initialized.")
