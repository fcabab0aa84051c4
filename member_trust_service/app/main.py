# FastAPI Application Entry Point
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

# Configuration and Observability
from member_trust_service.app.config import settings
from member_trust_service.app.observability import setup_opentelemetry, logger

# Initialize OpenTelemetry
setup_opentelemetry(service_name=settings.SERVICE_NAME_API)

# Import instrumentors after OTel SDK is initialized
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

# Database connection
from member_trust_service.infrastructure.database.connection import connect_to_mongo, close_mongo_connection, get_db
from member_trust_service.infrastructure.database.indexes import ensure_indexes

# API Routers
from member_trust_service.app.api.v1.endpoints import health as health_router
from member_trust_service.app.api.v1.endpoints import verification as verification_router
from member_trust_service.app.api.v1.endpoints import contact_access as contact_access_router
from member_trust_service.app.api.v1.endpoints import audit as audit_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("FastAPI application startup...")
    try:
        app.state.http_client = httpx.AsyncClient(timeout=settings.DEFAULT_HTTP_TIMEOUT)
        HTTPXClientInstrumentor().instrument()
        logger.info(f"HTTPX AsyncClient initialized with timeout {settings.DEFAULT_HTTP_TIMEOUT} and instrumented.")

        await connect_to_mongo()
        async for db in get_db():
            await ensure_indexes(db)
            break
        logger.info("MongoDB connection established and indexes ensured.")
    except Exception as e:
        logger.error(f"Failed during startup: {e}", exc_info=True)

    yield

    logger.info("FastAPI application shutdown...")
    if getattr(app.state, "http_client", None):
        await app.state.http_client.aclose()
        logger.info("HTTPX AsyncClient closed.")
    close_mongo_connection()


# --- FastAPI Application Instance ---
app = FastAPI(
    title="Member Trust Service",
    description="Identity verification review, consent-gated contact disclosure and audited approvals for the alumni portal.",
    version="1.0.0",
    lifespan=lifespan,
)

FastAPIInstrumentor.instrument_app(app)
logger.info("FastAPI instrumentation complete.")

# Include API Routers
app.include_router(health_router.router)
app.include_router(verification_router.router, prefix="/api/v1/verification-documents", tags=["Verification Documents"])
app.include_router(contact_access_router.router, prefix="/api/v1/contact-access", tags=["Contact Access"])
app.include_router(audit_router.router, prefix="/api/v1/audit", tags=["Audit"])

logger.info("API routers included. Application setup complete.")

# To run: uvicorn member_trust_service.app.main:app --port 8000
