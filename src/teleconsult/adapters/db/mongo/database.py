"""MongoDB client creation and Beanie initialisation."""

import logging

import certifi
from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from teleconsult.core.config import DatabaseSettings

from .models.availability_m import DoctorAvailabilityMongo
from .models.consultation_request_m import ConsultationRequestMongo

logger = logging.getLogger("teleconsult.db")

DOCUMENT_MODELS = [DoctorAvailabilityMongo, ConsultationRequestMongo]


def create_motor_client(settings: DatabaseSettings) -> AsyncIOMotorClient:
    """Create a Motor client; TLS with the certifi bundle only for Atlas SRV URIs."""
    if settings.uri.startswith("mongodb+srv://"):
        return AsyncIOMotorClient(
            settings.uri,
            serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
            tls=True,
            tlsCAFile=certifi.where(),
            tlsAllowInvalidCertificates=False,
        )
    # Local/standard connection (no TLS)
    return AsyncIOMotorClient(
        settings.uri,
        serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
    )


async def init_mongo(settings: DatabaseSettings) -> AsyncIOMotorClient:
    """Connect and register the document models. Returns the client so callers can close it."""
    client = create_motor_client(settings)
    await init_beanie(database=client[settings.db_name], document_models=DOCUMENT_MODELS)
    logger.info(f"Database connection established (db={settings.db_name})")
    return client


async def ping(client: AsyncIOMotorClient) -> bool:
    """Round-trip to the server; raises on failure."""
    await client.admin.command("ping")
    return True
