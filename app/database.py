"""MongoDB database connection manager."""

from contextlib import asynccontextmanager
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorClientSession
from pymongo.errors import PyMongoError
from beanie import Document, PydanticObjectId, init_beanie
from beanie.operators import In
from typing import AsyncIterator, List, Optional, Sequence

from app.config import settings
from app.core.logging import logger


def document_models() -> List[type]:
    """All Beanie document models registered with the database."""
    from app.features.auth.models import User, WalletNonce
    from app.features.patients.models import PatientProfile
    from app.features.doctors.models import DoctorProfile
    from app.features.connections.models import Connection
    from app.features.health_data.models import HealthReading, VitalSign
    from app.features.medical_records.models import MedicalRecord
    from app.features.appointments.models import Appointment
    from app.features.notifications.models import Notification

    return [
        User,
        WalletNonce,
        PatientProfile,
        DoctorProfile,
        Connection,
        HealthReading,
        VitalSign,
        MedicalRecord,
        Appointment,
        Notification,
    ]


class Database:
    """MongoDB database connection manager."""

    client: Optional[AsyncIOMotorClient] = None

    @classmethod
    async def connect_db(cls):
        """Connect to MongoDB and initialize Beanie."""
        cls.client = AsyncIOMotorClient(settings.MONGODB_URL)

        await init_beanie(
            database=cls.client[settings.DATABASE_NAME],
            document_models=document_models(),
        )

        logger.info(f"Connected to MongoDB database: {settings.DATABASE_NAME}")

    @classmethod
    async def close_db(cls):
        """Close MongoDB connection."""
        if cls.client:
            cls.client.close()
            cls.client = None
            logger.info("Closed MongoDB connection")

    @classmethod
    @asynccontextmanager
    async def transaction(cls) -> AsyncIterator[Optional[AsyncIOMotorClientSession]]:
        """
        Run a block of writes inside one multi-document transaction.

        Yields the session to pass to Beanie calls, or None when transactions
        are disabled (standalone MongoDB) or no client is connected.
        """
        if cls.client is None or not settings.MONGODB_TRANSACTIONS:
            yield None
            return

        async with await cls.client.start_session() as session:
            async with session.start_transaction():
                yield session

    @classmethod
    async def insert_all(cls, documents: Sequence[Document]) -> None:
        """
        Insert documents of one model all or nothing.

        Runs inside a transaction when transactions are enabled. Otherwise the
        documents already written are deleted again when a later insert fails.
        """
        if not documents:
            return

        model = type(documents[0])
        for document in documents:
            if document.id is None:
                document.id = PydanticObjectId()

        async with cls.transaction() as session:
            try:
                for document in documents:
                    await document.insert(session=session)
            except PyMongoError:
                if session is None:
                    ids = [document.id for document in documents]
                    await model.find(In(model.id, ids)).delete()
                    logger.warning(f"⚠️ Rolled back partial insert of {len(ids)} {model.__name__} documents")
                raise
