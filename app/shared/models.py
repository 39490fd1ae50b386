from beanie import Document, PydanticObjectId
from bson import ObjectId
from pydantic import Field
from datetime import datetime
from typing import Optional, Type, TypeVar


DocumentT = TypeVar("DocumentT", bound=Document)


class TimestampMixin:
    """Mixin for adding timestamp fields to documents."""

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def update_timestamp(self):
        """Update the updated_at timestamp."""
        self.updated_at = datetime.utcnow()


async def get_document(model: Type[DocumentT], document_id: str) -> Optional[DocumentT]:
    """Fetch a document by its string id, returning None for unknown or malformed ids."""
    if not document_id or not ObjectId.is_valid(document_id):
        return None
    return await model.get(PydanticObjectId(document_id))
