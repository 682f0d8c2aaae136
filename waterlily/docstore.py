"""
Document store client.

Collection-scoped access to schema-flexible JSON documents kept in the
``documents`` table.  A collection is just a name; documents in it get a
store-assigned identifier and a creation timestamp, and can be read by id,
queried by equality on a top-level field, patched, and deleted.  Every write
commits immediately, so a document is visible to other sessions as soon as
the call returns.
"""

from __future__ import annotations

import logging
import secrets
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Document

logger = logging.getLogger(__name__)

SURVEYS = "surveys"
RESPONSES = "responses"


class DocumentStoreError(Exception):
    """The underlying database failed while serving a store call."""


class DocumentNotFoundError(DocumentStoreError):
    def __init__(self, collection: str, doc_id: str) -> None:
        super().__init__(f"No document {collection}/{doc_id}")
        self.collection = collection
        self.doc_id = doc_id


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops the offset on the way back)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_document_id() -> str:
    """Return a random 20 character URL-safe identifier."""
    return secrets.token_urlsafe(15)


@dataclass
class DocumentSnapshot:
    id: str
    data: Dict[str, Any]
    create_time: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Document body with ``id`` and ``createdAt`` merged in."""
        return {"id": self.id, **self.data, "createdAt": self.create_time}


def _snapshot(row: Document) -> DocumentSnapshot:
    return DocumentSnapshot(
        id=row.doc_id, data=dict(row.data or {}), create_time=as_utc(row.created_at)
    )


def _field_equals(field: str, value: Any):
    element = Document.data[field]
    if isinstance(value, bool):
        return element.as_boolean() == value
    if isinstance(value, int):
        return element.as_integer() == value
    if isinstance(value, float):
        return element.as_float() == value
    return element.as_string() == str(value)


class CollectionRef:
    """Operations on one named collection."""

    def __init__(self, session: AsyncSession, name: str) -> None:
        self.session = session
        self.name = name

    @asynccontextmanager
    async def _guard(self, action: str) -> AsyncIterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error("Document store failed to %s in '%s': %s", action, self.name, exc)
            raise DocumentStoreError(f"Failed to {action} in '{self.name}'") from exc

    async def _row(self, doc_id: str) -> Optional[Document]:
        result = await self.session.execute(
            select(Document).where(
                Document.collection == self.name, Document.doc_id == doc_id
            )
        )
        return result.scalar_one_or_none()

    async def add(self, data: Dict[str, Any], created_at: Optional[datetime] = None) -> str:
        """Insert ``data`` as a new document and return its identifier.

        ``created_at`` defaults to the current server time.
        """
        doc_id = new_document_id()
        async with self._guard("add a document"):
            self.session.add(
                Document(
                    collection=self.name,
                    doc_id=doc_id,
                    data=data,
                    created_at=as_utc(created_at) if created_at else utcnow(),
                )
            )
            await self.session.commit()
        logger.debug("Added %s/%s", self.name, doc_id)
        return doc_id

    async def get(self, doc_id: str) -> Optional[DocumentSnapshot]:
        async with self._guard("read a document"):
            row = await self._row(doc_id)
        return _snapshot(row) if row is not None else None

    async def where(
        self, field: str, value: Any, newest_first: bool = True
    ) -> List[DocumentSnapshot]:
        """All documents whose top-level ``field`` equals ``value``, ordered by creation time."""
        if newest_first:
            ordering = (Document.created_at.desc(), Document.seq.desc())
        else:
            ordering = (Document.created_at.asc(), Document.seq.asc())
        async with self._guard("query documents"):
            result = await self.session.execute(
                select(Document)
                .where(Document.collection == self.name, _field_equals(field, value))
                .order_by(*ordering)
            )
            rows = result.scalars().all()
        return [_snapshot(row) for row in rows]

    async def count(self, field: str, value: Any) -> int:
        """Number of documents whose top-level ``field`` equals ``value``."""
        async with self._guard("count documents"):
            result = await self.session.execute(
                select(func.count())
                .select_from(Document)
                .where(Document.collection == self.name, _field_equals(field, value))
            )
            return result.scalar_one()

    async def update(self, doc_id: str, fields: Dict[str, Any]) -> None:
        """Merge ``fields`` into an existing document.

        Raises:
            DocumentNotFoundError: if the document does not exist.
        """
        async with self._guard("update a document"):
            row = await self._row(doc_id)
            if row is None:
                raise DocumentNotFoundError(self.name, doc_id)
            # Assign a new dict so the JSON column is flagged as changed
            row.data = {**(row.data or {}), **fields}
            await self.session.commit()
        logger.debug("Updated %s/%s fields=%s", self.name, doc_id, sorted(fields))

    async def delete(self, doc_id: str) -> None:
        """Delete by id; deleting a missing document is not an error."""
        async with self._guard("delete a document"):
            await self.session.execute(
                delete(Document).where(
                    Document.collection == self.name, Document.doc_id == doc_id
                )
            )
            await self.session.commit()
        logger.debug("Deleted %s/%s", self.name, doc_id)


class DocumentStore:
    """Entry point: ``store.collection("surveys").get(survey_id)``."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def collection(self, name: str) -> CollectionRef:
        return CollectionRef(self.session, name)
