from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.sql import func  # default timestamps
from .database import Base


# One row per document; the collection name scopes the document id.
class Document(Base):
    __tablename__ = "documents"
    __table_args__ = (
        UniqueConstraint("collection", "doc_id", name="uq_documents_collection_doc_id"),
    )

    # Insertion order, used as the tie-breaker when created_at values collide
    seq = Column(Integer, primary_key=True, autoincrement=True)
    collection = Column(String(64), nullable=False, index=True)  # 'surveys', 'responses'
    doc_id = Column(String(64), nullable=False, index=True)
    data = Column(JSON, nullable=False, default=dict)  # schema-flexible document body
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(
        DateTime(timezone=True), onupdate=func.now(), server_default=func.now()
    )


# Accounts managed by the identity provider
class User(Base):
    __tablename__ = "users"

    uid = Column(String(64), primary_key=True)
    email = Column(String(320), unique=True, index=True, nullable=False)
    display_name = Column(String(200), nullable=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
