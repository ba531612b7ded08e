"""SQLAlchemy models for file transfers and their uploaded files."""

import uuid

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Integer, String, false, true
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class Transfer(Base):
    __tablename__ = "transfers"
    __table_args__ = {"extend_existing": True}

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    token = Column(String(128), nullable=False, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    deleted = Column(Boolean, nullable=False, default=False, server_default=false())
    total_size = Column(BigInteger, nullable=False, default=0)
    is_anonymous = Column(Boolean, nullable=False, default=True, server_default=true())
    sender_id = Column(UUID(as_uuid=True), nullable=True, index=True)

    files = relationship("TransferFile", back_populates="transfer", order_by="TransferFile.index")


class TransferFile(Base):
    """One uploaded payload; ``path`` is its key in object storage."""

    __tablename__ = "files"
    __table_args__ = {"extend_existing": True}

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    transfer_id = Column(
        UUID(as_uuid=True),
        ForeignKey("transfers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    filename = Column(String(1024), nullable=False)
    size = Column(BigInteger, nullable=False, default=0)
    path = Column(String(2048), nullable=False)
    index = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    deleted = Column(Boolean, nullable=False, default=False, server_default=false())

    transfer = relationship("Transfer", back_populates="files")


__all__ = ["Transfer", "TransferFile"]
