"""SQLAlchemy ORM model shared by the staging and durable stores."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Integer, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

CREATION_TIME_DEFAULT = "2000-01-01 00:00:00"


class Base(DeclarativeBase):
    pass


class EmailRow(Base):
    __tablename__ = "emails"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    file_name: Mapped[str] = mapped_column(Text, nullable=False)
    file_hash: Mapped[str] = mapped_column(Text, nullable=False)
    file_size: Mapped[Optional[int]] = mapped_column(Integer, default=None)
    has_attachments: Mapped[int] = mapped_column(Integer, nullable=False)
    sender: Mapped[Optional[str]] = mapped_column(Text, default=None)
    recipients: Mapped[Optional[str]] = mapped_column(Text, default=None)
    subject: Mapped[Optional[str]] = mapped_column(Text, default=None)
    creation_time: Mapped[str] = mapped_column(Text, nullable=False, server_default=CREATION_TIME_DEFAULT)
    attachment_names: Mapped[Optional[str]] = mapped_column(Text, default=None)
    attachment_sizes: Mapped[Optional[str]] = mapped_column(Text, default=None)


# Every persisted column except the surrogate key, in insert order.
COPY_COLUMNS = (
    EmailRow.file_name,
    EmailRow.file_size,
    EmailRow.file_hash,
    EmailRow.has_attachments,
    EmailRow.sender,
    EmailRow.recipients,
    EmailRow.subject,
    EmailRow.creation_time,
    EmailRow.attachment_names,
    EmailRow.attachment_sizes,
)
