"""Shared data models for extracted message metadata."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

NO_SUBJECT = "No Subject"
NO_SENDER = "No sender"
INVALID_SENDER = "Invalid sender"
NO_RECIPIENTS = "No recipients"
UNKNOWN_ATTACHMENT_NAME = "Unknown"

CREATION_TIME_UNKNOWN = datetime.min
LIST_SEPARATOR = ";"


class AttachmentInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = UNKNOWN_ATTACHMENT_NAME
    size: int = Field(..., ge=0)


class MessageMetadata(BaseModel):
    """Header-derived fields before sentinel rendering; ``None`` means absent."""

    subject: Optional[str] = None
    sender: Optional[str] = None
    sender_invalid: bool = False
    recipients: List[str] = Field(default_factory=list)
    creation_time: Optional[datetime] = None
    has_attachments: bool = False
    attachments: List[AttachmentInfo] = Field(default_factory=list)

    def rendered_sender(self) -> str:
        if self.sender_invalid:
            return INVALID_SENDER
        return self.sender if self.sender is not None else NO_SENDER

    def rendered_recipients(self) -> str:
        return ", ".join(self.recipients) if self.recipients else NO_RECIPIENTS

    def rendered_subject(self) -> str:
        return self.subject if self.subject is not None else NO_SUBJECT

    def rendered_creation_time(self) -> datetime:
        return self.creation_time if self.creation_time is not None else CREATION_TIME_UNKNOWN


class EmailRecord(BaseModel):
    """One indexed message file. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    file_name: str
    file_hash: str
    file_size: int = Field(..., ge=0)
    has_attachments: bool = False
    sender: str = NO_SENDER
    recipients: str = NO_RECIPIENTS
    subject: str = NO_SUBJECT
    creation_time: datetime = CREATION_TIME_UNKNOWN
    attachment_names: str = ""
    attachment_sizes: str = ""

    @model_validator(mode="after")
    def _check_attachment_lists(self) -> "EmailRecord":
        names = self.attachment_names.split(LIST_SEPARATOR) if self.attachment_names else []
        sizes = self.attachment_sizes.split(LIST_SEPARATOR) if self.attachment_sizes else []
        if len(names) != len(sizes):
            raise ValueError(
                f"attachment_names has {len(names)} segment(s) but attachment_sizes has {len(sizes)}"
            )
        return self

    @classmethod
    def from_metadata(cls, metadata: MessageMetadata, *, file_name: str, file_hash: str, file_size: int) -> "EmailRecord":
        """Render optional metadata into the persisted field set."""
        names = [
            (attachment.name or UNKNOWN_ATTACHMENT_NAME).replace(LIST_SEPARATOR, ",")
            for attachment in metadata.attachments
        ]
        sizes = [str(attachment.size) for attachment in metadata.attachments]
        return cls(
            file_name=file_name,
            file_hash=file_hash,
            file_size=file_size,
            has_attachments=metadata.has_attachments,
            sender=metadata.rendered_sender(),
            recipients=metadata.rendered_recipients(),
            subject=metadata.rendered_subject(),
            creation_time=metadata.rendered_creation_time(),
            attachment_names=LIST_SEPARATOR.join(names),
            attachment_sizes=LIST_SEPARATOR.join(sizes),
        )

    @property
    def attachment_count(self) -> int:
        return len(self.attachment_names.split(LIST_SEPARATOR)) if self.attachment_names else 0

    @property
    def creation_time_text(self) -> str:
        return format_creation_time(self.creation_time)


def format_creation_time(value: datetime) -> str:
    """Format as ``YYYY-MM-DD HH:MM:SS``; zero-padded even for year 1."""
    return value.replace(tzinfo=None, microsecond=0).isoformat(sep=" ")
