"""Parsers for message headers, attachments and record assembly."""

from .models import AttachmentInfo, EmailRecord, MessageMetadata
from .parser_email import (
    detect_attachments,
    enumerate_attachments,
    extract_metadata,
    parse_email_file,
    parse_eml_bytes,
    parse_headers,
)

__all__ = [
    "AttachmentInfo",
    "EmailRecord",
    "MessageMetadata",
    "detect_attachments",
    "enumerate_attachments",
    "extract_metadata",
    "parse_email_file",
    "parse_eml_bytes",
    "parse_headers",
]
