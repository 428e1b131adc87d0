"""Header and attachment extraction for RFC 5322 message files."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from email import policy
from email.errors import HeaderParseError
from email.header import decode_header, make_header
from email.message import EmailMessage, Message
from email.parser import BytesParser, HeaderParser
from email.utils import getaddresses, parsedate_to_datetime
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional, Sequence, Tuple

from emlvault.parsers.models import (
    UNKNOWN_ATTACHMENT_NAME,
    AttachmentInfo,
    EmailRecord,
    MessageMetadata,
)
from emlvault.utils.error_handling import MessageParseError
from emlvault.utils.hash import fingerprint_file

HeaderList = List[Tuple[str, str]]

HEADER_BLOCK_LIMIT = 1024 * 1024
RECIPIENT_HEADERS = ("To", "Cc", "Bcc")


class AddressParseError(ValueError):
    """Raised when an address header yields no usable mailbox."""


def _unfold(value: str) -> str:
    return value.replace("\r", "").replace("\n", "")


def _clean_text(value: str) -> str:
    """Replace surrogate-escaped 8-bit bytes with their UTF-8 reading."""
    try:
        return value.encode("utf-8", "surrogateescape").decode("utf-8", "replace")
    except UnicodeError:
        return value.encode("utf-8", "replace").decode("utf-8")


def _read_header_block(handle: BinaryIO, limit: int = HEADER_BLOCK_LIMIT) -> bytes:
    """Read up to the blank line that ends the header section."""
    lines: list[bytes] = []
    total = 0
    while total < limit:
        line = handle.readline(limit - total)
        if not line or not line.rstrip(b"\r\n"):
            break
        lines.append(line)
        total += len(line)
    return b"".join(lines)


def parse_headers(handle: BinaryIO) -> HeaderList:
    """Parse only the header section of a message into ordered name/value pairs.

    Repeated headers are kept in file order. Raises ``MessageParseError`` when
    the stream has no header section at all.
    """
    block = _read_header_block(handle)
    # Raw 8-bit header text is read as UTF-8; undecodable bytes become U+FFFD.
    message = HeaderParser(policy=policy.default).parsestr(block.decode("utf-8", "replace"))
    headers = [(name, _unfold(str(value))) for name, value in message.raw_items()]
    if not headers:
        raise MessageParseError("Failed to parse message headers: no header section found")
    return headers


def header_values(headers: Sequence[Tuple[str, str]], name: str) -> list[str]:
    wanted = name.lower()
    return [value for field, value in headers if field.lower() == wanted]


def first_header(headers: Sequence[Tuple[str, str]], name: str) -> Optional[str]:
    values = header_values(headers, name)
    return values[0] if values else None


def _decode_text(value: str) -> str:
    try:
        return _clean_text(str(make_header(decode_header(value))))
    except (HeaderParseError, LookupError, UnicodeError, ValueError):
        return _clean_text(value)


def parse_mailboxes(value: str) -> list[str]:
    """Return the bare addresses in an address header.

    Raises ``AddressParseError`` when nothing in the header parses as a mailbox.
    """
    try:
        pairs = getaddresses([value])
    except (HeaderParseError, IndexError, TypeError, ValueError) as exc:
        raise AddressParseError(f"Unparseable address list: {value!r}") from exc
    addresses = [address.strip() for _, address in pairs if address and address.strip()]
    if not addresses:
        raise AddressParseError(f"No mailbox found in {value!r}")
    return addresses


def extract_subject(headers: HeaderList) -> Optional[str]:
    # Later Subject headers win over earlier ones.
    subjects = header_values(headers, "Subject")
    if not subjects:
        return None
    return _decode_text(subjects[-1]).strip()


def extract_sender(headers: HeaderList) -> Tuple[Optional[str], bool]:
    """Return ``(formatted sender, invalid)`` for the From header."""
    value = first_header(headers, "From")
    if value is None:
        return None, False
    try:
        mailboxes = parse_mailboxes(value)
    except AddressParseError:
        return None, True
    return ", ".join(f"<{address}>" for address in mailboxes), False


def extract_recipients(headers: HeaderList) -> list[str]:
    """Union To/Cc/Bcc mailboxes, de-duplicated case-insensitively and sorted."""
    seen: dict[str, str] = {}
    for name in RECIPIENT_HEADERS:
        value = first_header(headers, name)
        if value is None:
            continue
        try:
            mailboxes = parse_mailboxes(value)
        except AddressParseError:
            continue
        for address in mailboxes:
            formatted = f"<{address}>"
            seen.setdefault(formatted.lower(), formatted)
    return sorted(seen.values())


def parse_creation_time(value: Optional[str]) -> Optional[datetime]:
    """Parse a Date header into a naive UTC datetime, or ``None``."""
    if not value or not value.strip():
        return None
    try:
        parsed = parsedate_to_datetime(value.strip())
    except (IndexError, TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc).replace(tzinfo=None)
    except (OverflowError, ValueError):
        return None


def detect_attachments(headers: HeaderList) -> bool:
    """Cheap header-only signal deciding whether the body is worth parsing."""
    has_attach = first_header(headers, "X-MS-Has-Attach")
    if has_attach is not None and has_attach.strip().lower() == "yes":
        return True
    disposition = first_header(headers, "Content-Disposition") or ""
    if "attachment" in disposition.lower():
        return True
    content_type = first_header(headers, "Content-Type") or ""
    return "multipart/mixed" in content_type.lower()


def extract_metadata(headers: HeaderList) -> MessageMetadata:
    sender, sender_invalid = extract_sender(headers)
    return MessageMetadata(
        subject=extract_subject(headers),
        sender=sender,
        sender_invalid=sender_invalid,
        recipients=extract_recipients(headers),
        creation_time=parse_creation_time(first_header(headers, "Date")),
        has_attachments=detect_attachments(headers),
    )


def _iter_mime_parts(entity: Message) -> Iterator[Message]:
    # Attached message/rfc822 entities are not descended into.
    if entity.get_content_maintype() == "multipart":
        if entity.is_multipart():
            for part in entity.get_payload():
                yield from _iter_mime_parts(part)
    elif not entity.is_multipart():
        yield entity


def _decoded_size(part: Message) -> int:
    payload = part.get_payload(decode=True)
    return len(payload) if payload else 0


def _parse_attachments(message: EmailMessage | Message) -> list[AttachmentInfo]:
    attachments: list[AttachmentInfo] = []
    for part in _iter_mime_parts(message):
        if part.get_content_disposition() != "attachment":
            continue
        attachments.append(
            AttachmentInfo(
                name=_clean_text(part.get_filename() or UNKNOWN_ATTACHMENT_NAME),
                size=_decoded_size(part),
            )
        )
    return attachments


def enumerate_attachments(handle: BinaryIO) -> list[AttachmentInfo]:
    """Parse the full message from ``handle`` and list its attachment parts."""
    message = BytesParser(policy=policy.default).parse(handle)
    return _parse_attachments(message)


def parse_eml_bytes(data: bytes) -> MessageMetadata:
    """Extract metadata from an in-memory message."""
    handle = BytesIO(data)
    metadata = extract_metadata(parse_headers(handle))
    if metadata.has_attachments:
        handle.seek(0)
        metadata = metadata.model_copy(update={"attachments": enumerate_attachments(handle)})
    return metadata


def parse_email_file(path: Path) -> EmailRecord:
    """Fingerprint and parse one message file into an ``EmailRecord``.

    Raises on unreadable or headerless files; individual fields never raise.
    """
    file_hash = fingerprint_file(path)
    with path.open("rb") as handle:
        file_size = os.fstat(handle.fileno()).st_size
        metadata = extract_metadata(parse_headers(handle))
        if metadata.has_attachments:
            handle.seek(0)
            metadata = metadata.model_copy(update={"attachments": enumerate_attachments(handle)})
    return EmailRecord.from_metadata(
        metadata,
        file_name=path.name,
        file_hash=file_hash,
        file_size=file_size,
    )
