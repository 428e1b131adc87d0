"""
Dataset generator for emlvault ingestion testing.

Usage:
    python scripts/generate_test_dataset.py \
        --output-root tests/data \
        --email-count 240 \
        --seed 123

Outputs:
- <output>/emails/<folder>/*.eml (nested folders, recursive discovery)
- summary.json (basic manifest)

The generator purposely introduces:
- Overlapping To/Cc/Bcc recipients with mixed case
- Missing / malformed From and Date headers
- Repeated Subject headers
- multipart/mixed messages with and without real attachments
- Optional corrupt (headerless) files and non-.eml noise files
"""

from __future__ import annotations

import argparse
import json
import os
import random
import shutil
import string
from datetime import datetime, timedelta, timezone
from email.message import EmailMessage
from email.utils import format_datetime, make_msgid
from pathlib import Path
from typing import Any, Dict, List, Tuple

ATTACHMENT_TYPES: List[Tuple[str, str]] = [
    ("text/csv", "csv"),
    ("text/plain", "txt"),
    ("application/pdf", "pdf"),
    ("application/zip", "zip"),
    ("image/png", "png"),
]

FOLDERS = ["inbox", "sent", "archive/2024", "archive/2025"]


def random_datetime(rng: random.Random, days_back: int = 365) -> datetime:
    base = datetime(2025, 6, 1, tzinfo=timezone.utc) - timedelta(days=rng.randint(0, days_back))
    return base - timedelta(minutes=rng.randint(0, 1440))


def random_domain(rng: random.Random) -> str:
    tlds = ["com", "net", "org", "io"]
    name = "".join(rng.choice(string.ascii_lowercase) for _ in range(8))
    return f"{name}.{rng.choice(tlds)}"


def generate_attachment(rng: random.Random, kind: Tuple[str, str]) -> Tuple[str, bytes]:
    mime, ext = kind
    if mime.startswith("text/"):
        payload = "\n".join(f"row,{rng.randint(1, 1_000_000)}" for _ in range(rng.randint(1, 20))).encode("utf-8")
    else:
        payload = os.urandom(rng.randint(64, 4096))
    return f"attachment_{rng.randint(1000, 9999)}.{ext}", payload


def build_email(rng: random.Random, index: int) -> Tuple[bytes, Dict[str, Any]]:
    msg = EmailMessage()
    shared = f"team{rng.randint(1, 5)}@example.com"
    # EmailMessage allows one Subject/Date, so odd headers are prepended raw.
    extra_headers: List[str] = []

    if rng.random() < 0.1:
        extra_headers.append(f"Subject: Draft #{index}")
    msg["Subject"] = f"Report {index:04d}"
    if rng.random() > 0.05:
        msg["From"] = f"sender{rng.randint(1, 50)}@{random_domain(rng)}"
    msg["To"] = f"user{rng.randint(1, 200)}@example.com, {shared}"
    if rng.random() < 0.4:
        msg["Cc"] = shared.upper()
    if rng.random() < 0.2:
        msg["Bcc"] = f"audit@example.com, {shared}"
    if rng.random() > 0.05:
        msg["Date"] = format_datetime(random_datetime(rng))
    else:
        extra_headers.append("Date: not a date")
    msg["Message-ID"] = make_msgid(domain="example.com")
    msg.set_content(f"Message body for report {index}.\n")

    attachments: List[Dict[str, Any]] = []
    for _ in range(rng.choice([0, 0, 1, 2])):
        kind = rng.choice(ATTACHMENT_TYPES)
        name, payload = generate_attachment(rng, kind)
        maintype, subtype = kind[0].split("/", 1)
        if maintype == "text":
            msg.add_attachment(payload.decode("utf-8"), subtype=subtype, filename=name)
        else:
            msg.add_attachment(payload, maintype=maintype, subtype=subtype, filename=name)
        attachments.append({"name": name, "size": len(payload)})

    prefix = "".join(f"{header}\n" for header in extra_headers).encode("ascii")
    return prefix + msg.as_bytes(), {"subject": msg["Subject"], "attachments": attachments}


def create_dataset(
    output_root: Path,
    email_count: int,
    seed: int,
    corrupt_count: int = 0,
) -> Dict[str, Any]:
    rng = random.Random(seed)

    emails_dir = output_root / "emails"
    if emails_dir.exists():
        shutil.rmtree(emails_dir)
    for folder in FOLDERS:
        (emails_dir / folder).mkdir(parents=True, exist_ok=True)

    summary_entries = []
    for idx in range(email_count):
        data, details = build_email(rng, idx)
        file_path = emails_dir / FOLDERS[idx % len(FOLDERS)] / f"email_{idx:04d}.eml"
        file_path.write_bytes(data)
        summary_entries.append({"file": file_path.name, **details})

    for idx in range(corrupt_count):
        corrupt_path = emails_dir / FOLDERS[idx % len(FOLDERS)] / f"corrupt_{idx:04d}.eml"
        corrupt_path.write_bytes(b"\x00\x01\x02" + os.urandom(64).replace(b":", b"") + b"\n")

    (emails_dir / "inbox" / "notes.txt").write_text("not a message file\n", encoding="utf-8")

    summary = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "seed": seed,
        "email_count": email_count,
        "corrupt_count": corrupt_count,
        "emails": summary_entries[:50],  # preview; avoid massive file
    }

    summary_path = output_root / "summary.json"
    summary_path.write_text(json.dumps(summary, indent=2), encoding="utf-8")
    return summary


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate a sample .eml archive for emlvault testing.")
    parser.add_argument(
        "--output-root",
        type=Path,
        default=Path("tests/data"),
        help="Root directory for generated dataset (default: tests/data)",
    )
    parser.add_argument(
        "--email-count",
        type=int,
        default=240,
        help="Number of email files to generate (default: 240)",
    )
    parser.add_argument(
        "--corrupt-count",
        type=int,
        default=0,
        help="Number of headerless files to mix in (default: 0)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=2025,
        help="Random seed for reproducibility (default: 2025)",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    create_dataset(args.output_root, args.email_count, args.seed, corrupt_count=args.corrupt_count)
    print(f"Generated {args.email_count} emails in {args.output_root / 'emails'}")


if __name__ == "__main__":
    main()
