"""Storage key derivation.

Keys have the shape ``documents/{patient_id}/{YYYY-MM-DD}/{file_id}{ext}``.
``file_id`` is a random 128-bit hex string, so keys are unguessable and
concurrent requests for the same patient and day never collide.
"""

import os
import re
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4


STORAGE_KEY_PREFIX = "documents"

STORAGE_KEY_PATTERN = re.compile(
    r"^documents/(?P<patient_id>[^/\x00-\x1f]+)/(?P<date>\d{4}-\d{2}-\d{2})/"
    r"(?P<file_id>[0-9a-f]{32})(?P<ext>\.[a-z0-9]+)?$"
)

_EXTENSION_PATTERN = re.compile(r"^[a-z0-9]+$")


def new_file_id() -> str:
    return uuid4().hex


def file_extension(file_name: str) -> str:
    """Lower-cased extension including the dot, or "" if unusable.

    Example:
        >>> file_extension("Scan.PDF")
        '.pdf'
        >>> file_extension("notes.tar.gz~")
        ''
    """
    _, ext = os.path.splitext(file_name or "")
    ext = ext[1:].lower()
    if not ext or not _EXTENSION_PATTERN.match(ext):
        return ""
    return f".{ext}"


def is_valid_patient_segment(patient_id: Optional[str]) -> bool:
    return bool(patient_id) and "/" not in patient_id and not any(ord(c) < 32 for c in patient_id)


def build_storage_key(
    patient_id: str,
    file_name: str,
    file_id: str,
    now: Optional[datetime] = None,
) -> str:
    """Derive the object key for a new upload.

    Args:
        patient_id: Owning patient (must not contain '/')
        file_name: Original client file name (only the extension is used)
        file_id: Random identifier from new_file_id()
        now: Upload time; defaults to the current UTC time

    Returns:
        str: documents/{patient_id}/{YYYY-MM-DD}/{file_id}{ext}

    Raises:
        ValueError: If patient_id cannot be used as a key segment
    """
    if not is_valid_patient_segment(patient_id):
        raise ValueError(f"Invalid patient id for storage key: {patient_id!r}")

    now = now or datetime.now(timezone.utc)
    date_segment = now.astimezone(timezone.utc).strftime("%Y-%m-%d")
    return f"{STORAGE_KEY_PREFIX}/{patient_id}/{date_segment}/{file_id}{file_extension(file_name)}"


def storage_key_patient_id(storage_key: str) -> Optional[str]:
    """Patient segment of a well-formed key, or None if the key is malformed."""
    match = STORAGE_KEY_PATTERN.match(storage_key or "")
    return match.group("patient_id") if match else None
