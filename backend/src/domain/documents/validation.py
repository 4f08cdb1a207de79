"""File validation for clinical document uploads

Two stages:
1. Declared check (before any URL is signed): file name, MIME type against the
   allow-list, size against the maximum.
2. Content sniff (after the client has uploaded): the byte signature of the
   stored object must agree with the declared MIME type.
"""

import codecs
import logging
import os
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Tuple

import filetype


logger = logging.getLogger(__name__)


DEFAULT_ALLOWED_MIME_TYPES: FrozenSet[str] = frozenset({
    'image/jpeg',
    'image/png',
    'image/gif',
    'application/pdf',
    'application/msword',  # .doc
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',  # .docx
    'text/plain',
})

# Declared types accepted when no binary signature can be detected
DEFAULT_UNDETECTABLE_TEXT_TYPES: FrozenSet[str] = frozenset({'text/plain'})

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024

# filetype inspects at most this many leading bytes
SNIFF_HEAD_BYTES = 8192


@dataclass(frozen=True)
class FileRules:
    """Upload rules fixed at process startup."""
    allowed_mime_types: FrozenSet[str] = DEFAULT_ALLOWED_MIME_TYPES
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    undetectable_text_types: FrozenSet[str] = DEFAULT_UNDETECTABLE_TEXT_TYPES

    @classmethod
    def from_settings(cls, settings) -> "FileRules":
        return cls(
            allowed_mime_types=frozenset(settings.ALLOWED_MIME_TYPES),
            max_file_size=settings.MAX_FILE_SIZE_BYTES,
            undetectable_text_types=frozenset(settings.UNDETECTABLE_TEXT_MIME_TYPES),
        )


DEFAULT_RULES = FileRules()


def is_file_type_allowed(mime_type: Optional[str], rules: FileRules = DEFAULT_RULES) -> bool:
    """Check if MIME type is in the upload allow-list

    Example:
        >>> is_file_type_allowed('application/pdf')
        True
        >>> is_file_type_allowed('application/x-msdownload')
        False
    """
    return bool(mime_type) and mime_type in rules.allowed_mime_types


def is_file_size_allowed(size_bytes: int, rules: FileRules = DEFAULT_RULES) -> bool:
    """Check size is positive and not above the configured maximum"""
    return 0 < size_bytes <= rules.max_file_size


def validate_file_size(size_bytes: int, max_size: Optional[int] = None) -> Tuple[bool, Optional[str]]:
    """Validate file size is within limits

    Args:
        size_bytes: File size in bytes
        max_size: Maximum allowed size (defaults to DEFAULT_MAX_FILE_SIZE)

    Returns:
        Tuple of (is_valid, error_message)
    """
    if max_size is None:
        max_size = DEFAULT_MAX_FILE_SIZE

    if size_bytes <= 0:
        return False, f"File is empty ({size_bytes} bytes)"

    if size_bytes > max_size:
        return False, f"File exceeds maximum size of {max_size} bytes (got {size_bytes} bytes)"

    return True, None


def validate_filename(filename: Optional[str]) -> Tuple[bool, Optional[str]]:
    """Validate an uploaded file name

    Validation rules:
    - Not empty
    - Max 255 characters
    - No path traversal or directory separators
    - No null bytes or control characters

    Example:
        >>> validate_filename('lab-results.pdf')
        (True, None)
        >>> validate_filename('../../etc/passwd')
        (False, 'Filename contains path traversal or directory separators')
    """
    if not filename or len(filename.strip()) == 0:
        return False, "Filename cannot be empty"

    if len(filename) > 255:
        return False, f"Filename exceeds 255 characters (got {len(filename)})"

    if '..' in filename or '/' in filename or '\\' in filename:
        return False, "Filename contains path traversal or directory separators"

    if '\x00' in filename:
        return False, "Filename contains null bytes"

    if any(ord(c) < 32 for c in filename):
        return False, "Filename contains control characters"

    return True, None


def sanitize_filename(filename: str) -> str:
    """Sanitize a file name for use in a Content-Disposition header

    Example:
        >>> sanitize_filename('x-ray "left knee".png')
        'x-ray_left_knee_.png'
    """
    filename = os.path.basename(filename)
    filename = re.sub(r'[^\w\s.-]', '_', filename)
    filename = re.sub(r'[\s_]+', '_', filename)

    if len(filename) > 255:
        name, ext = os.path.splitext(filename)
        filename = name[:255 - len(ext)] + ext

    return filename or "download"


def allowed_types_display(types: Iterable[str]) -> str:
    return ", ".join(sorted(types))


def check_declared_file(
    file_name: Optional[str],
    mime_type: Optional[str],
    size_bytes: int,
    rules: FileRules = DEFAULT_RULES,
) -> Optional[str]:
    """Run the pre-upload checks in order.

    Returns:
        None if the declared metadata is acceptable, else the first error message
    """
    is_valid, error = validate_filename(file_name)
    if not is_valid:
        return error

    if not is_file_type_allowed(mime_type, rules):
        return (
            f"File type {mime_type} is not allowed. "
            f"Allowed types: {allowed_types_display(rules.allowed_mime_types)}"
        )

    is_valid, error = validate_file_size(size_bytes, rules.max_file_size)
    if not is_valid:
        return error

    return None


class ContentVerdict(str, Enum):
    """Outcome of the post-upload content sniff"""
    MATCH = "MATCH"                  # detected signature equals declared type
    TEXT_FALLBACK = "TEXT_FALLBACK"  # no signature, declared text type, decodes as text
    MISMATCH = "MISMATCH"            # detected signature differs from declared type
    UNDETECTABLE = "UNDETECTABLE"    # no signature and not an exempt text type


@dataclass(frozen=True)
class ContentCheck:
    verdict: ContentVerdict
    declared_mime_type: str
    detected_mime_type: Optional[str] = None
    reason: str = field(default="")

    @property
    def accepted(self) -> bool:
        return self.verdict in (ContentVerdict.MATCH, ContentVerdict.TEXT_FALLBACK)

    @property
    def needs_review(self) -> bool:
        # Text fallbacks are a heuristic, not a guarantee.
        return self.verdict == ContentVerdict.TEXT_FALLBACK


def _looks_like_text(head: bytes) -> bool:
    if not head or b'\x00' in head:
        return False
    # The head may end in the middle of a multi-byte sequence.
    decoder = codecs.getincrementaldecoder('utf-8')()
    try:
        decoder.decode(head, final=False)
    except UnicodeDecodeError:
        return False
    return True


def detect_mime_type(head: bytes) -> Optional[str]:
    """Detect MIME type from the leading bytes, or None if unknown"""
    kind = filetype.guess(bytes(head[:SNIFF_HEAD_BYTES]))
    return kind.mime if kind is not None else None


def check_content(
    head: bytes,
    declared_mime_type: str,
    rules: FileRules = DEFAULT_RULES,
) -> ContentCheck:
    """Reconcile the declared MIME type with the sniffed byte signature

    Args:
        head: Leading bytes of the uploaded object (SNIFF_HEAD_BYTES is enough)
        declared_mime_type: MIME type the client declared before uploading
        rules: Upload rules (undetectable text exemptions)

    Returns:
        ContentCheck: verdict plus detected/declared types
    """
    detected = detect_mime_type(head)

    if detected is not None:
        if detected == declared_mime_type:
            return ContentCheck(ContentVerdict.MATCH, declared_mime_type, detected)
        logger.warning(
            f"Content type mismatch: declared={declared_mime_type}, detected={detected}"
        )
        return ContentCheck(
            ContentVerdict.MISMATCH,
            declared_mime_type,
            detected,
            reason=f"Content looks like {detected}, not {declared_mime_type}",
        )

    if declared_mime_type in rules.undetectable_text_types and _looks_like_text(head):
        logger.warning(
            f"No binary signature found, accepting as {declared_mime_type} "
            f"(flagged for review)"
        )
        return ContentCheck(
            ContentVerdict.TEXT_FALLBACK,
            declared_mime_type,
            None,
            reason="Signature undetectable; accepted as text",
        )

    logger.warning(f"Undetectable content declared as {declared_mime_type}")
    return ContentCheck(
        ContentVerdict.UNDETECTABLE,
        declared_mime_type,
        None,
        reason=f"Content type could not be verified as {declared_mime_type}",
    )
