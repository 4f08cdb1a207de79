"""DocumentStatus state machine for the upload lifecycle

A record is created PENDING as soon as the storage gateway has issued a key.
When the client confirms the upload, the stored bytes are sniffed and the
record becomes ACTIVE (content matches the declared type) or QUARANTINED.
"""

from enum import Enum
from typing import Optional, Dict, List


class DocumentStatus(str, Enum):
    """Document lifecycle status enum

    State flow:
    PENDING → ACTIVE or QUARANTINED (both terminal)
    """
    PENDING = "PENDING"            # Upload URL issued, bytes not yet verified
    ACTIVE = "ACTIVE"              # Content sniff passed (downloadable)
    QUARANTINED = "QUARANTINED"    # Content sniff failed (never served)


# State transition rules
ALLOWED_TRANSITIONS: Dict[Optional[DocumentStatus], List[DocumentStatus]] = {
    None: [DocumentStatus.PENDING],
    DocumentStatus.PENDING: [DocumentStatus.ACTIVE, DocumentStatus.QUARANTINED],
    DocumentStatus.ACTIVE: [],
    DocumentStatus.QUARANTINED: [],
}


def can_transition(from_status: Optional[DocumentStatus], to_status: DocumentStatus) -> bool:
    """Validate if status transition is allowed

    Args:
        from_status: Current status (None for new documents)
        to_status: Target status

    Returns:
        True if transition is allowed, False otherwise

    Example:
        >>> can_transition(DocumentStatus.PENDING, DocumentStatus.ACTIVE)
        True
        >>> can_transition(DocumentStatus.QUARANTINED, DocumentStatus.ACTIVE)
        False
    """
    allowed = ALLOWED_TRANSITIONS.get(from_status, [])
    return to_status in allowed


def get_allowed_transitions(from_status: Optional[DocumentStatus]) -> List[DocumentStatus]:
    """Get list of allowed transitions from current status"""
    return ALLOWED_TRANSITIONS.get(from_status, [])
