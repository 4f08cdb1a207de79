"""Access policy for clinical documents.

Single declarative table deciding whether an actor may act on a document.
Every access check in the repository, the vault service and the API goes
through ``evaluate`` / ``evaluate_action``; do not re-implement role checks
elsewhere.

Policy Matrix:
┌──────────┬────────┬────────┬───────────────────────────────────────────────┐
│ Action   │ STAFF  │ DOCTOR │ PATIENT                                       │
├──────────┼────────┼────────┼───────────────────────────────────────────────┤
│ READ     │   ✓    │   ✓    │ own record AND (shared OR uploaded by them)   │
│ UPDATE   │   ✓    │   ✓    │ own record AND uploaded by them               │
│ DELETE   │   ✓    │   ✓    │ own record AND uploaded by them               │
│ SHARE    │   ✓    │   ✓    │                                               │
│ CONFIRM  │   ✓    │uploader│ own record AND uploaded by them               │
└──────────┴────────┴────────┴───────────────────────────────────────────────┘

Decisions are computed fresh on every call and never cached.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol, Tuple

from observability.metrics import access_decisions_total

from .entities import ActorRole


logger = logging.getLogger(__name__)


class Decision(str, Enum):
    ALLOW = "ALLOW"
    DENY = "DENY"


class DocumentAction(str, Enum):
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    SHARE = "SHARE"
    CONFIRM = "CONFIRM"


class OwnedDocument(Protocol):
    """Fields of a document the policy looks at."""
    patient_id: str
    uploader_id: str
    is_shared_with_patient: bool


Condition = Callable[[str, OwnedDocument], bool]


def _always(actor_id: str, document: OwnedDocument) -> bool:
    return True


def _is_uploader(actor_id: str, document: OwnedDocument) -> bool:
    return document.uploader_id == actor_id


def _own_visible_record(actor_id: str, document: OwnedDocument) -> bool:
    return document.patient_id == actor_id and (
        document.is_shared_with_patient or document.uploader_id == actor_id
    )


def _own_upload(actor_id: str, document: OwnedDocument) -> bool:
    return document.patient_id == actor_id and document.uploader_id == actor_id


@dataclass(frozen=True)
class PolicyRule:
    role: ActorRole
    action: DocumentAction
    condition: Condition


POLICY_TABLE: Tuple[PolicyRule, ...] = (
    # Clinical staff have blanket access
    PolicyRule(ActorRole.STAFF, DocumentAction.READ, _always),
    PolicyRule(ActorRole.STAFF, DocumentAction.UPDATE, _always),
    PolicyRule(ActorRole.STAFF, DocumentAction.DELETE, _always),
    PolicyRule(ActorRole.STAFF, DocumentAction.SHARE, _always),
    PolicyRule(ActorRole.STAFF, DocumentAction.CONFIRM, _always),
    PolicyRule(ActorRole.DOCTOR, DocumentAction.READ, _always),
    PolicyRule(ActorRole.DOCTOR, DocumentAction.UPDATE, _always),
    PolicyRule(ActorRole.DOCTOR, DocumentAction.DELETE, _always),
    PolicyRule(ActorRole.DOCTOR, DocumentAction.SHARE, _always),
    PolicyRule(ActorRole.DOCTOR, DocumentAction.CONFIRM, _is_uploader),
    # Patients only ever see their own file, and internal notes stay hidden
    # until a clinician shares them
    PolicyRule(ActorRole.PATIENT, DocumentAction.READ, _own_visible_record),
    PolicyRule(ActorRole.PATIENT, DocumentAction.UPDATE, _own_upload),
    PolicyRule(ActorRole.PATIENT, DocumentAction.DELETE, _own_upload),
    PolicyRule(ActorRole.PATIENT, DocumentAction.CONFIRM, _own_upload),
)


def evaluate_action(
    actor_id: str,
    actor_role: ActorRole,
    document: OwnedDocument,
    action: DocumentAction,
) -> Decision:
    """Decide whether an actor may perform an action on a document.

    Args:
        actor_id: Verified identity of the caller
        actor_role: Role of the caller (PATIENT, DOCTOR, STAFF)
        document: Document (or anything exposing patient_id, uploader_id,
            is_shared_with_patient)
        action: Action being attempted

    Returns:
        Decision.ALLOW if a rule for (role, action) matches, else Decision.DENY
    """
    role = ActorRole(actor_role)
    decision = Decision.DENY
    for rule in POLICY_TABLE:
        if rule.role == role and rule.action == action and rule.condition(actor_id, document):
            decision = Decision.ALLOW
            break

    access_decisions_total.labels(
        role=role.value, action=action.value, decision=decision.value
    ).inc()
    logger.debug(
        f"Access decision: actor={actor_id}, role={role.value}, "
        f"action={action.value}, decision={decision.value}"
    )
    return decision


def evaluate(actor_id: str, actor_role: ActorRole, document: OwnedDocument) -> Decision:
    """Read-access decision for a document."""
    return evaluate_action(actor_id, actor_role, document, DocumentAction.READ)


def is_allowed(
    actor_id: str,
    actor_role: ActorRole,
    document: OwnedDocument,
    action: DocumentAction = DocumentAction.READ,
) -> bool:
    return evaluate_action(actor_id, actor_role, document, action) is Decision.ALLOW
