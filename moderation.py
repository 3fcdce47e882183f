"""
Tournament submission and moderation.

Submissions land in the staging table and stay there until an administrator
approves them. Approval is a sequence of separate backend calls, not one
transaction:

    fetch_staged -> publish -> grant_ownership -> notify_submitter -> mark_resolved

Only ``fetch_staged`` and ``publish`` can fail the approval. Once the
tournament is published, later steps report problems as warnings on the
result so the administrator knows the tournament is live. Approving the same
staged record twice concurrently can publish it twice; callers serialise
approvals per staged id.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

import config
import notifier
import shapes
from database import UpstreamError
from errors import Conflict, InvalidInput, NotAuthenticated, NotFound, PermissionDenied, PipelineError
from identity import Identity
from schemas import (
    STAGED_TOURNAMENTS,
    TOURNAMENT_OWNERS,
    TOURNAMENTS,
    StagedTournament,
    TournamentOwner,
    TournamentProposal,
)

logger = logging.getLogger(__name__)

# Staging columns that never reach the published table
STAGING_ONLY = ("id", "user_id", "resolved", "created_at")


@dataclass
class ApprovalResult:
    staged_id: int
    tournament_id: int
    warnings: List[str] = field(default_factory=list)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# Submission

def normalize(proposal: TournamentProposal, who: Identity) -> StagedTournament:
    """Client proposal -> staged row owned by ``who``."""
    row = shapes.to_row(proposal.model_dump(mode="json", by_alias=True, exclude_none=True))
    row["name"] = proposal.name.strip()
    if row.get("date") and not row.get("date_to"):
        row["date_to"] = row["date"]
    row["user_id"] = who.user_id
    row["submitted_by"] = (proposal.submitted_by or "").strip() or who.email
    row["resolved"] = False
    row["created_at"] = _now()
    return StagedTournament(**row)


def submit(db, who: Identity, proposal: TournamentProposal) -> dict:
    if not who.user_id:
        raise NotAuthenticated("Invalid token")
    if not proposal.name or not proposal.name.strip():
        raise InvalidInput("Tournament name is required")

    staged = db.create_document(STAGED_TOURNAMENTS, normalize(proposal, who))
    logger.info("Tournament %r staged as %s by %s", staged.get("name"), staged.get("id"), who.user_id)

    subject, body = notifier.submission_summary(staged)
    notifier.notify(config.get("NOTIFY_TO"), subject, body)
    return staged


def list_staged(db, who: Identity, include_resolved: bool = False) -> List[dict]:
    """The caller's own submissions; administrators see every submission."""
    if not who.user_id:
        raise NotAuthenticated("Invalid token")
    filters = {} if who.is_admin else {"user_id": who.user_id}
    if not include_resolved:
        filters["resolved"] = False
    rows = db.get_documents(STAGED_TOURNAMENTS, filters, order="created_at.desc")
    return [shapes.staged_to_client(row) for row in rows]


# Approval

def fetch_staged(db, staged_id: int) -> dict:
    staged = db.get_document(STAGED_TOURNAMENTS, {"id": staged_id})
    if staged is None:
        raise NotFound("Tournament not found")
    if staged.get("resolved"):
        raise Conflict("Tournament has already been approved")
    return staged


def publish(db, staged: dict) -> dict:
    payload = {key: value for key, value in staged.items() if key not in STAGING_ONLY}
    payload["created_at"] = _now()
    try:
        tournament = db.create_document(TOURNAMENTS, payload)
    except UpstreamError as exc:
        logger.error("Publishing staged tournament %s failed: %s", staged.get("id"), exc)
        raise PipelineError("Failed to approve tournament")
    if not tournament.get("id"):
        raise PipelineError("Failed to approve tournament")
    return tournament


def grant_ownership(db, tournament_id: int, user_id: Optional[str]) -> bool:
    if not user_id:
        return True
    try:
        db.create_document(TOURNAMENT_OWNERS, TournamentOwner(tournament_id=tournament_id, user_id=user_id))
    except UpstreamError as exc:
        logger.warning("Could not record owner %s for tournament %s: %s", user_id, tournament_id, exc)
        return False
    return True


def _submitter_address(staged: dict) -> Optional[str]:
    for contact in (staged.get("submitted_by"), staged.get("contact_email")):
        if contact and "@" in contact:
            return contact
    return None


def notify_submitter(staged: dict, tournament_id: int) -> bool:
    contact = _submitter_address(staged)
    if contact is None:
        return False
    subject, body = notifier.approval_summary(staged, tournament_id)
    return notifier.notify(contact, subject, body)


def mark_resolved(db, staged_id: int) -> bool:
    try:
        updated = db.update_documents(STAGED_TOURNAMENTS, {"id": staged_id}, {"resolved": True})
    except UpstreamError as exc:
        logger.warning("Could not resolve staged tournament %s: %s", staged_id, exc)
        return False
    if not updated:
        logger.warning("Staged tournament %s was not updated", staged_id)
        return False
    return True


def approve(db, who: Identity, staged_id: int) -> ApprovalResult:
    if not who.user_id:
        raise NotAuthenticated("Invalid token")
    if not who.is_admin:
        raise PermissionDenied("Admin access required")

    staged = fetch_staged(db, staged_id)
    tournament = publish(db, staged)
    result = ApprovalResult(staged_id=staged_id, tournament_id=tournament["id"])

    if not grant_ownership(db, tournament["id"], staged.get("user_id")):
        result.warnings.append("Tournament approved but ownership could not be recorded")
    notify_submitter(staged, tournament["id"])
    if not mark_resolved(db, staged_id):
        result.warnings.append("Tournament approved but failed to resolve the submission; manual cleanup may be required")

    logger.info("Staged tournament %s approved as %s", staged_id, tournament["id"])
    return result
