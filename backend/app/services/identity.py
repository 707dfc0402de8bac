"""
Candidate identity resolution for resume uploads.

A freshly parsed resume is matched against earlier submissions by normalized email, then by
normalized name. A match means "same candidate, new version": the new row points at the
chain's root and takes the next version number.
"""
import logging
from dataclasses import dataclass

from sqlalchemy import case, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.resume import ResumeSubmission
from ..utils.validation import normalize_email, normalize_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CandidateIdentity:
    is_duplicate: bool
    root_id: int | None
    version_number: int = 1

    @property
    def parent_id(self) -> int | None:
        # Every non-root submission points straight at the root.
        return self.root_id if self.is_duplicate else None


def _oldest_match(db: Session, column, value: str) -> ResumeSubmission | None:
    return (
        db.query(ResumeSubmission)
        .filter(func.lower(func.trim(column)) == value)
        .order_by(
            case((ResumeSubmission.parent_id.is_(None), 0), else_=1),
            ResumeSubmission.version_number.asc(),
            ResumeSubmission.created_at.asc(),
            ResumeSubmission.id.asc(),
        )
        .first()
    )


def find_root_submission_id(db: Session, *, email: str | None, name: str | None) -> int | None:
    """
    Root id of the chain this candidate belongs to, or None for a new candidate.

    Email is the stronger signal and is tried first; name is only a fallback. Database
    errors count as "no match" so an upload is never blocked by the lookup.
    """
    email_n = normalize_email(email)
    name_n = normalize_name(name)
    if not email_n and not name_n:
        return None

    try:
        match = _oldest_match(db, ResumeSubmission.email, email_n) if email_n else None
        if match is None and name_n:
            match = _oldest_match(db, ResumeSubmission.name, name_n)
    except SQLAlchemyError as e:
        logger.warning("Duplicate lookup failed, treating as new candidate: %s", e)
        db.rollback()
        return None

    if match is None:
        return None
    return match.root_id


def next_version_number(db: Session, root_id: int) -> int | None:
    """
    1 + the highest version in the chain rooted at `root_id` (the root counts), or None when
    the chain cannot be read.
    """
    try:
        current = (
            db.query(func.coalesce(func.max(ResumeSubmission.version_number), 0))
            .filter(or_(ResumeSubmission.id == root_id, ResumeSubmission.parent_id == root_id))
            .scalar()
        )
    except SQLAlchemyError as e:
        logger.warning("Version lookup failed for root %s, treating as new candidate: %s", root_id, e)
        db.rollback()
        return None
    return int(current or 0) + 1


def resolve_candidate_identity(db: Session, *, email: str | None, name: str | None) -> CandidateIdentity:
    root_id = find_root_submission_id(db, email=email, name=name)
    if root_id is None:
        return CandidateIdentity(is_duplicate=False, root_id=None, version_number=1)
    version = next_version_number(db, root_id)
    if version is None:
        # Without the chain's current version a duplicate would collide with its root.
        return CandidateIdentity(is_duplicate=False, root_id=None, version_number=1)
    return CandidateIdentity(is_duplicate=True, root_id=root_id, version_number=version)


def list_versions(db: Session, submission_id: int) -> list[ResumeSubmission]:
    """Every submission in the chain containing `submission_id`, newest version first."""
    sub = db.query(ResumeSubmission).filter(ResumeSubmission.id == submission_id).first()
    if not sub:
        return []
    root_id = sub.root_id
    return (
        db.query(ResumeSubmission)
        .filter(or_(ResumeSubmission.id == root_id, ResumeSubmission.parent_id == root_id))
        .order_by(ResumeSubmission.version_number.desc(), ResumeSubmission.created_at.desc())
        .all()
    )
