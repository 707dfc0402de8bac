"""
Resume intake: store a parsed resume in its candidate's version chain and open an evaluation
against a job.

Parsing and scoring happen upstream; this module receives their output as ParsedProfile and
MatchResult.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import timedelta

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import MATCH_ACCEPT_THRESHOLD, REAPPLY_WINDOW_DAYS
from ..models.evaluation import Evaluation
from ..models.job import JobDescription
from ..models.resume import ResumeSubmission
from ..models.status import AssignmentNote, MatchStatus, UserRole
from ..models.time_slot import TimeSlot
from ..models.user import User
from ..schemas.candidate_profile import ParsedProfile
from ..schemas.match_result import MatchResult
from ..utils.datetimes import utcnow
from ..utils.error_handlers import ConflictError, NotFoundError, ValidationError, get_error_message
from ..utils.validation import normalize_email
from .assignment import AssignmentResult, assign_interviewers
from .decision_gate import status_from_score
from .identity import CandidateIdentity, resolve_candidate_identity
from .slot_store import list_available_slots

logger = logging.getLogger(__name__)

# Two uploads of the same candidate can compute the same next version; the unique
# (parent_id, version_number) constraint rejects the loser, which recomputes.
_VERSION_RETRIES = 3

JOB_OPEN = "Open"


@dataclass
class IntakeResult:
    resume: ResumeSubmission
    identity: CandidateIdentity
    evaluation: Evaluation | None = None
    available_slots: list[TimeSlot] = field(default_factory=list)

    @property
    def can_select_slot(self) -> bool:
        if self.evaluation is None:
            return False
        return float(self.evaluation.overall_match or 0) >= MATCH_ACCEPT_THRESHOLD


def has_recent_application(db: Session, email: str | None, *, window_days: int = REAPPLY_WINDOW_DAYS) -> bool:
    """Any evaluation for this email inside the window. Lookup errors allow the application."""
    email_n = normalize_email(email)
    if not email_n:
        return False
    cutoff = utcnow() - timedelta(days=int(window_days))
    try:
        row = (
            db.query(Evaluation.id)
            .filter(func.lower(func.trim(Evaluation.email)) == email_n, Evaluation.created_at >= cutoff)
            .first()
        )
    except SQLAlchemyError as e:
        logger.warning("Re-application check failed for %s, allowing: %s", email_n, e)
        db.rollback()
        return False
    return row is not None


def _dumps(value) -> str | None:  # noqa: ANN001
    if not value:
        return None
    return json.dumps(value, ensure_ascii=False)


def store_resume(
    db: Session,
    *,
    profile: ParsedProfile,
    file_name: str,
    raw_text: str | None = None,
) -> tuple[ResumeSubmission, CandidateIdentity]:
    """Insert a submission stamped with its chain root and version number."""
    email = normalize_email(profile.email)
    last_error: IntegrityError | None = None
    for attempt in range(1, _VERSION_RETRIES + 1):
        identity = resolve_candidate_identity(db, email=email, name=profile.name)
        sub = ResumeSubmission(
            file_name=file_name,
            name=(profile.name or "").strip() or None,
            email=email,
            phone=(profile.phone or "").strip() or None,
            location=(profile.location or "").strip() or None,
            skills=_dumps(profile.skills),
            experience=_dumps(profile.experience),
            education=_dumps(profile.education),
            summary=profile.summary,
            raw_text=raw_text,
            total_experience=profile.total_experience,
            parent_id=identity.parent_id,
            version_number=identity.version_number,
        )
        try:
            db.add(sub)
            db.commit()
            db.refresh(sub)
        except IntegrityError as e:
            db.rollback()
            last_error = e
            logger.info("Version %s taken for root %s (attempt %s)", identity.version_number, identity.root_id, attempt)
            continue
        if identity.is_duplicate:
            logger.info("Resume %s stored as v%s of root %s", sub.id, sub.version_number, identity.root_id)
        return sub, identity

    raise ConflictError("Could not assign a resume version, please retry") from last_error


def _get_job(db: Session, job_id: int) -> JobDescription:
    job = db.query(JobDescription).filter(JobDescription.id == int(job_id)).first()
    if not job:
        raise NotFoundError(get_error_message("job_not_found"), details={"job_id": int(job_id)})
    return job


def create_evaluation(
    db: Session,
    *,
    resume: ResumeSubmission,
    job: JobDescription,
    match: MatchResult,
) -> Evaluation:
    status = status_from_score(match.overall_match)
    ev = Evaluation(
        resume_id=resume.id,
        job_id=job.id,
        candidate_name=resume.name,
        contact_number=resume.phone,
        email=resume.email,
        overall_match=match.overall_match,
        skills_match=match.skills_match,
        skills_details=match.skills_details,
        experience_match=match.experience_match,
        experience_details=match.experience_details,
        education_match=match.education_match,
        education_details=match.education_details,
        status=status,
        rejection_reason=match.rejection_reason if status == MatchStatus.REJECTED.value else None,
    )
    try:
        db.add(ev)
        db.commit()
        db.refresh(ev)
    except IntegrityError:
        db.rollback()
        raise ValidationError(
            "This resume has already been evaluated for this job",
            details={"resume_id": int(resume.id), "job_id": int(job.id)},
        )
    logger.info("Evaluation %s created (%s, overall %.1f)", ev.id, status, ev.overall_match)
    return ev


def intake_resume(
    db: Session,
    *,
    job_id: int,
    profile: ParsedProfile,
    match: MatchResult,
    file_name: str,
    raw_text: str | None = None,
) -> IntakeResult:
    """Candidate application to an open job; enforces the re-application window."""
    job = _get_job(db, job_id)
    if (job.status or JOB_OPEN) != JOB_OPEN:
        raise ValidationError(get_error_message("job_not_open"), details={"job_id": int(job.id)})

    if not normalize_email(profile.email):
        raise ValidationError("Candidate email is required")
    if has_recent_application(db, profile.email):
        raise ValidationError(
            get_error_message("recent_application"),
            details={"window_days": REAPPLY_WINDOW_DAYS},
        )

    resume, identity = store_resume(db, profile=profile, file_name=file_name, raw_text=raw_text)
    ev = create_evaluation(db, resume=resume, job=job, match=match)

    result = IntakeResult(resume=resume, identity=identity, evaluation=ev)
    # Only the job's own panel is offered; an unmapped job offers nothing.
    if result.can_select_slot and job.interviewer_ids:
        result.available_slots = list_available_slots(db, interviewer_ids=job.interviewer_ids)
    return result


def upload_resume(
    db: Session,
    *,
    profile: ParsedProfile,
    file_name: str,
    raw_text: str | None = None,
    job_id: int | None = None,
    match: MatchResult | None = None,
) -> IntakeResult:
    """HR upload: no re-application window; the evaluation is optional."""
    job = _get_job(db, job_id) if job_id is not None else None
    resume, identity = store_resume(db, profile=profile, file_name=file_name, raw_text=raw_text)
    result = IntakeResult(resume=resume, identity=identity)
    if job is not None:
        result.evaluation = create_evaluation(db, resume=resume, job=job, match=match or MatchResult())
    return result


def _booking_actor(db: Session, fallback_id: int) -> int:
    """History rows need a user; self-bookings are recorded against the earliest HR/Admin."""
    row = (
        db.query(User.id)
        .filter(User.role.in_([UserRole.ADMIN.value, UserRole.HR.value]), User.status == "active")
        .order_by(User.created_at.asc(), User.id.asc())
        .first()
    )
    return int(row[0]) if row else int(fallback_id)


def book_slot_for_candidate(db: Session, *, evaluation_id: int, job_id: int, slot_id: int) -> AssignmentResult:
    """
    Candidate picks one of the slots offered at intake.

    The slot must belong to an interviewer mapped to the job, and only strong matches may
    book. The claim itself goes through assign_interviewers, so a slot someone else got
    first raises ConflictError.
    """
    ev = (
        db.query(Evaluation)
        .filter(Evaluation.id == int(evaluation_id), Evaluation.job_id == int(job_id))
        .first()
    )
    if not ev:
        raise NotFoundError(get_error_message("evaluation_not_found"), details={"evaluation_id": int(evaluation_id)})
    if float(ev.overall_match or 0) < MATCH_ACCEPT_THRESHOLD:
        raise ValidationError(
            get_error_message("slot_selection_not_allowed"),
            details={"overall_match": float(ev.overall_match or 0)},
        )
    if ev.interview_details:
        raise ValidationError(get_error_message("interview_already_scheduled"), details={"evaluation_id": int(ev.id)})

    slot = db.query(TimeSlot).filter(TimeSlot.id == int(slot_id)).first()
    if not slot:
        raise NotFoundError(get_error_message("slot_not_found"), details={"slot_id": int(slot_id)})
    mapped = ev.job.interviewer_ids if ev.job else []
    if int(slot.interviewer_id) not in mapped:
        raise ValidationError(
            get_error_message("interviewer_not_mapped"),
            details={"slot_id": int(slot.id), "interviewer_id": int(slot.interviewer_id)},
        )

    result = assign_interviewers(
        db,
        evaluation_id=ev.id,
        assignments=[(int(slot.interviewer_id), int(slot.id))],
        assigned_by=_booking_actor(db, slot.interviewer_id),
        note=AssignmentNote.SELF_SCHEDULED.value,
    )
    logger.info("Candidate booked slot %s for evaluation %s", slot.id, ev.id)
    return result
