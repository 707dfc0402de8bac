"""
Interview (re)assignment.

assign_interviewers() replaces an evaluation's whole panel in one transaction:

    release old slots -> delete old InterviewDetail rows -> claim new slots
    -> insert InterviewDetail rows -> append AssignmentHistory

Any failure rolls all of it back, so an evaluation never ends up with slots claimed but no
detail rows (or the reverse). The meeting link is requested afterwards by attach_meeting_link();
its failure is reported on the result and leaves the reservation in place.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.assignment_history import AssignmentHistory
from ..models.evaluation import Evaluation
from ..models.interview_detail import InterviewDetail
from ..models.status import AssignmentNote, HrFinalStatus, InterviewerStatus, UserRole
from ..models.time_slot import TimeSlot
from ..models.user import User
from ..utils.datetimes import to_utc_naive
from ..utils.error_handlers import (
    AppError,
    DatabaseError,
    NotFoundError,
    ValidationError,
    get_error_message,
)
from ..utils.validation import normalize_email
from . import slot_store
from .meeting_links import MeetingLink, MeetingLinkError

logger = logging.getLogger(__name__)

TERMINAL_HR_STATUSES = (HrFinalStatus.SELECTED.value, HrFinalStatus.REJECTED.value)


@dataclass
class AssignmentResult:
    evaluation_id: int
    note: str
    interview_start: datetime
    duration_minutes: int
    # (interview_detail_id, interviewer_id, slot_id) per requested pair, in request order.
    details: list[tuple[int, int, int]] = field(default_factory=list)
    released_slots: int = 0
    meeting_link: MeetingLink | None = None
    meeting_link_error: str | None = None

    def to_dict(self) -> dict:
        return {
            "evaluation_id": self.evaluation_id,
            "note": self.note,
            "interview_start": self.interview_start.isoformat(),
            "duration_minutes": self.duration_minutes,
            "interview_details": [
                {"id": d_id, "interviewer_id": i_id, "slot_id": s_id} for d_id, i_id, s_id in self.details
            ],
            "released_slots": self.released_slots,
            "interview_start_url": self.meeting_link.start_url if self.meeting_link else None,
            "interview_join_url": self.meeting_link.join_url if self.meeting_link else None,
            "meeting_link_error": self.meeting_link_error,
        }


def _validate_pairs(pairs: list[tuple[int, int]]) -> list[tuple[int, int]]:
    if not pairs:
        raise ValidationError("At least one interviewer/slot assignment is required")
    out = [(int(i), int(s)) for i, s in pairs]
    interviewers = [i for i, _ in out]
    slots = [s for _, s in out]
    if len(set(interviewers)) != len(interviewers):
        raise ValidationError("Each interviewer can only be assigned once per evaluation")
    if len(set(slots)) != len(slots):
        raise ValidationError("Each slot can only be used once per evaluation")
    return out


def _load_interviewer(db: Session, interviewer_id: int) -> User:
    user = db.query(User).filter(User.id == int(interviewer_id)).first()
    if not user or user.role != UserRole.INTERVIEWER.value or not user.is_active:
        raise NotFoundError(
            get_error_message("interviewer_not_found"),
            details={"interviewer_id": int(interviewer_id)},
        )
    return user


def _load_slot(db: Session, slot_id: int, interviewer_id: int) -> TimeSlot:
    slot = db.query(TimeSlot).filter(TimeSlot.id == int(slot_id)).first()
    if not slot:
        raise NotFoundError(get_error_message("slot_not_found"), details={"slot_id": int(slot_id)})
    if int(slot.interviewer_id) != int(interviewer_id):
        raise ValidationError(
            "Selected slot does not belong to this interviewer",
            details={"slot_id": int(slot_id), "interviewer_id": int(interviewer_id)},
        )
    return slot


def assign_interviewers(
    db: Session,
    *,
    evaluation_id: int,
    assignments: list[tuple[int, int]],
    assigned_by: int,
    interview_start: datetime | None = None,
    note: str | None = None,
) -> AssignmentResult:
    """
    Assign (or reassign) `assignments` = [(interviewer_id, slot_id), ...] to an evaluation.

    Validation and NotFound checks run before any write. Raises ConflictError if any
    requested slot is held by another evaluation; nothing is changed in that case.
    """
    pairs = _validate_pairs(assignments)

    ev = db.query(Evaluation).filter(Evaluation.id == int(evaluation_id)).first()
    if not ev:
        raise NotFoundError(get_error_message("evaluation_not_found"), details={"evaluation_id": int(evaluation_id)})

    slots: dict[int, TimeSlot] = {}
    for interviewer_id, slot_id in pairs:
        _load_interviewer(db, interviewer_id)
        slots[slot_id] = _load_slot(db, slot_id, interviewer_id)

    earliest = min(slots.values(), key=lambda s: s.start_time)
    start = to_utc_naive(interview_start) if interview_start is not None else earliest.start_time
    duration = earliest.duration_minutes

    try:
        if note is None:
            had_history = (
                db.query(AssignmentHistory.id).filter(AssignmentHistory.evaluation_id == ev.id).first() is not None
            )
            if len(pairs) > 1:
                note = AssignmentNote.BULK.value
            elif had_history:
                note = AssignmentNote.REASSIGNED.value
            else:
                note = AssignmentNote.ASSIGNED.value

        # 1-2: free the previous panel before claiming anything.
        released = slot_store.release_slots_for_evaluation(db, ev.id)
        for old in db.query(InterviewDetail).filter(InterviewDetail.evaluation_id == ev.id).all():
            db.delete(old)
        db.flush()

        # 3
        for interviewer_id, slot_id in pairs:
            slot_store.claim_slot(
                db,
                slot_id=slot_id,
                evaluation_id=ev.id,
                job_id=ev.job_id,
                interviewer_id=interviewer_id,
            )

        # 4-5
        new_details: list[InterviewDetail] = []
        for interviewer_id, slot_id in pairs:
            detail = InterviewDetail(
                evaluation_id=ev.id,
                slot_id=slot_id,
                interviewer_id=interviewer_id,
                interviewer_status=InterviewerStatus.PENDING.value,
            )
            db.add(detail)
            new_details.append(detail)
            db.add(
                AssignmentHistory(
                    evaluation_id=ev.id,
                    interviewer_id=interviewer_id,
                    interview_date=slots[slot_id].start_time,
                    assigned_by=int(assigned_by),
                    notes=note,
                    interviewer_status=InterviewerStatus.PENDING.value,
                    hr_final_status=ev.hr_final_status,
                )
            )

        ev.interviewer_overall_status = InterviewerStatus.PENDING.value
        ev.interview_start_url = None
        ev.interview_join_url = None
        db.add(ev)
        db.flush()
        detail_rows = [(int(d.id), int(d.interviewer_id), int(d.slot_id)) for d in new_details]
        db.commit()
    except AppError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Assignment failed for evaluation %s", evaluation_id)
        raise DatabaseError(get_error_message("database_error")) from e

    logger.info(
        "%s: evaluation %s -> %s (released %s slot(s))",
        note, evaluation_id, pairs, released,
    )
    return AssignmentResult(
        evaluation_id=int(evaluation_id),
        note=note,
        interview_start=start,
        duration_minutes=duration,
        details=detail_rows,
        released_slots=int(released or 0),
    )


async def attach_meeting_link(db: Session, result: AssignmentResult, issuer) -> AssignmentResult:
    """Best-effort: request a meeting link for a committed assignment and store its URLs."""
    ev = db.query(Evaluation).filter(Evaluation.id == int(result.evaluation_id)).first()
    if not ev:
        result.meeting_link_error = get_error_message("evaluation_not_found")
        return result

    job_title = ev.job.title if ev.job else "Interview"
    topic = f"Interview: {ev.candidate_name or 'Candidate'} - {job_title}"
    try:
        link = await issuer.create_meeting(
            topic=topic,
            start_time=result.interview_start,
            duration_minutes=result.duration_minutes,
        )
    except MeetingLinkError as e:
        logger.warning("Meeting link failed for evaluation %s: %s", ev.id, e)
        result.meeting_link_error = str(e)
        return result

    try:
        ev.interview_start_url = link.start_url
        ev.interview_join_url = link.join_url
        db.add(ev)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Could not store meeting link for evaluation %s: %s", ev.id, e)
        result.meeting_link_error = get_error_message("meeting_link_failed")
        return result

    result.meeting_link = link
    return result


def _evaluations_for_email(db: Session, email: str) -> list[Evaluation]:
    return (
        db.query(Evaluation)
        .filter(func.lower(func.trim(Evaluation.email)) == email)
        .order_by(Evaluation.created_at.desc(), Evaluation.id.desc())
        .all()
    )


def is_actionable(ev: Evaluation) -> bool:
    """HR has not decided yet and at least one assigned interviewer still owes feedback."""
    if ev.hr_final_status != HrFinalStatus.PENDING.value:
        return False
    return any(
        d.interviewer_id is not None and d.interviewer_status == InterviewerStatus.PENDING.value
        for d in ev.interview_details
    )


def has_active_assignment(db: Session, candidate_email: str | None) -> bool:
    email = normalize_email(candidate_email)
    if not email:
        return False
    return any(is_actionable(ev) for ev in _evaluations_for_email(db, email))


def repair_orphaned_assignments(db: Session, candidate_email: str | None) -> int:
    """
    Clear stale panel bindings for a candidate with no actionable evaluation.

    For every evaluation of that email still holding InterviewDetail rows or claimed slots:
    slots are released, detail rows deleted and the decision fields reset to pending.
    Evaluations HR has already selected or rejected are left as they are. A no-op while any
    evaluation is actionable; safe to run repeatedly. Returns how many evaluations were
    repaired.
    """
    email = normalize_email(candidate_email)
    if not email:
        return 0

    evaluations = _evaluations_for_email(db, email)
    if any(is_actionable(ev) for ev in evaluations):
        return 0

    repaired = 0
    try:
        for ev in evaluations:
            if ev.hr_final_status in TERMINAL_HR_STATUSES:
                continue
            has_details = bool(ev.interview_details)
            has_slots = (
                db.query(TimeSlot.id).filter(TimeSlot.evaluation_id == ev.id).first() is not None
            )
            if not has_details and not has_slots:
                continue
            slot_store.release_slots_for_evaluation(db, ev.id)
            for d in list(ev.interview_details):
                db.delete(d)
            ev.interviewer_overall_status = InterviewerStatus.PENDING.value
            ev.hr_final_status = HrFinalStatus.PENDING.value
            ev.hr_final_reason = None
            ev.hr_remarks = None
            db.add(ev)
            repaired += 1
        if repaired:
            db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Assignment repair failed for %s", email)
        raise DatabaseError(get_error_message("database_error")) from e

    if repaired:
        logger.warning("Repaired %s stale assignment(s) for %s", repaired, email)
    return repaired
