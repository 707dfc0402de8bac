"""
Status transitions for an evaluation.

Every write to the three status axes goes through here:
  - automated match status (score thresholds, HR override)
  - per-interviewer recommendation on an InterviewDetail
  - HR final decision

Inputs are checked before anything is written. AssignmentHistory mirroring happens after the
primary commit and never undoes it.
"""
import json
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import MATCH_ACCEPT_THRESHOLD, MATCH_PENDING_THRESHOLD
from ..models.assignment_history import AssignmentHistory
from ..models.evaluation import Evaluation
from ..models.interview_detail import InterviewDetail
from ..models.status import (
    TERMINAL_INTERVIEWER_STATUSES,
    HrFinalStatus,
    InterviewerStatus,
    MatchStatus,
)
from ..utils.error_handlers import ForbiddenError, NotFoundError, ValidationError, get_error_message

logger = logging.getLogger(__name__)

HR_REMARKS_MAX = 100


def status_from_score(overall_match: float | None) -> str:
    score = float(overall_match or 0)
    if score >= MATCH_ACCEPT_THRESHOLD:
        return MatchStatus.ACCEPTED.value
    if score >= MATCH_PENDING_THRESHOLD:
        return MatchStatus.PENDING.value
    return MatchStatus.REJECTED.value


def _clean(value: str | None) -> str | None:
    value = (value or "").strip()
    return value or None


def _get_evaluation(db: Session, evaluation_id: int) -> Evaluation:
    ev = db.query(Evaluation).filter(Evaluation.id == int(evaluation_id)).first()
    if not ev:
        raise NotFoundError(get_error_message("evaluation_not_found"), details={"evaluation_id": int(evaluation_id)})
    return ev


def update_match_status(
    db: Session,
    *,
    evaluation_id: int,
    status: str,
    rejection_reason: str | None = None,
) -> Evaluation:
    """HR override of the automated outcome. The rejection reason only survives on `rejected`."""
    allowed = {s.value for s in MatchStatus}
    if status not in allowed:
        raise ValidationError(f"Invalid status. Must be one of: {', '.join(sorted(allowed))}")

    ev = _get_evaluation(db, evaluation_id)
    ev.status = status
    ev.rejection_reason = _clean(rejection_reason) if status == MatchStatus.REJECTED.value else None
    db.add(ev)
    db.commit()
    db.refresh(ev)
    logger.info("Evaluation %s match status set to %s", ev.id, status)
    return ev


def aggregate_interviewer_status(statuses: list[str]) -> str:
    """
    Panel summary of the per-interviewer statuses.

    Any `selected` wins. Otherwise, once every interviewer has answered, `on_hold` beats
    `rejected`. Anything still outstanding keeps the panel `pending`.
    """
    if not statuses:
        return InterviewerStatus.PENDING.value
    if InterviewerStatus.SELECTED.value in statuses:
        return InterviewerStatus.SELECTED.value
    if any(s not in TERMINAL_INTERVIEWER_STATUSES for s in statuses):
        return InterviewerStatus.PENDING.value
    if InterviewerStatus.ON_HOLD.value in statuses:
        return InterviewerStatus.ON_HOLD.value
    return InterviewerStatus.REJECTED.value


def _latest_history_row(db: Session, evaluation_id: int, interviewer_id: int) -> AssignmentHistory | None:
    return (
        db.query(AssignmentHistory)
        .filter(
            AssignmentHistory.evaluation_id == int(evaluation_id),
            AssignmentHistory.interviewer_id == int(interviewer_id),
        )
        .order_by(AssignmentHistory.created_at.desc(), AssignmentHistory.id.desc())
        .first()
    )


def _mirror_feedback(db: Session, detail: InterviewDetail) -> bool:
    try:
        row = _latest_history_row(db, detail.evaluation_id, detail.interviewer_id)
        if row is None:
            return False
        row.interviewer_status = detail.interviewer_status
        row.interviewer_feedback = detail.interviewer_feedback
        row.interviewer_hold_reason = detail.interviewer_hold_reason
        db.add(row)
        db.commit()
        return True
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Could not mirror feedback for detail %s onto history: %s", detail.id, e)
        return False


def submit_interviewer_feedback(
    db: Session,
    *,
    interview_detail_id: int,
    actor_id: int,
    status: str,
    ratings: dict | None = None,
    comments: str | None = None,
    hold_reason: str | None = None,
) -> InterviewDetail:
    if status not in TERMINAL_INTERVIEWER_STATUSES:
        raise ValidationError(
            f"Invalid status. Must be one of: {', '.join(sorted(TERMINAL_INTERVIEWER_STATUSES))}"
        )
    hold_reason = _clean(hold_reason)
    if status == InterviewerStatus.ON_HOLD.value and not hold_reason:
        raise ValidationError(get_error_message("hold_reason_required"))

    detail = db.query(InterviewDetail).filter(InterviewDetail.id == int(interview_detail_id)).first()
    if not detail:
        raise NotFoundError(
            get_error_message("interview_detail_not_found"),
            details={"interview_detail_id": int(interview_detail_id)},
        )
    if detail.interviewer_id is None or int(detail.interviewer_id) != int(actor_id):
        logger.info("User %s tried to submit feedback for detail %s", actor_id, detail.id)
        raise ForbiddenError(get_error_message("not_assigned_interviewer"))
    if detail.interviewer_status in TERMINAL_INTERVIEWER_STATUSES:
        raise ValidationError(
            get_error_message("feedback_already_submitted"),
            details={"interviewer_status": detail.interviewer_status},
        )

    payload = {"ratings": ratings or {}, "comments": _clean(comments)}
    detail.interviewer_status = status
    detail.interviewer_feedback = json.dumps(payload, ensure_ascii=False)
    detail.interviewer_hold_reason = hold_reason if status == InterviewerStatus.ON_HOLD.value else None
    db.add(detail)

    ev = detail.evaluation
    siblings = db.query(InterviewDetail.interviewer_status).filter(
        InterviewDetail.evaluation_id == int(detail.evaluation_id),
        InterviewDetail.id != int(detail.id),
    ).all()
    ev.interviewer_overall_status = aggregate_interviewer_status([status] + [r[0] for r in siblings])
    db.add(ev)
    db.commit()
    db.refresh(detail)
    logger.info("Interviewer %s submitted %s for evaluation %s", actor_id, status, detail.evaluation_id)

    _mirror_feedback(db, detail)
    return detail


def _hr_reason_required(db: Session, evaluation_id: int, status: str) -> str | None:
    """Error key when `status` needs a justification, else None."""
    if status in {HrFinalStatus.REJECTED.value, HrFinalStatus.ON_HOLD.value}:
        return "decision_reason_required"
    if status == HrFinalStatus.SELECTED.value:
        panel_selected = (
            db.query(InterviewDetail.id)
            .filter(
                InterviewDetail.evaluation_id == int(evaluation_id),
                InterviewDetail.interviewer_status == InterviewerStatus.SELECTED.value,
            )
            .first()
        )
        if panel_selected is None:
            return "override_reason_required"
    return None


def _mirror_hr_decision(db: Session, ev: Evaluation) -> int:
    try:
        mirrored = 0
        for detail in ev.interview_details:
            if detail.interviewer_id is None:
                continue
            row = _latest_history_row(db, ev.id, detail.interviewer_id)
            if row is None:
                continue
            row.hr_final_status = ev.hr_final_status
            row.hr_final_reason = ev.hr_final_reason
            row.hr_remarks = ev.hr_remarks
            db.add(row)
            mirrored += 1
        db.commit()
        return mirrored
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Could not mirror HR decision for evaluation %s onto history: %s", ev.id, e)
        return 0


def submit_hr_decision(
    db: Session,
    *,
    evaluation_id: int,
    actor_id: int,
    status: str,
    reason: str | None = None,
    remarks: str | None = None,
) -> Evaluation:
    allowed = {s.value for s in HrFinalStatus}
    if status not in allowed:
        raise ValidationError(f"Invalid status. Must be one of: {', '.join(sorted(allowed))}")
    remarks = _clean(remarks)
    if remarks and len(remarks) > HR_REMARKS_MAX:
        raise ValidationError(f"HR remarks must not exceed {HR_REMARKS_MAX} characters")
    reason = _clean(reason)

    ev = _get_evaluation(db, evaluation_id)
    missing = _hr_reason_required(db, ev.id, status)
    if missing and not reason:
        raise ValidationError(get_error_message(missing), details={"status": status})

    ev.hr_final_status = status
    # Reason is only stored where it is mandatory.
    ev.hr_final_reason = reason if missing else None
    ev.hr_remarks = remarks
    db.add(ev)
    db.commit()
    db.refresh(ev)
    logger.info("HR user %s set evaluation %s to %s", actor_id, ev.id, status)

    _mirror_hr_decision(db, ev)
    return ev
