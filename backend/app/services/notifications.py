"""
Queue notification emails on FastAPI BackgroundTasks.

Everything here is fire-and-forget: recipients are looked up now, sending happens after the
response, and failures end up in the log only.
"""
import logging

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from ..models.evaluation import Evaluation
from ..models.interview_detail import InterviewDetail
from ..models.status import UserRole
from ..models.user import User
from ..utils.datetimes import iso_utc
from .assignment import AssignmentResult
from .emailer import (
    safe_send,
    send_hr_notification,
    send_interview_assignment_to_candidate,
    send_interview_assignment_to_interviewer,
)

logger = logging.getLogger(__name__)


def _hr_recipients(db: Session) -> list[str]:
    rows = (
        db.query(User.email)
        .filter(User.role.in_([UserRole.HR.value, UserRole.ADMIN.value]), User.status == "active")
        .all()
    )
    return [r[0] for r in rows if r[0]]


def queue_assignment_notifications(
    background_tasks: BackgroundTasks,
    db: Session,
    result: AssignmentResult,
) -> int:
    """Interviewers, the candidate and HR/Admin. Returns how many emails were queued."""
    ev = db.query(Evaluation).filter(Evaluation.id == int(result.evaluation_id)).first()
    if not ev:
        return 0
    job_title = ev.job.title if ev.job else None
    when = iso_utc(result.interview_start)
    start_url = result.meeting_link.start_url if result.meeting_link else None
    join_url = result.meeting_link.join_url if result.meeting_link else None

    queued = 0
    interviewer_ids = [i_id for _, i_id, _ in result.details]
    interviewers = db.query(User).filter(User.id.in_(interviewer_ids)).all() if interviewer_ids else []
    for u in interviewers:
        background_tasks.add_task(
            safe_send,
            send_interview_assignment_to_interviewer,
            to_email=u.email,
            interviewer_name=u.display_name,
            candidate_name=ev.candidate_name,
            job_title=job_title,
            interview_start=when,
            start_url=start_url,
        )
        queued += 1

    if ev.email:
        background_tasks.add_task(
            safe_send,
            send_interview_assignment_to_candidate,
            to_email=ev.email,
            candidate_name=ev.candidate_name,
            job_title=job_title,
            interview_start=when,
            join_url=join_url,
        )
        queued += 1

    names = ", ".join(u.display_name for u in interviewers) or "-"
    for email in _hr_recipients(db):
        background_tasks.add_task(
            safe_send,
            send_hr_notification,
            to_email=email,
            subject=f"{result.note}: {ev.candidate_name or 'Candidate'}",
            lines=[
                f"Candidate: {ev.candidate_name or '-'} ({ev.email or '-'})",
                f"Job: {job_title or '-'}",
                f"Interviewer(s): {names}",
                f"When: {when} (UTC)",
            ],
        )
        queued += 1

    logger.debug("Queued %s assignment email(s) for evaluation %s", queued, ev.id)
    return queued


def queue_feedback_notification(
    background_tasks: BackgroundTasks,
    db: Session,
    detail: InterviewDetail,
) -> int:
    ev = detail.evaluation
    interviewer = detail.interviewer
    feedback = detail.feedback or {}
    lines = [
        f"Candidate: {ev.candidate_name or '-'} ({ev.email or '-'})",
        f"Interviewer: {interviewer.display_name if interviewer else '-'}",
        f"Recommendation: {detail.interviewer_status}",
        f"Panel status: {ev.interviewer_overall_status}",
    ]
    if detail.interviewer_hold_reason:
        lines.append(f"Hold reason: {detail.interviewer_hold_reason}")
    if feedback.get("comments"):
        lines.append(f"Comments: {feedback['comments']}")

    queued = 0
    for email in _hr_recipients(db):
        background_tasks.add_task(
            safe_send,
            send_hr_notification,
            to_email=email,
            subject=f"Interview feedback: {ev.candidate_name or 'Candidate'}",
            lines=lines,
        )
        queued += 1
    return queued
