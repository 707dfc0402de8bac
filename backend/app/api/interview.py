import logging
from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.evaluation import Evaluation
from ..models.interview_detail import InterviewDetail
from ..models.job import JobDescription
from ..services import slot_store
from ..services.assignment import (
    assign_interviewers,
    attach_meeting_link,
    has_active_assignment,
    is_actionable,
    repair_orphaned_assignments,
)
from ..services.decision_gate import submit_interviewer_feedback
from ..services.meeting_links import get_meeting_link_issuer
from ..services.notifications import queue_assignment_notifications, queue_feedback_notification
from ..utils.datetimes import iso_utc
from ..utils.roles import hr_or_admin, interviewer_only
from ..utils.validation import (
    parse_id_list,
    validate_datetime_field,
    validate_email,
    validate_integer_field,
    validate_interviewer_status,
    validate_string_field,
)
from ..utils.error_handlers import get_error_message
from .common import detail_to_public, evaluation_to_public, slot_to_public

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/interviews", tags=["Interviews"])


class AssignmentPair(BaseModel):
    interviewer_id: int = Field(..., ge=1)
    slot_id: int = Field(..., ge=1)


class AssignIn(BaseModel):
    evaluation_id: int = Field(..., ge=1)
    interviewer_id: int = Field(..., ge=1)
    slot_id: int = Field(..., ge=1)
    interview_start: str | None = None


class ReassignIn(BaseModel):
    interviewer_id: int = Field(..., ge=1)
    slot_id: int = Field(..., ge=1)
    interview_start: str | None = None


class BulkAssignIn(BaseModel):
    evaluation_id: int = Field(..., ge=1)
    assignments: list[AssignmentPair]
    interview_start: str | None = None


class FeedbackIn(BaseModel):
    status: str
    ratings: dict[str, int] | None = None
    comments: str | None = None
    hold_reason: str | None = None


class SlotIn(BaseModel):
    start_time: str
    end_time: str


class SlotsCreateIn(BaseModel):
    slots: list[SlotIn]


class SlotsGenerateIn(BaseModel):
    date: str  # YYYY-MM-DD
    start_time: str | None = None  # HH:MM (UTC)
    end_time: str | None = None


async def _assign(
    *,
    db: Session,
    background_tasks: BackgroundTasks,
    issuer,
    user: dict,
    evaluation_id: int,
    pairs: list[tuple[int, int]],
    interview_start: str | None,
) -> dict:
    start = validate_datetime_field(interview_start, "interview_start", required=False)
    result = assign_interviewers(
        db,
        evaluation_id=evaluation_id,
        assignments=pairs,
        assigned_by=int(user["sub"]),
        interview_start=start,
    )
    result = await attach_meeting_link(db, result, issuer)
    queue_assignment_notifications(background_tasks, db, result)

    payload = {"success": True, "assignment": result.to_dict()}
    if result.meeting_link_error:
        payload["warning"] = get_error_message("meeting_link_failed")
    return payload


@router.post("/assign")
async def assign_interview(
    body: AssignIn,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    issuer=Depends(get_meeting_link_issuer),
    user=Depends(hr_or_admin),
):
    """
    Assign one interviewer/slot to an evaluation. An existing panel is released and
    replaced, so this doubles as reassignment.
    """
    return await _assign(
        db=db,
        background_tasks=background_tasks,
        issuer=issuer,
        user=user,
        evaluation_id=body.evaluation_id,
        pairs=[(body.interviewer_id, body.slot_id)],
        interview_start=body.interview_start,
    )


@router.put("/assign/{evaluation_id:int}")
async def reassign_interview(
    evaluation_id: int,
    body: ReassignIn,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    issuer=Depends(get_meeting_link_issuer),
    user=Depends(hr_or_admin),
):
    return await _assign(
        db=db,
        background_tasks=background_tasks,
        issuer=issuer,
        user=user,
        evaluation_id=evaluation_id,
        pairs=[(body.interviewer_id, body.slot_id)],
        interview_start=body.interview_start,
    )


@router.post("/assign/bulk")
async def bulk_assign_interview(
    body: BulkAssignIn,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    issuer=Depends(get_meeting_link_issuer),
    user=Depends(hr_or_admin),
):
    """Panel interview: several interviewers, each on one of their own slots."""
    return await _assign(
        db=db,
        background_tasks=background_tasks,
        issuer=issuer,
        user=user,
        evaluation_id=body.evaluation_id,
        pairs=[(a.interviewer_id, a.slot_id) for a in body.assignments],
        interview_start=body.interview_start,
    )


@router.post("/details/{detail_id:int}/feedback")
def submit_feedback(
    detail_id: int,
    body: FeedbackIn,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user=Depends(interviewer_only),
):
    status = validate_interviewer_status(body.status)
    if body.ratings:
        for key, value in body.ratings.items():
            validate_integer_field(value, f"Rating '{key}'", min_value=1, max_value=5)
    comments = validate_string_field(body.comments, "Comments", max_length=5000, required=False)

    detail = submit_interviewer_feedback(
        db,
        interview_detail_id=detail_id,
        actor_id=int(user["sub"]),
        status=status,
        ratings=body.ratings,
        comments=comments,
        hold_reason=body.hold_reason,
    )
    queue_feedback_notification(background_tasks, db, detail)
    return {
        "success": True,
        "interview_detail": detail_to_public(detail),
        "interviewer_overall_status": detail.evaluation.interviewer_overall_status,
    }


@router.get("/my-assignments")
def my_assignments(
    status: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user=Depends(interviewer_only),
):
    q = db.query(InterviewDetail).filter(InterviewDetail.interviewer_id == int(user["sub"]))
    if status:
        q = q.filter(InterviewDetail.interviewer_status == validate_interviewer_status(status))
    rows = q.order_by(InterviewDetail.id.desc()).all()

    items: list[dict] = []
    for d in rows:
        ev = d.evaluation
        item = detail_to_public(d)
        item["evaluation"] = {
            "id": ev.id,
            "candidate_name": ev.candidate_name,
            "email": ev.email,
            "job_title": ev.job.title if ev.job else None,
            "overall_match": ev.overall_match,
            "interview_start_url": ev.interview_start_url,
            "interview_join_url": ev.interview_join_url,
        }
        items.append(item)
    return {"success": True, "assignments": items}


@router.post("/slots/generate", status_code=201)
def generate_slots(
    body: SlotsGenerateIn,
    db: Session = Depends(get_db),
    user=Depends(interviewer_only),
):
    """Fill a day with back-to-back slots (default 09:00-18:00 UTC)."""
    try:
        day = date.fromisoformat((body.date or "").strip())
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date format. Use YYYY-MM-DD.")

    slots = slot_store.generate_slots(
        db,
        interviewer_id=int(user["sub"]),
        day=day,
        start_hhmm=body.start_time,
        end_hhmm=body.end_time,
    )
    return {"success": True, "slots": [slot_to_public(s) for s in slots]}


@router.post("/slots", status_code=201)
def create_slots(
    body: SlotsCreateIn,
    db: Session = Depends(get_db),
    user=Depends(interviewer_only),
):
    if not body.slots:
        raise HTTPException(status_code=400, detail="At least one slot is required")
    intervals = [
        (
            validate_datetime_field(s.start_time, "start_time"),
            validate_datetime_field(s.end_time, "end_time"),
        )
        for s in body.slots
    ]
    slots = slot_store.publish_slots(db, interviewer_id=int(user["sub"]), intervals=intervals)
    return {"success": True, "slots": [slot_to_public(s) for s in slots]}


@router.get("/my-slots")
def my_slots(
    start_from: str | None = Query(default=None, alias="from"),
    end_to: str | None = Query(default=None, alias="to"),
    db: Session = Depends(get_db),
    user=Depends(interviewer_only),
):
    slots = slot_store.list_interviewer_slots(
        db,
        interviewer_id=int(user["sub"]),
        start_from=validate_datetime_field(start_from, "from", required=False),
        end_to=validate_datetime_field(end_to, "to", required=False),
    )
    return {"success": True, "slots": [slot_to_public(s) for s in slots]}


@router.delete("/slots/{slot_id:int}")
def delete_slot(
    slot_id: int,
    db: Session = Depends(get_db),
    user=Depends(interviewer_only),
):
    slot_store.delete_free_slot(db, slot_id=slot_id, interviewer_id=int(user["sub"]))
    return {"success": True, "deleted_slot_id": int(slot_id)}


@router.get("/available-slots")
def available_slots(
    job_id: int | None = Query(default=None, ge=1),
    interviewer_id: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    user=Depends(hr_or_admin),
):
    """
    Free future slots. With job_id, restricted to the job's mapped interviewers when the
    job has a mapping.
    """
    interviewer_ids: list[int] = []
    if job_id is not None:
        job = db.query(JobDescription).filter(JobDescription.id == int(job_id)).first()
        if not job:
            raise HTTPException(status_code=404, detail=get_error_message("job_not_found"))
        interviewer_ids = job.interviewer_ids

    if interviewer_id is not None:
        if interviewer_ids and int(interviewer_id) not in interviewer_ids:
            raise HTTPException(status_code=400, detail="Interviewer is not mapped to this job")
        interviewer_ids = [int(interviewer_id)]

    slots = slot_store.list_available_slots(db, interviewer_ids=interviewer_ids or None)
    return {"success": True, "slots": [slot_to_public(s) for s in slots]}


@router.get("/panel-slots")
def panel_slots(
    interviewer_ids: str = Query(..., description="Comma-separated interviewer ids"),
    db: Session = Depends(get_db),
    user=Depends(hr_or_admin),
):
    """Intervals at which every listed interviewer is free."""
    ids = parse_id_list(interviewer_ids, "interviewer_ids")
    if not ids:
        raise HTTPException(status_code=400, detail="interviewer_ids is required")
    pairs = slot_store.list_panel_slots(db, ids)
    return {
        "success": True,
        "interviewer_ids": sorted(set(ids)),
        "slots": [{"start_time": iso_utc(s), "end_time": iso_utc(e)} for s, e in pairs],
    }


@router.get("/assignment-status")
def assignment_status(
    email: str = Query(...),
    db: Session = Depends(get_db),
    user=Depends(hr_or_admin),
):
    """
    Whether the candidate has an interview in progress. Stale bindings left on finished
    evaluations are cleaned up before answering.
    """
    email = validate_email(email)
    repaired = repair_orphaned_assignments(db, email)
    rows = (
        db.query(Evaluation)
        .filter(Evaluation.email == email)
        .order_by(Evaluation.created_at.desc(), Evaluation.id.desc())
        .all()
    )
    return {
        "success": True,
        "email": email,
        "has_active_assignment": has_active_assignment(db, email),
        "repaired": repaired,
        "evaluations": [
            {**evaluation_to_public(ev, include_details=True), "actionable": is_actionable(ev)} for ev in rows
        ],
    }
