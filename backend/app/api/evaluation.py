import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.assignment_history import AssignmentHistory
from ..models.evaluation import Evaluation
from ..services.decision_gate import submit_hr_decision, update_match_status
from ..utils.dependencies import get_current_user
from ..utils.roles import hr_or_admin
from ..utils.validation import (
    validate_hr_status,
    validate_match_status,
    validate_string_field,
)
from ..utils.error_handlers import get_error_message
from .common import evaluation_to_public, history_to_public

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/evaluations", tags=["Evaluations"])


def _get_evaluation_or_404(db: Session, evaluation_id: int) -> Evaluation:
    ev = db.query(Evaluation).filter(Evaluation.id == int(evaluation_id)).first()
    if not ev:
        raise HTTPException(status_code=404, detail=get_error_message("evaluation_not_found"))
    return ev


def _panel_summary(ev: Evaluation) -> dict:
    counts: dict[str, int] = {}
    for d in ev.interview_details:
        counts[d.interviewer_status] = counts.get(d.interviewer_status, 0) + 1
    return {"overall": ev.interviewer_overall_status, "counts": counts, "interviewers": len(ev.interview_details)}


class MatchStatusIn(BaseModel):
    status: str
    rejection_reason: str | None = None


class HrDecisionIn(BaseModel):
    status: str
    reason: str | None = None
    remarks: str | None = None


@router.get("")
def list_evaluations(
    job_id: int | None = Query(default=None, ge=1),
    status: str | None = Query(default=None),
    hr_final_status: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user=Depends(hr_or_admin),
):
    q = db.query(Evaluation)
    if job_id is not None:
        q = q.filter(Evaluation.job_id == int(job_id))
    if status:
        q = q.filter(Evaluation.status == validate_match_status(status))
    if hr_final_status:
        q = q.filter(Evaluation.hr_final_status == validate_hr_status(hr_final_status))
    rows = q.order_by(Evaluation.overall_match.desc(), Evaluation.created_at.desc()).all()
    return {"success": True, "evaluations": [evaluation_to_public(ev) for ev in rows]}


@router.get("/{evaluation_id:int}")
def get_evaluation(
    evaluation_id: int,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    ev = _get_evaluation_or_404(db, evaluation_id)
    if user.get("role") == "Interviewer" and not any(
        int(d.interviewer_id or 0) == int(user["sub"]) for d in ev.interview_details
    ):
        raise HTTPException(status_code=403, detail=get_error_message("forbidden"))

    payload = evaluation_to_public(ev, include_details=True)
    payload["panel"] = _panel_summary(ev)
    return {"success": True, "evaluation": payload}


@router.patch("/{evaluation_id:int}/status")
def set_match_status(
    evaluation_id: int,
    body: MatchStatusIn,
    db: Session = Depends(get_db),
    user=Depends(hr_or_admin),
):
    """HR override of the automated match outcome."""
    status = validate_match_status(body.status)
    reason = validate_string_field(body.rejection_reason, "Rejection reason", max_length=2000, required=False)
    ev = update_match_status(db, evaluation_id=evaluation_id, status=status, rejection_reason=reason)
    return {"success": True, "evaluation": evaluation_to_public(ev)}


@router.post("/{evaluation_id:int}/hr-decision")
def hr_decision(
    evaluation_id: int,
    body: HrDecisionIn,
    db: Session = Depends(get_db),
    user=Depends(hr_or_admin),
):
    status = validate_hr_status(body.status)
    ev = submit_hr_decision(
        db,
        evaluation_id=evaluation_id,
        actor_id=int(user["sub"]),
        status=status,
        reason=body.reason,
        remarks=body.remarks,
    )
    return {"success": True, "evaluation": evaluation_to_public(ev, include_details=True)}


@router.get("/{evaluation_id:int}/history")
def assignment_history(
    evaluation_id: int,
    db: Session = Depends(get_db),
    user=Depends(hr_or_admin),
):
    _get_evaluation_or_404(db, evaluation_id)
    rows = (
        db.query(AssignmentHistory)
        .filter(AssignmentHistory.evaluation_id == int(evaluation_id))
        .order_by(AssignmentHistory.created_at.asc(), AssignmentHistory.id.asc())
        .all()
    )
    return {"success": True, "history": [history_to_public(h) for h in rows]}
