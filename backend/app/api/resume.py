import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.resume import ResumeSubmission
from ..schemas.candidate_profile import ParsedProfile
from ..schemas.match_result import MatchResult
from ..services.assignment import attach_meeting_link
from ..services.identity import list_versions
from ..services.intake import IntakeResult, book_slot_for_candidate, intake_resume, upload_resume
from ..services.meeting_links import get_meeting_link_issuer
from ..services.notifications import queue_assignment_notifications
from ..utils.dependencies import get_current_user
from ..utils.roles import hr_or_admin
from ..utils.validation import validate_string_field
from ..utils.error_handlers import get_error_message
from .common import evaluation_to_public, resume_to_public, slot_to_public

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/resumes", tags=["Resumes"])


class ResumeUploadIn(BaseModel):
    file_name: str = Field(..., min_length=1)
    raw_text: str | None = None
    profile: ParsedProfile
    job_id: int | None = Field(default=None, ge=1)
    match: MatchResult | None = None


class ResumeIntakeIn(BaseModel):
    job_id: int = Field(..., ge=1)
    file_name: str = Field(..., min_length=1)
    raw_text: str | None = None
    profile: ParsedProfile
    match: MatchResult


class BookSlotIn(BaseModel):
    job_id: int = Field(..., ge=1)
    slot_id: int = Field(..., ge=1)


def _intake_payload(result: IntakeResult) -> dict:
    ev = result.evaluation
    return {
        "success": True,
        "resume": resume_to_public(result.resume),
        "is_duplicate": result.identity.is_duplicate,
        "root_id": result.identity.root_id or result.resume.id,
        "version_number": result.resume.version_number,
        "evaluation": evaluation_to_public(ev) if ev else None,
        "can_select_slot": result.can_select_slot,
        "available_slots": [slot_to_public(s) for s in result.available_slots],
    }


@router.post("", status_code=201)
def upload(
    body: ResumeUploadIn,
    db: Session = Depends(get_db),
    user=Depends(hr_or_admin),
):
    """
    HR upload of an already-parsed resume. Duplicates become a new version of the
    candidate's chain; passing job_id + match also opens an evaluation.
    """
    file_name = validate_string_field(body.file_name, "File name", min_length=1, max_length=255)
    result = upload_resume(
        db,
        profile=body.profile,
        file_name=file_name,
        raw_text=body.raw_text,
        job_id=body.job_id,
        match=body.match,
    )
    return _intake_payload(result)


@router.post("/intake", status_code=201)
def intake(body: ResumeIntakeIn, db: Session = Depends(get_db)):
    """
    Candidate application to an open job (public: reached from a job link).

    Rejected while the candidate's email has an evaluation inside the re-application window.
    Strong matches get the job's free slots back so they can pick one.
    """
    file_name = validate_string_field(body.file_name, "File name", min_length=1, max_length=255)
    result = intake_resume(
        db,
        job_id=body.job_id,
        profile=body.profile,
        match=body.match,
        file_name=file_name,
        raw_text=body.raw_text,
    )
    return _intake_payload(result)


@router.post("/intake/{evaluation_id:int}/book-slot")
async def book_slot(
    evaluation_id: int,
    body: BookSlotIn,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    issuer=Depends(get_meeting_link_issuer),
):
    """Candidate books one of the slots offered at intake (public, like /intake)."""
    result = book_slot_for_candidate(db, evaluation_id=evaluation_id, job_id=body.job_id, slot_id=body.slot_id)
    result = await attach_meeting_link(db, result, issuer)
    queue_assignment_notifications(background_tasks, db, result)

    payload = {"success": True, "assignment": result.to_dict()}
    if result.meeting_link_error:
        payload["warning"] = get_error_message("meeting_link_failed")
    return payload


@router.get("/{resume_id:int}")
def get_resume(
    resume_id: int,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    r = db.query(ResumeSubmission).filter(ResumeSubmission.id == int(resume_id)).first()
    if not r:
        raise HTTPException(status_code=404, detail=get_error_message("resume_not_found"))
    payload = resume_to_public(r)
    payload["summary"] = r.summary
    return {"success": True, "resume": payload}


@router.get("/{resume_id:int}/versions")
def resume_versions(
    resume_id: int,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    """Any member of a chain returns the whole chain, newest version first."""
    versions = list_versions(db, int(resume_id))
    if not versions:
        raise HTTPException(status_code=404, detail=get_error_message("resume_not_found"))
    root = next((v for v in versions if v.parent_id is None), versions[-1])
    return {
        "success": True,
        "root_id": root.id,
        "versions": [resume_to_public(v) for v in versions],
    }
