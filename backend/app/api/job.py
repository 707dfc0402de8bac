import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.job import JobDescription
from ..models.status import UserRole
from ..models.user import User
from ..utils.datetimes import iso_utc
from ..utils.dependencies import get_current_user
from ..utils.roles import hr_or_admin
from ..utils.validation import validate_job_status, validate_string_field
from ..utils.error_handlers import get_error_message, handle_database_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["Jobs"])


def _job_to_public(job: JobDescription) -> dict:
    return {
        "id": job.id,
        "title": job.title,
        "description": job.description,
        "requirements": job.requirements,
        "interviewers": job.interviewer_ids,
        "status": job.status,
        "created_at": iso_utc(job.created_at),
    }


def _validate_interviewer_mapping(db: Session, interviewer_ids: list[int] | None) -> str | None:
    """Every id must be an active Interviewer. Returns the JSON column value."""
    if not interviewer_ids:
        return None
    ids = sorted({int(i) for i in interviewer_ids})
    found = {
        u.id
        for u in db.query(User)
        .filter(User.id.in_(ids), User.role == UserRole.INTERVIEWER.value, User.status == "active")
        .all()
    }
    missing = [i for i in ids if i not in found]
    if missing:
        raise HTTPException(
            status_code=400,
            detail=f"{get_error_message('interviewer_not_found')} ({', '.join(str(i) for i in missing)})",
        )
    return json.dumps(ids)


class JobCreate(BaseModel):
    title: str
    description: str
    requirements: str | None = None
    interviewers: list[int] | None = None
    status: str | None = None


class JobUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    requirements: str | None = None
    interviewers: list[int] | None = None
    status: str | None = None


@router.post("", status_code=201)
def create_job(
    payload: JobCreate,
    db: Session = Depends(get_db),
    user=Depends(hr_or_admin),
):
    title = validate_string_field(payload.title, "Title", min_length=2, max_length=255, required=True)
    description = validate_string_field(payload.description, "Description", min_length=10, max_length=20000, required=True)
    requirements = validate_string_field(payload.requirements, "Requirements", min_length=1, max_length=20000, required=False)
    status = validate_job_status(payload.status)

    job = JobDescription(
        title=title,
        description=description,
        requirements=requirements,
        interviewers=_validate_interviewer_mapping(db, payload.interviewers),
        status=status,
    )
    try:
        db.add(job)
        db.commit()
        db.refresh(job)
    except SQLAlchemyError as e:
        db.rollback()
        raise handle_database_error(e, "creating job")

    logger.info("Job %s created by %s", job.id, user.get("sub"))
    return {"success": True, "job": _job_to_public(job)}


@router.get("")
def list_jobs(
    status: str | None = Query(default=None, description="Open / On Hold"),
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    q = db.query(JobDescription)
    if status:
        q = q.filter(JobDescription.status == validate_job_status(status))
    jobs = q.order_by(JobDescription.created_at.desc(), JobDescription.id.desc()).all()
    return {"success": True, "jobs": [_job_to_public(j) for j in jobs]}


@router.get("/{job_id:int}")
def get_job(
    job_id: int,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    job = db.query(JobDescription).filter(JobDescription.id == int(job_id)).first()
    if not job:
        raise HTTPException(status_code=404, detail=get_error_message("job_not_found"))
    return {"success": True, "job": _job_to_public(job)}


@router.patch("/{job_id:int}")
def update_job(
    job_id: int,
    payload: JobUpdate,
    db: Session = Depends(get_db),
    user=Depends(hr_or_admin),
):
    job = db.query(JobDescription).filter(JobDescription.id == int(job_id)).first()
    if not job:
        raise HTTPException(status_code=404, detail=get_error_message("job_not_found"))

    if payload.title is not None:
        job.title = validate_string_field(payload.title, "Title", min_length=2, max_length=255, required=True)
    if payload.description is not None:
        job.description = validate_string_field(
            payload.description, "Description", min_length=10, max_length=20000, required=True
        )
    if payload.requirements is not None:
        job.requirements = validate_string_field(
            payload.requirements, "Requirements", min_length=1, max_length=20000, required=False
        )
    if payload.interviewers is not None:
        job.interviewers = _validate_interviewer_mapping(db, payload.interviewers)
    if payload.status is not None:
        job.status = validate_job_status(payload.status)

    try:
        db.add(job)
        db.commit()
        db.refresh(job)
    except SQLAlchemyError as e:
        db.rollback()
        raise handle_database_error(e, "updating job")

    return {"success": True, "job": _job_to_public(job)}
