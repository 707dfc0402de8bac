"""JSON shapes shared by several routers."""
from ..models.assignment_history import AssignmentHistory
from ..models.evaluation import Evaluation
from ..models.interview_detail import InterviewDetail
from ..models.resume import ResumeSubmission
from ..models.time_slot import TimeSlot
from ..utils.datetimes import iso_utc


def slot_to_public(slot: TimeSlot) -> dict:
    return {
        "id": slot.id,
        "interviewer_id": slot.interviewer_id,
        "start_time": iso_utc(slot.start_time),
        "end_time": iso_utc(slot.end_time),
        "duration_minutes": slot.duration_minutes,
        "is_booked": bool(slot.is_booked),
        "evaluation_id": slot.evaluation_id,
        "job_id": slot.job_id,
    }


def resume_to_public(r: ResumeSubmission) -> dict:
    return {
        "id": r.id,
        "file_name": r.file_name,
        "name": r.name,
        "email": r.email,
        "phone": r.phone,
        "location": r.location,
        "total_experience": r.total_experience,
        "parent_id": r.parent_id,
        "version_number": r.version_number or 1,
        "created_at": iso_utc(r.created_at),
    }


def detail_to_public(d: InterviewDetail) -> dict:
    slot = d.slot
    interviewer = d.interviewer
    return {
        "id": d.id,
        "evaluation_id": d.evaluation_id,
        "slot_id": d.slot_id,
        "interviewer_id": d.interviewer_id,
        "interviewer_name": interviewer.display_name if interviewer else None,
        "start_time": iso_utc(slot.start_time) if slot else None,
        "end_time": iso_utc(slot.end_time) if slot else None,
        "interviewer_status": d.interviewer_status,
        "interviewer_feedback": d.feedback,
        "interviewer_hold_reason": d.interviewer_hold_reason,
    }


def evaluation_to_public(ev: Evaluation, *, include_details: bool = False) -> dict:
    out = {
        "id": ev.id,
        "resume_id": ev.resume_id,
        "job_id": ev.job_id,
        "job_title": ev.job.title if ev.job else None,
        "candidate_name": ev.candidate_name,
        "email": ev.email,
        "contact_number": ev.contact_number,
        "overall_match": ev.overall_match,
        "skills_match": ev.skills_match,
        "experience_match": ev.experience_match,
        "education_match": ev.education_match,
        "status": ev.status,
        "rejection_reason": ev.rejection_reason,
        "interviewer_overall_status": ev.interviewer_overall_status,
        "hr_final_status": ev.hr_final_status,
        "hr_final_reason": ev.hr_final_reason,
        "hr_remarks": ev.hr_remarks,
        "interview_start_url": ev.interview_start_url,
        "interview_join_url": ev.interview_join_url,
        "created_at": iso_utc(ev.created_at),
    }
    if include_details:
        out["interview_details"] = [detail_to_public(d) for d in ev.interview_details]
    return out


def history_to_public(h: AssignmentHistory) -> dict:
    return {
        "id": h.id,
        "evaluation_id": h.evaluation_id,
        "interviewer_id": h.interviewer_id,
        "interview_date": iso_utc(h.interview_date),
        "assigned_by": h.assigned_by,
        "notes": h.notes,
        "interviewer_status": h.interviewer_status,
        "interviewer_hold_reason": h.interviewer_hold_reason,
        "hr_final_status": h.hr_final_status,
        "hr_final_reason": h.hr_final_reason,
        "hr_remarks": h.hr_remarks,
        "created_at": iso_utc(h.created_at),
    }
