"""
Interviewer time slots.

TimeSlot rows are the one resource several requests fight over, so every state change goes
through the two conditional writes here:

    claim:   UPDATE ... SET is_booked=1, evaluation_id=? WHERE id=? AND is_booked=0
    release: UPDATE ... SET is_booked=0, evaluation_id=NULL WHERE id=?

A claim that matches zero rows lost the race and surfaces as ConflictError. claim/release do
not commit; the caller owns the transaction (see services.assignment).
"""
import logging
from datetime import date, datetime, timedelta

from sqlalchemy import distinct, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import SLOT_DAY_END, SLOT_DAY_START, SLOT_MINUTES
from ..models.time_slot import TimeSlot
from ..models.user import User
from ..utils.datetimes import combine_day, to_utc_naive, utcnow
from ..utils.error_handlers import ConflictError, NotFoundError, ValidationError, get_error_message

logger = logging.getLogger(__name__)


def _interval(start_time: datetime, end_time: datetime) -> tuple[datetime, datetime]:
    start = to_utc_naive(start_time)
    end = to_utc_naive(end_time)
    if end <= start:
        raise ValidationError(get_error_message("invalid_slot_range"), details={"start_time": str(start)})
    return start, end


def _find_exact(db: Session, interviewer_id: int, start: datetime, end: datetime) -> TimeSlot | None:
    return (
        db.query(TimeSlot)
        .filter(
            TimeSlot.interviewer_id == int(interviewer_id),
            TimeSlot.start_time == start,
            TimeSlot.end_time == end,
        )
        .first()
    )


def publish_slots(
    db: Session,
    *,
    interviewer_id: int,
    intervals: list[tuple[datetime, datetime]],
) -> list[TimeSlot]:
    """
    Publish free slots for an interviewer. Re-publishing an existing (start, end) is a no-op
    that returns the existing row, booked or not.
    """
    if not intervals:
        raise ValidationError("At least one slot is required")

    wanted: list[tuple[datetime, datetime]] = []
    for start_time, end_time in intervals:
        pair = _interval(start_time, end_time)
        if pair not in wanted:
            wanted.append(pair)

    for start, end in wanted:
        if _find_exact(db, interviewer_id, start, end) is None:
            db.add(TimeSlot(interviewer_id=int(interviewer_id), start_time=start, end_time=end, is_booked=False))

    try:
        db.commit()
    except IntegrityError:
        # A concurrent publish inserted one of the same intervals first; theirs is as good as ours.
        db.rollback()
        logger.info("Concurrent publish for interviewer %s; re-reading existing slots", interviewer_id)
        for start, end in wanted:
            if _find_exact(db, interviewer_id, start, end) is None:
                db.add(TimeSlot(interviewer_id=int(interviewer_id), start_time=start, end_time=end, is_booked=False))
        db.commit()

    slots = [_find_exact(db, interviewer_id, start, end) for start, end in wanted]
    return sorted((s for s in slots if s is not None), key=lambda s: s.start_time)


def publish_slot(db: Session, *, interviewer_id: int, start_time: datetime, end_time: datetime) -> TimeSlot:
    return publish_slots(db, interviewer_id=interviewer_id, intervals=[(start_time, end_time)])[0]


def generate_slots(
    db: Session,
    *,
    interviewer_id: int,
    day: date,
    start_hhmm: str | None = None,
    end_hhmm: str | None = None,
    slot_minutes: int = SLOT_MINUTES,
) -> list[TimeSlot]:
    """Cut [start, end) on `day` into back-to-back slots of `slot_minutes` (partial tail dropped)."""
    try:
        range_start = combine_day(day, start_hhmm or SLOT_DAY_START)
        range_end = combine_day(day, end_hhmm or SLOT_DAY_END)
    except ValueError as e:
        raise ValidationError(str(e))
    if range_end <= range_start:
        raise ValidationError(get_error_message("invalid_slot_range"))

    step = timedelta(minutes=int(slot_minutes))
    intervals: list[tuple[datetime, datetime]] = []
    cursor = range_start
    while cursor + step <= range_end:
        intervals.append((cursor, cursor + step))
        cursor += step

    if not intervals:
        raise ValidationError(f"No {slot_minutes}-minute slots could be generated for the given range")
    return publish_slots(db, interviewer_id=interviewer_id, intervals=intervals)


def claim_slot(
    db: Session,
    *,
    slot_id: int,
    evaluation_id: int,
    job_id: int | None,
    interviewer_id: int | None = None,
) -> None:
    """
    Book `slot_id` for `evaluation_id` if and only if it is still free.

    Raises NotFoundError for an unknown slot, ValidationError when the slot belongs to a
    different interviewer, ConflictError when someone else holds it.
    """
    q = db.query(TimeSlot).filter(TimeSlot.id == int(slot_id), TimeSlot.is_booked.is_(False))
    if interviewer_id is not None:
        q = q.filter(TimeSlot.interviewer_id == int(interviewer_id))
    claimed = q.update(
        {
            TimeSlot.is_booked: True,
            TimeSlot.evaluation_id: int(evaluation_id),
            TimeSlot.job_id: job_id,
        },
        synchronize_session=False,
    )
    if claimed == 1:
        logger.info("Slot %s claimed for evaluation %s", slot_id, evaluation_id)
        return

    slot = db.query(TimeSlot).filter(TimeSlot.id == int(slot_id)).first()
    if slot is None:
        raise NotFoundError(get_error_message("slot_not_found"), details={"slot_id": int(slot_id)})
    if interviewer_id is not None and int(slot.interviewer_id) != int(interviewer_id):
        raise ValidationError(
            "Selected slot does not belong to this interviewer",
            details={"slot_id": int(slot_id), "interviewer_id": int(interviewer_id)},
        )
    logger.info("Slot %s claim lost for evaluation %s", slot_id, evaluation_id)
    raise ConflictError(get_error_message("slot_unavailable"), details={"slot_id": int(slot_id)})


def release_slot(db: Session, slot_id: int) -> None:
    """Free a slot. Safe on an already-free or missing slot."""
    db.query(TimeSlot).filter(TimeSlot.id == int(slot_id)).update(
        {TimeSlot.is_booked: False, TimeSlot.evaluation_id: None, TimeSlot.job_id: None},
        synchronize_session=False,
    )


def release_slots_for_evaluation(db: Session, evaluation_id: int) -> int:
    """Free every slot currently claimed on behalf of `evaluation_id`; returns how many."""
    return (
        db.query(TimeSlot)
        .filter(TimeSlot.evaluation_id == int(evaluation_id))
        .update(
            {TimeSlot.is_booked: False, TimeSlot.evaluation_id: None, TimeSlot.job_id: None},
            synchronize_session=False,
        )
    )


def delete_free_slot(db: Session, *, slot_id: int, interviewer_id: int) -> None:
    deleted = (
        db.query(TimeSlot)
        .filter(
            TimeSlot.id == int(slot_id),
            TimeSlot.interviewer_id == int(interviewer_id),
            TimeSlot.is_booked.is_(False),
        )
        .delete(synchronize_session=False)
    )
    if deleted == 0:
        db.rollback()
        raise NotFoundError(get_error_message("slot_not_deletable"), details={"slot_id": int(slot_id)})
    db.commit()


def list_interviewer_slots(
    db: Session,
    *,
    interviewer_id: int,
    start_from: datetime | None = None,
    end_to: datetime | None = None,
) -> list[TimeSlot]:
    q = db.query(TimeSlot).filter(TimeSlot.interviewer_id == int(interviewer_id))
    if start_from is not None:
        q = q.filter(TimeSlot.start_time >= to_utc_naive(start_from))
    if end_to is not None:
        q = q.filter(TimeSlot.end_time <= to_utc_naive(end_to))
    return q.order_by(TimeSlot.start_time.asc()).all()


def list_available_slots(
    db: Session,
    *,
    interviewer_ids: list[int] | None = None,
    after: datetime | None = None,
) -> list[TimeSlot]:
    """
    Free slots of active interviewers starting after `after` (default: now). An empty/None
    filter means every interviewer.
    """
    cutoff = to_utc_naive(after) if after is not None else utcnow()
    q = (
        db.query(TimeSlot)
        .join(User, User.id == TimeSlot.interviewer_id)
        .filter(TimeSlot.is_booked.is_(False), TimeSlot.start_time > cutoff, User.status == "active")
    )
    if interviewer_ids:
        q = q.filter(TimeSlot.interviewer_id.in_([int(i) for i in interviewer_ids]))
    return q.order_by(TimeSlot.start_time.asc(), TimeSlot.interviewer_id.asc()).all()


def list_panel_slots(
    db: Session,
    interviewer_ids: list[int],
    *,
    after: datetime | None = None,
) -> list[tuple[datetime, datetime]]:
    """Intervals at which every interviewer in `interviewer_ids` has a free slot."""
    ids = sorted({int(i) for i in interviewer_ids or []})
    if not ids:
        return []
    cutoff = to_utc_naive(after) if after is not None else utcnow()
    rows = (
        db.query(TimeSlot.start_time, TimeSlot.end_time)
        .join(User, User.id == TimeSlot.interviewer_id)
        .filter(
            TimeSlot.is_booked.is_(False),
            User.status == "active",
            TimeSlot.start_time > cutoff,
            TimeSlot.interviewer_id.in_(ids),
        )
        .group_by(TimeSlot.start_time, TimeSlot.end_time)
        .having(func.count(distinct(TimeSlot.interviewer_id)) == len(ids))
        .order_by(TimeSlot.start_time.asc())
        .all()
    )
    return [(r[0], r[1]) for r in rows]
