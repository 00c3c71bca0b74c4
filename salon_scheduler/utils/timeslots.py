from datetime import date, datetime, time
from typing import Iterable, List, Optional, Set
from uuid import UUID

from sqlalchemy.orm import Session

from salon_scheduler.core.clock import operating_tz
from salon_scheduler.models.appointment import Appointment
from salon_scheduler.models.slot import Slot
from salon_scheduler.utils.time_grid import Interval


def local_datetime(day: date, clock: time) -> datetime:
    """Combine a stored date/time pair into an aware datetime in the operating zone."""
    return datetime.combine(day, clock).replace(tzinfo=operating_tz())


def slot_interval(slot: Slot) -> Interval:
    return Interval(slot.start_time, slot.end_time)


def slot_has_started(slot: Slot, now: datetime) -> bool:
    """
    A slot is considered past once its start date+time is not after `now`.
    `now` must be aware.
    """
    return local_datetime(slot.slot_date, slot.start_time) <= now


def describe_slot(slot: Slot) -> dict:
    """Compact description of a booked slot for conflict reports."""
    return {
        "slot_id": str(slot.id),
        "date": slot.slot_date.isoformat(),
        "original_time": f"{slot.start_time.strftime('%H:%M')} - {slot.end_time.strftime('%H:%M')}",
    }


def session_slots(db: Session, session_id: UUID, lock: bool = False) -> List[Slot]:
    """All slots of a session ordered by start time, optionally row-locked."""
    query = (
        db.query(Slot)
        .filter(Slot.session_id == session_id)
        .order_by(Slot.start_time)
    )
    if lock:
        query = query.with_for_update()
    return query.all()


def delete_unbooked_slots(db: Session, slot_ids: Iterable[UUID]) -> Set[UUID]:
    """
    Delete the given slots, but only those still unbooked at delete time.

    Appointment rows that still point at a deleted slot (canceled history)
    are detached rather than removed. Returns the ids actually deleted.
    """
    ids = set(slot_ids)
    if not ids:
        return set()

    db.flush()
    (
        db.query(Slot)
        .filter(Slot.id.in_(ids), Slot.is_booked == False)  # noqa: E712
        .delete(synchronize_session="fetch")
    )
    survivors = {row.id for row in db.query(Slot.id).filter(Slot.id.in_(ids)).all()}
    deleted = ids - survivors

    if deleted:
        (
            db.query(Appointment)
            .filter(Appointment.slot_id.in_(deleted))
            .update({"slot_id": None}, synchronize_session="fetch")
        )
    return deleted


def claim_slot(db: Session, slot_id: UUID) -> bool:
    """
    Conditionally flip a slot to booked.

    The UPDATE only matches while the row is still unbooked, so of two
    concurrent claims at most one sees a row count of 1.
    """
    db.flush()
    count = (
        db.query(Slot)
        .filter(Slot.id == slot_id, Slot.is_booked == False)  # noqa: E712
        .update({"is_booked": True}, synchronize_session="fetch")
    )
    return count == 1


def release_slot(db: Session, slot_id: Optional[UUID]) -> None:
    if slot_id is None:
        return
    (
        db.query(Slot)
        .filter(Slot.id == slot_id)
        .update({"is_booked": False}, synchronize_session="fetch")
    )
