"""
Session reconciliation: creating, re-bounding and withdrawing a barber's
working sessions without ever losing a booked slot.

Every public function here is one transaction. On any failure the
database session is rolled back before the error propagates, so callers
never observe a half-applied edit.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import List, Optional, Sequence, Union
from uuid import UUID

from sqlalchemy.orm import Session

from salon_scheduler.core.clock import resolve_now
from salon_scheduler.core.config import settings
from salon_scheduler.core.exceptions import ConflictBookedOutsideRange, InvalidRange, NotFound
from salon_scheduler.db.session import atomic
from salon_scheduler.models.appointment import Appointment, AppointmentStatus, TERMINAL_STATUSES
from salon_scheduler.models.barber import Barber, SchedulingMode, BarberPosition
from salon_scheduler.models.leave import LeaveAvailability, LeaveReason, LeaveRecord, LeaveStatus
from salon_scheduler.models.salon import Salon
from salon_scheduler.models.slot import Slot
from salon_scheduler.models.working_session import WorkingSession
from salon_scheduler.services import slot_generator
from salon_scheduler.utils.time_grid import (
    Interval,
    contains,
    minutes_between,
    round_to_interval,
)
from salon_scheduler.utils.timeslots import (
    delete_unbooked_slots,
    describe_slot,
    release_slot,
    session_slots,
    slot_has_started,
    slot_interval,
)

logger = logging.getLogger(__name__)

ClockInput = Union[str, time]


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass
class SessionDraft:
    session_date: date
    start_time: ClockInput
    end_time: ClockInput


@dataclass
class RejectedDate:
    session_date: date
    reason: str        # "invalid_range" | "past" | "duplicate"
    message: str


@dataclass
class CreateSessionsResult:
    sessions: List[WorkingSession]
    slots: List[Slot]
    rejected_dates: List[RejectedDate] = field(default_factory=list)


@dataclass
class SessionEdit:
    session: Optional[WorkingSession] = None
    slots: List[Slot] = field(default_factory=list)
    leave: Optional[LeaveRecord] = None


@dataclass
class SessionSlots:
    session: WorkingSession
    slots: List[Slot]


@dataclass
class ProfileSync:
    barber: Barber
    sessions_updated: int = 0
    slots_created: int = 0
    appointments_canceled: List[Appointment] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_session(db: Session, session_id: UUID, lock: bool = False) -> WorkingSession:
    query = db.query(WorkingSession).filter(WorkingSession.id == session_id)
    if lock:
        query = query.with_for_update()
    session = query.first()
    if not session:
        raise NotFound(f"Working session {session_id} not found")
    return session


def _rounded_range(start: ClockInput, end: ClockInput, interval: int):
    start_time = round_to_interval(start, interval)
    end_time = round_to_interval(end, interval)
    if end_time <= start_time:
        raise InvalidRange(
            f"End time {end_time.strftime('%H:%M')} must be after start time {start_time.strftime('%H:%M')}"
        )
    return start_time, end_time


def _cancel_pending(db: Session, session: WorkingSession, appointment: Appointment, stamp: datetime) -> None:
    """Cancel a pre-arrival booking and give its slot minutes back to the session."""
    appointment.status = AppointmentStatus.canceled
    appointment.cancel_time = stamp
    release_slot(db, appointment.slot_id)
    if appointment.start_time and appointment.end_time:
        full = minutes_between(session.start_time, session.end_time)
        held = minutes_between(appointment.start_time, appointment.end_time)
        session.remaining_time = min(session.remaining_time + held, full)


def _booked_slots(db: Session, session: WorkingSession):
    """
    Booked slots of a session, and descriptions of those still held by a
    live (non-terminal) appointment.
    """
    booked = (
        db.query(Slot)
        .filter(Slot.session_id == session.id, Slot.is_booked == True)  # noqa: E712
        .all()
    )
    blocking = []
    for slot in booked:
        live = (
            db.query(Appointment)
            .filter(
                Appointment.slot_id == slot.id,
                Appointment.status.notin_(list(TERMINAL_STATUSES)),
            )
            .first()
        )
        if live:
            blocking.append(describe_slot(slot))
    return booked, blocking


def _drop_history_slots(db: Session, slot_ids) -> None:
    """Detach finished appointments from their slots, then delete the slots."""
    if not slot_ids:
        return
    (
        db.query(Appointment)
        .filter(Appointment.slot_id.in_(slot_ids))
        .update({"slot_id": None}, synchronize_session="fetch")
    )
    (
        db.query(Slot)
        .filter(Slot.id.in_(slot_ids))
        .delete(synchronize_session="fetch")
    )


def _clear_slots(db: Session, session: WorkingSession, now: datetime) -> List[Appointment]:
    """
    Cancel pre-arrival bookings on a session and delete all of its slots.

    Raises ConflictBookedOutsideRange if a slot is still held by a customer
    who has arrived (or by a booking that landed after the cancel pass).
    Slots held only by finished appointments are detached and removed; the
    appointments keep their own date and times.
    """
    slots = session_slots(db, session.id, lock=True)
    if not slots:
        return []
    slot_ids = [s.id for s in slots]
    stamp = now.astimezone(timezone.utc)

    pending = (
        db.query(Appointment)
        .filter(
            Appointment.slot_id.in_(slot_ids),
            Appointment.status == AppointmentStatus.appointment,
        )
        .with_for_update()
        .all()
    )
    for appointment in pending:
        _cancel_pending(db, session, appointment, stamp)
    db.flush()

    booked, blocking = _booked_slots(db, session)
    if blocking:
        raise ConflictBookedOutsideRange(
            "Session still has active bookings that cannot be canceled automatically",
            blocking,
        )

    history_ids = {s.id for s in booked}
    delete_unbooked_slots(db, [sid for sid in slot_ids if sid not in history_ids])
    _drop_history_slots(db, history_ids)
    return pending


def withdraw_session(db: Session, session: WorkingSession, now: datetime) -> List[Appointment]:
    """Cancel, clear and delete a session inside the caller's transaction."""
    canceled = _clear_slots(db, session, now)
    db.delete(session)
    db.flush()
    logger.info(
        "Withdrew session %s (barber %s, %s); canceled %d booking(s)",
        session.id, session.barber_id, session.session_date, len(canceled),
    )
    return canceled


def change_bounds(
    db: Session,
    session: WorkingSession,
    new_start: Optional[ClockInput],
    new_end: Optional[ClockInput],
) -> List[Slot]:
    """
    Re-bound a session inside the caller's transaction.

    Slots fully inside the new range survive untouched; unbooked slots
    outside it are deleted; gaps are filled with new unbooked slots. Any
    booked slot outside the new range rejects the whole change.
    """
    interval = settings.SLOT_INTERVAL_MINUTES
    start_time, end_time = _rounded_range(
        new_start if new_start is not None else session.start_time,
        new_end if new_end is not None else session.end_time,
        interval,
    )
    target = Interval(start_time, end_time)

    slots = session_slots(db, session.id, lock=True)
    within = [s for s in slots if contains(target, slot_interval(s))]
    outside = [s for s in slots if not contains(target, slot_interval(s))]

    booked_outside = [s for s in outside if s.is_booked]
    if booked_outside:
        logger.warning(
            "Rejected time change on session %s: %d booked slot(s) outside %s-%s",
            session.id, len(booked_outside), start_time, end_time,
        )
        raise ConflictBookedOutsideRange(
            "Cannot update time range. Found booked appointments outside new schedule.",
            [describe_slot(s) for s in booked_outside],
        )

    outside_ids = [s.id for s in outside]
    deleted = delete_unbooked_slots(db, outside_ids)
    if len(deleted) != len(outside_ids):
        raced = db.query(Slot).filter(Slot.id.in_(set(outside_ids) - deleted)).all()
        raise ConflictBookedOutsideRange(
            "Cannot update time range. A slot outside the new schedule was booked meanwhile.",
            [describe_slot(s) for s in raced],
        )

    session.remaining_time = minutes_between(start_time, end_time)
    session.start_time = start_time
    session.end_time = end_time

    occupied = [
        Interval(round_to_interval(s.start_time, interval), round_to_interval(s.end_time, interval))
        for s in within
    ]
    slot_generator.generate(db, session, interval, occupied)
    db.flush()
    logger.info(
        "Session %s re-bounded to %s-%s; kept %d slot(s), removed %d",
        session.id, start_time, end_time, len(within), len(deleted),
    )
    return session_slots(db, session.id)


def _leave_reason(reason, session_date: date, today: date) -> Optional[LeaveReason]:
    if reason:
        return LeaveReason(reason)
    if session_date != today:
        return LeaveReason(settings.DEFAULT_LEAVE_REASON)
    return None


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def create_sessions(
    db: Session,
    barber_id: UUID,
    salon_id: UUID,
    available_days: Sequence[SessionDraft],
    now: Optional[datetime] = None,
) -> CreateSessionsResult:
    """
    Create one session per requested date and carve slotted ones into slots.

    A bad date (invalid range, in the past, or already scheduled) is
    skipped and reported; the call fails only if nothing was created.
    """
    barber = db.get(Barber, barber_id)
    if not barber:
        raise NotFound(f"Barber {barber_id} not found")
    if not db.get(Salon, salon_id):
        raise NotFound(f"Salon {salon_id} not found")

    interval = settings.SLOT_INTERVAL_MINUTES
    today = resolve_now(now).date()
    result = CreateSessionsResult(sessions=[], slots=[])

    with atomic(db):
        for day in available_days:
            try:
                start_time, end_time = _rounded_range(day.start_time, day.end_time, interval)
            except InvalidRange as exc:
                result.rejected_dates.append(RejectedDate(day.session_date, InvalidRange.code, exc.message))
                continue

            if day.session_date < today:
                result.rejected_dates.append(
                    RejectedDate(day.session_date, "past", "Sessions cannot be scheduled in the past")
                )
                continue

            duplicate = (
                db.query(WorkingSession)
                .filter(
                    WorkingSession.barber_id == barber.id,
                    WorkingSession.salon_id == salon_id,
                    WorkingSession.session_date == day.session_date,
                )
                .first()
            )
            if duplicate:
                result.rejected_dates.append(
                    RejectedDate(day.session_date, "duplicate", "Barber already has a session on this date")
                )
                continue

            session = WorkingSession(
                barber_id=barber.id,
                salon_id=salon_id,
                session_date=day.session_date,
                start_time=start_time,
                end_time=end_time,
                remaining_time=minutes_between(start_time, end_time),
                mode=barber.mode,
                position=barber.position,
            )
            db.add(session)
            db.flush()
            result.sessions.append(session)
            result.slots.extend(slot_generator.generate(db, session, interval))

        if not result.sessions:
            raise InvalidRange(
                "No sessions were created. Check your input.",
                {"rejected_dates": [
                    {"date": r.session_date.isoformat(), "reason": r.reason, "message": r.message}
                    for r in result.rejected_dates
                ]},
            )

    for rejected in result.rejected_dates:
        logger.warning("Skipped session for barber %s on %s: %s", barber_id, rejected.session_date, rejected.message)
    logger.info(
        "Created %d session(s) and %d slot(s) for barber %s",
        len(result.sessions), len(result.slots), barber_id,
    )
    return result


def apply_time_change(
    db: Session,
    session_id: UUID,
    new_start: Optional[ClockInput] = None,
    new_end: Optional[ClockInput] = None,
) -> SessionEdit:
    with atomic(db):
        session = _load_session(db, session_id, lock=True)
        slots = change_bounds(db, session, new_start, new_end)
    return SessionEdit(session=session, slots=slots)


def apply_leave(
    db: Session,
    session_id: UUID,
    reason: Optional[str] = None,
    approved_by: Optional[UUID] = None,
    now: Optional[datetime] = None,
) -> LeaveRecord:
    """
    Turn a session into a day off: cancel pre-arrival bookings, drop its
    slots and the session, and record one approved leave for the date.
    """
    current = resolve_now(now)
    with atomic(db):
        session = _load_session(db, session_id, lock=True)
        leave = LeaveRecord(
            barber_id=session.barber_id,
            salon_id=session.salon_id,
            start_date=session.session_date,
            end_date=session.session_date,
            reason=_leave_reason(reason, session.session_date, current.date()),
            status=LeaveStatus.approved,
            availability=LeaveAvailability.unavailable,
            approved_by=approved_by,
        )
        withdraw_session(db, session, current)
        db.add(leave)
    return leave


def edit_session(
    db: Session,
    session_id: UUID,
    start_time: Optional[ClockInput] = None,
    end_time: Optional[ClockInput] = None,
    make_unavailable: bool = False,
    reason: Optional[str] = None,
    approved_by: Optional[UUID] = None,
    now: Optional[datetime] = None,
) -> SessionEdit:
    """Time change when bounds are given, otherwise (or on request) a day off."""
    if make_unavailable or (start_time is None and end_time is None):
        leave = apply_leave(db, session_id, reason=reason, approved_by=approved_by, now=now)
        return SessionEdit(leave=leave)
    return apply_time_change(db, session_id, start_time, end_time)


def delete_session(db: Session, session_id: UUID) -> None:
    """
    Delete a session and its slots. Refused while any slot is held by a
    live appointment; slots held only by finished ones are detached first.
    """
    with atomic(db):
        session = _load_session(db, session_id, lock=True)
        slots = session_slots(db, session.id, lock=True)
        booked, blocking = _booked_slots(db, session)
        if blocking:
            raise ConflictBookedOutsideRange(
                "Session has booked slots; cancel or transfer them first",
                blocking,
            )
        history_ids = {s.id for s in booked}
        free_ids = [s.id for s in slots if s.id not in history_ids]
        deleted = delete_unbooked_slots(db, free_ids)
        if len(deleted) != len(free_ids):
            raced = db.query(Slot).filter(Slot.id.in_(set(free_ids) - deleted)).all()
            raise ConflictBookedOutsideRange(
                "A slot was booked while the session was being deleted",
                [describe_slot(s) for s in raced],
            )
        _drop_history_slots(db, history_ids)
        db.delete(session)
    logger.info("Deleted session %s", session_id)


def list_slots(
    db: Session,
    barber_id: UUID,
    slot_date: date,
    now: Optional[datetime] = None,
) -> List[SessionSlots]:
    """Sessions of a barber on a date, each with its slots that have not started yet."""
    if not db.get(Barber, barber_id):
        raise NotFound(f"Barber {barber_id} not found")
    current = resolve_now(now)

    sessions = (
        db.query(WorkingSession)
        .filter(
            WorkingSession.barber_id == barber_id,
            WorkingSession.session_date == slot_date,
        )
        .order_by(WorkingSession.start_time)
        .all()
    )
    return [
        SessionSlots(
            session=session,
            slots=[s for s in session_slots(db, session.id) if not slot_has_started(s, current)],
        )
        for session in sessions
    ]


def sync_barber_profile(
    db: Session,
    barber_id: UUID,
    mode: Optional[SchedulingMode] = None,
    position: Optional[BarberPosition] = None,
    now: Optional[datetime] = None,
) -> ProfileSync:
    """
    Apply a barber mode/position change and re-stamp it onto every session
    from today on. Switching to slotted carves those sessions into slots;
    switching to walk-in cancels their pre-arrival bookings and drops the slots.
    """
    current = resolve_now(now)
    with atomic(db):
        barber = db.query(Barber).filter(Barber.id == barber_id).with_for_update().first()
        if not barber:
            raise NotFound(f"Barber {barber_id} not found")
        sync = ProfileSync(barber=barber)

        sessions = (
            db.query(WorkingSession)
            .filter(
                WorkingSession.barber_id == barber.id,
                WorkingSession.session_date >= current.date(),
            )
            .order_by(WorkingSession.session_date, WorkingSession.start_time)
            .all()
        )

        if mode is not None and mode != barber.mode:
            for session in sessions:
                if mode == SchedulingMode.walk_in:
                    sync.appointments_canceled.extend(_clear_slots(db, session, current))
                    session.mode = mode
                else:
                    session.mode = mode
                    existing = [slot_interval(s) for s in session_slots(db, session.id)]
                    sync.slots_created += len(slot_generator.generate(db, session, occupied=existing))
            barber.mode = mode

        if position is not None:
            barber.position = position

        for session in sessions:
            session.mode = barber.mode
            session.position = barber.position
        sync.sessions_updated = len(sessions)

    logger.info(
        "Synced barber %s profile to %d session(s): mode=%s position=%s, %d slot(s) created, %d booking(s) canceled",
        barber_id, sync.sessions_updated, barber.mode.value, barber.position.value,
        sync.slots_created, len(sync.appointments_canceled),
    )
    return sync
