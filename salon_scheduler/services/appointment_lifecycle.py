"""
Booking, walk-in check-in and the appointment state machine.

    appointment / checked_in  ->  in_salon  ->  completed
    appointment / checked_in  ->  completed
    any non-terminal status   ->  canceled

Every accepted transition stamps the matching timestamp and keeps the
slot's booked flag and the session's remaining_time in step.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from salon_scheduler.core.clock import resolve_now
from salon_scheduler.core.config import settings
from salon_scheduler.core.exceptions import (
    InvalidRange,
    InvalidTransition,
    NoCapacity,
    NotFound,
    SlotAlreadyBooked,
)
from salon_scheduler.db.session import atomic
from salon_scheduler.models.appointment import (
    Appointment,
    AppointmentKind,
    AppointmentStatus,
    QUEUE_STATUSES,
)
from salon_scheduler.models.barber import Barber, SchedulingMode, Service
from salon_scheduler.models.leave import LeaveAvailability, LeaveRecord, LeaveStatus
from salon_scheduler.models.slot import Slot
from salon_scheduler.models.working_session import WorkingSession
from salon_scheduler.utils.time_grid import minutes_between
from salon_scheduler.utils.timeslots import (
    claim_slot,
    local_datetime,
    release_slot,
    slot_has_started,
)

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    AppointmentStatus.appointment: {
        AppointmentStatus.in_salon, AppointmentStatus.completed, AppointmentStatus.canceled,
    },
    AppointmentStatus.checked_in: {
        AppointmentStatus.in_salon, AppointmentStatus.completed, AppointmentStatus.canceled,
    },
    AppointmentStatus.in_salon: {AppointmentStatus.completed, AppointmentStatus.canceled},
    AppointmentStatus.completed: set(),
    AppointmentStatus.canceled: set(),
}


@dataclass
class CustomerDetails:
    user_id: Optional[UUID] = None
    customer_name: Optional[str] = None
    mobile_number: Optional[str] = None
    service_ids: List[UUID] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def service_minutes(services: Iterable[Service]) -> int:
    """Summed service time; an appointment with no services counts as the default."""
    total = sum(s.default_service_time for s in services)
    return total if total > 0 else settings.DEFAULT_SERVICE_MINUTES


def load_services(db: Session, service_ids: Iterable[UUID]) -> List[Service]:
    wanted = list(dict.fromkeys(service_ids))
    if not wanted:
        return []
    services = db.query(Service).filter(Service.id.in_(wanted)).all()
    missing = set(wanted) - {s.id for s in services}
    if missing:
        raise NotFound(f"Unknown service(s): {', '.join(sorted(str(m) for m in missing))}")
    return services


def available_minutes(session: WorkingSession, queue_empty: bool, now: datetime) -> int:
    """
    Minutes a walk-in session can still absorb.

    With nobody waiting, the barber is also bounded by the clock: a chair
    that is free at 19:50 in a session ending at 20:00 only has ten
    minutes left whatever the counter says.
    """
    if not queue_empty:
        return max(session.remaining_time, 0)
    session_end = local_datetime(session.session_date, session.end_time)
    until_end = max(int((session_end - now).total_seconds() // 60), 0)
    return max(min(session.remaining_time, until_end), 0)


def _lock_session(db: Session, session_id: Optional[UUID]) -> Optional[WorkingSession]:
    if session_id is None:
        return None
    return (
        db.query(WorkingSession)
        .filter(WorkingSession.id == session_id)
        .with_for_update()
        .first()
    )


def _walk_in_session(db: Session, barber_id: UUID, day: date, lock: bool = True) -> Optional[WorkingSession]:
    query = (
        db.query(WorkingSession)
        .filter(
            WorkingSession.barber_id == barber_id,
            WorkingSession.session_date == day,
            WorkingSession.mode == SchedulingMode.walk_in,
        )
        .order_by(WorkingSession.start_time)
    )
    if lock:
        query = query.with_for_update()
    return query.first()


def _restore_capacity(session: Optional[WorkingSession], minutes: int) -> None:
    if session is None:
        return
    full = minutes_between(session.start_time, session.end_time)
    session.remaining_time = min(session.remaining_time + minutes, full)


def _consume_capacity(session: Optional[WorkingSession], minutes: int) -> None:
    if session is None:
        return
    session.remaining_time = max(session.remaining_time - minutes, 0)


def _owning_session(db: Session, appointment: Appointment) -> Optional[WorkingSession]:
    if appointment.slot_id is not None:
        slot = db.get(Slot, appointment.slot_id)
        return _lock_session(db, slot.session_id) if slot else None
    if appointment.kind == AppointmentKind.walk_in and appointment.appointment_date:
        return _walk_in_session(db, appointment.barber_id, appointment.appointment_date)
    return None


def _held_minutes(appointment: Appointment) -> int:
    if appointment.kind == AppointmentKind.scheduled and appointment.start_time and appointment.end_time:
        return minutes_between(appointment.start_time, appointment.end_time)
    return service_minutes(appointment.services)


def _load_appointment(db: Session, appointment_id: UUID) -> Appointment:
    appointment = (
        db.query(Appointment)
        .filter(Appointment.id == appointment_id)
        .with_for_update()
        .first()
    )
    if not appointment:
        raise NotFound(f"Appointment {appointment_id} not found")
    return appointment


def _on_leave(db: Session, barber_id: UUID, day: date) -> bool:
    return (
        db.query(LeaveRecord)
        .filter(
            LeaveRecord.barber_id == barber_id,
            LeaveRecord.status == LeaveStatus.approved,
            LeaveRecord.availability == LeaveAvailability.unavailable,
            LeaveRecord.start_date <= day,
            LeaveRecord.end_date >= day,
        )
        .first()
        is not None
    )


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def book_slot(
    db: Session,
    slot_id: UUID,
    customer: CustomerDetails,
    now: Optional[datetime] = None,
) -> Appointment:
    """
    Atomically claim an unbooked slot and create its appointment.

    Of any number of concurrent attempts on one slot exactly one succeeds;
    the rest get SlotAlreadyBooked.
    """
    current = resolve_now(now)
    with atomic(db):
        slot = db.get(Slot, slot_id)
        if not slot:
            raise NotFound(f"Slot {slot_id} not found")
        session = _lock_session(db, slot.session_id)
        if session.mode != SchedulingMode.slotted:
            raise NoCapacity("This session does not take slot bookings")
        if slot_has_started(slot, current):
            raise InvalidRange("Cannot book a slot that has already started")
        services = load_services(db, customer.service_ids)

        if not claim_slot(db, slot.id):
            raise SlotAlreadyBooked(f"Slot {slot_id} is already booked")

        appointment = Appointment(
            user_id=customer.user_id,
            customer_name=customer.customer_name,
            mobile_number=customer.mobile_number,
            barber_id=session.barber_id,
            salon_id=session.salon_id,
            slot_id=slot.id,
            kind=AppointmentKind.scheduled,
            status=AppointmentStatus.appointment,
            appointment_date=slot.slot_date,
            start_time=slot.start_time,
            end_time=slot.end_time,
            services=services,
        )
        db.add(appointment)
        _consume_capacity(session, minutes_between(slot.start_time, slot.end_time))

    logger.info("Booked slot %s as appointment %s", slot_id, appointment.id)
    return appointment


def check_in_walk_in(
    db: Session,
    barber_id: UUID,
    customer: CustomerDetails,
    now: Optional[datetime] = None,
) -> Appointment:
    """Join a walk-in barber's queue for today if the session can absorb the service time."""
    current = resolve_now(now)
    with atomic(db):
        barber = db.get(Barber, barber_id)
        if not barber:
            raise NotFound(f"Barber {barber_id} not found")
        if barber.mode != SchedulingMode.walk_in:
            raise NoCapacity("Barber only takes scheduled appointments")

        session = _walk_in_session(db, barber.id, current.date())
        if not session:
            raise NoCapacity("Barber is not taking walk-ins today")

        if customer.user_id is not None:
            active = (
                db.query(Appointment)
                .filter(
                    Appointment.user_id == customer.user_id,
                    Appointment.kind == AppointmentKind.walk_in,
                    Appointment.status.in_(QUEUE_STATUSES),
                )
                .first()
            )
            if active:
                raise InvalidTransition("Customer already has an active walk-in")

        services = load_services(db, customer.service_ids)
        needed = service_minutes(services)
        queue_size = (
            db.query(Appointment)
            .filter(
                Appointment.barber_id == barber.id,
                Appointment.kind == AppointmentKind.walk_in,
                Appointment.status.in_(QUEUE_STATUSES),
            )
            .count()
        )
        available = available_minutes(session, queue_size == 0, current)
        if needed > available:
            raise NoCapacity(
                "Barber does not have enough time left today",
                {"remaining_time": available, "requested": needed},
            )

        appointment = Appointment(
            user_id=customer.user_id,
            customer_name=customer.customer_name,
            mobile_number=customer.mobile_number,
            barber_id=barber.id,
            salon_id=session.salon_id,
            kind=AppointmentKind.walk_in,
            status=AppointmentStatus.checked_in,
            appointment_date=current.date(),
            check_in_time=current.astimezone(timezone.utc),
            services=services,
        )
        db.add(appointment)
        session.remaining_time = max(available - needed, 0)

    logger.info("Walk-in %s checked in with barber %s (%d min)", appointment.id, barber_id, needed)
    return appointment


def transition_appointment(
    db: Session,
    appointment_id: UUID,
    target: AppointmentStatus,
    now: Optional[datetime] = None,
) -> Appointment:
    target = AppointmentStatus(target)
    stamp = resolve_now(now).astimezone(timezone.utc)
    with atomic(db):
        appointment = _load_appointment(db, appointment_id)
        current = appointment.status
        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransition(f"Cannot move appointment from {current.value} to {target.value}")

        if target == AppointmentStatus.in_salon:
            busy = (
                db.query(Appointment)
                .filter(
                    Appointment.barber_id == appointment.barber_id,
                    Appointment.status == AppointmentStatus.in_salon,
                    Appointment.id != appointment.id,
                )
                .first()
            )
            if busy:
                raise InvalidTransition("Barber is already serving another customer")
            appointment.in_salon_time = stamp
        elif target == AppointmentStatus.completed:
            appointment.complete_time = stamp
        else:
            appointment.cancel_time = stamp
            _restore_capacity(_owning_session(db, appointment), _held_minutes(appointment))
            release_slot(db, appointment.slot_id)

        appointment.status = target

    logger.info("Appointment %s: %s -> %s", appointment_id, current.value, target.value)
    return appointment


def transfer_appointment(
    db: Session,
    appointment_id: UUID,
    new_barber_id: UUID,
    now: Optional[datetime] = None,
) -> Appointment:
    """
    Move an active appointment to another barber who has equivalent free
    capacity. Nothing changes unless the whole move succeeds.
    """
    current = resolve_now(now)
    with atomic(db):
        appointment = _load_appointment(db, appointment_id)
        if appointment.is_terminal:
            raise InvalidTransition("Only active appointments can be transferred")
        new_barber = db.get(Barber, new_barber_id)
        if not new_barber or not new_barber.is_active:
            raise NotFound(f"Barber {new_barber_id} not found")
        if new_barber.id == appointment.barber_id:
            raise InvalidTransition("Appointment is already with this barber")

        old_barber_id = appointment.barber_id
        if appointment.kind == AppointmentKind.scheduled:
            _transfer_scheduled(db, appointment, new_barber)
        else:
            _transfer_walk_in(db, appointment, new_barber, current.date())

    logger.info("Transferred appointment %s from barber %s to %s", appointment_id, old_barber_id, new_barber_id)
    return appointment


def _scheduled_target_slot(db: Session, appointment: Appointment, barber: Barber) -> Slot:
    """The free slot of ``barber`` matching the appointment exactly, if they may take it."""
    if barber.mode != SchedulingMode.slotted:
        raise NoCapacity("Target barber does not take scheduled appointments")
    if _on_leave(db, barber.id, appointment.appointment_date):
        raise NoCapacity("Target barber is on leave that day")

    candidate = (
        db.query(Slot)
        .join(WorkingSession, Slot.session_id == WorkingSession.id)
        .filter(
            WorkingSession.barber_id == barber.id,
            WorkingSession.salon_id == appointment.salon_id,
            WorkingSession.mode == SchedulingMode.slotted,
            Slot.slot_date == appointment.appointment_date,
            Slot.start_time == appointment.start_time,
            Slot.end_time == appointment.end_time,
            Slot.is_booked == False,  # noqa: E712
        )
        .first()
    )
    if not candidate:
        raise NoCapacity("Target barber has no free slot at this time")
    return candidate


def _walk_in_target_session(
    db: Session, appointment: Appointment, barber: Barber, today: date, lock: bool = True
) -> WorkingSession:
    if barber.mode != SchedulingMode.walk_in:
        raise NoCapacity("Target barber does not take walk-ins")
    day = appointment.appointment_date or today
    if _on_leave(db, barber.id, day):
        raise NoCapacity("Target barber is on leave that day")
    target = _walk_in_session(db, barber.id, day, lock=lock)
    if not target or target.remaining_time < service_minutes(appointment.services):
        raise NoCapacity("Target barber does not have enough time left today")
    return target


def _transfer_scheduled(db: Session, appointment: Appointment, new_barber: Barber) -> None:
    candidate = _scheduled_target_slot(db, appointment, new_barber)
    if not claim_slot(db, candidate.id):
        raise NoCapacity("Target barber has no free slot at this time")

    minutes = minutes_between(appointment.start_time, appointment.end_time)
    _restore_capacity(_owning_session(db, appointment), minutes)
    release_slot(db, appointment.slot_id)
    _consume_capacity(_lock_session(db, candidate.session_id), minutes)

    appointment.slot_id = candidate.id
    appointment.barber_id = new_barber.id


def _transfer_walk_in(db: Session, appointment: Appointment, new_barber: Barber, today: date) -> None:
    target = _walk_in_target_session(db, appointment, new_barber, today)
    minutes = service_minutes(appointment.services)
    _restore_capacity(_owning_session(db, appointment), minutes)
    _consume_capacity(target, minutes)
    appointment.barber_id = new_barber.id


def available_transfer_targets(
    db: Session,
    appointment_id: UUID,
    now: Optional[datetime] = None,
) -> List[Barber]:
    """
    Barbers of the same salon and mode who could take this appointment
    over right now: not on leave that day, with a matching free slot or
    enough walk-in time left. Read-only; a later transfer re-checks.
    """
    current = resolve_now(now)
    appointment = db.get(Appointment, appointment_id)
    if not appointment:
        raise NotFound(f"Appointment {appointment_id} not found")
    if appointment.is_terminal:
        raise InvalidTransition("Only active appointments can be transferred")

    scheduled = appointment.kind == AppointmentKind.scheduled
    mode = SchedulingMode.slotted if scheduled else SchedulingMode.walk_in
    candidates = (
        db.query(Barber)
        .filter(
            Barber.salon_id == appointment.salon_id,
            Barber.id != appointment.barber_id,
            Barber.is_active == True,  # noqa: E712
            Barber.mode == mode,
        )
        .order_by(Barber.name)
        .all()
    )

    targets = []
    for barber in candidates:
        try:
            if scheduled:
                _scheduled_target_slot(db, appointment, barber)
            else:
                _walk_in_target_session(db, appointment, barber, current.date(), lock=False)
        except NoCapacity:
            continue
        targets.append(barber)
    return targets


def extend_wait(db: Session, appointment_id: UUID, minutes: int) -> Appointment:
    """Push a queued walk-in's estimate back; everyone behind shifts with it."""
    if minutes <= 0:
        raise InvalidRange("Extension must be a positive number of minutes")
    with atomic(db):
        appointment = _load_appointment(db, appointment_id)
        if appointment.kind != AppointmentKind.walk_in or appointment.status not in QUEUE_STATUSES:
            raise InvalidTransition("Only queued walk-ins can extend their wait")
        appointment.wait_extension_minutes = (appointment.wait_extension_minutes or 0) + minutes
    logger.info("Extended wait of appointment %s by %d min", appointment_id, minutes)
    return appointment
