"""
Walk-in queue position and wait estimation.

Estimates are always computed from the current queue; nothing here is
stored, so a cancellation or completion ahead of someone is reflected
the next time they ask.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from salon_scheduler.core.clock import ensure_aware, resolve_now
from salon_scheduler.core.config import settings
from salon_scheduler.core.exceptions import NotFound
from salon_scheduler.models.appointment import (
    Appointment,
    AppointmentKind,
    AppointmentStatus,
    QUEUE_STATUSES,
)
from salon_scheduler.models.barber import Barber
from salon_scheduler.models.working_session import WorkingSession
from salon_scheduler.services.appointment_lifecycle import service_minutes
from salon_scheduler.utils.timeslots import local_datetime

SESSION_EXPIRED = "session_expired"
FULLY_BOOKED = "fully_booked"
LOW_REMAINING_TIME = "low_remaining_time"
AVAILABLE = "available"
NO_SESSION = "no_session"


@dataclass
class QueueEntry:
    appointment_id: UUID
    status: AppointmentStatus
    service_minutes: int
    arrived_at: Optional[datetime] = None
    in_salon_at: Optional[datetime] = None
    extension_minutes: int = 0


@dataclass
class QueuePlacement:
    appointment_id: Optional[UUID]
    queue_position: int
    estimated_wait_time: int


@dataclass
class WaitEstimate:
    queue_position: int
    estimated_wait_time: int
    remaining_capacity: int
    is_expired: bool
    capacity_status: str
    session_id: Optional[UUID] = None


def remaining_service(entry: QueueEntry, now: datetime) -> int:
    """Minutes of service left; a customer already in the chair counts only what remains."""
    if entry.status == AppointmentStatus.in_salon and entry.in_salon_at is not None:
        elapsed = int((now - ensure_aware(entry.in_salon_at)).total_seconds() // 60)
        return max(entry.service_minutes - max(elapsed, 0), 0)
    return entry.service_minutes


def place_queue(entries: Sequence[QueueEntry], now: datetime) -> Tuple[List[QueuePlacement], int]:
    """
    Order the queue (customer in the chair first, then by arrival) and
    estimate each wait as the remaining work ahead of them plus any
    extension. Returns the placements and the wait a newcomer would face.
    """
    ordered = sorted(
        entries,
        key=lambda e: (
            0 if e.status == AppointmentStatus.in_salon else 1,
            ensure_aware(e.in_salon_at or e.arrived_at) or now,
        ),
    )
    placements = []
    running = 0
    for position, entry in enumerate(ordered, start=1):
        if entry.status == AppointmentStatus.in_salon:
            placements.append(QueuePlacement(entry.appointment_id, position, 0))
            running += remaining_service(entry, now) + entry.extension_minutes
            continue
        running += entry.extension_minutes
        placements.append(QueuePlacement(entry.appointment_id, position, running))
        running += entry.service_minutes
    return placements, running


def capacity_status(remaining_capacity: int, service_time: int, is_expired: bool) -> str:
    if is_expired:
        return SESSION_EXPIRED
    if remaining_capacity <= 0:
        return FULLY_BOOKED
    if remaining_capacity <= service_time:
        return LOW_REMAINING_TIME
    return AVAILABLE


def _queue_entries(db: Session, barber_id: UUID) -> List[QueueEntry]:
    appointments = (
        db.query(Appointment)
        .filter(
            Appointment.barber_id == barber_id,
            Appointment.kind == AppointmentKind.walk_in,
            Appointment.status.in_(QUEUE_STATUSES),
        )
        .all()
    )
    return [
        QueueEntry(
            appointment_id=a.id,
            status=a.status,
            service_minutes=service_minutes(a.services),
            arrived_at=a.check_in_time,
            in_salon_at=a.in_salon_time,
            extension_minutes=a.wait_extension_minutes or 0,
        )
        for a in appointments
    ]


def _current_session(db: Session, barber_id: UUID, now: datetime) -> Optional[WorkingSession]:
    sessions = (
        db.query(WorkingSession)
        .filter(
            WorkingSession.barber_id == barber_id,
            WorkingSession.session_date == now.date(),
        )
        .order_by(WorkingSession.start_time)
        .all()
    )
    for session in sessions:
        if local_datetime(session.session_date, session.end_time) > now:
            return session
    return sessions[-1] if sessions else None


def estimate_wait(
    db: Session,
    barber_id: UUID,
    service_time: Optional[int] = None,
    now: Optional[datetime] = None,
) -> WaitEstimate:
    """Where a customer arriving now would land in a barber's queue."""
    current = resolve_now(now)
    if not db.get(Barber, barber_id):
        raise NotFound(f"Barber {barber_id} not found")
    needed = service_time if service_time else settings.DEFAULT_SERVICE_MINUTES

    entries = _queue_entries(db, barber_id)
    _, newcomer_wait = place_queue(entries, current)

    session = _current_session(db, barber_id, current)
    if session is None:
        return WaitEstimate(
            queue_position=len(entries) + 1,
            estimated_wait_time=newcomer_wait,
            remaining_capacity=0,
            is_expired=False,
            capacity_status=NO_SESSION,
        )

    is_expired = current > local_datetime(session.session_date, session.end_time)
    remaining = max(session.remaining_time, 0)
    return WaitEstimate(
        queue_position=len(entries) + 1,
        estimated_wait_time=newcomer_wait,
        remaining_capacity=remaining,
        is_expired=is_expired,
        capacity_status=capacity_status(remaining, needed, is_expired),
        session_id=session.id,
    )


def estimate_for_appointment(
    db: Session,
    appointment_id: UUID,
    now: Optional[datetime] = None,
) -> QueuePlacement:
    """Current position and wait of a queued walk-in; zero once it has left the queue."""
    current = resolve_now(now)
    appointment = db.get(Appointment, appointment_id)
    if not appointment:
        raise NotFound(f"Appointment {appointment_id} not found")
    if appointment.kind != AppointmentKind.walk_in or appointment.status not in QUEUE_STATUSES:
        return QueuePlacement(appointment.id, 0, 0)

    placements, _ = place_queue(_queue_entries(db, appointment.barber_id), current)
    for placement in placements:
        if placement.appointment_id == appointment.id:
            return placement
    return QueuePlacement(appointment.id, 0, 0)
