"""
Barber leave requests and their approval.

Approving a full-day leave withdraws the barber's sessions in the range;
approving reduced hours re-bounds the session on the start date. Either
way the decision and its effect on the schedule commit together.
"""

import logging
from datetime import date, datetime, time
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from salon_scheduler.core.clock import resolve_now
from salon_scheduler.core.exceptions import InvalidRange, InvalidTransition, NotFound
from salon_scheduler.db.session import atomic
from salon_scheduler.models.barber import Barber
from salon_scheduler.models.leave import LeaveAvailability, LeaveReason, LeaveRecord, LeaveStatus
from salon_scheduler.models.working_session import WorkingSession
from salon_scheduler.services.session_reconciler import change_bounds, withdraw_session
from salon_scheduler.utils.time_grid import parse_clock

logger = logging.getLogger(__name__)


def request_leave(
    db: Session,
    barber_id: UUID,
    start_date: date,
    end_date: date,
    availability: LeaveAvailability = LeaveAvailability.unavailable,
    start_time: Optional[time] = None,
    end_time: Optional[time] = None,
    reason: Optional[LeaveReason] = None,
    salon_id: Optional[UUID] = None,
) -> LeaveRecord:
    barber = db.get(Barber, barber_id)
    if not barber:
        raise NotFound(f"Barber {barber_id} not found")
    if end_date < start_date:
        raise InvalidRange("Leave end date must not be before its start date")

    availability = LeaveAvailability(availability)
    if availability == LeaveAvailability.available:
        if start_time is None or end_time is None:
            raise InvalidRange("Working hours are required for a reduced-hours leave")
        start_time, end_time = parse_clock(start_time), parse_clock(end_time)
        if end_time <= start_time:
            raise InvalidRange("Leave end time must be after its start time")
    elif start_time is not None or end_time is not None:
        raise InvalidRange("A full-day leave cannot carry working hours")

    with atomic(db):
        leave = LeaveRecord(
            barber_id=barber.id,
            salon_id=salon_id or barber.salon_id,
            start_date=start_date,
            end_date=end_date,
            start_time=start_time,
            end_time=end_time,
            reason=LeaveReason(reason) if reason else None,
            status=LeaveStatus.pending,
            availability=availability,
        )
        db.add(leave)

    logger.info("Leave %s requested for barber %s (%s to %s)", leave.id, barber_id, start_date, end_date)
    return leave


def decide_leave(
    db: Session,
    leave_id: UUID,
    decision: LeaveStatus,
    decided_by: Optional[UUID] = None,
    response_reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> LeaveRecord:
    decision = LeaveStatus(decision)
    if decision == LeaveStatus.pending:
        raise InvalidTransition("A leave can only be approved or denied")
    if decision == LeaveStatus.denied and not response_reason:
        raise InvalidRange("A reason is required when denying a leave")

    current = resolve_now(now)
    with atomic(db):
        leave = db.query(LeaveRecord).filter(LeaveRecord.id == leave_id).with_for_update().first()
        if not leave:
            raise NotFound(f"Leave {leave_id} not found")
        if leave.status != LeaveStatus.pending:
            raise InvalidTransition(f"Leave is already {leave.status.value}")

        if decision == LeaveStatus.approved:
            _apply_approved(db, leave, current)

        leave.status = decision
        leave.approved_by = decided_by
        leave.response_reason = response_reason

    logger.info("Leave %s %s by %s", leave_id, decision.value, decided_by)
    return leave


def _apply_approved(db: Session, leave: LeaveRecord, now: datetime) -> None:
    query = db.query(WorkingSession).filter(WorkingSession.barber_id == leave.barber_id)
    if leave.salon_id is not None:
        query = query.filter(WorkingSession.salon_id == leave.salon_id)

    if leave.availability == LeaveAvailability.unavailable:
        sessions = (
            query.filter(
                WorkingSession.session_date >= leave.start_date,
                WorkingSession.session_date <= leave.end_date,
            )
            .with_for_update()
            .all()
        )
        for session in sessions:
            withdraw_session(db, session, now)
        return

    session = (
        query.filter(WorkingSession.session_date == leave.start_date)
        .order_by(WorkingSession.start_time)
        .with_for_update()
        .first()
    )
    if session is not None:
        change_bounds(db, session, leave.start_time, leave.end_time)


def list_leaves(db: Session, barber_id: UUID) -> List[LeaveRecord]:
    if not db.get(Barber, barber_id):
        raise NotFound(f"Barber {barber_id} not found")
    return (
        db.query(LeaveRecord)
        .filter(LeaveRecord.barber_id == barber_id)
        .order_by(LeaveRecord.start_date.desc(), LeaveRecord.created_at.desc())
        .all()
    )
