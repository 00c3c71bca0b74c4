"""
Carves a working session into fixed-size bookable slots.
"""

import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from salon_scheduler.core.config import settings
from salon_scheduler.models.barber import SchedulingMode
from salon_scheduler.models.slot import Slot
from salon_scheduler.models.working_session import WorkingSession
from salon_scheduler.utils.time_grid import Interval, generate_boundaries, overlaps

logger = logging.getLogger(__name__)


def build_slots(
    session: WorkingSession,
    interval_minutes: Optional[int] = None,
    occupied: Iterable[Interval] = (),
) -> List[Slot]:
    """
    Unbooked slots covering the session bounds, in start order.

    Boundaries overlapping any interval in `occupied` are skipped, which is
    how a bounds edit only fills the gaps around slots that survived.
    Walk-in sessions never get slots.
    """
    if session.mode != SchedulingMode.slotted:
        return []

    interval = interval_minutes or settings.SLOT_INTERVAL_MINUTES
    taken = list(occupied)
    slots = []
    for boundary in generate_boundaries(session.start_time, session.end_time, interval):
        if any(overlaps(boundary, existing) for existing in taken):
            continue
        slots.append(Slot(
            session_id=session.id,
            salon_id=session.salon_id,
            slot_date=session.session_date,
            start_time=boundary.start,
            end_time=boundary.end,
            is_booked=False,
        ))
    return slots


def generate(
    db: Session,
    session: WorkingSession,
    interval_minutes: Optional[int] = None,
    occupied: Iterable[Interval] = (),
) -> List[Slot]:
    """Build and persist (flush, not commit) the slot batch for a session."""
    if session.id is None:
        db.flush()
    slots = build_slots(session, interval_minutes, occupied)
    if slots:
        db.add_all(slots)
        db.flush()
        logger.info(
            "Generated %d slot(s) for session %s on %s",
            len(slots), session.id, session.session_date,
        )
    return slots
