from uuid import UUID
from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from salon_scheduler.db.session import get_db
from salon_scheduler.api.deps import get_actor_id
from salon_scheduler.services import session_reconciler
from salon_scheduler.services.session_reconciler import SessionDraft
from salon_scheduler.schemas.session import (
    SessionCreate,
    SessionUpdate,
    SessionCreateResponse,
    SessionEditResponse,
    SlotListResponse,
)

router = APIRouter(prefix="/sessions", tags=["Sessions"])
barber_slots_router = APIRouter(prefix="/barbers", tags=["Sessions"])


@router.post("", response_model=SessionCreateResponse, status_code=status.HTTP_201_CREATED)
def create_sessions(body: SessionCreate, db: Session = Depends(get_db)):
    result = session_reconciler.create_sessions(
        db,
        barber_id=body.barber_id,
        salon_id=body.salon_id,
        available_days=[
            SessionDraft(session_date=d.date, start_time=d.start_time, end_time=d.end_time)
            for d in body.available_days
        ],
    )
    return {
        "sessions": result.sessions,
        "slots": result.slots,
        "rejected_dates": [
            {"date": r.session_date, "reason": r.reason, "message": r.message}
            for r in result.rejected_dates
        ],
    }


@router.patch("/{session_id}", response_model=SessionEditResponse)
def edit_session(
    session_id: UUID,
    body: SessionUpdate,
    db: Session = Depends(get_db),
    actor_id=Depends(get_actor_id),
):
    """
    Change a session's hours, or turn it into a day off when
    `make_unavailable` is set or no hours are given.
    """
    edit = session_reconciler.edit_session(
        db,
        session_id,
        start_time=body.start_time,
        end_time=body.end_time,
        make_unavailable=body.make_unavailable,
        reason=body.reason,
        approved_by=actor_id,
    )
    return {"session": edit.session, "slots": edit.slots, "leave": edit.leave}


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(session_id: UUID, db: Session = Depends(get_db)):
    session_reconciler.delete_session(db, session_id)


@barber_slots_router.get("/{barber_id}/slots", response_model=SlotListResponse)
def list_slots(
    barber_id: UUID,
    slot_date: date = Query(..., alias="date"),
    db: Session = Depends(get_db),
):
    grouped = session_reconciler.list_slots(db, barber_id, slot_date)
    return {
        "barber_id": barber_id,
        "date": slot_date,
        "sessions": [
            {**_session_fields(group.session), "slots": group.slots}
            for group in grouped
        ],
    }


def _session_fields(session) -> dict:
    return {
        "id": session.id,
        "barber_id": session.barber_id,
        "salon_id": session.salon_id,
        "session_date": session.session_date,
        "start_time": session.start_time,
        "end_time": session.end_time,
        "remaining_time": session.remaining_time,
        "mode": session.mode,
        "position": session.position,
        "created_at": session.created_at,
    }
