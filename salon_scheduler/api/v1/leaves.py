from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from salon_scheduler.db.session import get_db
from salon_scheduler.api.deps import get_actor_id
from salon_scheduler.services import leave_service
from salon_scheduler.schemas.leave import Leave, LeaveCreate, LeaveDecision

router = APIRouter(prefix="/leaves", tags=["Leaves"])


@router.post("", response_model=Leave, status_code=status.HTTP_201_CREATED)
def request_leave(body: LeaveCreate, db: Session = Depends(get_db)):
    return leave_service.request_leave(
        db,
        barber_id=body.barber_id,
        salon_id=body.salon_id,
        start_date=body.start_date,
        end_date=body.end_date,
        start_time=body.start_time,
        end_time=body.end_time,
        availability=body.availability,
        reason=body.reason,
    )


@router.patch("/{leave_id}/decision", response_model=Leave)
def decide_leave(
    leave_id: UUID,
    body: LeaveDecision,
    db: Session = Depends(get_db),
    actor_id=Depends(get_actor_id),
):
    return leave_service.decide_leave(
        db,
        leave_id,
        body.status,
        decided_by=actor_id,
        response_reason=body.response_reason,
    )
