from uuid import UUID
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from salon_scheduler.db.session import get_db
from salon_scheduler.services import leave_service, session_reconciler, wait_estimator
from salon_scheduler.schemas.appointment import WaitEstimate
from salon_scheduler.schemas.barber import BarberProfileUpdate, BarberProfileSyncResponse
from salon_scheduler.schemas.leave import Leave

router = APIRouter(prefix="/barbers", tags=["Barbers"])


@router.get("/{barber_id}/wait-estimate", response_model=WaitEstimate)
def wait_estimate(
    barber_id: UUID,
    service_time: Optional[int] = Query(None, gt=0),
    db: Session = Depends(get_db),
):
    return wait_estimator.estimate_wait(db, barber_id, service_time=service_time)


@router.patch("/{barber_id}/profile", response_model=BarberProfileSyncResponse)
def update_profile(barber_id: UUID, body: BarberProfileUpdate, db: Session = Depends(get_db)):
    sync = session_reconciler.sync_barber_profile(db, barber_id, mode=body.mode, position=body.position)
    return {
        "barber": sync.barber,
        "sessions_updated": sync.sessions_updated,
        "slots_created": sync.slots_created,
        "appointments_canceled": len(sync.appointments_canceled),
    }


@router.get("/{barber_id}/leaves", response_model=List[Leave])
def list_leaves(barber_id: UUID, db: Session = Depends(get_db)):
    return leave_service.list_leaves(db, barber_id)
