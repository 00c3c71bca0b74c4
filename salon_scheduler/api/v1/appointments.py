from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from salon_scheduler.db.session import get_db
from salon_scheduler.api.deps import get_actor_id
from salon_scheduler.services import appointment_lifecycle, wait_estimator
from salon_scheduler.services.appointment_lifecycle import CustomerDetails
from salon_scheduler.schemas.appointment import (
    Appointment as AppointmentSchema,
    AppointmentCreate,
    WalkInCreate,
    StatusUpdate,
    TransferRequest,
    WaitExtension,
    QueuePlacement,
)
from salon_scheduler.schemas.barber import Barber as BarberSchema

router = APIRouter(prefix="/appointments", tags=["Appointments"])
slot_router = APIRouter(prefix="/slots", tags=["Appointments"])


def _customer(body: AppointmentCreate, actor_id) -> CustomerDetails:
    return CustomerDetails(
        user_id=actor_id,
        customer_name=body.customer_name,
        mobile_number=body.mobile_number,
        service_ids=list(body.service_ids),
    )


@slot_router.post("/{slot_id}/book", response_model=AppointmentSchema, status_code=status.HTTP_201_CREATED)
def book_slot(
    slot_id: UUID,
    body: AppointmentCreate,
    db: Session = Depends(get_db),
    actor_id=Depends(get_actor_id),
):
    return appointment_lifecycle.book_slot(db, slot_id, _customer(body, actor_id))


@router.post("/walk-in", response_model=AppointmentSchema, status_code=status.HTTP_201_CREATED)
def check_in_walk_in(
    body: WalkInCreate,
    db: Session = Depends(get_db),
    actor_id=Depends(get_actor_id),
):
    return appointment_lifecycle.check_in_walk_in(db, body.barber_id, _customer(body, actor_id))


@router.post("/{appointment_id}/status", response_model=AppointmentSchema)
def update_status(appointment_id: UUID, body: StatusUpdate, db: Session = Depends(get_db)):
    return appointment_lifecycle.transition_appointment(db, appointment_id, body.status)


@router.post("/{appointment_id}/transfer", response_model=AppointmentSchema)
def transfer(appointment_id: UUID, body: TransferRequest, db: Session = Depends(get_db)):
    return appointment_lifecycle.transfer_appointment(db, appointment_id, body.barber_id)


@router.get("/{appointment_id}/transfer-targets", response_model=List[BarberSchema])
def transfer_targets(appointment_id: UUID, db: Session = Depends(get_db)):
    return appointment_lifecycle.available_transfer_targets(db, appointment_id)


@router.post("/{appointment_id}/extend-wait", response_model=AppointmentSchema)
def extend_wait(appointment_id: UUID, body: WaitExtension, db: Session = Depends(get_db)):
    return appointment_lifecycle.extend_wait(db, appointment_id, body.minutes)


@router.get("/{appointment_id}/wait", response_model=QueuePlacement)
def appointment_wait(appointment_id: UUID, db: Session = Depends(get_db)):
    return wait_estimator.estimate_for_appointment(db, appointment_id)
