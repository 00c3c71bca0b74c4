
import uuid
import enum
from sqlalchemy import (
    Column, String, Integer, Date, Time, DateTime, Enum, ForeignKey, Table, Uuid, func,
)
from sqlalchemy.orm import relationship
from salon_scheduler.db.session import Base

class AppointmentStatus(str, enum.Enum):
    appointment = "appointment"   # future booking, not yet arrived
    checked_in = "checked_in"
    in_salon = "in_salon"
    completed = "completed"
    canceled = "canceled"

class AppointmentKind(str, enum.Enum):
    scheduled = "scheduled"
    walk_in = "walk_in"

TERMINAL_STATUSES = frozenset({AppointmentStatus.completed, AppointmentStatus.canceled})
QUEUE_STATUSES = (AppointmentStatus.checked_in, AppointmentStatus.in_salon)

appointment_services = Table(
    "appointment_services",
    Base.metadata,
    Column("appointment_id", Uuid, ForeignKey("appointments.id", ondelete="CASCADE"), primary_key=True),
    Column("service_id", Uuid, ForeignKey("services.id"), primary_key=True),
)

class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=True, index=True)
    barber_id = Column(Uuid, ForeignKey("barbers.id"), nullable=False, index=True)
    salon_id = Column(Uuid, ForeignKey("salons.id"), nullable=False)
    slot_id = Column(Uuid, ForeignKey("slots.id", ondelete="SET NULL"), nullable=True, index=True)
    kind = Column(Enum(AppointmentKind, name="appointment_kind"), nullable=False)
    status = Column(Enum(AppointmentStatus, name="appointment_status"), nullable=False, index=True)
    customer_name = Column(String(255), nullable=True)
    mobile_number = Column(String(32), nullable=True)
    appointment_date = Column(Date, nullable=True)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    wait_extension_minutes = Column(Integer, nullable=False, default=0)
    check_in_time = Column(DateTime(timezone=True), nullable=True)
    in_salon_time = Column(DateTime(timezone=True), nullable=True)
    complete_time = Column(DateTime(timezone=True), nullable=True)
    cancel_time = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    barber = relationship("Barber")
    slot = relationship("Slot", back_populates="appointments")
    services = relationship("Service", secondary=appointment_services)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
