
import uuid
import enum
from sqlalchemy import Column, Date, Time, DateTime, Enum, Text, ForeignKey, CheckConstraint, Uuid, func
from sqlalchemy.orm import relationship
from salon_scheduler.db.session import Base

class LeaveReason(str, enum.Enum):
    personal = "personal"
    sick = "sick"
    family_emergency = "family_emergency"
    vacation = "vacation"
    training = "training"
    child_care = "child_care"
    maternity_leave = "maternity_leave"
    bereavement = "bereavement"
    appointment = "appointment"
    other = "other"

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    denied = "denied"

class LeaveAvailability(str, enum.Enum):
    available = "available"       # working reduced hours
    unavailable = "unavailable"   # full day(s) off

class LeaveRecord(Base):
    __tablename__ = "leave_records"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    barber_id = Column(Uuid, ForeignKey("barbers.id"), nullable=False, index=True)
    salon_id = Column(Uuid, ForeignKey("salons.id"), nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    reason = Column(Enum(LeaveReason, name="leave_reason"), nullable=True)
    status = Column(Enum(LeaveStatus, name="leave_status"), nullable=False, default=LeaveStatus.pending)
    availability = Column(
        Enum(LeaveAvailability, name="leave_availability"),
        nullable=False,
        default=LeaveAvailability.unavailable,
    )
    approved_by = Column(Uuid, nullable=True)
    response_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    barber = relationship("Barber")

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="ck_leave_records_date_order"),
    )
