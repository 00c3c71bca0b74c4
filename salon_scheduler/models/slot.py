
import uuid
from sqlalchemy import Column, Boolean, Date, Time, DateTime, ForeignKey, Uuid, func
from sqlalchemy.orm import relationship
from salon_scheduler.db.session import Base

class Slot(Base):
    __tablename__ = "slots"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id = Column(Uuid, ForeignKey("working_sessions.id"), nullable=False, index=True)
    salon_id = Column(Uuid, ForeignKey("salons.id"), nullable=False)
    slot_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_booked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    session = relationship("WorkingSession", back_populates="slots")
    appointments = relationship("Appointment", back_populates="slot")
