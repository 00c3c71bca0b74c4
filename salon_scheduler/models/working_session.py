
import uuid
from sqlalchemy import Column, Date, Time, Integer, DateTime, Enum, ForeignKey, Index, Uuid, func
from sqlalchemy.orm import relationship
from salon_scheduler.db.session import Base
from salon_scheduler.models.barber import SchedulingMode, BarberPosition

class WorkingSession(Base):
    __tablename__ = "working_sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    barber_id = Column(Uuid, ForeignKey("barbers.id"), nullable=False)
    salon_id = Column(Uuid, ForeignKey("salons.id"), nullable=False, index=True)
    session_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    remaining_time = Column(Integer, nullable=False)  # minutes, cached counter
    # Copied from the barber at creation, re-stamped by profile sync
    mode = Column(Enum(SchedulingMode, name="scheduling_mode"), nullable=False)
    position = Column(Enum(BarberPosition, name="barber_position"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    # Relationships
    barber = relationship("Barber", back_populates="sessions")
    salon = relationship("Salon")
    slots = relationship("Slot", back_populates="session", order_by="Slot.start_time")

    __table_args__ = (
        Index("ix_working_sessions_barber_date", "barber_id", "session_date"),
    )
