
import uuid
import enum
from sqlalchemy import Column, String, Boolean, DateTime, Integer, DECIMAL, Enum, ForeignKey, Uuid, func
from sqlalchemy.orm import relationship
from salon_scheduler.db.session import Base

class SchedulingMode(str, enum.Enum):
    slotted = "slotted"     # fixed bookable slots
    walk_in = "walk_in"     # rolling queue, no slots

class BarberPosition(str, enum.Enum):
    senior = "Senior"
    master = "Master"
    executive = "Executive"
    braider = "Braider"
    junior = "Junior"
    trainee = "Trainee"
    student = "Student"

class Barber(Base):
    __tablename__ = "barbers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    salon_id = Column(Uuid, ForeignKey("salons.id"), nullable=False, index=True)
    user_id = Column(Uuid, nullable=True, index=True)  # owning account, managed outside the engine
    name = Column(String(255), nullable=False)
    mode = Column(Enum(SchedulingMode, name="scheduling_mode"), nullable=False, default=SchedulingMode.slotted)
    position = Column(Enum(BarberPosition, name="barber_position"), nullable=False, default=BarberPosition.junior)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    # Relationships
    salon = relationship("Salon", back_populates="barbers")
    sessions = relationship("WorkingSession", back_populates="barber")

class Service(Base):
    __tablename__ = "services"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    salon_id = Column(Uuid, ForeignKey("salons.id"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    default_service_time = Column(Integer, nullable=False)  # minutes
    min_price = Column(DECIMAL(10, 2), nullable=True)
    max_price = Column(DECIMAL(10, 2), nullable=True)
    is_active = Column(Boolean, default=True)
