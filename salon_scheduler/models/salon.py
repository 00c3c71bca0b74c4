
import uuid
from sqlalchemy import Column, String, Boolean, DateTime, Time, Text, Uuid, func
from sqlalchemy.orm import relationship
from salon_scheduler.db.session import Base

class Salon(Base):
    __tablename__ = "salons"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    address = Column(Text, nullable=True)
    open_time = Column(Time, nullable=True)
    close_time = Column(Time, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    barbers = relationship("Barber", back_populates="salon")
