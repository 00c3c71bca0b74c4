
from salon_scheduler.db.session import Base
from salon_scheduler.models.salon import Salon
from salon_scheduler.models.barber import Barber, Service
from salon_scheduler.models.working_session import WorkingSession
from salon_scheduler.models.slot import Slot
from salon_scheduler.models.leave import LeaveRecord
from salon_scheduler.models.appointment import Appointment, appointment_services
