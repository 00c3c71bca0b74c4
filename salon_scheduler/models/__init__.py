
from salon_scheduler.models.salon import Salon
from salon_scheduler.models.barber import Barber, Service, SchedulingMode, BarberPosition
from salon_scheduler.models.working_session import WorkingSession
from salon_scheduler.models.slot import Slot
from salon_scheduler.models.leave import LeaveRecord, LeaveReason, LeaveStatus, LeaveAvailability
from salon_scheduler.models.appointment import (
    Appointment, AppointmentStatus, AppointmentKind, appointment_services,
)
