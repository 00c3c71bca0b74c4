from fastapi import APIRouter

# Sessions & slot listing
from salon_scheduler.api.v1.sessions import router as sessions_router, barber_slots_router

# Bookings, walk-ins, status changes
from salon_scheduler.api.v1.appointments import router as appointments_router, slot_router

# Barber wait estimates, profile sync, leave history
from salon_scheduler.api.v1.barbers import router as barbers_router

# Leave requests
from salon_scheduler.api.v1.leaves import router as leaves_router

api_router = APIRouter()

# --- Sessions ---
api_router.include_router(sessions_router)
api_router.include_router(barber_slots_router)

# --- Appointments ---
api_router.include_router(slot_router)
api_router.include_router(appointments_router)

# --- Barbers ---
api_router.include_router(barbers_router)

# --- Leaves ---
api_router.include_router(leaves_router)
