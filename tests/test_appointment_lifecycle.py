import threading
import uuid
from datetime import time, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from salon_scheduler.core.exceptions import (
    InvalidRange, InvalidTransition, NoCapacity, NotFound, SlotAlreadyBooked,
)
from salon_scheduler.db.base import Base
from salon_scheduler.models import (
    Appointment, AppointmentKind, AppointmentStatus, Barber, LeaveRecord, LeaveStatus,
    LeaveAvailability, Salon, SchedulingMode, Slot, WorkingSession,
)
from salon_scheduler.services import appointment_lifecycle, session_reconciler
from salon_scheduler.services.appointment_lifecycle import CustomerDetails, service_minutes
from salon_scheduler.services.session_reconciler import SessionDraft
from salon_scheduler.utils.timeslots import claim_slot

from tests.conftest import NOW, TODAY, TOMORROW


def _slot_at(db, session_id, start):
    return db.query(Slot).filter(Slot.session_id == session_id, Slot.start_time == start).one()


def _customer(*services, user_id=None):
    return CustomerDetails(
        user_id=user_id,
        customer_name="Ravi",
        mobile_number="9876543210",
        service_ids=[s.id for s in services],
    )


class TestBooking:
    def test_book_slot_creates_appointment(self, db, seed, make_session):
        session = make_session(seed.slotted, TOMORROW, "10:00", "11:00")
        slot = _slot_at(db, session.id, time(10, 15))

        appointment = appointment_lifecycle.book_slot(db, slot.id, _customer(seed.haircut), now=NOW)

        assert appointment.status == AppointmentStatus.appointment
        assert appointment.kind == AppointmentKind.scheduled
        assert appointment.slot_id == slot.id
        assert appointment.barber_id == seed.slotted.id
        assert (appointment.appointment_date, appointment.start_time, appointment.end_time) == (
            TOMORROW, time(10, 15), time(10, 30),
        )
        assert [s.name for s in appointment.services] == ["Haircut"]
        assert db.get(Slot, slot.id).is_booked is True
        assert db.get(WorkingSession, session.id).remaining_time == 45

    def test_second_booking_loses(self, db, seed, make_session):
        session = make_session(seed.slotted, TOMORROW, "10:00", "11:00")
        slot = _slot_at(db, session.id, time(10, 0))
        appointment_lifecycle.book_slot(db, slot.id, _customer(), now=NOW)

        with pytest.raises(SlotAlreadyBooked):
            appointment_lifecycle.book_slot(db, slot.id, _customer(), now=NOW)

        assert db.get(Slot, slot.id).is_booked is True
        assert db.query(Appointment).filter(Appointment.slot_id == slot.id).count() == 1

    def test_conditional_claim_only_succeeds_once(self, db, seed, make_session):
        session = make_session(seed.slotted, TOMORROW, "10:00", "11:00")
        slot = _slot_at(db, session.id, time(10, 0))
        assert claim_slot(db, slot.id) is True
        assert claim_slot(db, slot.id) is False

    def test_started_slot_cannot_be_booked(self, db, seed, make_session):
        session = make_session(seed.slotted, TODAY, "07:00", "09:00")
        slot = _slot_at(db, session.id, time(7, 45))
        with pytest.raises(InvalidRange):
            appointment_lifecycle.book_slot(db, slot.id, _customer(), now=NOW)
        assert db.get(Slot, slot.id).is_booked is False

    def test_unknown_service(self, db, seed, make_session):
        session = make_session(seed.slotted, TOMORROW, "10:00", "11:00")
        slot = _slot_at(db, session.id, time(10, 0))
        with pytest.raises(NotFound):
            appointment_lifecycle.book_slot(
                db, slot.id, CustomerDetails(service_ids=[uuid.uuid4()]), now=NOW,
            )
        assert db.get(Slot, slot.id).is_booked is False


class TestTransitions:
    @pytest.fixture
    def booked(self, db, seed, make_session):
        session = make_session(seed.slotted, TOMORROW, "10:00", "11:00")
        slot = _slot_at(db, session.id, time(10, 0))
        return appointment_lifecycle.book_slot(db, slot.id, _customer(seed.haircut), now=NOW)

    def test_happy_path_stamps_times(self, db, booked):
        appointment_lifecycle.transition_appointment(db, booked.id, AppointmentStatus.in_salon, now=NOW)
        done = appointment_lifecycle.transition_appointment(
            db, booked.id, AppointmentStatus.completed, now=NOW + timedelta(minutes=30),
        )
        assert done.status == AppointmentStatus.completed
        assert done.in_salon_time is not None
        assert done.complete_time is not None

    def test_terminal_states_reject_everything(self, db, booked):
        appointment_lifecycle.transition_appointment(db, booked.id, "completed", now=NOW)
        with pytest.raises(InvalidTransition):
            appointment_lifecycle.transition_appointment(db, booked.id, AppointmentStatus.checked_in, now=NOW)
        assert db.get(Appointment, booked.id).status == AppointmentStatus.completed

    def test_cancel_releases_slot_and_restores_time(self, db, booked):
        slot_id = booked.slot_id
        appointment_lifecycle.transition_appointment(db, booked.id, AppointmentStatus.canceled, now=NOW)

        assert db.get(Appointment, booked.id).cancel_time is not None
        slot = db.get(Slot, slot_id)
        assert slot.is_booked is False
        assert db.get(WorkingSession, slot.session_id).remaining_time == 60

    def test_restored_time_never_exceeds_session_length(self, db, booked):
        slot = db.get(Slot, booked.slot_id)
        session = db.get(WorkingSession, slot.session_id)
        session.remaining_time = 55
        db.commit()
        appointment_lifecycle.transition_appointment(db, booked.id, AppointmentStatus.canceled, now=NOW)
        assert db.get(WorkingSession, session.id).remaining_time == 60

    def test_one_customer_in_chair_at_a_time(self, db, seed, booked):
        other = appointment_lifecycle.book_slot(
            db, _slot_at(db, db.get(Slot, booked.slot_id).session_id, time(10, 15)).id, _customer(), now=NOW,
        )
        appointment_lifecycle.transition_appointment(db, booked.id, AppointmentStatus.in_salon, now=NOW)
        with pytest.raises(InvalidTransition):
            appointment_lifecycle.transition_appointment(db, other.id, AppointmentStatus.in_salon, now=NOW)
        assert db.get(Appointment, other.id).status == AppointmentStatus.appointment


class TestWalkIns:
    def test_check_in_joins_queue(self, db, seed, make_session):
        session = make_session(seed.walk_in, TODAY, "08:00", "20:00")
        appointment = appointment_lifecycle.check_in_walk_in(
            db, seed.walk_in.id, _customer(seed.haircut, seed.beard), now=NOW,
        )
        assert appointment.status == AppointmentStatus.checked_in
        assert appointment.kind == AppointmentKind.walk_in
        assert appointment.check_in_time is not None
        assert appointment.slot_id is None
        assert db.get(WorkingSession, session.id).remaining_time == 720 - 45

    def test_no_services_counts_default_duration(self, db, seed, make_session):
        session = make_session(seed.walk_in, TODAY, "08:00", "20:00")
        appointment_lifecycle.check_in_walk_in(db, seed.walk_in.id, _customer(), now=NOW)
        assert db.get(WorkingSession, session.id).remaining_time == 700
        assert service_minutes([]) == 20

    def test_empty_queue_is_bounded_by_session_end(self, db, seed, make_session):
        make_session(seed.walk_in, TODAY, "07:00", "09:00")
        with pytest.raises(NoCapacity) as exc:
            appointment_lifecycle.check_in_walk_in(db, seed.walk_in.id, _customer(seed.colour), now=NOW)
        assert exc.value.detail == {"remaining_time": 60, "requested": 90}
        assert db.query(Appointment).count() == 0

    def test_requires_session_today(self, db, seed, make_session):
        make_session(seed.walk_in, TOMORROW, "08:00", "20:00")
        with pytest.raises(NoCapacity):
            appointment_lifecycle.check_in_walk_in(db, seed.walk_in.id, _customer(), now=NOW)

    def test_slotted_barber_refuses_walk_ins(self, db, seed, make_session):
        make_session(seed.slotted, TODAY, "08:00", "20:00")
        with pytest.raises(NoCapacity):
            appointment_lifecycle.check_in_walk_in(db, seed.slotted.id, _customer(), now=NOW)

    def test_one_active_walk_in_per_customer(self, db, seed, make_session):
        make_session(seed.walk_in, TODAY, "08:00", "20:00")
        user_id = uuid.uuid4()
        appointment_lifecycle.check_in_walk_in(db, seed.walk_in.id, _customer(user_id=user_id), now=NOW)
        with pytest.raises(InvalidTransition):
            appointment_lifecycle.check_in_walk_in(db, seed.walk_in.id, _customer(user_id=user_id), now=NOW)

    def test_cancel_restores_walk_in_minutes(self, db, seed, make_session):
        session = make_session(seed.walk_in, TODAY, "08:00", "20:00")
        appointment = appointment_lifecycle.check_in_walk_in(db, seed.walk_in.id, _customer(seed.haircut), now=NOW)
        appointment_lifecycle.transition_appointment(db, appointment.id, AppointmentStatus.canceled, now=NOW)
        assert db.get(WorkingSession, session.id).remaining_time == 720

    def test_extend_wait(self, db, seed, make_session):
        make_session(seed.walk_in, TODAY, "08:00", "20:00")
        appointment = appointment_lifecycle.check_in_walk_in(db, seed.walk_in.id, _customer(), now=NOW)
        appointment_lifecycle.extend_wait(db, appointment.id, 10)
        extended = appointment_lifecycle.extend_wait(db, appointment.id, 5)
        assert extended.wait_extension_minutes == 15
        with pytest.raises(InvalidRange):
            appointment_lifecycle.extend_wait(db, appointment.id, 0)


class TestTransfer:
    def test_scheduled_moves_to_matching_slot(self, db, seed, make_session):
        old_session = make_session(seed.slotted, TOMORROW, "10:00", "11:00")
        new_session = make_session(seed.slotted_alt, TOMORROW, "09:00", "12:00")
        old_slot = _slot_at(db, old_session.id, time(10, 30))
        appointment = appointment_lifecycle.book_slot(db, old_slot.id, _customer(), now=NOW)

        moved = appointment_lifecycle.transfer_appointment(db, appointment.id, seed.slotted_alt.id, now=NOW)

        new_slot = _slot_at(db, new_session.id, time(10, 30))
        assert moved.barber_id == seed.slotted_alt.id
        assert moved.slot_id == new_slot.id
        assert new_slot.is_booked is True
        assert db.get(Slot, old_slot.id).is_booked is False
        assert db.get(WorkingSession, old_session.id).remaining_time == 60
        assert db.get(WorkingSession, new_session.id).remaining_time == 165

    def test_no_matching_slot_changes_nothing(self, db, seed, make_session):
        old_session = make_session(seed.slotted, TOMORROW, "10:00", "11:00")
        make_session(seed.slotted_alt, TOMORROW, "13:00", "15:00")
        old_slot = _slot_at(db, old_session.id, time(10, 30))
        appointment = appointment_lifecycle.book_slot(db, old_slot.id, _customer(), now=NOW)

        with pytest.raises(NoCapacity):
            appointment_lifecycle.transfer_appointment(db, appointment.id, seed.slotted_alt.id, now=NOW)

        reloaded = db.get(Appointment, appointment.id)
        assert reloaded.barber_id == seed.slotted.id
        assert reloaded.slot_id == old_slot.id
        assert db.get(Slot, old_slot.id).is_booked is True

    def test_target_on_leave(self, db, seed, make_session):
        old_session = make_session(seed.slotted, TOMORROW, "10:00", "11:00")
        make_session(seed.slotted_alt, TOMORROW, "09:00", "12:00")
        db.add(LeaveRecord(
            barber_id=seed.slotted_alt.id, start_date=TOMORROW, end_date=TOMORROW,
            status=LeaveStatus.approved, availability=LeaveAvailability.unavailable,
        ))
        db.commit()
        appointment = appointment_lifecycle.book_slot(
            db, _slot_at(db, old_session.id, time(10, 0)).id, _customer(), now=NOW,
        )
        with pytest.raises(NoCapacity):
            appointment_lifecycle.transfer_appointment(db, appointment.id, seed.slotted_alt.id, now=NOW)

    def test_walk_in_moves_minutes_between_sessions(self, db, seed, make_session):
        old_session = make_session(seed.walk_in, TODAY, "08:00", "20:00")
        new_session = make_session(seed.walk_in_alt, TODAY, "08:00", "12:00")
        appointment = appointment_lifecycle.check_in_walk_in(db, seed.walk_in.id, _customer(seed.haircut), now=NOW)

        moved = appointment_lifecycle.transfer_appointment(db, appointment.id, seed.walk_in_alt.id, now=NOW)

        assert moved.barber_id == seed.walk_in_alt.id
        assert db.get(WorkingSession, old_session.id).remaining_time == 720
        assert db.get(WorkingSession, new_session.id).remaining_time == 210

    def test_walk_in_cannot_move_to_slotted_barber(self, db, seed, make_session):
        make_session(seed.walk_in, TODAY, "08:00", "20:00")
        appointment = appointment_lifecycle.check_in_walk_in(db, seed.walk_in.id, _customer(), now=NOW)
        with pytest.raises(NoCapacity):
            appointment_lifecycle.transfer_appointment(db, appointment.id, seed.slotted.id, now=NOW)

    def test_terminal_appointment_cannot_move(self, db, seed, make_session):
        make_session(seed.walk_in, TODAY, "08:00", "20:00")
        appointment = appointment_lifecycle.check_in_walk_in(db, seed.walk_in.id, _customer(), now=NOW)
        appointment_lifecycle.transition_appointment(db, appointment.id, AppointmentStatus.completed, now=NOW)
        with pytest.raises(InvalidTransition):
            appointment_lifecycle.transfer_appointment(db, appointment.id, seed.walk_in_alt.id, now=NOW)

    def test_targets_list_barbers_with_matching_free_slot(self, db, seed, make_session):
        old_session = make_session(seed.slotted, TOMORROW, "10:00", "11:00")
        make_session(seed.slotted_alt, TOMORROW, "09:00", "12:00")
        busy = Barber(salon_id=seed.salon.id, name="Dev", mode=SchedulingMode.slotted)
        db.add(busy)
        db.commit()
        make_session(busy, TOMORROW, "13:00", "15:00")
        appointment = appointment_lifecycle.book_slot(
            db, _slot_at(db, old_session.id, time(10, 30)).id, _customer(), now=NOW,
        )

        targets = appointment_lifecycle.available_transfer_targets(db, appointment.id, now=NOW)

        assert [b.id for b in targets] == [seed.slotted_alt.id]

    def test_targets_skip_barbers_on_leave(self, db, seed, make_session):
        old_session = make_session(seed.slotted, TOMORROW, "10:00", "11:00")
        make_session(seed.slotted_alt, TOMORROW, "09:00", "12:00")
        db.add(LeaveRecord(
            barber_id=seed.slotted_alt.id, start_date=TOMORROW, end_date=TOMORROW,
            status=LeaveStatus.approved, availability=LeaveAvailability.unavailable,
        ))
        db.commit()
        appointment = appointment_lifecycle.book_slot(
            db, _slot_at(db, old_session.id, time(10, 0)).id, _customer(), now=NOW,
        )
        assert appointment_lifecycle.available_transfer_targets(db, appointment.id, now=NOW) == []

    def test_walk_in_targets_need_enough_time(self, db, seed, make_session):
        make_session(seed.walk_in, TODAY, "08:00", "20:00")
        other = make_session(seed.walk_in_alt, TODAY, "08:00", "12:00")
        appointment = appointment_lifecycle.check_in_walk_in(db, seed.walk_in.id, _customer(seed.haircut), now=NOW)
        other.remaining_time = 15
        db.commit()

        assert appointment_lifecycle.available_transfer_targets(db, appointment.id, now=NOW) == []

        db.get(WorkingSession, other.id).remaining_time = 30
        db.commit()
        targets = appointment_lifecycle.available_transfer_targets(db, appointment.id, now=NOW)
        assert [b.id for b in targets] == [seed.walk_in_alt.id]

    def test_targets_for_finished_appointment(self, db, seed, make_session):
        make_session(seed.walk_in, TODAY, "08:00", "20:00")
        appointment = appointment_lifecycle.check_in_walk_in(db, seed.walk_in.id, _customer(), now=NOW)
        appointment_lifecycle.transition_appointment(db, appointment.id, AppointmentStatus.canceled, now=NOW)
        with pytest.raises(InvalidTransition):
            appointment_lifecycle.available_transfer_targets(db, appointment.id, now=NOW)


class TestConcurrentBooking:
    @pytest.fixture
    def file_engine(self, tmp_path):
        engine = create_engine(
            f"sqlite:///{tmp_path / 'race.db'}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        Base.metadata.create_all(bind=engine)
        yield engine
        engine.dispose()

    def test_two_sessions_racing_for_one_slot(self, file_engine):
        factory = sessionmaker(autocommit=False, autoflush=False, bind=file_engine)
        setup = factory()
        salon = Salon(name="Fade Street")
        setup.add(salon)
        setup.flush()
        barber = Barber(salon_id=salon.id, name="Arjun", mode=SchedulingMode.slotted)
        setup.add(barber)
        setup.commit()
        result = session_reconciler.create_sessions(
            setup, barber.id, salon.id, [SessionDraft(TOMORROW, "10:00", "11:00")], now=NOW,
        )
        session_id = result.sessions[0].id
        slot_id = _slot_at(setup, session_id, time(10, 0)).id
        setup.close()

        barrier = threading.Barrier(2)
        outcomes = []

        def book():
            session = factory()
            try:
                barrier.wait()
                appointment_lifecycle.book_slot(session, slot_id, _customer(), now=NOW)
                outcomes.append("ok")
            except SlotAlreadyBooked:
                outcomes.append("lost")
            except Exception as exc:
                outcomes.append(repr(exc))
            finally:
                session.close()

        threads = [threading.Thread(target=book) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)

        assert sorted(outcomes) == ["lost", "ok"]
        check = factory()
        try:
            assert check.query(Appointment).filter(Appointment.slot_id == slot_id).count() == 1
            assert check.get(Slot, slot_id).is_booked is True
            assert check.get(WorkingSession, session_id).remaining_time == 45
        finally:
            check.close()
