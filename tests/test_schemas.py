import uuid
from datetime import date

import pytest
from pydantic import ValidationError

from salon_scheduler import schemas


def test_leave_dates_must_be_ordered():
    with pytest.raises(ValidationError):
        schemas.LeaveCreate(barber_id=uuid.uuid4(), start_date=date(2030, 3, 5), end_date=date(2030, 3, 4))


def test_wait_extension_must_be_positive():
    with pytest.raises(ValidationError):
        schemas.WaitExtension(minutes=0)


def test_session_create_needs_a_day():
    with pytest.raises(ValidationError):
        schemas.SessionCreate(barber_id=uuid.uuid4(), salon_id=uuid.uuid4(), available_days=[])


def test_edit_response_needs_an_outcome():
    with pytest.raises(ValidationError):
        schemas.SessionEditResponse()


def test_error_response_defaults():
    body = schemas.ErrorResponse(error="not_found", message="Slot not found")
    assert body.model_dump() == {"error": "not_found", "message": "Slot not found", "detail": {}}
