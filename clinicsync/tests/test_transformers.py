from __future__ import annotations

from datetime import date

from clinicsync.schemas import AppointmentCreate, AppointmentStatus, AppointmentUpdate
from clinicsync.services.transformers import (
    appointment_from_record,
    build_create_payload,
    build_update_payload,
    extract_record,
    normalize_page,
)


def _record(**overrides):
    record = {
        "id": 7,
        "patient_name": "John Smith",
        "patient_phone": "+1 234-567-8907",
        "slot_date": "2024-05-10",
        "slot_time": "10:00-10:30",
        "treatment_type": "Migraine",
        "appointment_status": "in_progress",
    }
    record.update(overrides)
    return record


def test_record_maps_to_internal_appointment() -> None:
    appointment = appointment_from_record(
        _record(meet_link="https://meet.example/abc", is_already_registered=True)
    )

    assert appointment is not None
    assert appointment.id == 7
    assert appointment.patient_name == "John Smith"
    assert appointment.mobile_number == "+1 234-567-8907"
    assert appointment.diseases == "Migraine"
    assert appointment.scheduled_date == date(2024, 5, 10)
    assert appointment.scheduled_time == "10:00-10:30"
    assert appointment.status == AppointmentStatus.IN_PROGRESS
    assert appointment.meet_link == "https://meet.example/abc"
    assert appointment.is_already_registered is True


def test_record_falls_back_to_nested_patient_and_booked_slots() -> None:
    appointment = appointment_from_record(
        {
            "id": 3,
            "patient": {"id": 42, "first_name": "Sarah", "last_name": "Johnson", "phone_number": "555", "gender": "FEMALE", "age": 31},
            "treatment_history": "Asthma",
            "status": "COMPLETED",
            "meeting_link": "https://meet.example/x",
            "booked_slots": [
                {"id": 90, "slot_date": "2024-01-02", "slot_time": "08:00"},
                {"id": 91, "slot_date": "2024-01-03", "slot_time": "09:00"},
            ],
        }
    )

    assert appointment is not None
    assert appointment.patient_name == "Sarah Johnson"
    assert appointment.mobile_number == "555"
    assert appointment.patient_id == 42
    assert appointment.gender == "Female"
    assert appointment.age == 31
    assert appointment.diseases == "Asthma"
    assert appointment.status == AppointmentStatus.COMPLETED
    assert appointment.scheduled_date == date(2024, 1, 2)
    assert appointment.scheduled_time == "08:00"
    assert [slot.id for slot in appointment.booked_slots] == [90, 91]


def test_record_defaults_for_missing_display_fields() -> None:
    appointment = appointment_from_record({"id": 1, "slot_date": "2024-01-01"})

    assert appointment is not None
    assert appointment.patient_name == "Unknown Patient"
    assert appointment.mobile_number == "N/A"
    assert appointment.diseases == "General Consultation"
    assert appointment.status == AppointmentStatus.UPCOMING


def test_record_without_date_is_dropped() -> None:
    assert appointment_from_record({"id": 1, "patient_name": "No Date"}) is None


def test_normalize_page_reads_meta_shape() -> None:
    page = normalize_page(
        {"data": [_record(id=1), _record(id=2)], "meta": {"total": 12, "current_page": 2, "total_pages": 6}},
        requested_page=2,
        page_size=2,
    )

    assert [item.id for item in page.items] == [1, 2]
    assert page.total == 12
    assert page.page == 2
    assert page.total_pages == 6
    assert page.page_size == 2


def test_normalize_page_reads_legacy_flat_shape() -> None:
    page = normalize_page(
        {"data": [_record()], "total_count": 21, "current_page": 3, "total_pages": 3},
        requested_page=3,
        page_size=10,
    )

    assert page.total == 21
    assert page.page == 3
    assert page.total_pages == 3


def test_normalize_page_derives_missing_pagination() -> None:
    page = normalize_page({"data": [_record(id=1), {"id": 2}]}, requested_page=1, page_size=10)

    assert [item.id for item in page.items] == [1]
    assert page.total == 1
    assert page.total_pages == 1


def test_create_payload_includes_contact_note() -> None:
    payload = build_create_payload(
        AppointmentCreate(
            patient_id=5,
            patient_name="Emily Davis",
            mobile_number="555-0101",
            diseases="Back Pain",
            scheduled_date=date(2024, 7, 1),
            scheduled_time="14:00",
        )
    )

    assert payload == {
        "patient_id": 5,
        "slot_date": "2024-07-01",
        "slot_time": "14:00",
        "treatment_type": "Back Pain",
        "notes": "Patient: Emily Davis, Phone: 555-0101",
    }


def test_update_payload_maps_status_and_contact_changes() -> None:
    current = appointment_from_record(_record())
    payload = build_update_payload(
        AppointmentUpdate(status=AppointmentStatus.NO_SHOW, mobile_number="999"), current
    )

    assert payload == {"status": "no_show", "notes": "Patient: John Smith, Phone: 999"}


def test_extract_record_accepts_wrapped_and_bare_payloads() -> None:
    assert extract_record({"message": "ok", "consultation": {"id": 4}}) == {"id": 4}
    assert extract_record({"id": 9, "slot_date": "2024-01-01"})["id"] == 9
    assert extract_record({"message": "ok"}) is None


def test_unreadable_age_does_not_drop_the_record() -> None:
    appointment = appointment_from_record(_record(patient={"age": "42 years", "gender": "male"}))

    assert appointment is not None
    assert appointment.age is None
    assert appointment.gender == "Male"
    assert appointment_from_record(_record(patient={"age": "42"})).age == 42
