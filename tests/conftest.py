# caduceus/tests/conftest.py
#
# Shared fixtures: a fixed "today" and backend payloads shaped exactly like
# the hospital REST API returns them (camelCase keys).

from datetime import date, datetime

import pytest

from data_processing.loaders import Source
from data_processing.record_store import RecordStore

TODAY = date(2024, 5, 15)  # a Wednesday
NOW = datetime(2024, 5, 15, 9, 30)


def _appointment(appointment_id, doctor, patient, status, day, time):
    return {
        "appointmentId": appointment_id,
        "doctorEmployeeId": doctor,
        "patientNationalId": patient,
        "status": status,
        "appointmentDate": day,
        "appointmentTime": time,
    }


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def wards_payload():
    return [
        {"wardId": 1, "wardName": "Ward 1", "wardType": "general"},
        {"wardId": 2, "wardName": "ICU", "wardType": "icu"},
    ]


@pytest.fixture
def active_admissions_payload():
    return [
        {"admissionId": 10, "patientNationalId": 100, "wardId": 1, "wardName": "Ward 1",
         "status": "ACTIVE", "admissionDate": "2024-05-14T10:00:00"},
        {"admissionId": 11, "patientNationalId": 101, "wardName": "ward1",
         "status": "ACTIVE", "admissionDate": "2024-05-15T08:00:00"},
        # Matches no ward by any strategy.
        {"admissionId": 12, "patientNationalId": 102, "wardName": "Intensive Care",
         "status": "ACTIVE", "admissionDate": "2024-05-13T08:00:00"},
    ]


@pytest.fixture
def all_admissions_payload(active_admissions_payload):
    return active_admissions_payload + [
        {"admissionId": 1, "patientNationalId": 200, "wardId": 1, "status": "DISCHARGED",
         "admissionDate": "2024-05-10T08:00:00", "dischargeDate": "2024-05-12T10:00:00"},
        {"admissionId": 2, "patientNationalId": 201, "wardId": 1, "status": "DISCHARGED",
         "admissionDate": "2024-05-14T08:00:00", "dischargeDate": "2024-05-15T08:00:00"},
        {"admissionId": 3, "patientNationalId": 202, "wardId": 2, "status": "TRANSFERRED",
         "admissionDate": "2024-05-01T08:00:00", "dischargeDate": "2024-05-15T12:00:00"},
    ]


@pytest.fixture
def appointments_payload():
    d1 = [
        ("COMPLETED", "09:00"), ("COMPLETED", "09:30"), ("COMPLETED", "10:00"),
        ("COMPLETED", "10:30"), ("COMPLETED", "11:00"), ("COMPLETED", "11:30"),
        ("CANCELLED", "13:00"), ("CANCELLED", "13:30"),
        ("NO_SHOW", "15:00"),
        ("SCHEDULED", "16:00"),
    ]
    rows = [
        _appointment(i + 1, "D1", 100 if i % 2 else 101, status, "2024-05-15", time)
        for i, (status, time) in enumerate(d1)
    ]
    rows.append(_appointment(11, "D2", 102, "SCHEDULED", "2024-05-10", "14:00"))
    rows.append(_appointment(12, "D2", 102, "SCHEDULED", "2024-05-10", "14:30"))
    return rows


@pytest.fixture
def doctors_payload():
    return [
        {"empId": "D1", "doctorName": "Dr. Ada", "specialization": "Cardiology"},
        {"employeeId": "D2", "doctorName": "Dr. Ben", "specialization": "Cardiology"},
        {"empId": "D3", "doctorName": "Dr. Cy"},
    ]


@pytest.fixture
def patients_payload():
    return [
        {"nationalId": 100, "dateOfBirth": "2010-01-01", "gender": "male", "registrationDate": "2024-05-01"},
        {"nationalId": 101, "dateOfBirth": "1990-05-16", "gender": "FEMALE", "registrationDate": "2024-03-10"},
        {"nationalId": 102, "dateOfBirth": "1959-05-15", "gender": "female", "registrationDate": "2023-12-01"},
        {"nationalId": 103, "dateOfBirth": "not-a-date", "gender": None, "registrationDate": "2024-05-15"},
    ]


@pytest.fixture
def payloads(wards_payload, active_admissions_payload, all_admissions_payload,
             appointments_payload, doctors_payload, patients_payload):
    return {
        Source.WARDS: wards_payload,
        Source.ACTIVE_ADMISSIONS: active_admissions_payload,
        Source.ALL_ADMISSIONS: all_admissions_payload,
        Source.APPOINTMENTS: appointments_payload,
        Source.DOCTORS: doctors_payload,
        Source.PATIENTS: patients_payload,
    }


@pytest.fixture
def make_store(payloads):
    """Builds a RecordStore from the fixture payloads; `failed` sources are marked unavailable."""
    def _make(failed=(), fetched_at=NOW):
        store = RecordStore()
        for source, payload in payloads.items():
            if source in failed:
                store.mark_failed(source, f"Failed to load {source.value} data.")
            else:
                store.replace(source, payload, fetched_at)
        return store
    return _make
