from datetime import datetime, timedelta

import pytest

from meditrack.core.errors import InputValidationError
from meditrack.models.prescription import Prescription
from meditrack.schemas.prescription import Medication, PrescriptionDraft
from meditrack.services.prescription_service import clean_draft
from tests.conftest import advance, book

def prescribe(client, doctor, appointment_id, diagnosis="Tension headache", medications=None, notes=""):
    if medications is None:
        medications = [{"name": "Paracetamol", "dosage": "500mg", "frequency": "3x daily"}]
    return client.post("/api/v1/prescriptions", headers=doctor["headers"], json={
        "appointment_id": appointment_id,
        "diagnosis": diagnosis,
        "medications": medications,
        "notes": notes,
    })

class TestPrescriptionDraft:

    def test_blank_medication_rows_are_dropped(self):
        draft = PrescriptionDraft(
            diagnosis="  Flu ",
            medications=[Medication(name="Oseltamivir"), Medication(name="   ", dosage="10mg")],
        )
        fields = clean_draft(draft)

        assert fields["diagnosis"] == "Flu"
        assert [m["name"] for m in fields["medications"]] == ["Oseltamivir"]

    def test_diagnosis_is_required(self):
        with pytest.raises(InputValidationError) as excinfo:
            clean_draft(PrescriptionDraft(diagnosis=" ", medications=[Medication(name="Aspirin")]))
        assert excinfo.value.detail == "Please enter a diagnosis"

    def test_needs_a_named_medication(self):
        with pytest.raises(InputValidationError) as excinfo:
            clean_draft(PrescriptionDraft(diagnosis="Flu", medications=[Medication(dosage="5ml")]))
        assert excinfo.value.detail == "Please add at least one medication"

    def test_null_medication_fields_become_empty(self):
        medication = Medication(name="Aspirin", dosage=None)
        assert medication.dosage == ""

class TestPrescriptionApi:

    def test_create_prescription(self, client, patient, doctor, completed_appointment):
        response = prescribe(client, doctor, completed_appointment, notes="Rest well")
        assert response.status_code == 201

        data = response.json()
        assert data["appointment_id"] == completed_appointment
        assert data["patient_id"] == patient["id"]
        assert data["patient_name"] == "Jane Doe"
        assert data["doctor_id"] == doctor["id"]
        assert data["doctor_name"] == "Gregory House"
        assert data["medications"][0] == {
            "name": "Paracetamol", "dosage": "500mg", "frequency": "3x daily",
            "duration": "", "instructions": "",
        }
        assert data["notes"] == "Rest well"

    def test_empty_diagnosis_is_rejected(self, client, doctor, completed_appointment):
        response = prescribe(client, doctor, completed_appointment, diagnosis="")
        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

    def test_unnamed_medications_are_rejected(self, client, doctor, completed_appointment):
        response = prescribe(client, doctor, completed_appointment, medications=[{"name": "", "dosage": "1"}])
        assert response.status_code == 422

    def test_requires_completed_appointment(self, client, patient, doctor, tomorrow):
        appointment_id = book(client, patient, doctor, tomorrow).json()["id"]
        advance(client, doctor, appointment_id, "confirmed", "in_progress")

        response = prescribe(client, doctor, appointment_id)
        assert response.status_code == 409
        assert response.json()["error"] == "policy_violation"

    def test_status_is_checked_before_the_draft(self, client, patient, doctor, tomorrow):
        appointment_id = book(client, patient, doctor, tomorrow).json()["id"]

        response = prescribe(client, doctor, appointment_id, diagnosis="", medications=[])
        assert response.status_code == 409
        assert response.json()["error"] == "policy_violation"

    def test_one_prescription_per_appointment(self, client, doctor, completed_appointment):
        assert prescribe(client, doctor, completed_appointment).status_code == 201

        response = prescribe(client, doctor, completed_appointment, diagnosis="Second opinion")
        assert response.status_code == 409

    def test_only_assigned_doctor_can_prescribe(self, client, other_doctor, completed_appointment):
        response = prescribe(client, other_doctor, completed_appointment)
        assert response.status_code == 403

    def test_patient_cannot_prescribe(self, client, patient, completed_appointment):
        response = prescribe(client, patient, completed_appointment)
        assert response.status_code == 403

    def test_patient_must_match_appointment(self, client, doctor, other_patient, completed_appointment):
        response = client.post("/api/v1/prescriptions", headers=doctor["headers"], json={
            "appointment_id": completed_appointment,
            "patient_id": other_patient["id"],
            "diagnosis": "Flu",
            "medications": [{"name": "Aspirin"}],
        })
        assert response.status_code == 422

    def test_unknown_appointment(self, client, doctor, test_db):
        response = prescribe(client, doctor, "missing")
        assert response.status_code == 404

    def test_visibility(self, client, patient, other_patient, doctor, other_doctor, completed_appointment):
        prescription_id = prescribe(client, doctor, completed_appointment).json()["id"]
        url = f"/api/v1/prescriptions/{prescription_id}"

        assert client.get(url, headers=patient["headers"]).status_code == 200
        assert client.get(url, headers=doctor["headers"]).status_code == 200
        assert client.get(url, headers=other_patient["headers"]).status_code == 403
        assert client.get(url, headers=other_doctor["headers"]).status_code == 403

    def test_my_prescriptions(self, client, patient, other_patient, doctor, completed_appointment):
        prescribe(client, doctor, completed_appointment)

        response = client.get("/api/v1/prescriptions/mine", headers=patient["headers"])
        assert len(response.json()) == 1

        response = client.get("/api/v1/prescriptions/mine", headers=other_patient["headers"])
        assert response.json() == []

    def test_issued_search(self, client, doctor, completed_appointment):
        prescribe(client, doctor, completed_appointment, diagnosis="Seasonal allergy")

        def search(term):
            response = client.get(
                "/api/v1/prescriptions/issued", params={"search": term}, headers=doctor["headers"]
            )
            assert response.status_code == 200
            return response.json()

        assert len(search("jane")) == 1
        assert len(search("ALLERGY")) == 1
        assert search("fracture") == []

    def test_issued_period(self, client, db_session, doctor, completed_appointment):
        prescription_id = prescribe(client, doctor, completed_appointment).json()["id"]

        def issued(period):
            response = client.get(
                "/api/v1/prescriptions/issued", params={"period": period}, headers=doctor["headers"]
            )
            return response.json()

        assert len(issued("today")) == 1

        stored = db_session.query(Prescription).filter(Prescription.id == prescription_id).one()
        stored.created_at = datetime.utcnow() - timedelta(days=10)
        db_session.commit()

        assert issued("week") == []
        assert len(issued("month")) == 1
        assert len(issued("all")) == 1

    def test_issued_rejects_unknown_period(self, client, doctor, test_db):
        response = client.get(
            "/api/v1/prescriptions/issued", params={"period": "decade"}, headers=doctor["headers"]
        )
        assert response.status_code == 422
