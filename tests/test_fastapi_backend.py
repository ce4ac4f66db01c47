from __future__ import annotations

from fastapi.testclient import TestClient

from backend.app.main import create_app

HARARE = {"lat": -17.8252, "lng": 31.0502}


def _client(tmp_path, monkeypatch, *, seed: bool = True) -> TestClient:
    monkeypatch.setenv("TELEHEALTH_DB_PATH", str(tmp_path / "api_test.db"))
    monkeypatch.setenv("TELEHEALTH_STORE_BACKEND", "sqlite")
    monkeypatch.setenv("TELEHEALTH_NOTIFICATIONS_ENABLED", "false")
    monkeypatch.setenv("TELEHEALTH_SEED_DEMO_DATA", "true" if seed else "false")
    app = create_app()
    return TestClient(app)


def test_health_endpoint(tmp_path, monkeypatch) -> None:
    with _client(tmp_path, monkeypatch) as client:
        response = client.get("/health")
        assert response.status_code == 200
        payload = response.json()
        assert payload["status"] == "ok"
        assert payload["service"] == "telehealth-core-api"


def test_triage_endpoint(tmp_path, monkeypatch) -> None:
    with _client(tmp_path, monkeypatch) as client:
        response = client.post("/api/v1/triage", json={"symptoms": ["chest pain"], "age": 40})
        assert response.status_code == 200
        assert response.json()["level"] == "EMERGENCY"
        assert response.json()["score"] == 100

        moderate = client.post(
            "/api/v1/triage",
            json={"symptoms": ["headache", "body aches"], "age": 30, "vitals": {"spo2": 97}},
        )
        assert moderate.json() == {
            "level": "MODERATE",
            "score": 20,
            "recommendation": "Schedule a consultation at your convenience.",
        }

        invalid = client.post("/api/v1/triage", json={"symptoms": ["headache"], "age": -3})
        assert invalid.status_code == 422


def test_doctor_matching_and_presence(tmp_path, monkeypatch) -> None:
    with _client(tmp_path, monkeypatch) as client:
        doctors = client.get("/api/v1/doctors")
        assert doctors.status_code == 200
        assert len(doctors.json()["items"]) == 4

        matched = client.post("/api/v1/doctors/match", json={"location": HARARE})
        assert matched.status_code == 200
        scores = [item["match_score"] for item in matched.json()["items"]]
        assert len(scores) == 4
        assert scores == sorted(scores, reverse=True)

        pediatric = client.post(
            "/api/v1/doctors/match",
            json={"location": HARARE, "specialty": "pediatrics"},
        )
        assert [item["doctor"]["id"] for item in pediatric.json()["items"]] == ["DOC_002"]

        offline = client.put("/api/v1/doctors/USR_DOC_002/status", json={"status": "OFFLINE"})
        assert offline.status_code == 200
        assert offline.json()["status"] == "OFFLINE"
        assert offline.json()["last_heartbeat"] is not None

        pediatric = client.post(
            "/api/v1/doctors/match",
            json={"location": HARARE, "specialty": "pediatrics"},
        )
        assert pediatric.json()["items"] == []

        beat = client.post("/api/v1/doctors/USR_DOC_001/heartbeat")
        assert beat.status_code == 200
        assert beat.json()["status"] == "AVAILABLE"

        missing = client.post("/api/v1/doctors/USR_NOBODY/heartbeat")
        assert missing.status_code == 404

        out_of_range = client.post("/api/v1/doctors/match", json={"location": {"lat": 120, "lng": 0}})
        assert out_of_range.status_code == 422


def test_consultation_lifecycle_endpoints(tmp_path, monkeypatch) -> None:
    with _client(tmp_path, monkeypatch) as client:
        created = client.post(
            "/api/v1/consultations",
            json={
                "patient_id": "PAT_1",
                "doctor_account_id": "USR_DOC_004",
                "symptoms": ["headache"],
                "triage_level": "LOW",
            },
        )
        assert created.status_code == 201
        consultation_id = created.json()["id"]
        assert created.json()["status"] == "PENDING"
        assert created.json()["payment_status"] == "UNPAID"

        wrong_doctor = client.post(
            f"/api/v1/consultations/{consultation_id}/accept",
            json={"actor_id": "USR_DOC_001"},
        )
        assert wrong_doctor.status_code == 403

        accepted = client.post(
            f"/api/v1/consultations/{consultation_id}/accept",
            json={"actor_id": "USR_DOC_004"},
        )
        assert accepted.status_code == 200
        assert accepted.json()["status"] == "IN_SESSION"

        started = client.post(f"/api/v1/consultations/{consultation_id}/start")
        assert started.status_code == 200
        assert started.json()["started_at"] is not None

        ended = client.post(
            f"/api/v1/consultations/{consultation_id}/end",
            json={"notes": "Hydrate and rest."},
        )
        assert ended.status_code == 200
        assert ended.json()["status"] == "COMPLETED"
        assert ended.json()["duration"] is not None

        late_cancel = client.post(
            f"/api/v1/consultations/{consultation_id}/cancel",
            json={"actor_id": "PAT_1"},
        )
        assert late_cancel.status_code == 409

        paid = client.post(f"/api/v1/consultations/{consultation_id}/pay")
        assert paid.json()["payment_status"] == "PAID"

        history = client.get("/api/v1/patients/PAT_1/consultations")
        assert [item["id"] for item in history.json()["items"]] == [consultation_id]

        pending = client.get("/api/v1/doctors/USR_DOC_004/consultations", params={"pending_only": True})
        assert pending.json()["items"] == []

        missing = client.get("/api/v1/consultations/CONS_missing")
        assert missing.status_code == 404


def test_emergency_and_dispatch_endpoints(tmp_path, monkeypatch) -> None:
    with _client(tmp_path, monkeypatch) as client:
        closest = client.post("/api/v1/dispatch/closest", json={"location": HARARE})
        assert closest.json()["unit"]["id"] == "DSP_001"

        dispatched = client.post("/api/v1/dispatch/emergency", json={"location": HARARE})
        assert dispatched.json()["success"] is True
        assert dispatched.json()["unit"]["status"] == "EN_ROUTE"
        assert dispatched.json()["message"] == "Harare Central Ambulance dispatched. ETA: 2 minutes"

        created = client.post(
            "/api/v1/emergencies",
            json={"emergency_type": "chest_pain", "location": HARARE, "patient_name": "Farai"},
        )
        assert created.status_code == 201
        body = created.json()
        emergency_id = body["emergency"]["id"]
        assert body["emergency"]["priority"] == "CRITICAL"
        assert body["emergency"]["status"] == "PENDING"
        assert body["assigned_unit"]["id"] == "DSP_001"

        feed = client.get("/api/v1/emergencies/active", params={"unit_id": "DSP_001"})
        assert [item["id"] for item in feed.json()["items"]] == [emergency_id]

        responded = client.post(
            f"/api/v1/emergencies/{emergency_id}/respond",
            json={"unit_id": "DSP_001"},
        )
        assert responded.status_code == 200
        assert responded.json()["emergency"]["status"] == "RESPONDING"
        assert responded.json()["emergency"]["response_time"] == 0

        ghost = client.post("/api/v1/emergencies/EMG_missing/respond", json={"unit_id": "DSP_001"})
        assert ghost.status_code == 200
        assert ghost.json()["emergency"] is None

        completed = client.post(f"/api/v1/emergencies/{emergency_id}/complete")
        assert completed.json()["status"] == "COMPLETED"
        again = client.post(f"/api/v1/emergencies/{emergency_id}/cancel")
        assert again.status_code == 409

        active = client.get("/api/v1/emergencies/active")
        assert active.json()["items"] == []

        metrics = client.get("/api/v1/dashboard/metrics")
        assert metrics.status_code == 200
        assert metrics.json()["emergencies_completed"] == 1
        assert metrics.json()["doctors_total"] == 4

        audit = client.get("/api/v1/audit", params={"limit": 200})
        actions = [row["action"] for row in audit.json()["audit_log"]]
        assert "EMERGENCY_COMPLETED" in actions
        assert "DEMO_DATA_SEEDED" in actions


def test_dispatch_without_units_escalates(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("TELEHEALTH_EMERGENCY_HOTLINE", "112")
    with _client(tmp_path, monkeypatch, seed=False) as client:
        outcome = client.post("/api/v1/dispatch/emergency", json={"location": HARARE})
        assert outcome.status_code == 200
        assert outcome.json() == {
            "success": False,
            "message": "No responders available. Escalating to national hotline.",
            "hotline": "112",
            "unit": None,
            "distance_km": None,
            "eta_minutes": None,
        }

        emergency = client.post("/api/v1/emergencies", json={"emergency_type": "snake_bite", "location": HARARE})
        assert emergency.status_code == 201
        assert emergency.json()["assigned_unit"] is None
        assert emergency.json()["emergency"]["priority"] == "HIGH"


def test_unit_status_endpoint_takes_unit_off_the_board(tmp_path, monkeypatch) -> None:
    with _client(tmp_path, monkeypatch) as client:
        offline = client.put("/api/v1/dispatch/USR_DSP_001/status", json={"status": "OFFLINE"})
        assert offline.status_code == 200
        assert offline.json()["id"] == "DSP_001"
        assert offline.json()["status"] == "OFFLINE"

        closest = client.post("/api/v1/dispatch/closest", json={"location": HARARE})
        assert closest.json()["unit"]["id"] == "DSP_002"

        unknown = client.put("/api/v1/dispatch/USR_NOBODY/status", json={"status": "AVAILABLE"})
        assert unknown.status_code == 404
        bad = client.put("/api/v1/dispatch/USR_DSP_001/status", json={"status": "ON_BREAK"})
        assert bad.status_code == 422


def test_message_and_prescription_endpoints(tmp_path, monkeypatch) -> None:
    with _client(tmp_path, monkeypatch) as client:
        consultation_id = client.post(
            "/api/v1/consultations",
            json={
                "patient_id": "PAT_5",
                "doctor_account_id": "USR_DOC_002",
                "symptoms": ["rash"],
                "triage_level": "LOW",
            },
        ).json()["id"]
        url = f"/api/v1/consultations/{consultation_id}"

        sent = client.post(f"{url}/messages", json={"sender_id": "PAT_5", "content": "It itches"})
        assert sent.status_code == 201
        assert sent.json()["sender_type"] == "patient"
        stranger = client.post(f"{url}/messages", json={"sender_id": "PAT_6", "content": "Hi"})
        assert stranger.status_code == 403

        listed = client.get(f"{url}/messages")
        assert [item["content"] for item in listed.json()["items"]] == ["It itches"]
        read = client.post(f"{url}/messages/read", json={"actor_id": "USR_DOC_002"})
        assert read.json() == {"marked": 1}
        assert client.get("/api/v1/consultations/CONS_missing/messages").status_code == 404

        client.post(f"{url}/accept", json={"actor_id": "USR_DOC_002"})
        created = client.post(
            f"{url}/prescriptions",
            json={
                "doctor_account_id": "USR_DOC_002",
                "diagnosis": "Contact dermatitis",
                "medications": [{"name": "Hydrocortisone cream", "frequency": "2x daily"}, {"name": ""}],
                "finish_consultation": True,
            },
        )
        assert created.status_code == 201
        assert [item["name"] for item in created.json()["medications"]] == ["Hydrocortisone cream"]
        assert client.get(url).json()["status"] == "COMPLETED"

        blank = client.post(f"{url}/prescriptions", json={"doctor_account_id": "USR_DOC_002", "diagnosis": ""})
        assert blank.status_code == 422

        history = client.get("/api/v1/patients/PAT_5/prescriptions")
        assert [item["diagnosis"] for item in history.json()["items"]] == ["Contact dermatitis"]
