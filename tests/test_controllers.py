import pytest

from src.pkl_attendance.pkl_attendance.attendance import service as attendance_service
from src.pkl_attendance.pkl_attendance.attendance.model import AttendanceSession
from src.pkl_attendance.pkl_attendance.corrections import service as correction_service
from src.pkl_attendance.pkl_attendance.main import create_app

from tests.world import WORK_DATE, at


@pytest.fixture
def app(world, monkeypatch):
    monkeypatch.setenv("APP_ENV", "testing")
    monkeypatch.setattr(attendance_service, "now_local", lambda tz=None: at(8, 0))
    monkeypatch.setattr(correction_service, "now_local", lambda tz=None: at(18, 0))
    return create_app(container=world.container())


@pytest.fixture
def client(app):
    return app.test_client()


def login(client, user_id, *roles):
    with client.session_transaction() as s:
        s["user_id"] = user_id
        s["roles"] = list(roles)


def test_requires_login(client):
    res = client.post("/api/assignments/1/tap-in", json={"lat": 0, "lng": 0})
    assert res.status_code == 401
    assert res.get_json()["success"] is False


def test_tap_in_and_out(client):
    login(client, 10, "Student")

    res = client.post("/api/assignments/1/tap-in", json={"lat": 0, "lng": 0.0005, "tap_event_id": "e1"})
    assert res.status_code == 201
    body = res.get_json()
    assert body["data"]["status"] == "InProgress"
    assert body["data"]["tap_in_distance_m"] == 56
    assert body["data"]["work_date"] == "2025-03-03"

    res = client.post("/api/assignments/1/tap-in", json={"lat": 0, "lng": 0})
    assert res.status_code == 409
    assert res.get_json()["error"] == "AlreadyTapped"

    res = client.post("/api/assignments/1/tap-out", json={})
    assert res.status_code == 200
    assert res.get_json()["data"]["status"] == "Completed"


def test_geofence_violation_returns_distance(client):
    login(client, 10, "Student")

    res = client.post("/api/assignments/1/tap-in", json={"lat": 0, "lng": 0.002})

    assert res.status_code == 400
    body = res.get_json()
    assert body["error"] == "GeofenceViolation"
    assert body["distance_meters"] == 222
    assert body["radius_meters"] == 100


def test_tap_in_requires_coordinates(client):
    login(client, 10, "Student")
    res = client.post("/api/assignments/1/tap-in", json={"lat": "north"})
    assert res.status_code == 400
    assert res.get_json()["error"] == "ValidationFailure"


def test_tap_out_without_tap_in_is_conflict(client):
    login(client, 10, "Student")
    res = client.post("/api/assignments/1/tap-out", json={})
    assert res.status_code == 409
    assert res.get_json()["error"] == "NotTappedIn"


def test_other_student_and_unknown_assignment(client):
    login(client, 11, "Student")
    assert client.post("/api/assignments/1/tap-in", json={"lat": 0, "lng": 0}).status_code == 403
    assert client.post("/api/assignments/9/tap-in", json={"lat": 0, "lng": 0}).status_code == 404


def test_history_rejects_unknown_status(client):
    login(client, 10, "Student")
    res = client.get("/api/assignments/1/attendance/history?status=Bogus")
    assert res.status_code == 400


def test_stats(client):
    login(client, 20, "Teacher")
    res = client.get("/api/assignments/1/attendance/stats")
    assert res.status_code == 200
    assert res.get_json()["data"]["attendance_rate"] == 0


def test_manual_request_round_trip(client, world):
    world.attendance.create(AttendanceSession.absent(assignment_id=1, work_date=WORK_DATE))
    login(client, 10, "Student")

    res = client.post(
        "/api/assignments/1/manual-requests",
        json={
            "date": "2025-03-03",
            "tap_in": "08:00",
            "tap_out": "16:00",
            "justification": "GPS kept failing inside the building",
            "evidence_urls": ["https://cdn/x.jpg"],
        },
    )
    assert res.status_code == 201
    request_id = res.get_json()["data"]["request_id"]

    login(client, 20, "Teacher")
    pending = client.get("/api/manual-requests/pending").get_json()["data"]
    assert [r["request_id"] for r in pending] == [request_id]

    res = client.post(f"/api/manual-requests/{request_id}/decision", json={"decision": "Approved"})
    assert res.status_code == 200
    assert res.get_json()["data"]["status"] == "Approved"

    res = client.post(f"/api/manual-requests/{request_id}/decision", json={"decision": "Rejected"})
    assert res.status_code == 409
    assert res.get_json()["error"] == "AlreadyDecided"


def test_manual_request_without_taps_and_non_text_fields(client, world):
    login(client, 10, "Student")

    res = client.post(
        "/api/assignments/1/manual-requests",
        json={
            "date": "2025-03-03",
            "tap_in": "08:00",
            "tap_out": "16:00",
            "justification": "Phone died before reaching the site",
            "witness_name": 42,
        },
    )
    assert res.status_code == 201
    assert res.get_json()["data"]["witness_name"] == "42"
    assert world.attendance.get_for_assignment_and_date(1, WORK_DATE).status.value == "Absent"
    request_id = res.get_json()["data"]["request_id"]

    login(client, 20, "Teacher")
    res = client.post(f"/api/manual-requests/{request_id}/decision", json={"decision": "Rejected", "notes": ["x"]})
    assert res.status_code == 400
    res = client.post(f"/api/manual-requests/{request_id}/decision", json={"decision": "Approved", "notes": 7})
    assert res.status_code == 200
    assert res.get_json()["data"]["decision"]["notes"] == "7"


def test_manual_request_bad_time_format(client):
    login(client, 10, "Student")
    res = client.post("/api/assignments/1/manual-requests", json={"date": "03/03/2025"})
    assert res.status_code == 400


def test_leave_permit_flow(client):
    login(client, 10, "Student")
    res = client.post(
        "/api/leave-permits",
        json={"leave_type": "Individual", "reason": "Family matter", "start_time": "2025-03-03T10:00"},
    )
    assert res.status_code == 201
    permit_id = res.get_json()["data"]["permit_id"]
    assert res.get_json()["data"]["status"] == "Open"

    login(client, 40, "Teacher", "Piket")
    assert client.post(f"/api/leave-permits/{permit_id}/review", json={}).status_code == 200

    login(client, 41, "WaliKelas")
    res = client.post(f"/api/leave-permits/{permit_id}/decision", json={"decision": "Rejected"})
    assert res.status_code == 400
    res = client.post(
        f"/api/leave-permits/{permit_id}/decision",
        json={"decision": "Approved", "confirmed_return": "2025-03-03T12:00"},
    )
    assert res.status_code == 200
    assert res.get_json()["data"]["status"] == "Close"


def test_leave_times_with_offsets_are_shifted_to_local_time(client):
    login(client, 10, "Student")

    res = client.post(
        "/api/leave-permits",
        json={
            "leave_type": "Individual",
            "reason": "Family matter",
            "start_time": "2025-03-03T02:00:00+00:00",
            "estimated_return": "2025-03-03T11:00:00",
        },
    )

    assert res.status_code == 201
    assert res.get_json()["data"]["start_time"] == "2025-03-03T09:00:00"


def test_leave_on_a_saturday_is_rejected(client):
    login(client, 10, "Student")
    res = client.post(
        "/api/leave-permits",
        json={"leave_type": "Individual", "reason": "Family matter", "start_time": "2025-03-08T09:00:00+07:00"},
    )
    assert res.status_code == 400
    assert res.get_json()["error"] == "ValidationFailure"


def test_reconciliation_endpoint_is_admin_only(client):
    login(client, 20, "Teacher")
    assert client.post("/api/admin/reconciliation", json={"date": "2025-03-03"}).status_code == 403

    login(client, 1, "Admin")
    res = client.post("/api/admin/reconciliation", json={"date": "2025-03-03"})
    assert res.status_code == 200
    assert res.get_json()["data"]["processed"] == 1
    assert len(res.get_json()["data"]["absent"]) == 1


def test_reconcile_cli(app, world):
    result = app.test_cli_runner().invoke(args=["reconcile", "--date", "2025-03-03"])

    assert result.exit_code == 0
    assert "processed=1" in result.output
    assert "absent=1" in result.output
    assert world.attendance.get_for_assignment_and_date(1, WORK_DATE) is not None


def test_unexpected_errors_become_json_500(client, world, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("db exploded")

    monkeypatch.setattr(world.tap_service, "get_today", boom)
    login(client, 10, "Student")

    res = client.get("/api/assignments/1/attendance/today")

    assert res.status_code == 500
    assert res.get_json()["error"] == "InternalError"
