"""
Tests for the Lessons and Reports API endpoints.
"""
from fastapi.testclient import TestClient

from tests.api.api_helpers import create_student, create_teacher, package_payload


def funded_student(client: TestClient, lessons_purchased: int = 8) -> tuple[dict, dict, dict]:
    teacher = create_teacher(client)
    student = create_student(client, teacher["id"])
    response = client.post(
        "/packages/", json=package_payload(student["id"], teacher["id"], lessons_purchased=lessons_purchased)
    )
    assert response.status_code == 201, response.text
    return teacher, student, response.json()


class TestLessonsAPI:

    def test_mark_lesson_and_repeat_is_a_no_op(self, client: TestClient):
        teacher, student, package = funded_student(client)
        lesson = package["lessons"][0]

        response = client.patch(f"/lessons/{lesson['id']}/status", json={"status": "absent", "notes": "No show"})
        assert response.status_code == 200
        assert response.json()["status"] == "absent"

        response = client.patch(f"/lessons/{lesson['id']}/status", json={"status": "absent"})
        assert response.status_code == 200

        data = client.get(f"/students/{student['id']}").json()
        assert (data["wallet_balance"], data["reserved_credits"]) == (7, 7)

        response = client.patch(f"/lessons/{lesson['id']}/status", json={"status": "scheduled"})
        assert response.status_code == 409
        assert response.json()["error"] == "StateError"

    def test_stale_version_is_409(self, client: TestClient):
        teacher, student, package = funded_student(client)
        lesson = package["lessons"][0]

        response = client.patch(f"/lessons/{lesson['id']}/status", json={"status": "completed", "expected_version": 99})
        assert response.status_code == 409
        assert response.json()["error"] == "ConflictError"
        assert client.get(f"/lessons/{lesson['id']}").json()["status"] == "scheduled"

    def test_ad_hoc_lesson_requires_credit(self, client: TestClient):
        teacher, student, package = funded_student(client, lessons_purchased=1)
        body = {
            "student_id": student["id"],
            "teacher_id": teacher["id"],
            "scheduled_date": "2025-03-03",
            "scheduled_time": "10:00:00",
            "duration_minutes": 45,
        }
        response = client.post("/lessons/", json=body)
        assert response.status_code == 400
        assert response.json()["error"] == "InsufficientCreditError"

        response = client.post("/lessons/", json={**body, "is_bonus": True})
        assert response.status_code == 201
        assert response.json()["is_bonus"] is True

    def test_reschedule_conflict_and_success(self, client: TestClient):
        teacher, student, package = funded_student(client)
        first, second = package["lessons"][0], package["lessons"][1]

        response = client.get("/lessons/conflicts", params={
            "teacher_id": teacher["id"], "date": second["scheduled_date"], "time": second["scheduled_time"]
        })
        assert response.status_code == 200
        assert response.json()["has_conflict"] is True

        response = client.patch(f"/lessons/{first['id']}/reschedule", json={
            "new_date": second["scheduled_date"], "new_time": second["scheduled_time"]
        })
        assert response.status_code == 409
        assert response.json()["conflicts"][0]["lesson_id"] == second["id"]

        response = client.patch(f"/lessons/{first['id']}/reschedule", json={
            "new_date": "2025-01-07", "new_time": "17:30:00"
        })
        assert response.status_code == 200
        assert response.json()["status"] == "rescheduled"

    def test_edit_and_delete(self, client: TestClient):
        teacher, student, package = funded_student(client)
        lesson = package["lessons"][2]

        response = client.patch(f"/lessons/{lesson['id']}", json={"duration_minutes": 90, "notes": "Exam prep"})
        assert response.status_code == 200
        assert response.json()["duration_minutes"] == 90

        response = client.patch(f"/lessons/{lesson['id']}", json={})
        assert response.status_code == 422

        response = client.delete(f"/lessons/{lesson['id']}")
        assert response.status_code == 200
        assert response.json()["available_credits"] == 1

        assert client.get(f"/lessons/{lesson['id']}").status_code == 404

    def test_cannot_delete_completed_lesson(self, client: TestClient):
        teacher, student, package = funded_student(client)
        lesson = package["lessons"][0]
        client.patch(f"/lessons/{lesson['id']}/status", json={"status": "completed"})

        response = client.delete(f"/lessons/{lesson['id']}")
        assert response.status_code == 409

    def test_list_and_unmarked(self, client: TestClient):
        teacher, student, package = funded_student(client)
        client.patch(f"/lessons/{package['lessons'][0]['id']}/status", json={"status": "completed"})

        response = client.get("/lessons/", params={"student_id": student["id"], "status": "completed"})
        assert [l["id"] for l in response.json()] == [package["lessons"][0]["id"]]

        response = client.get("/lessons/unmarked", params={"teacher_id": teacher["id"], "before": "2025-01-14"})
        assert [l["scheduled_date"] for l in response.json()] == ["2025-01-08", "2025-01-13"]


class TestReportsAPI:

    def test_workload_payroll_and_audit(self, client: TestClient):
        teacher, student, package = funded_student(client)
        for lesson in package["lessons"][:2]:
            client.patch(f"/lessons/{lesson['id']}/status", json={"status": "completed"})

        response = client.get(f"/teachers/{teacher['id']}/workload", params={"period": "week", "reference_date": "2025-01-07"})
        assert response.status_code == 200
        workload = response.json()
        assert workload["lessons_taken"] == 2
        assert workload["hours"] == 2.0
        assert float(workload["amount_due"]) == 120.0

        response = client.get("/reports/payroll", params={"start_date": "2025-01-01", "end_date": "2025-01-31"})
        assert response.status_code == 200
        assert [p["teacher_id"] for p in response.json()] == [teacher["id"]]

        response = client.get("/reports/payroll", params={"start_date": "2025-02-01", "end_date": "2025-01-01"})
        assert response.status_code == 400

        response = client.get("/reports/audit")
        assert response.status_code == 200
        assert response.json()["issues_found"] == 0
