from __future__ import annotations

from datetime import date, timedelta

from lunara.models import UserRole
from lunara.therapist_service import candidate_slots

from conftest import auth_headers, make_service, make_therapist, make_user

DAY = (date.today() + timedelta(days=3)).isoformat()


def test_candidate_slots_cover_the_working_day():
    slots = [s.strftime("%H:%M") for s in candidate_slots()]
    assert slots[0] == "08:00"
    assert slots[-1] == "17:30"
    assert len(slots) == 20


def test_create_therapist(client, admin_headers):
    user = make_user(UserRole.THERAPIST, "new@example.com", "Nova Terapeuta")
    r = client.post(
        "/api/therapists",
        json={"user_id": user.id, "specialty": "Acupuntura", "bio": "Dez anos", "commission_rate": 25},
        headers=admin_headers,
    )
    assert r.status_code == 201
    data = r.json()["data"]
    assert data["specialty"] == "Acupuntura"
    assert data["commission_rate"] == 25.0
    assert data["is_available"] is True

    r = client.post(
        "/api/therapists",
        json={"user_id": user.id, "specialty": "Acupuntura", "commission_rate": 25},
        headers=admin_headers,
    )
    assert r.status_code == 409
    assert r.json()["message"] == "User is already a therapist"


def test_create_therapist_unknown_user_and_bad_rate(client, admin_headers):
    r = client.post(
        "/api/therapists",
        json={"user_id": "00000000-0000-0000-0000-0000000000aa", "specialty": "Reiki", "commission_rate": 10},
        headers=admin_headers,
    )
    assert r.status_code == 404

    r = client.post(
        "/api/therapists",
        json={"user_id": "00000000-0000-0000-0000-0000000000aa", "specialty": "Reiki", "commission_rate": 101},
        headers=admin_headers,
    )
    assert r.status_code == 400


def test_only_admin_creates_therapists(client, therapist_user):
    r = client.post(
        "/api/therapists",
        json={"user_id": therapist_user.id, "specialty": "Reiki", "commission_rate": 10},
        headers=auth_headers(therapist_user),
    )
    assert r.status_code == 403


def test_list_therapists_with_aggregates(client, admin_headers, therapist_id, service_id):
    make_service(therapist_id, name="Outro")
    r = client.get("/api/therapists", headers=admin_headers)
    assert r.status_code == 200
    [t] = r.json()["data"]
    assert t["id"] == therapist_id
    assert t["name"] == "Ana Terapeuta"
    assert t["total_services"] == 2
    assert t["total_bookings"] == 0
    assert t["avg_booking_value"] is None


def test_get_therapist(client, admin_headers, therapist_id):
    r = client.get(f"/api/therapists/{therapist_id}", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["data"]["email"] == "therapist@example.com"

    r = client.get("/api/therapists/00000000-0000-0000-0000-0000000000aa", headers=admin_headers)
    assert r.status_code == 404


def test_therapist_updates_only_own_record(client, therapist_user, therapist_id):
    headers = auth_headers(therapist_user)
    r = client.put(f"/api/therapists/{therapist_id}", json={"is_available": False, "bio": None}, headers=headers)
    assert r.status_code == 200
    assert r.json()["data"]["is_available"] is False
    assert r.json()["data"]["bio"] is None

    other = make_therapist(make_user(UserRole.THERAPIST, "other@example.com"))
    r = client.put(f"/api/therapists/{other}", json={"specialty": "Outra"}, headers=headers)
    assert r.status_code == 403

    r = client.put(f"/api/therapists/{therapist_id}", json={}, headers=headers)
    assert r.status_code == 400
    assert r.json()["message"] == "No fields to update"


def test_availability(client, admin_headers, therapist_id):
    service_90 = make_service(therapist_id, duration=90, name="Longa")
    client.post(
        "/api/bookings",
        json={
            "therapist_id": therapist_id,
            "service_id": service_90,
            "client_name": "Cliente",
            "client_email": "c@example.com",
            "scheduled_date": DAY,
            "scheduled_time": "10:00",
        },
        headers=admin_headers,
    )

    r = client.get(f"/api/therapists/{therapist_id}/availability", params={"date": DAY}, headers=admin_headers)
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["date"] == DAY
    assert data["busy_slots"] == ["10:00"]
    # [10:00, 11:30) blocks every one-hour slot starting 09:30 through 11:00
    for blocked in ("09:30", "10:00", "10:30", "11:00"):
        assert blocked not in data["available_slots"]
    assert "09:00" in data["available_slots"]
    assert "11:30" in data["available_slots"]
    assert len(data["available_slots"]) == 16


def test_availability_requires_date(client, admin_headers, therapist_id):
    r = client.get(f"/api/therapists/{therapist_id}/availability", headers=admin_headers)
    assert r.status_code == 400
