from __future__ import annotations

from datetime import date, time, timedelta

import pytest
from sqlalchemy import select

from lunara import booking_service
from lunara.booking_service import BookingRequest, create_booking
from lunara.db import db_session
from lunara.models import Affiliate, Booking, BookingStatus, Commission, CommissionStatus, UserRole

from conftest import auth_headers, make_affiliate, make_service, make_therapist, make_user

DAY = (date.today() + timedelta(days=7)).isoformat()


def booking_payload(therapist_id, service_id, **overrides):
    payload = {
        "therapist_id": therapist_id,
        "service_id": service_id,
        "client_name": "Cliente Teste",
        "client_email": "cliente@example.com",
        "client_phone": "11999998888",
        "scheduled_date": DAY,
        "scheduled_time": "10:00",
    }
    payload.update(overrides)
    return payload


def test_create_booking_without_affiliate(client, admin_headers, therapist_id, service_id, sent_emails):
    r = client.post("/api/bookings", json=booking_payload(therapist_id, service_id), headers=admin_headers)
    assert r.status_code == 201
    b = r.json()["data"]
    assert b["status"] == "pending"
    assert b["payment_status"] == "pending"
    assert b["total_amount"] == 150.0
    assert b["scheduled_time"] == "10:00"
    assert b["affiliate_id"] is None

    with db_session() as s:
        assert s.scalars(select(Commission)).all() == []

    assert [t for t, _ in sent_emails] == ["booking_confirmation"]
    params = sent_emails[0][1]
    assert params["to_email"] == "cliente@example.com"
    assert params["service_price"] == "R$ 150,00"
    assert params["professional_name"] == "Ana Terapeuta"


def test_create_booking_with_affiliate_creates_commission(client, admin_headers, therapist_id, affiliate_user):
    affiliate_id = make_affiliate(affiliate_user, code="LUNA15", rate="12.50")
    service_id = make_service(therapist_id, price="99.90")

    r = client.post(
        "/api/bookings",
        json=booking_payload(therapist_id, service_id, affiliate_code="luna15"),
        headers=admin_headers,
    )
    assert r.status_code == 201
    booking = r.json()["data"]
    assert booking["affiliate_id"] == affiliate_id

    with db_session() as s:
        commissions = s.scalars(select(Commission)).all()
        assert len(commissions) == 1
        c = commissions[0]
        assert c.booking_id == booking["id"]
        assert c.status.value == "pending"
        # 99.90 * 12.5% = 12.4875 -> 12.49
        assert str(c.amount) == "12.49"
        assert str(c.percentage) == "12.50"
        assert s.get(Affiliate, affiliate_id).total_referrals == 1


def test_unknown_or_inactive_affiliate_code_is_ignored(client, admin_headers, therapist_id, service_id, affiliate_user):
    make_affiliate(affiliate_user, code="SLEEPY", active=False)

    r = client.post(
        "/api/bookings",
        json=booking_payload(therapist_id, service_id, affiliate_code="SLEEPY"),
        headers=admin_headers,
    )
    assert r.status_code == 201
    assert r.json()["data"]["affiliate_id"] is None

    r = client.post(
        "/api/bookings",
        json=booking_payload(therapist_id, service_id, scheduled_time="14:00", affiliate_code="NOPE"),
        headers=admin_headers,
    )
    assert r.status_code == 201
    assert r.json()["data"]["affiliate_id"] is None

    with db_session() as s:
        assert s.scalars(select(Commission)).all() == []


def test_inactive_service_or_wrong_therapist(client, admin_headers, therapist_id, service_id):
    other_therapist = make_therapist(make_user(UserRole.THERAPIST, "other@example.com"))

    r = client.post("/api/bookings", json=booking_payload(other_therapist, service_id), headers=admin_headers)
    assert r.status_code == 404
    assert r.json()["message"] == "Service not found or inactive"

    client.delete(f"/api/services/{service_id}", headers=admin_headers)
    r = client.post("/api/bookings", json=booking_payload(therapist_id, service_id), headers=admin_headers)
    assert r.status_code == 404


@pytest.mark.parametrize(
    "second_time, expected",
    [
        ("10:00", 409),  # same start
        ("10:30", 409),  # starts inside the first booking
        ("09:30", 409),  # ends inside the first booking
        ("11:00", 201),  # back to back
        ("09:00", 201),  # ends exactly when the first starts
    ],
)
def test_time_slot_conflicts(client, admin_headers, therapist_id, service_id, second_time, expected):
    r = client.post("/api/bookings", json=booking_payload(therapist_id, service_id), headers=admin_headers)
    assert r.status_code == 201

    r = client.post(
        "/api/bookings",
        json=booking_payload(therapist_id, service_id, scheduled_time=second_time),
        headers=admin_headers,
    )
    assert r.status_code == expected
    if expected == 409:
        assert r.json()["message"] == "Time slot not available"


def test_cancelled_booking_frees_the_slot(client, admin_headers, therapist_id, service_id):
    first = client.post("/api/bookings", json=booking_payload(therapist_id, service_id), headers=admin_headers)
    client.put(f"/api/bookings/{first.json()['data']['id']}/cancel", json={"reason": "x"}, headers=admin_headers)

    r = client.post("/api/bookings", json=booking_payload(therapist_id, service_id), headers=admin_headers)
    assert r.status_code == 201


def test_conflicts_are_per_therapist(client, admin_headers, therapist_id, service_id):
    other_therapist = make_therapist(make_user(UserRole.THERAPIST, "other@example.com"))
    other_service = make_service(other_therapist)

    assert client.post("/api/bookings", json=booking_payload(therapist_id, service_id), headers=admin_headers).status_code == 201
    r = client.post("/api/bookings", json=booking_payload(other_therapist, other_service), headers=admin_headers)
    assert r.status_code == 201


def test_booking_validation(client, admin_headers, therapist_id, service_id):
    r = client.post(
        "/api/bookings",
        json=booking_payload(therapist_id, service_id, scheduled_time="25:00", client_email="bad"),
        headers=admin_headers,
    )
    assert r.status_code == 400
    fields = {e["field"] for e in r.json()["errors"]}
    assert {"scheduled_time", "client_email"} <= fields

    r = client.post(
        "/api/bookings", json=booking_payload(therapist_id, service_id, scheduled_time="9:05"), headers=admin_headers
    )
    assert r.status_code == 201
    assert r.json()["data"]["scheduled_time"] == "09:05"


def test_failed_commission_rolls_back_booking(monkeypatch, therapist_id, service_id, affiliate_user, affiliate_id):
    def boom(*args, **kwargs):
        raise RuntimeError("commission calculation failed")

    monkeypatch.setattr(booking_service, "percentage_of", boom)

    with pytest.raises(RuntimeError):
        create_booking(
            BookingRequest(
                therapist_id=therapist_id,
                service_id=service_id,
                client_name="Cliente",
                client_email="c@example.com",
                scheduled_date=date.today(),
                scheduled_time=time(10, 0),
                affiliate_code="AFIL1234",
            )
        )

    with db_session() as s:
        assert s.scalars(select(Booking)).all() == []
        assert s.scalars(select(Commission)).all() == []
        assert s.get(Affiliate, affiliate_id).total_referrals == 0


def test_status_transitions(client, admin_headers, therapist_user, therapist_id, service_id):
    b = client.post("/api/bookings", json=booking_payload(therapist_id, service_id), headers=admin_headers).json()["data"]
    therapist_headers = auth_headers(therapist_user)

    r = client.put(f"/api/bookings/{b['id']}/complete", headers=therapist_headers)
    assert r.status_code == 404

    r = client.put(f"/api/bookings/{b['id']}/confirm", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "confirmed"

    r = client.put(f"/api/bookings/{b['id']}/confirm", headers=admin_headers)
    assert r.status_code == 404
    assert r.json()["message"] == "Booking not found or already processed"

    r = client.put(f"/api/bookings/{b['id']}/complete", headers=therapist_headers)
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "completed"

    r = client.put(f"/api/bookings/{b['id']}/cancel", json={"reason": "late"}, headers=admin_headers)
    assert r.status_code == 404
    assert r.json()["message"] == "Booking not found or cannot be cancelled"


def test_cancel_records_reason(client, admin_headers, therapist_id, service_id):
    b = client.post("/api/bookings", json=booking_payload(therapist_id, service_id), headers=admin_headers).json()["data"]

    r = client.put(f"/api/bookings/{b['id']}/cancel", json={"reason": "Client asked"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "cancelled"
    assert r.json()["data"]["cancellation_reason"] == "Client asked"


def test_cancel_without_body(client, admin_headers, therapist_id, service_id):
    b = client.post("/api/bookings", json=booking_payload(therapist_id, service_id), headers=admin_headers).json()["data"]
    r = client.put(f"/api/bookings/{b['id']}/cancel", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["data"]["cancellation_reason"] is None


def test_affiliate_cannot_complete(client, admin_headers, affiliate_user, therapist_id, service_id):
    b = client.post("/api/bookings", json=booking_payload(therapist_id, service_id), headers=admin_headers).json()["data"]
    r = client.put(f"/api/bookings/{b['id']}/complete", headers=auth_headers(affiliate_user))
    assert r.status_code == 403


def test_list_bookings_pagination_and_filters(client, admin_headers, therapist_id, service_id):
    for hour in (8, 10, 12):
        client.post(
            "/api/bookings",
            json=booking_payload(therapist_id, service_id, scheduled_time=f"{hour:02d}:00"),
            headers=admin_headers,
        )

    r = client.get("/api/bookings", params={"limit": 2}, headers=admin_headers)
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}
    assert [b["scheduled_time"] for b in data["bookings"]] == ["12:00", "10:00"]
    assert data["bookings"][0]["service_name"] == "Massagem"
    assert data["bookings"][0]["therapist_name"] == "Ana Terapeuta"

    r = client.get("/api/bookings", params={"limit": 2, "page": 2}, headers=admin_headers)
    assert [b["scheduled_time"] for b in r.json()["data"]["bookings"]] == ["08:00"]

    r = client.get("/api/bookings", params={"status": "confirmed"}, headers=admin_headers)
    assert r.json()["data"]["pagination"]["total"] == 0

    r = client.get("/api/bookings", params={"date_from": DAY, "date_to": DAY}, headers=admin_headers)
    assert r.json()["data"]["pagination"]["total"] == 3

    r = client.get("/api/bookings", params={"limit": 101}, headers=admin_headers)
    assert r.status_code == 400


def test_list_bookings_is_scoped_per_role(client, admin_headers, therapist_user, therapist_id, service_id, affiliate_user, affiliate_id):
    other_therapist = make_therapist(make_user(UserRole.THERAPIST, "other@example.com"))
    other_service = make_service(other_therapist)

    client.post(
        "/api/bookings",
        json=booking_payload(therapist_id, service_id, affiliate_code="AFIL1234"),
        headers=admin_headers,
    )
    client.post("/api/bookings", json=booking_payload(other_therapist, other_service), headers=admin_headers)

    assert client.get("/api/bookings", headers=admin_headers).json()["data"]["pagination"]["total"] == 2

    mine = client.get("/api/bookings", headers=auth_headers(therapist_user)).json()["data"]
    assert mine["pagination"]["total"] == 1
    assert mine["bookings"][0]["therapist_id"] == therapist_id

    referred = client.get("/api/bookings", headers=auth_headers(affiliate_user)).json()["data"]
    assert referred["pagination"]["total"] == 1
    assert referred["bookings"][0]["referral_code"] == "AFIL1234"


def test_cancel_voids_pending_commission(client, admin_headers, therapist_id, service_id, affiliate_id):
    b = client.post(
        "/api/bookings",
        json=booking_payload(therapist_id, service_id, affiliate_code="AFIL1234"),
        headers=admin_headers,
    ).json()["data"]
    with db_session() as s:
        commission_id = s.scalars(select(Commission.id)).one()

    r = client.put(f"/api/bookings/{b['id']}/cancel", json={"reason": "no show"}, headers=admin_headers)
    assert r.status_code == 200

    with db_session() as s:
        assert s.get(Commission, commission_id).status == CommissionStatus.CANCELLED
        assert s.get(Affiliate, affiliate_id).total_referrals == 0

    r = client.post(f"/api/commissions/{commission_id}/pay", json={}, headers=admin_headers)
    assert r.status_code == 404
    assert r.json()["message"] == "Commission not found or already processed"
    with db_session() as s:
        assert s.get(Affiliate, affiliate_id).total_commission == 0


def test_commission_of_cancelled_booking_is_not_payable(client, admin_headers, therapist_id, service_id, affiliate_id):
    b = client.post(
        "/api/bookings",
        json=booking_payload(therapist_id, service_id, affiliate_code="AFIL1234"),
        headers=admin_headers,
    ).json()["data"]
    # rows cancelled before commissions were voided on cancel
    with db_session() as s:
        s.get(Booking, b["id"]).status = BookingStatus.CANCELLED
        commission_id = s.scalars(select(Commission.id)).one()

    r = client.post(f"/api/commissions/{commission_id}/pay", json={}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["message"] == "Cannot pay a commission for a cancelled booking"
    with db_session() as s:
        assert s.get(Commission, commission_id).status == CommissionStatus.PENDING


def test_affiliate_cannot_touch_other_bookings(client, admin_headers, therapist_id, service_id, affiliate_user, affiliate_id):
    other = make_user(UserRole.AFFILIATE, "other@example.com")
    make_affiliate(other, code="OTHER001")
    b = client.post(
        "/api/bookings",
        json=booking_payload(therapist_id, service_id, affiliate_code="OTHER001"),
        headers=admin_headers,
    ).json()["data"]
    unattributed = client.post(
        "/api/bookings",
        json=booking_payload(therapist_id, service_id, scheduled_time="14:00"),
        headers=admin_headers,
    ).json()["data"]
    headers = auth_headers(affiliate_user)

    for booking_id in (b["id"], unattributed["id"]):
        r = client.put(f"/api/bookings/{booking_id}/confirm", headers=headers)
        assert r.status_code == 404
        assert r.json()["message"] == "Booking not found or already processed"

        r = client.put(f"/api/bookings/{booking_id}/cancel", json={"reason": "x"}, headers=headers)
        assert r.status_code == 404
        assert r.json()["message"] == "Booking not found or cannot be cancelled"

    with db_session() as s:
        assert s.get(Booking, b["id"]).status == BookingStatus.PENDING

    # the referring affiliate may still act on its own booking
    r = client.put(f"/api/bookings/{b['id']}/confirm", headers=auth_headers(other))
    assert r.status_code == 200


def test_therapist_completes_only_own_bookings(client, admin_headers, therapist_user, therapist_id, service_id):
    intruder = make_user(UserRole.THERAPIST, "intruder@example.com")
    make_therapist(intruder)
    b = client.post("/api/bookings", json=booking_payload(therapist_id, service_id), headers=admin_headers).json()["data"]
    client.put(f"/api/bookings/{b['id']}/confirm", headers=admin_headers)

    r = client.put(f"/api/bookings/{b['id']}/complete", headers=auth_headers(intruder))
    assert r.status_code == 404
    assert r.json()["message"] == "Booking not found or not confirmed"

    r = client.put(f"/api/bookings/{b['id']}/cancel", headers=auth_headers(intruder))
    assert r.status_code == 404

    r = client.put(f"/api/bookings/{b['id']}/complete", headers=auth_headers(therapist_user))
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "completed"
