from __future__ import annotations

from datetime import date, timedelta

from lunara.db import db_session
from lunara.models import Affiliate, UserRole

from conftest import auth_headers, make_affiliate, make_user

DAY = (date.today() + timedelta(days=5)).isoformat()


def book(client, headers, therapist_id, service_id, time_, code):
    r = client.post(
        "/api/bookings",
        json={
            "therapist_id": therapist_id,
            "service_id": service_id,
            "client_name": "Carla Cliente",
            "client_email": "carla@example.com",
            "scheduled_date": DAY,
            "scheduled_time": time_,
            "affiliate_code": code,
        },
        headers=headers,
    )
    assert r.status_code == 201
    return r.json()["data"]


def commission_for(client, headers, booking_id):
    commissions = client.get("/api/commissions", headers=headers).json()["data"]
    return next(c for c in commissions if c["booking_id"] == booking_id)


def test_list_commissions_with_details(client, admin_headers, therapist_id, service_id, affiliate_id):
    b = book(client, admin_headers, therapist_id, service_id, "10:00", "AFIL1234")

    r = client.get("/api/commissions", headers=admin_headers)
    assert r.status_code == 200
    [c] = r.json()["data"]
    assert c["booking_id"] == b["id"]
    assert c["affiliate_id"] == affiliate_id
    assert c["amount"] == 22.5
    assert c["percentage"] == 15.0
    assert c["status"] == "pending"
    assert c["affiliate_name"] == "Bruno Afiliado"
    assert c["referral_code"] == "AFIL1234"
    assert c["client_name"] == "Carla Cliente"
    assert c["booking_amount"] == 150.0
    assert c["service_name"] == "Massagem"
    assert c["therapist_name"] == "Ana Terapeuta"
    assert c["scheduled_time"] == "10:00"


def test_list_commissions_filters(client, admin_headers, therapist_id, service_id, affiliate_id):
    other_id = make_affiliate(make_user(UserRole.AFFILIATE, "other@example.com"), code="OTHER001")
    book(client, admin_headers, therapist_id, service_id, "08:00", "AFIL1234")
    book(client, admin_headers, therapist_id, service_id, "10:00", "OTHER001")

    r = client.get("/api/commissions", params={"affiliate_id": other_id}, headers=admin_headers)
    assert [c["affiliate_id"] for c in r.json()["data"]] == [other_id]

    r = client.get("/api/commissions", params={"status": "paid"}, headers=admin_headers)
    assert r.json()["data"] == []

    today = date.today().isoformat()
    r = client.get("/api/commissions", params={"date_from": today, "date_to": today}, headers=admin_headers)
    assert len(r.json()["data"]) == 2

    yesterday = (date.today() - timedelta(days=1)).isoformat()
    r = client.get("/api/commissions", params={"date_to": yesterday}, headers=admin_headers)
    assert r.json()["data"] == []


def test_affiliate_sees_only_own_commissions(client, admin_headers, affiliate_user, therapist_id, service_id, affiliate_id):
    make_affiliate(make_user(UserRole.AFFILIATE, "other@example.com"), code="OTHER001")
    mine = book(client, admin_headers, therapist_id, service_id, "08:00", "AFIL1234")
    theirs = book(client, admin_headers, therapist_id, service_id, "10:00", "OTHER001")
    headers = auth_headers(affiliate_user)

    r = client.get("/api/commissions", headers=headers)
    assert [c["booking_id"] for c in r.json()["data"]] == [mine["id"]]

    # asking for another affiliate's commissions still yields only the caller's
    other_commission = commission_for(client, admin_headers, theirs["id"])
    r = client.get("/api/commissions", params={"affiliate_id": other_commission["affiliate_id"]}, headers=headers)
    assert r.json()["data"] == []

    r = client.get(f"/api/commissions/{other_commission['id']}", headers=headers)
    assert r.status_code == 404

    own = commission_for(client, admin_headers, mine["id"])
    r = client.get(f"/api/commissions/{own['id']}", headers=headers)
    assert r.status_code == 200
    assert r.json()["data"]["id"] == own["id"]


def test_get_unknown_commission(client, admin_headers):
    r = client.get("/api/commissions/00000000-0000-0000-0000-0000000000aa", headers=admin_headers)
    assert r.status_code == 404
    assert r.json()["message"] == "Commission not found"


def test_pay_commission(client, admin_headers, therapist_id, service_id, affiliate_id, sent_emails):
    b = book(client, admin_headers, therapist_id, service_id, "10:00", "AFIL1234")
    c = commission_for(client, admin_headers, b["id"])
    sent_emails.clear()

    r = client.post(
        f"/api/commissions/{c['id']}/pay",
        json={"payment_method": "pix", "payment_reference": "E123", "notes": "março"},
        headers=admin_headers,
    )
    assert r.status_code == 200
    paid = r.json()["data"]
    assert paid["status"] == "paid"
    assert paid["payment_method"] == "pix"
    assert paid["payment_reference"] == "E123"
    assert paid["payment_date"] is not None

    with db_session() as s:
        assert str(s.get(Affiliate, affiliate_id).total_commission) == "22.50"

    [(template, params)] = sent_emails
    assert template == "commission_paid"
    assert params["to_email"] == "affiliate@example.com"
    assert params["commission_amount"] == "R$ 22,50"
    assert params["booking_details"].startswith("Massagem - Carla Cliente")

    r = client.post(f"/api/commissions/{c['id']}/pay", headers=admin_headers)
    assert r.status_code == 404
    assert r.json()["message"] == "Commission not found or already processed"

    with db_session() as s:
        assert str(s.get(Affiliate, affiliate_id).total_commission) == "22.50"


def test_pay_requires_admin(client, admin_headers, affiliate_user, therapist_id, service_id, affiliate_id):
    b = book(client, admin_headers, therapist_id, service_id, "10:00", "AFIL1234")
    c = commission_for(client, admin_headers, b["id"])
    r = client.post(f"/api/commissions/{c['id']}/pay", headers=auth_headers(affiliate_user))
    assert r.status_code == 403


def test_summary(client, admin_headers, therapist_id, service_id, affiliate_id):
    first = book(client, admin_headers, therapist_id, service_id, "08:00", "AFIL1234")
    book(client, admin_headers, therapist_id, service_id, "10:00", "AFIL1234")
    c = commission_for(client, admin_headers, first["id"])
    client.post(f"/api/commissions/{c['id']}/pay", headers=admin_headers)

    r = client.get("/api/commissions/stats/summary", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["data"] == {
        "total_commissions": 2,
        "pending_commissions": 1,
        "paid_commissions": 1,
        "cancelled_commissions": 0,
        "total_amount": 45.0,
        "paid_amount": 22.5,
        "pending_amount": 22.5,
        "avg_commission_amount": 22.5,
    }

    today = date.today()
    r = client.get(
        "/api/commissions/stats/summary", params={"month": today.month, "year": today.year + 1}, headers=admin_headers
    )
    assert r.json()["data"]["total_commissions"] == 0
    assert r.json()["data"]["avg_commission_amount"] == 0.0

    r = client.get("/api/commissions/stats/summary", params={"month": 13}, headers=admin_headers)
    assert r.status_code == 400


def test_by_affiliate_orders_by_total(client, admin_headers, therapist_id, service_id, affiliate_id):
    make_affiliate(make_user(UserRole.AFFILIATE, "idle@example.com", "Idle"), code="IDLE0001")
    big_id = make_affiliate(make_user(UserRole.AFFILIATE, "big@example.com", "Big"), code="BIG00001", rate="40.00")
    book(client, admin_headers, therapist_id, service_id, "08:00", "AFIL1234")
    book(client, admin_headers, therapist_id, service_id, "10:00", "BIG00001")

    r = client.get("/api/commissions/stats/by-affiliate", headers=admin_headers)
    assert r.status_code == 200
    rows = r.json()["data"]
    assert [row["referral_code"] for row in rows] == ["BIG00001", "AFIL1234", "IDLE0001"]
    assert rows[0]["affiliate_id"] == big_id
    assert rows[0]["total_amount"] == 60.0
    assert rows[0]["pending_amount"] == 60.0
    assert rows[2]["total_commissions"] == 0
    assert rows[2]["total_amount"] == 0.0


def test_stats_are_admin_only(client, therapist_user):
    headers = auth_headers(therapist_user)
    assert client.get("/api/commissions/stats/summary", headers=headers).status_code == 403
    assert client.get("/api/commissions/stats/by-affiliate", headers=headers).status_code == 403
