from __future__ import annotations

import base64
import json
import os
from datetime import date, datetime, timezone

import requests
import streamlit as st

st.set_page_config(page_title="Lunara Afiliados", layout="wide")

API_BASE = os.getenv("API_BASE_URL", "http://127.0.0.1:8000")

BOOKING_STATUSES = ["pending", "confirmed", "cancelled", "completed"]
COMMISSION_STATUSES = ["pending", "paid", "cancelled"]



# JWT helpers (UI only, signature not verified)

def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def jwt_payload(token: str) -> dict:
    try:
        parts = token.split(".")
        if len(parts) != 3:
            return {}
        payload = json.loads(_b64url_decode(parts[1]).decode("utf-8"))
        return payload if isinstance(payload, dict) else {}
    except (ValueError, UnicodeDecodeError):
        return {}


def jwt_is_expired(token: str) -> bool:
    exp = jwt_payload(token).get("exp")
    try:
        exp_int = int(exp)
    except (TypeError, ValueError):
        return False

    now = int(datetime.now(tz=timezone.utc).timestamp())
    return now >= (exp_int - 5)


def jwt_role(token: str) -> str:
    return str(jwt_payload(token).get("role") or "")


def jwt_email(token: str) -> str:
    return str(jwt_payload(token).get("email") or jwt_payload(token).get("sub") or "user")



# HTTP client (with JWT)

class ApiError(Exception):
    pass


def _unwrap(r: requests.Response):
    """Returns the "data" of a success envelope; raises with the API message otherwise."""
    if r.status_code == 401:
        raise PermissionError("401 Unauthorized (invalid/expired token or backend restarted).")
    try:
        body = r.json()
    except ValueError:
        r.raise_for_status()
        raise ApiError(f"Unexpected response ({r.status_code})")

    if r.status_code >= 400 or not body.get("success", False):
        message = body.get("message") or f"HTTP {r.status_code}"
        errors = body.get("errors")
        if isinstance(errors, list) and errors:
            message += ": " + "; ".join(f"{e.get('field')}: {e.get('message')}" for e in errors)
        raise ApiError(message)
    return body.get("data")


def _headers(token: str | None) -> dict:
    headers = {"Content-Type": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def api_get(path: str, token: str | None = None, params: dict | None = None):
    params = {k: v for k, v in (params or {}).items() if v not in (None, "")}
    return _unwrap(requests.get(f"{API_BASE}{path}", headers=_headers(token), params=params, timeout=10))


def api_post(path: str, payload: dict | None = None, token: str | None = None):
    return _unwrap(requests.post(f"{API_BASE}{path}", headers=_headers(token), json=payload or {}, timeout=10))


def api_put(path: str, payload: dict | None = None, token: str | None = None):
    return _unwrap(requests.put(f"{API_BASE}{path}", headers=_headers(token), json=payload or {}, timeout=10))


def api_delete(path: str, token: str | None = None):
    return _unwrap(requests.delete(f"{API_BASE}{path}", headers=_headers(token), timeout=10))


def is_logged_in() -> bool:
    token = st.session_state.get("token")
    return bool(token) and isinstance(token, str)


def do_logout() -> None:
    token = st.session_state.get("token")
    if token:
        try:
            api_post("/api/auth/logout", token=token)
        except (ApiError, PermissionError, requests.RequestException):
            pass
    st.session_state.pop("token", None)
    st.session_state.pop("auth_error", None)
    st.rerun()


def show_error(e: Exception) -> None:
    if isinstance(e, PermissionError):
        st.session_state["auth_error"] = str(e)
        st.error("Invalid session. Press Logout and log in again.")
    else:
        st.error(str(e))


def money(value) -> str:
    """BRL formatting for the UI: 1234.5 -> R$ 1.234,50."""
    us = f"{float(value or 0):,.2f}"
    return "R$ " + us.replace(",", "_").replace(".", ",").replace("_", ".")



# Sidebar: login / register

with st.sidebar:
    st.header("Access")

    if not is_logged_in():
        mode = st.radio("Mode", ["Login", "Register"], horizontal=True, key="auth_mode")
        email = st.text_input("Email", key="auth_email")
        password = st.text_input("Password", type="password", key="auth_pass")

        if mode == "Register":
            name = st.text_input("Name", key="auth_name")
            role = st.selectbox("Role", ["affiliate", "therapist"], key="auth_role")

        if st.button(mode, key="auth_btn"):
            try:
                if mode == "Login":
                    data = api_post("/api/auth/login", {"email": email.strip().lower(), "password": password})
                else:
                    data = api_post(
                        "/api/auth/register",
                        {"name": name.strip(), "email": email.strip().lower(), "password": password, "role": role},
                    )
                st.session_state["token"] = data["token"]
                st.session_state.pop("auth_error", None)
                st.rerun()
            except (ApiError, PermissionError) as e:
                st.error(str(e))
            except requests.RequestException as e:
                st.error(f"API unreachable: {e}")
    else:
        token = st.session_state["token"]
        st.write(f"User: **{jwt_email(token)}**")
        st.write(f"Role: **{jwt_role(token)}**")

        if st.session_state.get("auth_error"):
            st.error(st.session_state["auth_error"])

        if st.button("Logout", key="logout_btn"):
            do_logout()

    st.divider()
    st.caption(f"API: {API_BASE}")



# UI

st.title("Lunara Afiliados")

if not is_logged_in():
    st.info("Log in from the sidebar to continue.")
    st.stop()

TOKEN = st.session_state["token"]
if jwt_is_expired(TOKEN):
    st.error("Session expired. Press Logout in the sidebar and log in again.")
    st.stop()

ROLE = jwt_role(TOKEN)
IS_ADMIN = ROLE == "admin"

tab_names = ["Dashboard", "Bookings", "Services", "Therapists", "Affiliates", "Commissions"]
if IS_ADMIN:
    tab_names.append("Users")
tab_names.append("Profile")
tabs = dict(zip(tab_names, st.tabs(tab_names)))



# Shared data

@st.cache_data(ttl=10)
def load_therapists(token: str) -> list[dict]:
    return api_get("/api/therapists", token=token) or []


@st.cache_data(ttl=10)
def load_services(token: str, therapist_id: str | None = None) -> list[dict]:
    return api_get("/api/services", token=token, params={"therapist_id": therapist_id}) or []


def load_profile() -> dict:
    return api_get("/api/users/profile", token=TOKEN) or {}



# TAB - Dashboard

with tabs["Dashboard"]:
    st.subheader("Overview")
    try:
        profile = load_profile()
        st.write(f"Welcome, **{profile.get('name')}**")

        if IS_ADMIN:
            summary = api_get("/api/commissions/stats/summary", token=TOKEN)
            bookings_page = api_get("/api/bookings", token=TOKEN, params={"limit": 1})
            c1, c2, c3, c4 = st.columns(4)
            c1.metric("Bookings", bookings_page["pagination"]["total"])
            c2.metric("Commissions", summary["total_commissions"])
            c3.metric("Paid", money(summary["paid_amount"]))
            c4.metric("Pending", money(summary["pending_amount"]))

        elif ROLE == "affiliate":
            pd = profile.get("profile_data")
            if not pd:
                st.info("No affiliate record yet: ask an admin to create one.")
            else:
                stats = api_get(f"/api/affiliates/{pd['id']}/stats", token=TOKEN)
                st.write(f"Referral code: **{pd['referral_code']}** ({pd['commission_rate']:.2f}%)")
                c1, c2, c3, c4 = st.columns(4)
                c1.metric("Bookings", stats["total_bookings"])
                c2.metric("Completed", stats["completed_bookings"])
                c3.metric("Commissions paid", money(stats["commissions_paid"]))
                c4.metric("Commissions pending", money(stats["commissions_pending"]))

        elif ROLE == "therapist":
            pd = profile.get("profile_data")
            if not pd:
                st.info("No therapist record yet: ask an admin to create one.")
            else:
                page = api_get("/api/bookings", token=TOKEN, params={"limit": 1})
                pending = api_get("/api/bookings", token=TOKEN, params={"limit": 1, "status": "pending"})
                c1, c2, c3 = st.columns(3)
                c1.metric("Specialty", pd["specialty"])
                c2.metric("Bookings", page["pagination"]["total"])
                c3.metric("Pending", pending["pagination"]["total"])
    except Exception as e:
        show_error(e)



# TAB - Bookings

with tabs["Bookings"]:
    st.subheader("Bookings")

    with st.expander("New booking"):
        try:
            therapists = load_therapists(TOKEN)
        except Exception as e:
            show_error(e)
            therapists = []

        if not therapists:
            st.info("No therapists available.")
        else:
            therapist = st.selectbox(
                "Therapist",
                options=therapists,
                format_func=lambda t: f"{t['name']} ({t['specialty']})",
                key="bk_therapist",
            )
            services = load_services(TOKEN, therapist["id"])
            service = st.selectbox(
                "Service",
                options=services,
                format_func=lambda s: f"{s['name']} | {money(s['price'])} | {s['duration_minutes']} min",
                key="bk_service",
            )

            c1, c2 = st.columns(2)
            day = c1.date_input("Date", value=date.today(), key="bk_date")
            try:
                slots = api_get(
                    f"/api/therapists/{therapist['id']}/availability", token=TOKEN, params={"date": day.isoformat()}
                )["available_slots"]
            except Exception as e:
                show_error(e)
                slots = []
            slot = c2.selectbox("Time", options=slots or ["--"], key="bk_time")

            client_name = st.text_input("Client name", key="bk_client_name")
            client_email = st.text_input("Client email", key="bk_client_email")
            client_phone = st.text_input("Client phone (optional)", key="bk_client_phone")
            affiliate_code = st.text_input("Affiliate code (optional)", key="bk_code")
            notes = st.text_area("Notes (optional)", height=80, key="bk_notes")

            if st.button("Create booking", key="bk_submit", disabled=not (service and slots)):
                payload = {
                    "therapist_id": therapist["id"],
                    "service_id": service["id"],
                    "client_name": client_name.strip(),
                    "client_email": client_email.strip(),
                    "client_phone": client_phone.strip() or None,
                    "scheduled_date": day.isoformat(),
                    "scheduled_time": slot,
                    "affiliate_code": affiliate_code.strip() or None,
                    "notes": notes.strip() or None,
                }
                try:
                    b = api_post("/api/bookings", payload, token=TOKEN)
                    st.success(f"Booking created (ID: {b['id']})")
                except Exception as e:
                    show_error(e)

    st.divider()

    c1, c2, c3, c4 = st.columns(4)
    status_filter = c1.selectbox("Status", ["", *BOOKING_STATUSES], key="bk_f_status")
    date_from = c2.date_input("From", value=None, key="bk_f_from")
    date_to = c3.date_input("To", value=None, key="bk_f_to")
    page = c4.number_input("Page", min_value=1, value=1, step=1, key="bk_f_page")

    try:
        res = api_get(
            "/api/bookings",
            token=TOKEN,
            params={
                "status": status_filter,
                "date_from": date_from.isoformat() if date_from else None,
                "date_to": date_to.isoformat() if date_to else None,
                "page": int(page),
                "limit": 20,
            },
        )
        pg = res["pagination"]
        st.caption(f"Page {pg['page']} of {max(pg['pages'], 1)} - {pg['total']} bookings")

        if not res["bookings"]:
            st.info("No bookings found.")
        for b in res["bookings"]:
            cols = st.columns([6, 1, 1, 1])
            cols[0].write(
                f"**{b['scheduled_date']} {b['scheduled_time']}** | {b['client_name']} | "
                f"{b['service_name'] or '-'} with {b['therapist_name'] or '-'} | {money(b['total_amount'])} | "
                f"**{b['status']}**" + (f" | via {b['referral_code']}" if b.get("referral_code") else "")
            )
            if b["status"] == "pending" and cols[1].button("Confirm", key=f"bk_conf_{b['id']}"):
                try:
                    api_put(f"/api/bookings/{b['id']}/confirm", token=TOKEN)
                    st.rerun()
                except Exception as e:
                    show_error(e)
            if b["status"] in ("pending", "confirmed") and cols[2].button("Cancel", key=f"bk_canc_{b['id']}"):
                try:
                    api_put(f"/api/bookings/{b['id']}/cancel", {"reason": "Cancelled from the dashboard"}, token=TOKEN)
                    st.rerun()
                except Exception as e:
                    show_error(e)
            if (
                b["status"] == "confirmed"
                and ROLE in ("admin", "therapist")
                and cols[3].button("Complete", key=f"bk_comp_{b['id']}")
            ):
                try:
                    api_put(f"/api/bookings/{b['id']}/complete", token=TOKEN)
                    st.rerun()
                except Exception as e:
                    show_error(e)
    except Exception as e:
        show_error(e)



# TAB - Services

with tabs["Services"]:
    st.subheader("Service catalog")

    if ROLE in ("admin", "therapist"):
        with st.expander("New service"):
            try:
                therapists = load_therapists(TOKEN)
            except Exception as e:
                show_error(e)
                therapists = []
            if therapists:
                owner = st.selectbox(
                    "Therapist", options=therapists, format_func=lambda t: t["name"], key="sv_therapist"
                )
                sv_name = st.text_input("Name", key="sv_name")
                sv_desc = st.text_area("Description", height=80, key="sv_desc")
                c1, c2 = st.columns(2)
                sv_price = c1.number_input("Price", min_value=0.01, value=100.0, step=10.0, key="sv_price")
                sv_duration = c2.number_input("Duration (min)", min_value=15, max_value=480, value=60, step=15, key="sv_dur")
                if st.button("Create service", key="sv_submit"):
                    try:
                        api_post(
                            "/api/services",
                            {
                                "therapist_id": owner["id"],
                                "name": sv_name.strip(),
                                "description": sv_desc.strip() or None,
                                "price": round(float(sv_price), 2),
                                "duration_minutes": int(sv_duration),
                            },
                            token=TOKEN,
                        )
                        load_services.clear()
                        st.success("Service created.")
                    except Exception as e:
                        show_error(e)

    try:
        for s in load_services(TOKEN):
            cols = st.columns([7, 1])
            cols[0].write(
                f"- **{s['name']}** | {s['therapist_name']} ({s['specialty']}) | "
                f"{money(s['price'])} | {s['duration_minutes']} min"
            )
            if ROLE in ("admin", "therapist") and cols[1].button("Deactivate", key=f"sv_del_{s['id']}"):
                try:
                    api_delete(f"/api/services/{s['id']}", token=TOKEN)
                    load_services.clear()
                    st.rerun()
                except Exception as e:
                    show_error(e)
    except Exception as e:
        show_error(e)



# TAB - Therapists

with tabs["Therapists"]:
    st.subheader("Therapists")

    if IS_ADMIN:
        with st.expander("New therapist"):
            th_user = st.text_input("User ID", key="th_user")
            th_specialty = st.text_input("Specialty", key="th_specialty")
            th_bio = st.text_area("Bio", height=80, key="th_bio")
            th_rate = st.number_input("Commission rate (%)", min_value=0.0, max_value=100.0, value=30.0, key="th_rate")
            if st.button("Create therapist", key="th_submit"):
                try:
                    api_post(
                        "/api/therapists",
                        {
                            "user_id": th_user.strip(),
                            "specialty": th_specialty.strip(),
                            "bio": th_bio.strip() or None,
                            "commission_rate": round(float(th_rate), 2),
                        },
                        token=TOKEN,
                    )
                    load_therapists.clear()
                    st.success("Therapist created.")
                except Exception as e:
                    show_error(e)

    try:
        therapists = load_therapists(TOKEN)
        for t in therapists:
            avg = money(t["avg_booking_value"]) if t.get("avg_booking_value") is not None else "-"
            st.write(
                f"- **{t['name']}** ({t['specialty']}) | {t['total_services']} services | "
                f"{t['total_bookings']} bookings | avg {avg}" + ("" if t["is_available"] else " | unavailable")
            )

        if therapists:
            st.divider()
            st.write("Availability")
            c1, c2 = st.columns(2)
            av_therapist = c1.selectbox("Therapist", options=therapists, format_func=lambda t: t["name"], key="av_t")
            av_day = c2.date_input("Day", value=date.today(), key="av_day")
            av = api_get(f"/api/therapists/{av_therapist['id']}/availability", token=TOKEN, params={"date": av_day.isoformat()})
            st.write("Free: " + (", ".join(av["available_slots"]) or "-"))
            st.write("Booked: " + (", ".join(av["busy_slots"]) or "-"))
    except Exception as e:
        show_error(e)



# TAB - Affiliates

with tabs["Affiliates"]:
    st.subheader("Affiliates")

    if ROLE == "affiliate":
        try:
            pd = load_profile().get("profile_data")
            if pd:
                month = st.number_input("Month", min_value=1, max_value=12, value=date.today().month, key="af_month")
                year = st.number_input("Year", min_value=2000, max_value=2100, value=date.today().year, key="af_year")
                stats = api_get(
                    f"/api/affiliates/{pd['id']}/stats", token=TOKEN, params={"month": int(month), "year": int(year)}
                )
                st.json(stats)
            else:
                st.info("No affiliate record yet.")
        except Exception as e:
            show_error(e)
    else:
        if IS_ADMIN:
            with st.expander("New affiliate"):
                af_user = st.text_input("User ID", key="af_user")
                af_rate = st.number_input("Commission rate (%)", min_value=0.0, max_value=100.0, value=15.0, key="af_rate")
                af_code = st.text_input("Referral code (optional)", key="af_code")
                if st.button("Create affiliate", key="af_submit"):
                    try:
                        a = api_post(
                            "/api/affiliates",
                            {
                                "user_id": af_user.strip(),
                                "commission_rate": round(float(af_rate), 2),
                                "referral_code": af_code.strip() or None,
                            },
                            token=TOKEN,
                        )
                        st.success(f"Affiliate created with code {a['referral_code']}")
                    except Exception as e:
                        show_error(e)

        try:
            affiliates = api_get("/api/affiliates", token=TOKEN) or []
            if not affiliates:
                st.info("No affiliates.")
            for a in affiliates:
                st.write(
                    f"- **{a['name']}** | {a['referral_code']} | {a['commission_rate']:.2f}% | "
                    f"{a['total_bookings']} bookings | revenue {money(a['total_revenue'])} | "
                    f"paid {money(a['total_commissions_paid'])} | pending {money(a['total_commissions_pending'])}"
                    + ("" if a["is_active"] else " | inactive")
                )
        except Exception as e:
            show_error(e)



# TAB - Commissions

with tabs["Commissions"]:
    st.subheader("Commissions")

    if IS_ADMIN:
        try:
            summary = api_get("/api/commissions/stats/summary", token=TOKEN)
            c1, c2, c3 = st.columns(3)
            c1.metric("Total", money(summary["total_amount"]))
            c2.metric("Paid", money(summary["paid_amount"]))
            c3.metric("Pending", money(summary["pending_amount"]))
        except Exception as e:
            show_error(e)

    cm_status = st.selectbox("Status", ["", *COMMISSION_STATUSES], key="cm_status")
    try:
        rows = api_get("/api/commissions", token=TOKEN, params={"status": cm_status}) or []
        if not rows:
            st.info("No commissions.")
        for c in rows:
            cols = st.columns([7, 1])
            cols[0].write(
                f"- {c['created_at'][:10]} | **{c['affiliate_name']}** ({c['referral_code']}) | "
                f"{c['service_name'] or '-'} for {c['client_name']} | {money(c['amount'])} ({c['percentage']:.2f}%) | "
                f"**{c['status']}**"
            )
            if IS_ADMIN and c["status"] == "pending" and cols[1].button("Pay", key=f"cm_pay_{c['id']}"):
                try:
                    api_post(f"/api/commissions/{c['id']}/pay", {"payment_method": "pix"}, token=TOKEN)
                    st.rerun()
                except Exception as e:
                    show_error(e)
    except Exception as e:
        show_error(e)



# TAB - Users (admin)

if IS_ADMIN:
    with tabs["Users"]:
        st.subheader("Users")
        try:
            for u in api_get("/api/users", token=TOKEN) or []:
                cols = st.columns([7, 1])
                cols[0].write(f"- `{u['id']}` | **{u['name']}** | {u['email']} | {u['role']}")
                label = "Deactivate" if u["is_active"] else "Activate"
                if not u["is_master"] and cols[1].button(label, key=f"us_toggle_{u['id']}"):
                    try:
                        api_put(f"/api/users/{u['id']}", {"is_active": not u["is_active"]}, token=TOKEN)
                        st.rerun()
                    except Exception as e:
                        show_error(e)
        except Exception as e:
            show_error(e)



# TAB - Profile

with tabs["Profile"]:
    st.subheader("Profile")
    try:
        profile = load_profile()
        pf_name = st.text_input("Name", value=profile.get("name", ""), key="pf_name")
        pf_email = st.text_input("Email", value=profile.get("email", ""), key="pf_email")
        if st.button("Save profile", key="pf_save"):
            try:
                api_put("/api/users/profile", {"name": pf_name.strip(), "email": pf_email.strip()}, token=TOKEN)
                st.success("Profile updated.")
            except Exception as e:
                show_error(e)

        st.divider()
        pw_current = st.text_input("Current password", type="password", key="pw_current")
        pw_new = st.text_input("New password", type="password", key="pw_new")
        if st.button("Change password", key="pw_save"):
            try:
                api_put("/api/users/password", {"current_password": pw_current, "new_password": pw_new}, token=TOKEN)
                st.success("Password changed.")
            except Exception as e:
                show_error(e)
    except Exception as e:
        show_error(e)
