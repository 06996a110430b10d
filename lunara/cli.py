from __future__ import annotations

import argparse
import logging
from datetime import date

from .affiliate_service import list_affiliates
from .auth_service import CurrentUser, register_user
from .booking_service import (
    BookingRequest,
    cancel_booking,
    complete_booking,
    confirm_booking,
    create_booking,
    list_bookings,
)
from .commission_service import list_commissions, pay_commission
from .db import init_db
from .errors import LunaraError
from .license_service import list_licenses
from .models import UserRole
from .schemas import parse_clock_time
from .seed import seed_base
from .service_catalog import list_services
from .therapist_service import list_therapists
from .user_service import list_users


def _admin() -> CurrentUser:
    """The CLI acts with admin rights, without tenant scoping."""
    return CurrentUser(
        id="cli", name="CLI", email="cli@localhost", role=UserRole.ADMIN, is_active=True, is_master=False
    )


def cmd_init(args: argparse.Namespace) -> None:
    init_db()
    seed_base()
    print("Database initialised and seed completed.")


def cmd_create_admin(args: argparse.Namespace) -> None:
    u = register_user(args.name, args.email, args.password, UserRole.ADMIN)
    print(f"Admin created: {u.id} | {u.email}")


def cmd_list(args: argparse.Namespace) -> None:
    if args.entity == "users":
        for u in list_users():
            print(f"{u['id']} | {u['name']} | {u['email']} | {u['role']}{'' if u['is_active'] else ' (inactive)'}")
    elif args.entity == "therapists":
        for t in list_therapists():
            print(f"{t['id']} | {t['name']} | {t['specialty']} | {t['total_services']} services")
    elif args.entity == "services":
        for s in list_services():
            print(f"{s['id']} | {s['name']} | {s['therapist_name']} | {s['price']:.2f} | {s['duration_minutes']} min")
    elif args.entity == "affiliates":
        for a in list_affiliates():
            print(f"{a['id']} | {a['referral_code']} | {a['name']} | {a['commission_rate']:.2f}% | {a['total_referrals']} referrals")
    elif args.entity == "bookings":
        for b in list_bookings(_admin(), page=1, limit=100)["bookings"]:
            print(
                f"{b['id']} | {b['scheduled_date']} {b['scheduled_time']} | {b['client_name']} | "
                f"{b['service_name'] or '-'} | {b['status']}"
            )
    elif args.entity == "commissions":
        for c in list_commissions(_admin()):
            print(f"{c['id']} | {c['referral_code']} | {c['amount']:.2f} | {c['status']}")
    elif args.entity == "licenses":
        for lic in list_licenses():
            print(f"{lic['id']} | {lic['serial_key']} | {lic['license_type']} | {lic['status']}")


def cmd_book(args: argparse.Namespace) -> None:
    created = create_booking(
        BookingRequest(
            therapist_id=args.therapist_id,
            service_id=args.service_id,
            client_name=args.client_name,
            client_email=args.client_email.strip().lower(),
            client_phone=args.client_phone,
            scheduled_date=date.fromisoformat(args.date),
            scheduled_time=parse_clock_time(args.time),
            affiliate_code=args.affiliate_code,
            notes=args.notes,
        )
    )
    print(f"Booking created: {created.booking['id']} ({created.service_name})")
    if created.commission_id:
        print(f"Commission: {created.commission_id}")


def cmd_confirm(args: argparse.Namespace) -> None:
    b = confirm_booking(_admin(), args.booking_id)
    print(f"Booking {b['id']} -> {b['status']}")


def cmd_cancel(args: argparse.Namespace) -> None:
    b = cancel_booking(_admin(), args.booking_id, args.reason)
    print(f"Booking {b['id']} -> {b['status']}")


def cmd_complete(args: argparse.Namespace) -> None:
    b = complete_booking(_admin(), args.booking_id)
    print(f"Booking {b['id']} -> {b['status']}")


def cmd_pay_commission(args: argparse.Namespace) -> None:
    paid = pay_commission(args.commission_id, args.method, args.reference, args.notes)
    print(f"Commission {paid.commission['id']} paid: {paid.commission['amount']:.2f}")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="lunara", description="Lunara Afiliados command line")
    sub = p.add_subparsers(required=True)

    p_init = sub.add_parser("init", help="Create tables and load the seed")
    p_init.set_defaults(func=cmd_init)

    p_admin = sub.add_parser("create-admin", help="Create an admin user")
    p_admin.add_argument("--name", required=True)
    p_admin.add_argument("--email", required=True)
    p_admin.add_argument("--password", required=True)
    p_admin.set_defaults(func=cmd_create_admin)

    p_list = sub.add_parser("list", help="List entities")
    p_list.add_argument(
        "entity", choices=["users", "therapists", "services", "affiliates", "bookings", "commissions", "licenses"]
    )
    p_list.set_defaults(func=cmd_list)

    p_book = sub.add_parser("book", help="Create a booking")
    p_book.add_argument("--therapist-id", required=True)
    p_book.add_argument("--service-id", required=True)
    p_book.add_argument("--client-name", required=True)
    p_book.add_argument("--client-email", required=True)
    p_book.add_argument("--client-phone", default=None)
    p_book.add_argument("--date", required=True, help="ISO date e.g. 2026-01-14")
    p_book.add_argument("--time", required=True, help="HH:MM e.g. 10:30")
    p_book.add_argument("--affiliate-code", default=None)
    p_book.add_argument("--notes", default=None)
    p_book.set_defaults(func=cmd_book)

    for name, func, help_text in (
        ("confirm", cmd_confirm, "Confirm a pending booking"),
        ("complete", cmd_complete, "Complete a confirmed booking"),
    ):
        sp = sub.add_parser(name, help=help_text)
        sp.add_argument("--booking-id", required=True)
        sp.set_defaults(func=func)

    p_cancel = sub.add_parser("cancel", help="Cancel a booking")
    p_cancel.add_argument("--booking-id", required=True)
    p_cancel.add_argument("--reason", default=None)
    p_cancel.set_defaults(func=cmd_cancel)

    p_pay = sub.add_parser("pay-commission", help="Pay a pending commission")
    p_pay.add_argument("--commission-id", required=True)
    p_pay.add_argument("--method", default=None)
    p_pay.add_argument("--reference", default=None)
    p_pay.add_argument("--notes", default=None)
    p_pay.set_defaults(func=cmd_pay_commission)

    return p


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    parser = build_parser()
    args = parser.parse_args(argv)
    init_db()  # tables must exist
    try:
        args.func(args)
    except LunaraError as e:
        print(f"Error: {e.message}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
