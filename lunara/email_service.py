"""
Transactional emails through the EmailJS REST API.

Dispatch never raises: a missing configuration or a transport error is
logged and reported back as {"success": False, "error": ...}.
"""
from __future__ import annotations

import logging
from typing import Any

import requests

from . import config
from .helpers import format_currency, mask_sensitive_data

logger = logging.getLogger(__name__)


def send_email(template: str, params: dict[str, Any]) -> dict[str, Any]:
    template_id = config.EMAILJS_TEMPLATES.get(template)
    to_email = params.get("to_email", "")

    if not (config.EMAILJS_SERVICE_ID and config.EMAILJS_PUBLIC_KEY and template_id):
        logger.info(f"Email '{template}' to {mask_sensitive_data(to_email)} skipped: EmailJS not configured")
        return {"success": False, "error": "Email service not configured"}

    body: dict[str, Any] = {
        "service_id": config.EMAILJS_SERVICE_ID,
        "template_id": template_id,
        "user_id": config.EMAILJS_PUBLIC_KEY,
        "template_params": {
            **params,
            "from_name": config.EMAIL_FROM_NAME,
            "reply_to": config.EMAIL_REPLY_TO,
        },
    }
    if config.EMAILJS_PRIVATE_KEY:
        body["accessToken"] = config.EMAILJS_PRIVATE_KEY

    try:
        r = requests.post(config.EMAILJS_API_URL, json=body, timeout=config.EMAIL_TIMEOUT_SECONDS)
    except requests.RequestException as e:
        logger.error(f"Email '{template}' to {mask_sensitive_data(to_email)} failed: {e}")
        return {"success": False, "error": str(e)}

    if r.status_code != 200:
        logger.error(f"Email '{template}' to {mask_sensitive_data(to_email)} rejected: {r.status_code} {r.text[:200]}")
        return {"success": False, "error": f"EmailJS responded {r.status_code}"}

    logger.info(f"Email '{template}' sent to {mask_sensitive_data(to_email)}")
    return {"success": True, "status": r.status_code}


def send_welcome_email(user_email: str, user_name: str, plan_type: str) -> dict[str, Any]:
    return send_email(
        "welcome",
        {
            "to_email": user_email,
            "to_name": user_name,
            "plan_type": plan_type,
            "app_name": config.APP_NAME,
            "login_url": f"{config.APP_URL}/login",
        },
    )


def send_license_activated_email(user_email: str, user_name: str, license_type: str) -> dict[str, Any]:
    return send_email(
        "license_activated",
        {
            "to_email": user_email,
            "to_name": user_name,
            "license_type": license_type,
            "app_name": config.APP_NAME,
            "dashboard_url": f"{config.APP_URL}/dashboard",
        },
    )


def send_booking_confirmation_email(
    client_email: str,
    client_name: str,
    service_name: str,
    scheduled_date: str,
    service_price,
    professional_name: str,
) -> dict[str, Any]:
    return send_email(
        "booking_confirmation",
        {
            "to_email": client_email,
            "to_name": client_name,
            "service_name": service_name,
            "scheduled_date": scheduled_date,
            "service_price": format_currency(service_price),
            "professional_name": professional_name,
            "app_name": config.APP_NAME,
        },
    )


def send_commission_paid_email(
    affiliate_email: str,
    affiliate_name: str,
    commission_amount,
    booking_details: str,
) -> dict[str, Any]:
    return send_email(
        "commission_paid",
        {
            "to_email": affiliate_email,
            "to_name": affiliate_name,
            "commission_amount": format_currency(commission_amount),
            "booking_details": booking_details,
            "app_name": config.APP_NAME,
        },
    )
