from __future__ import annotations

import os
import warnings
from pathlib import Path

from dotenv import load_dotenv

# .env in the project root (next to streamlit_app.py); variables already set win
PROJECT_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(dotenv_path=PROJECT_ROOT / ".env")


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


APP_NAME = "Lunara Afiliados"
APP_VERSION = "1.0.0"

ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()
IS_PRODUCTION = ENVIRONMENT == "production"

# Database
DB_PATH = PROJECT_ROOT / "lunara.sqlite"
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DB_PATH}")
DB_ECHO = _env_bool("DB_ECHO", False)

# JWT
JWT_SECRET = os.getenv("JWT_SECRET")
if not JWT_SECRET:
    warnings.warn("JWT_SECRET not set, using an insecure development secret", RuntimeWarning, stacklevel=2)
    JWT_SECRET = "CHANGE_ME_DEV_SECRET"
JWT_ALG = "HS256"
JWT_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", str(7 * 24 * 60)))

BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

# HTTP
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:8501").split(",")
    if o.strip()
]
RATE_LIMIT_ENABLED = _env_bool("RATE_LIMIT_ENABLED", True)
RATE_LIMIT_MAX = int(os.getenv("RATE_LIMIT_MAX", "100"))
RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", str(15 * 60)))
# only behind a reverse proxy that overwrites X-Forwarded-For
TRUST_PROXY_HEADERS = _env_bool("TRUST_PROXY_HEADERS", False)
SECURITY_HEADERS_ENABLED = _env_bool("SECURITY_HEADERS_ENABLED", True)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Master user
MASTER_EMAIL = os.getenv("MASTER_EMAIL", "master@lunara.com.br").strip().lower()
MASTER_USER_ID = os.getenv("MASTER_USER_ID", "00000000-0000-0000-0000-000000000001")
MASTER_PASSWORD = os.getenv("MASTER_PASSWORD", "Master123!")
MASTER_NAME = os.getenv("MASTER_NAME", "Master")

SEED_DEMO_DATA = _env_bool("SEED_DEMO_DATA", False)

# Email (EmailJS REST)
APP_URL = os.getenv("APP_URL", "http://localhost:8501").rstrip("/")
EMAILJS_API_URL = os.getenv("EMAILJS_API_URL", "https://api.emailjs.com/api/v1.0/email/send")
EMAILJS_SERVICE_ID = os.getenv("EMAILJS_SERVICE_ID", "")
EMAILJS_PUBLIC_KEY = os.getenv("EMAILJS_PUBLIC_KEY", "")
EMAILJS_PRIVATE_KEY = os.getenv("EMAILJS_PRIVATE_KEY", "")
EMAILJS_TEMPLATES = {
    "welcome": os.getenv("EMAILJS_TEMPLATE_WELCOME", ""),
    "license_activated": os.getenv("EMAILJS_TEMPLATE_LICENSE", ""),
    "booking_confirmation": os.getenv("EMAILJS_TEMPLATE_BOOKING", ""),
    "commission_paid": os.getenv("EMAILJS_TEMPLATE_COMMISSION", ""),
}
EMAIL_FROM_NAME = APP_NAME
EMAIL_REPLY_TO = os.getenv("EMAIL_REPLY_TO", "noreply@lunara-afiliados.com")
EMAIL_TIMEOUT_SECONDS = float(os.getenv("EMAIL_TIMEOUT_SECONDS", "10"))
