"""
Lunara Afiliados backend.

Structure:
- config.py          : settings loaded from the environment / .env
- db.py              : SQLAlchemy engine and sessions
- models.py          : ORM models and enums
- schemas.py         : pydantic request bodies
- *_service.py       : domain logic (bookings, commissions, affiliates, ...)
- routes/            : FastAPI routers, one per resource
- api_main.py        : app assembly (middleware, routers, health check)
- email_service.py   : transactional emails through EmailJS
- seed.py            : initial data (master user, master licenses, demo data)
- cli.py             : command line access to the same services
- tools/             : maintenance scripts
"""

__version__ = "1.0.0"
