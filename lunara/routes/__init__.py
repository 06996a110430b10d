from .affiliates import router as affiliates_router
from .auth import router as auth_router
from .bookings import router as bookings_router
from .commissions import router as commissions_router
from .licenses import router as licenses_router
from .services import router as services_router
from .therapists import router as therapists_router
from .users import router as users_router

ALL_ROUTERS = (
    auth_router,
    users_router,
    affiliates_router,
    therapists_router,
    services_router,
    bookings_router,
    commissions_router,
    licenses_router,
)
