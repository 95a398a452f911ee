from .auth import auth_router
from .profile import profile_router
from .geo import geo_router
from .rides import rides_router
from .captain import captain_router
from .payments import payments_router
from .safety import safety_router, share_router
from .ws import ws_router

ALL_ROUTERS = (
    auth_router, profile_router, geo_router, rides_router, captain_router,
    payments_router, safety_router, share_router, ws_router,
)
