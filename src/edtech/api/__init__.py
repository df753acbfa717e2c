"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Auth is applied at the include_router level using FastAPI's
dependencies parameter. This protects all routes in a router without
modifying individual handlers. Health and auth routers are open; the
auth router protects /auth/me itself.
"""

from fastapi import APIRouter, Depends

from edtech.api.auth import router as auth_router
from edtech.api.health import router as health_router
from edtech.api.users import router as users_router
from edtech.auth.dependencies import get_current_user

# All protected routers require authentication
_auth = [Depends(get_current_user)]

api_router = APIRouter()

# Open routes: no auth required
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])

# Protected routes: bearer token or session cookie
api_router.include_router(users_router, tags=["users"], dependencies=_auth)
