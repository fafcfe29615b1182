"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Auth is applied at the include_router level using FastAPI's
dependencies parameter. Health and auth routers are open; tasks,
notifications and profile need a session; admin needs SUPER.
"""

from fastapi import APIRouter, Depends

from taskgate.api.admin import router as admin_router
from taskgate.api.auth import router as auth_router
from taskgate.api.health import router as health_router
from taskgate.api.notifications import router as notifications_router
from taskgate.api.profile import router as profile_router
from taskgate.api.tasks import router as tasks_router
from taskgate.auth.dependencies import get_current_session, require_super

_auth = [Depends(get_current_session)]
_super = [Depends(require_super)]

api_router = APIRouter(prefix="/api/v1")

# Open routes — no auth required
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])

# Protected routes — require a valid session
api_router.include_router(tasks_router, tags=["tasks"], dependencies=_auth)
api_router.include_router(notifications_router, tags=["notifications"], dependencies=_auth)
api_router.include_router(profile_router, tags=["profile"], dependencies=_auth)

# Admin routes — require role SUPER
api_router.include_router(admin_router, tags=["admin"], dependencies=_super)
