"""API route aggregation.

All routers registered here get mounted in main.py under /api.

Learn: Auth is applied at the include_router level using FastAPI's
dependencies parameter. This protects all routes in each router
without modifying individual handlers. Health and auth routers are
open (auth routes that need a user declare it themselves).
"""

from fastapi import APIRouter, Depends

from collabspace.api.auth import router as auth_router
from collabspace.api.chat import router as chat_router
from collabspace.api.health import router as health_router
from collabspace.api.invitations import router as invitations_router
from collabspace.api.notes import router as notes_router
from collabspace.api.projects import router as projects_router
from collabspace.api.todos import router as todos_router
from collabspace.auth.dependencies import get_current_user
from collabspace.realtime.stream import router as realtime_router

# All protected routers require a session cookie or bearer token
_auth = [Depends(get_current_user)]

api_router = APIRouter(prefix="/api")

# Open routes
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])

# Protected routes
api_router.include_router(projects_router, tags=["projects"], dependencies=_auth)
api_router.include_router(chat_router, tags=["chat"], dependencies=_auth)
api_router.include_router(invitations_router, tags=["invitations"], dependencies=_auth)
api_router.include_router(notes_router, tags=["notes"], dependencies=_auth)
api_router.include_router(todos_router, tags=["todos"], dependencies=_auth)
api_router.include_router(realtime_router, tags=["realtime"], dependencies=_auth)
