"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import auth, drivers, documents, users, audit

router = APIRouter()

# Authentication
router.include_router(auth.router)

# Driver onboarding
router.include_router(drivers.router)
router.include_router(documents.router)

# Administration
router.include_router(users.router)
router.include_router(audit.router)
