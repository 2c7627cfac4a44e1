"""API router."""

from fastapi import APIRouter

from depot.api.v1.auth import router as auth_router
from depot.api.v1.files import router as files_router
from depot.api.v1.repositories import router as repositories_router

router = APIRouter()

# Include sub-routers
router.include_router(auth_router, prefix="/auth", tags=["auth"])
router.include_router(files_router, prefix="/file", tags=["files"])
router.include_router(repositories_router, prefix="/repositories", tags=["repositories"])
