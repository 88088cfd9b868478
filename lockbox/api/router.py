from fastapi import APIRouter
from lockbox.api.v0.auth.main import router as auth_router
from lockbox.api.v0.objects.main import router as objects_router

router = APIRouter(prefix="/api")
router.include_router(auth_router)
router.include_router(objects_router)
