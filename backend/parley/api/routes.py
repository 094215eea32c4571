from fastapi import APIRouter

from parley.api.admin import router as admin_router
from parley.api.auth import router as auth_router
from parley.api.calls import router as calls_router
from parley.api.chat_requests import router as chat_requests_router
from parley.api.conversations import router as conversations_router
from parley.api.groups import router as groups_router
from parley.api.profile import router as profile_router
from parley.api.upload import router as upload_router
from parley.api.users import router as users_router

router = APIRouter()

router.include_router(auth_router, prefix="/auth", tags=["auth"])
router.include_router(users_router)
router.include_router(chat_requests_router)
router.include_router(conversations_router)
router.include_router(groups_router)
router.include_router(calls_router)
router.include_router(profile_router)
router.include_router(upload_router)
router.include_router(admin_router)


@router.get("/", tags=["root"])
def read_root() -> dict[str, str]:
    return {"message": "Welcome to the Parley API"}
