from fastapi import APIRouter

from buddyzone.api.v1.auth import router as auth_router
from buddyzone.api.v1.posts import router as posts_router
from buddyzone.api.v1.users import router as users_router

api_router = APIRouter()
api_router.include_router(auth_router)
api_router.include_router(users_router)
api_router.include_router(posts_router)
