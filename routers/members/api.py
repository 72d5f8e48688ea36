from fastapi import APIRouter

from . import members

router = APIRouter()
router.include_router(members.router)
