from fastapi import APIRouter

from . import applications, cycle, match_requests

router = APIRouter()
router.include_router(cycle.router)
router.include_router(applications.router)
router.include_router(match_requests.router)
