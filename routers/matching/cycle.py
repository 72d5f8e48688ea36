from fastapi import APIRouter

from .schemas import CycleResponse
from .service import get_cycle as service_get_cycle

router = APIRouter(tags=["Cycle"])


@router.get("/cycle", response_model=CycleResponse)
def get_cycle():
    """Current phase, batch windows and countdown target of the weekly cycle"""
    return service_get_cycle()
