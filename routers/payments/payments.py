import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

import config
from core.db import get_db
from core.errors import DomainError
from routers.dependencies import get_current_member
from utils.nicepay_client import NicePayClient, get_payment_gateway

from .schemas import FreeRevealRequest, FreeRevealResponse, PaymentCallback
from .service import process_payment_callback as service_process_payment_callback
from .service import use_free_reveal as service_use_free_reveal

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


def _client_redirect(*, error: str = None) -> RedirectResponse:
    base = config.CLIENT_APP_URL
    separator = "&" if "?" in base else "?"
    if error:
        url = f"{base}{separator}payment_error={quote(error, safe='')}"
    else:
        url = f"{base}{separator}payment_success=true"
    return RedirectResponse(url=url, status_code=status.HTTP_303_SEE_OTHER)


async def _read_callback_payload(request: Request) -> dict:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        payload = await request.json()
        return payload if isinstance(payload, dict) else {}
    form = await request.form()
    return dict(form)


@router.post("/approve")
async def approve_payment(
    request: Request,
    db: Session = Depends(get_db),
    gateway: NicePayClient = Depends(get_payment_gateway),
):
    """
    Gateway callback after card authentication.

    Always answers with a redirect back to the client app, carrying either
    ``payment_success=true`` or ``payment_error=<reason>``.
    """
    try:
        payload = await _read_callback_payload(request)
        callback = PaymentCallback.model_validate(payload)
        await service_process_payment_callback(db, gateway=gateway, callback=callback)
    except (PydanticValidationError, ValueError) as e:
        logger.warning(f"Malformed payment callback: {e}")
        return _client_redirect(error="invalid_callback")
    except DomainError as e:
        logger.info(f"Payment callback rejected: {e.reason} | {e.message}")
        return _client_redirect(error=e.reason)
    except Exception as e:
        logger.error(f"Unexpected error processing payment callback: {e}", exc_info=True)
        return _client_redirect(error="internal_error")

    return _client_redirect()


@router.post("/free-reveal", response_model=FreeRevealResponse)
async def use_free_reveal(
    request: FreeRevealRequest,
    db: Session = Depends(get_db),
    member=Depends(get_current_member),
):
    """Unlock a match's contacts using one of the member's free reveals"""
    return await service_use_free_reveal(db, member=member, match_id=request.match_id)
